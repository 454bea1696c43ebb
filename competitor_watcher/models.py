"""Competitor dataclasses, business categories and subscription plan limits."""

from dataclasses import asdict, dataclass, field
from typing import Any


BUSINESS_TYPES = (
    "restaurant",
    "cafe",
    "retail",
    "gym",
    "salon",
    "pharmacy",
    "hotel",
    "bar",
    "bakery",
    "supermarket",
    "clinic",
    "dentist",
    "bank",
    "gas_station",
    "car_repair",
    "other",
)

LOCATION_STATUSES = ("validated", "pending")

PLAN_LIMITS = {
    "free": {
        "max_businesses": 1,
        "max_monthly_reports": 2,
        "max_radius": 5000,
        "max_competitors": 10,
    },
    "pro": {
        "max_businesses": 3,
        "max_monthly_reports": 10,
        "max_radius": 20000,
        "max_competitors": 100,
    },
}


def get_plan_limits(plan: str | None) -> dict[str, int]:
    """Limits for a plan name; unknown or missing plans get the free tier."""
    return PLAN_LIMITS.get((plan or "free").lower(), PLAN_LIMITS["free"])


@dataclass
class Review:
    author: str
    rating: int = 0
    text: str = ""  # translated into the report language when available
    original_text: str | None = None
    date: str | None = None


@dataclass
class Competitor:
    name: str
    address: str
    rating: float | None = None
    user_ratings_total: int | None = None
    types: list[str] = field(default_factory=list)
    distance: str | None = None  # "850m" or "1.2km"
    price_level: str | None = None  # "Free", "$" .. "$$$$"
    reviews: list[Review] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Competitor":
        reviews = [Review(**r) for r in data.get("reviews") or []]
        return cls(
            name=data.get("name", "Unknown"),
            address=data.get("address", ""),
            rating=data.get("rating"),
            user_ratings_total=data.get("user_ratings_total"),
            types=list(data.get("types") or []),
            distance=data.get("distance"),
            price_level=data.get("price_level"),
            reviews=reviews,
        )


@dataclass
class PlaceResult:
    place_id: str
    name: str
    address: str
    latitude: float
    longitude: float
    rating: float | None = None
    user_ratings_total: int | None = None
    types: list[str] = field(default_factory=list)


def as_competitors(values) -> list[Competitor]:
    """Accept stored JSON dicts or Competitor objects."""
    return [v if isinstance(v, Competitor) else Competitor.from_dict(v) for v in values or []]


def location_status_for(latitude: float | None, longitude: float | None, requested: str | None = None) -> str:
    """A business without both usable coordinates is always pending.

    Raises ValueError for coordinates outside the valid range or an unknown
    status.
    """
    if requested is not None and requested not in LOCATION_STATUSES:
        raise ValueError(f"location_status must be one of {', '.join(LOCATION_STATUSES)}")
    if latitude is None or longitude is None:
        return "pending"
    if not -90 <= latitude <= 90:
        raise ValueError("latitude must be between -90 and 90")
    if not -180 <= longitude <= 180:
        raise ValueError("longitude must be between -180 and 180")
    # (0, 0) is what failed geocoders return
    if latitude == 0 and longitude == 0:
        return "pending"
    return requested or "validated"


def competitor_stats(competitors: list[Competitor]) -> dict[str, Any]:
    """Headline numbers shown at the top of every report surface.

    Average rating only counts competitors that have a rating; it is None when
    none do.
    """
    rated = [c.rating for c in competitors if c.rating]
    avg_rating = sum(rated) / len(rated) if rated else None
    return {
        "competitors_found": len(competitors),
        "avg_rating": round(avg_rating, 1) if avg_rating is not None else None,
        "total_reviews": sum(c.user_ratings_total or 0 for c in competitors),
    }
