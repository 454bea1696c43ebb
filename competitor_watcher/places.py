"""Google Places (New) client for competitor discovery and address search.

Without GOOGLE_API_KEY, or when the API fails, nearby search returns
deterministic sample competitors so the rest of the pipeline still runs.
Address search returns [] in the same situations.
"""

import asyncio
import logging
import math
import random
from typing import Any

import httpx

from . import config
from .models import Competitor, PlaceResult, Review

logger = logging.getLogger(__name__)

PLACES_BASE_URL = "https://places.googleapis.com/v1"
MAX_RESULTS_PER_REQUEST = 20
MAX_REVIEWS_PER_PLACE = 3

NEARBY_FIELDS = [
    "places.displayName",
    "places.formattedAddress",
    "places.rating",
    "places.userRatingCount",
    "places.types",
    "places.location",
    "places.priceLevel",
]
TEXT_SEARCH_FIELDS = [
    "places.id",
    "places.displayName",
    "places.formattedAddress",
    "places.rating",
    "places.userRatingCount",
    "places.types",
    "places.location",
]

PRICE_LEVELS = {
    "PRICE_LEVEL_FREE": "Free",
    "PRICE_LEVEL_INEXPENSIVE": "$",
    "PRICE_LEVEL_MODERATE": "$$",
    "PRICE_LEVEL_EXPENSIVE": "$$$",
    "PRICE_LEVEL_VERY_EXPENSIVE": "$$$$",
}

SAMPLE_NAMES = {
    "restaurant": ["The Golden Fork", "Bistro Milano", "Casa Verde", "Ocean Breeze Grill", "The Hungry Chef"],
    "cafe": ["Morning Brew", "The Coffee House", "Bean & Leaf", "Espresso Junction", "Cozy Corner Cafe"],
    "retail": ["City Mart", "Fashion Forward", "Tech Haven", "Home & Living", "The General Store"],
    "gym": ["PowerFit Studio", "Iron Temple", "FitLife Center", "Muscle Factory", "Core Strength Gym"],
    "salon": ["Glamour Studio", "Hair & Beyond", "The Beauty Bar", "Style Salon", "Radiance Spa"],
    "pharmacy": ["HealthFirst Pharmacy", "MedCare Plus", "QuickMeds", "Wellness Pharmacy", "Family Drug Store"],
    "hotel": ["Grand Plaza Hotel", "Comfort Inn", "The Riverside Lodge", "City Center Hotel", "Sunset Suites"],
    "bar": ["The Night Owl", "Cheers Pub", "The Tipsy Glass", "Moonlight Lounge", "Draft House"],
    "bakery": ["Sweet Delights", "The Bread Basket", "Golden Crust", "Sugar & Spice", "The Pastry Corner"],
    "supermarket": ["Fresh Mart", "Super Save", "Daily Grocers", "The Food Emporium", "Value Market"],
    "clinic": ["City Health Clinic", "Family Care Center", "MedFirst Clinic", "Wellness Medical", "QuickCare"],
    "dentist": ["Smile Dental", "Bright Teeth Clinic", "Family Dentistry", "Dental Care Plus", "Pearl Dental"],
    "bank": ["City Bank", "Trust Financial", "First National", "Capital Bank", "Unity Bank"],
    "gas_station": ["Quick Fuel", "Energy Plus", "City Gas", "Fast Lane Fuel", "Green Energy Station"],
    "car_repair": ["Auto Care Center", "Quick Fix Garage", "Master Mechanics", "Pro Auto Service", "Drive Right Repairs"],
    "other": ["Local Business", "Community Store", "Service Center", "The Local Hub", "Main Street Shop"],
}


def format_price_level(price_level: str | None) -> str | None:
    """'PRICE_LEVEL_MODERATE' -> '$$'; unknown values -> None."""
    if not price_level:
        return None
    return PRICE_LEVELS.get(price_level)


def calculate_distance(lat1: float, lng1: float, lat2: float | None, lng2: float | None) -> str:
    """Haversine distance formatted as '850m' under a kilometre, else '1.2km'."""
    if lat2 is None or lng2 is None:
        return "Unknown"
    radius_km = 6371
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    distance = radius_km * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    if distance < 1:
        return f"{round(distance * 1000)}m"
    return f"{distance:.1f}km"


def sample_competitors(business_type: str, lat: float, lng: float) -> list[Competitor]:
    """Stand-in competitors; the same inputs always give the same list."""
    names = SAMPLE_NAMES.get(business_type, SAMPLE_NAMES["other"])
    rng = random.Random(f"{business_type}:{lat:.5f}:{lng:.5f}")
    count = rng.randint(2, 5)
    competitors = []
    for index, name in enumerate(names[:count]):
        competitors.append(Competitor(
            name=name,
            address=f"{100 + index * 50} Main Street, Local City",
            rating=round(rng.uniform(3.5, 5.0), 1),
            user_ratings_total=rng.randint(50, 549),
            types=[business_type],
            distance=f"{rng.uniform(0.2, 1.7):.1f}km",
            price_level=rng.choice(["$", "$$", "$$$", "$$$$"]),
        ))
    return competitors


def _headers(api_key: str, fields: list[str]) -> dict[str, str]:
    return {
        "Content-Type": "application/json",
        "X-Goog-Api-Key": api_key,
        "X-Goog-FieldMask": ",".join(fields),
    }


def _parse_reviews(place: dict[str, Any]) -> list[Review]:
    reviews = []
    for raw in (place.get("reviews") or [])[:MAX_REVIEWS_PER_PLACE]:
        text = (raw.get("text") or {}).get("text", "")
        original = (raw.get("originalText") or {}).get("text")
        reviews.append(Review(
            author=(raw.get("authorAttribution") or {}).get("displayName", "Anonymous"),
            rating=raw.get("rating") or 0,
            text=text or original or "",
            original_text=original if original and original != text else None,
            date=raw.get("relativePublishTimeDescription") or raw.get("publishTime"),
        ))
    return reviews


def _parse_competitor(place: dict[str, Any], lat: float, lng: float) -> Competitor:
    location = place.get("location") or {}
    return Competitor(
        name=(place.get("displayName") or {}).get("text", "Unknown"),
        address=place.get("formattedAddress") or "Address not available",
        rating=place.get("rating"),
        user_ratings_total=place.get("userRatingCount"),
        types=list(place.get("types") or []),
        distance=calculate_distance(lat, lng, location.get("latitude"), location.get("longitude")),
        price_level=format_price_level(place.get("priceLevel")),
        reviews=_parse_reviews(place),
    )


async def search_nearby(
    lat: float,
    lng: float,
    business_type: str,
    radius: int = config.DEFAULT_RADIUS,
    max_results: int = 10,
    include_reviews: bool = False,
    language: str | None = None,
) -> list[Competitor]:
    """
    Find competitors of ``business_type`` within ``radius`` metres.

    Non-fatal: a missing key, HTTP error or network failure logs a warning and
    returns sample competitors. An empty API result is returned as-is.
    """
    api_key = config.google_api_key()
    if not api_key:
        logger.warning("GOOGLE_API_KEY not set, returning sample competitors")
        return sample_competitors(business_type, lat, lng)

    fields = NEARBY_FIELDS + (["places.reviews"] if include_reviews else [])
    payload: dict[str, Any] = {
        "includedTypes": [business_type],
        "maxResultCount": max(1, min(max_results, MAX_RESULTS_PER_REQUEST)),
        "locationRestriction": {
            "circle": {
                "center": {"latitude": lat, "longitude": lng},
                "radius": float(radius),
            },
        },
    }
    if language:
        payload["languageCode"] = language

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{PLACES_BASE_URL}/places:searchNearby",
                json=payload,
                headers=_headers(api_key, fields),
            )
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as e:
        logger.warning("Google Places nearby search failed (%s), returning sample competitors", e)
        return sample_competitors(business_type, lat, lng)

    places = data.get("places") or []
    competitors = [_parse_competitor(place, lat, lng) for place in places]
    logger.info("Found %d competitors within %dm", len(competitors), radius)
    return competitors


async def search_places_by_address(query: str, max_results: int = 10) -> list[PlaceResult]:
    """Text search used by the address picker. Returns [] on any failure."""
    api_key = config.google_api_key()
    if not api_key or not query.strip():
        return []

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            response = await client.post(
                f"{PLACES_BASE_URL}/places:searchText",
                json={"textQuery": query, "maxResultCount": max_results},
                headers=_headers(api_key, TEXT_SEARCH_FIELDS),
            )
            response.raise_for_status()
            data = response.json()
    except httpx.HTTPError as e:
        logger.warning("Google Places text search failed: %s", e)
        return []

    results = []
    for place in data.get("places") or []:
        location = place.get("location") or {}
        results.append(PlaceResult(
            place_id=place.get("id", ""),
            name=(place.get("displayName") or {}).get("text", "Unknown"),
            address=place.get("formattedAddress", ""),
            latitude=location.get("latitude", 0.0),
            longitude=location.get("longitude", 0.0),
            rating=place.get("rating"),
            user_ratings_total=place.get("userRatingCount"),
            types=list(place.get("types") or []),
        ))
    return results


def search_nearby_sync(*args, **kwargs) -> list[Competitor]:
    """Synchronous wrapper for search_nearby."""
    return asyncio.run(search_nearby(*args, **kwargs))
