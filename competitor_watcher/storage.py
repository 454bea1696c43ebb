"""SQLAlchemy models and persistence for users, businesses and reports."""

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import lru_cache
from pathlib import Path
from typing import Any, Iterator

from sqlalchemy import JSON, Column, DateTime, Float, ForeignKey, Integer, String, Text, create_engine, func
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from . import config
from .errors import NotFoundError, ValidationError
from .models import BUSINESS_TYPES, as_competitors, location_status_for

logger = logging.getLogger(__name__)

Base = declarative_base()


def _new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    username = Column(String(100), unique=True, nullable=False, index=True)
    plan = Column(String(20), nullable=False, default="free")
    language = Column(String(8), nullable=False, default="en")
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "plan": self.plan,
            "language": self.language,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Business(Base):
    __tablename__ = "businesses"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(String(100), nullable=False)
    type = Column(String(50), nullable=False)
    address = Column(Text)
    latitude = Column(Float)
    longitude = Column(Float)
    # "pending" until both coordinates are known
    location_status = Column(String(20), nullable=False, default="validated")
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    reports = relationship("Report", back_populates="business", cascade="all, delete-orphan")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "address": self.address,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "location_status": self.location_status,
            "user_id": self.user_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Report(Base):
    __tablename__ = "reports"

    id = Column(String(64), primary_key=True, default=_new_id)
    business_id = Column(String(36), ForeignKey("businesses.id"), index=True)
    business_name = Column(String(100), nullable=False)
    competitors = Column(JSON, nullable=False, default=list)
    ai_analysis = Column(Text)
    html = Column(Text)

    # Structured sections; when empty they are re-derived from ai_analysis
    executive_summary = Column(Text)
    swot_analysis = Column(JSON)
    market_trends = Column(JSON)
    target_audience = Column(JSON)
    marketing_strategy = Column(JSON)
    customer_sentiment = Column(JSON)

    language = Column(String(8), nullable=False, default="en")
    radius = Column(Integer)
    user_id = Column(String(36), ForeignKey("users.id"), index=True)
    generated_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    business = relationship("Business", back_populates="reports")

    def to_dict(self, include_html: bool = False) -> dict[str, Any]:
        data = {
            "id": self.id,
            "business_id": self.business_id,
            "business_name": self.business_name,
            "competitors": [c.to_dict() for c in as_competitors(self.competitors)],
            "ai_analysis": self.ai_analysis,
            "executive_summary": self.executive_summary,
            "swot_analysis": self.swot_analysis,
            "market_trends": self.market_trends,
            "target_audience": self.target_audience,
            "marketing_strategy": self.marketing_strategy,
            "customer_sentiment": self.customer_sentiment,
            "language": self.language,
            "radius": self.radius,
            "user_id": self.user_id,
            "generated_at": self.generated_at.isoformat() if self.generated_at else None,
        }
        if include_html:
            data["html"] = self.html
        return data


# ---------------------------------------------------------------------------
# Engine and sessions
# ---------------------------------------------------------------------------

@lru_cache(maxsize=None)
def _engine_for(db_url: str):
    if db_url.startswith("sqlite:///") and db_url != "sqlite:///:memory:":
        Path(db_url.replace("sqlite:///", "", 1)).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(
        db_url,
        echo=False,
        connect_args={"check_same_thread": False} if db_url.startswith("sqlite") else {},
    )


def get_engine():
    """Engine for the current DATABASE_URL, created once per URL."""
    return _engine_for(config.database_url())


def get_session_factory():
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False)


@contextmanager
def get_db_session() -> Iterator[Session]:
    """Context manager for database sessions."""
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables."""
    engine = get_engine()
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized at %s", engine.url)


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

def create_user(session: Session, username: str, plan: str = "free", language: str = "en") -> User:
    username = (username or "").strip()
    if not username:
        raise ValidationError("Validation failed", {"username": "Username is required"})
    if get_user_by_username(session, username):
        raise ValidationError("Validation failed", {"username": "Username already exists"})
    if plan not in ("free", "pro"):
        raise ValidationError("Validation failed", {"plan": "Plan must be 'free' or 'pro'"})
    user = User(username=username, plan=plan, language=language)
    session.add(user)
    session.commit()
    return user


def get_user(session: Session, user_id: str) -> User | None:
    return session.get(User, user_id)


def get_user_by_username(session: Session, username: str) -> User | None:
    return session.query(User).filter(User.username == username).first()


# ---------------------------------------------------------------------------
# Businesses
# ---------------------------------------------------------------------------

def validate_business(data: dict[str, Any]) -> dict[str, Any]:
    """Check business fields and derive ``location_status``.

    Raises ValidationError with per-field details.
    """
    errors: dict[str, str] = {}
    name = (data.get("name") or "").strip()
    if not name:
        errors["name"] = "Name is required"
    elif len(name) > 100:
        errors["name"] = "Name must be at most 100 characters"
    if data.get("type") not in BUSINESS_TYPES:
        errors["type"] = f"Type must be one of: {', '.join(BUSINESS_TYPES)}"

    status = None
    try:
        status = location_status_for(data.get("latitude"), data.get("longitude"), data.get("location_status"))
    except ValueError as e:
        errors["location"] = str(e)

    if errors:
        raise ValidationError("Validation failed", errors)
    return {**data, "name": name, "location_status": status}


def add_business(session: Session, data: dict[str, Any], user_id: str | None = None) -> Business:
    cleaned = validate_business(data)
    business = Business(
        name=cleaned["name"],
        type=cleaned["type"],
        address=cleaned.get("address"),
        latitude=cleaned.get("latitude"),
        longitude=cleaned.get("longitude"),
        location_status=cleaned["location_status"],
        user_id=user_id,
    )
    session.add(business)
    session.commit()
    logger.info("Added business %s (%s)", business.name, business.id)
    return business


def get_business(session: Session, business_id: str) -> Business | None:
    return session.get(Business, business_id)


def list_businesses(session: Session, user_id: str | None = None) -> list[Business]:
    query = session.query(Business)
    if user_id is not None:
        query = query.filter(Business.user_id == user_id)
    return query.order_by(Business.created_at).all()


def count_businesses(session: Session, user_id: str) -> int:
    return session.query(func.count(Business.id)).filter(Business.user_id == user_id).scalar() or 0


def update_business(session: Session, business_id: str, changes: dict[str, Any]) -> Business:
    business = get_business(session, business_id)
    if business is None:
        raise NotFoundError("Business not found")
    merged = {**business.to_dict(), **changes}
    # Moving the business re-derives its status unless one is given
    if ("latitude" in changes or "longitude" in changes) and "location_status" not in changes:
        merged["location_status"] = None
    cleaned = validate_business(merged)
    for key in ("name", "type", "address", "latitude", "longitude", "location_status"):
        setattr(business, key, cleaned.get(key))
    session.commit()
    return business


def delete_business(session: Session, business_id: str) -> None:
    business = get_business(session, business_id)
    if business is None:
        raise NotFoundError("Business not found")
    session.delete(business)
    session.commit()
    logger.info("Deleted business %s and its reports", business_id)


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------

def save_report(session: Session, report: Report) -> Report:
    session.add(report)
    session.commit()
    return report


def get_report(session: Session, report_id: str) -> Report | None:
    return session.get(Report, report_id)


def list_reports(session: Session, user_id: str | None = None) -> list[Report]:
    query = session.query(Report)
    if user_id is not None:
        query = query.filter(Report.user_id == user_id)
    return query.order_by(Report.generated_at.desc()).all()


def get_reports_by_business_id(session: Session, business_id: str) -> list[Report]:
    """Reports for one business, newest first."""
    return (
        session.query(Report)
        .filter(Report.business_id == business_id)
        .order_by(Report.generated_at.desc())
        .all()
    )


def count_reports_current_month(session: Session, user_id: str, now: datetime | None = None) -> int:
    now = now or utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return (
        session.query(func.count(Report.id))
        .filter(Report.user_id == user_id, Report.generated_at >= month_start)
        .scalar()
        or 0
    )
