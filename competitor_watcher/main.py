"""Orchestration: business -> competitors -> analysis -> sections -> stored report."""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy.orm import Session

from . import config, storage
from .analyzer import analyze_competitors
from .errors import NotFoundError, PendingLocationError, PlanLimitError
from .export import render_report_html
from .i18n import normalize_language
from .models import get_plan_limits
from .places import search_nearby
from .sections import parse_report
from .storage import Report, User

logger = logging.getLogger(__name__)


def check_business_limit(session: Session, user: User) -> None:
    limits = get_plan_limits(user.plan)
    if storage.count_businesses(session, user.id) >= limits["max_businesses"]:
        raise PlanLimitError(
            f"Your {user.plan} plan allows {limits['max_businesses']} business(es). "
            "Upgrade to add more."
        )


def check_report_limit(session: Session, user: User) -> None:
    limits = get_plan_limits(user.plan)
    if storage.count_reports_current_month(session, user.id) >= limits["max_monthly_reports"]:
        raise PlanLimitError(
            f"Your {user.plan} plan allows {limits['max_monthly_reports']} reports per month."
        )


def build_report(
    business: Any,
    competitors: list,
    analysis: str,
    language: str,
    radius: int,
    user_id: str | None = None,
) -> Report:
    """Report row with structured sections parsed from the analysis."""
    parsed = parse_report(analysis)
    report = Report(
        business_id=getattr(business, "id", None),
        business_name=business.name,
        competitors=[c.to_dict() for c in competitors],
        ai_analysis=analysis,
        executive_summary=parsed.executive_summary or None,
        swot_analysis=parsed.swot or None,
        market_trends=parsed.market_trends or None,
        target_audience=parsed.target_audience or None,
        marketing_strategy=parsed.marketing_strategy or None,
        customer_sentiment=parsed.customer_sentiment or None,
        language=language,
        radius=radius,
        user_id=user_id,
        generated_at=storage.utcnow(),
    )
    report.html = render_report_html(report, language)
    return report


async def run_report_for_business(
    session: Session | None,
    business_id: str | None = None,
    *,
    business: Any = None,
    language: str = "en",
    user_id: str | None = None,
    radius: int = config.DEFAULT_RADIUS,
    on_progress: Callable[[str], None] | None = None,
) -> Report:
    """
    Generate a competitor report for a stored or ad-hoc business.

    Steps:
        1. Load the business and refuse pending locations
        2. Resolve the plan and clamp radius/competitor count to its limits
        3. Search nearby competitors
        4. Analyze them
        5. Parse sections, render HTML and persist

    A business passed in directly is treated as temporary: the report is
    returned without being saved.

    Args:
        session: Database session; may be None for a temporary business
        business_id: Stored business to report on
        business: Ad-hoc business object (name, type, latitude, longitude)
        on_progress: Optional callback(step: str) for progress updates

    Returns:
        The generated Report
    """
    def _progress(msg: str):
        if on_progress:
            on_progress(msg)

    temporary = business is not None
    if business is None:
        business = storage.get_business(session, business_id)
        if business is None:
            raise NotFoundError(f"Business with ID {business_id} not found")

    if (
        getattr(business, "location_status", "validated") == "pending"
        or business.latitude is None
        or business.longitude is None
    ):
        raise PendingLocationError(
            f'Business "{business.name}" has pending location verification. '
            "Please verify the business location before generating a report."
        )

    plan = "free"
    user = storage.get_user(session, user_id) if (session is not None and user_id) else None
    if user is not None:
        plan = user.plan
        if not temporary:
            check_report_limit(session, user)

    limits = get_plan_limits(plan)
    if radius > limits["max_radius"]:
        logger.info("Clamping radius %d to %d for %s plan", radius, limits["max_radius"], plan)
        radius = limits["max_radius"]
    language = normalize_language(language)

    # Step 1: Competitors
    _progress("Searching nearby competitors...")
    competitors = await search_nearby(
        business.latitude,
        business.longitude,
        business.type,
        radius=radius,
        max_results=limits["max_competitors"],
        include_reviews=plan == "pro",
        language=language,
    )
    competitors = competitors[: limits["max_competitors"]]

    # Step 2: Analysis (sync anthropic client, off the event loop)
    _progress(f"Analyzing {len(competitors)} competitors...")
    analysis = await asyncio.to_thread(analyze_competitors, business, competitors, language, plan)

    # Step 3: Sections + HTML
    _progress("Building report...")
    report = build_report(business, competitors, analysis, language, radius, user.id if user else None)

    if temporary:
        report.id = f"temp-{int(report.generated_at.timestamp() * 1000)}"
        return report

    storage.save_report(session, report)
    logger.info("Saved report %s for %s", report.id, business.name)
    return report


def run_report_for_business_sync(*args, **kwargs) -> Report:
    """Synchronous wrapper for run_report_for_business."""
    return asyncio.run(run_report_for_business(*args, **kwargs))
