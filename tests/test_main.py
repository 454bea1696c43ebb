"""End-to-end report generation with sample competitors and template analysis."""

import asyncio
from types import SimpleNamespace

import pytest

from competitor_watcher import storage
from competitor_watcher.errors import NotFoundError, PendingLocationError, PlanLimitError
from competitor_watcher.main import (
    check_business_limit,
    run_report_for_business,
    run_report_for_business_sync,
)
from competitor_watcher.places import sample_competitors


def _add(session, user=None, **kwargs):
    data = {"name": "Café Lisboa", "type": "cafe", "latitude": 38.7139, "longitude": -9.1394}
    data.update(kwargs)
    return storage.add_business(session, data, user_id=user.id if user else None)


class TestRunReport:
    """Stored businesses produce stored reports."""

    def test_saved_report(self, session):
        business = _add(session)
        steps = []
        report = asyncio.run(run_report_for_business(session, business.id, on_progress=steps.append))

        stored = storage.get_report(session, report.id)
        assert stored is not None
        assert stored.business_id == business.id
        assert stored.radius == 1500
        assert len(stored.competitors) == len(sample_competitors("cafe", 38.7139, -9.1394))
        assert "Market Overview" in stored.ai_analysis
        assert 'data-section="market_overview"' in stored.html
        assert len(steps) == 3

    def test_free_plan_has_no_pro_sections(self, session):
        report = asyncio.run(run_report_for_business(session, _add(session).id))
        assert report.swot_analysis is None
        assert report.executive_summary is None
        assert report.market_trends is None

    def test_pro_plan_sections_stored(self, session):
        user = storage.create_user(session, "maria", plan="pro")
        business = _add(session, user)
        report = asyncio.run(run_report_for_business(session, business.id, user_id=user.id, language="pt"))
        assert set(report.swot_analysis) == {"strengths", "weaknesses", "opportunities", "threats"}
        assert report.executive_summary
        assert report.market_trends
        assert report.language == "pt"
        assert report.user_id == user.id
        assert "Análise SWOT" in report.ai_analysis

    def test_not_found(self, session):
        with pytest.raises(NotFoundError):
            asyncio.run(run_report_for_business(session, "missing"))

    def test_pending_location(self, session):
        business = _add(session, latitude=None, longitude=None)
        with pytest.raises(PendingLocationError) as exc_info:
            asyncio.run(run_report_for_business(session, business.id))
        assert exc_info.value.status_code == 400
        assert storage.list_reports(session) == []

    def test_radius_clamped_to_plan(self, session):
        report = asyncio.run(run_report_for_business(session, _add(session).id, radius=9000))
        assert report.radius == 5000

    def test_pro_radius(self, session):
        user = storage.create_user(session, "maria", plan="pro")
        report = asyncio.run(run_report_for_business(session, _add(session, user).id, user_id=user.id, radius=9000))
        assert report.radius == 9000

    def test_monthly_report_limit(self, session):
        user = storage.create_user(session, "maria")
        business = _add(session, user)
        for _ in range(2):
            asyncio.run(run_report_for_business(session, business.id, user_id=user.id))
        with pytest.raises(PlanLimitError):
            asyncio.run(run_report_for_business(session, business.id, user_id=user.id))
        assert len(storage.list_reports(session, user.id)) == 2

    def test_sync_wrapper(self, session):
        report = run_report_for_business_sync(session, _add(session).id)
        assert storage.get_report(session, report.id) is not None


class TestTemporaryBusiness:
    """A business passed in directly is reported on but never stored."""

    def test_not_saved(self, session):
        business = SimpleNamespace(name="Pop-up", type="bar", latitude=38.7, longitude=-9.1)
        report = asyncio.run(run_report_for_business(session, business=business))
        assert report.id.startswith("temp-")
        assert report.business_id is None
        assert storage.list_reports(session) == []

    def test_without_session(self):
        business = SimpleNamespace(name="Pop-up", type="bar", latitude=38.7, longitude=-9.1)
        report = asyncio.run(run_report_for_business(None, business=business))
        assert report.id.startswith("temp-")
        assert report.html.startswith("<!DOCTYPE html>")

    def test_pending(self):
        business = SimpleNamespace(name="Pop-up", type="bar", latitude=None, longitude=-9.1)
        with pytest.raises(PendingLocationError):
            asyncio.run(run_report_for_business(None, business=business))


def test_business_limit(session):
    user = storage.create_user(session, "maria")
    check_business_limit(session, user)
    _add(session, user)
    with pytest.raises(PlanLimitError) as exc_info:
        check_business_limit(session, user)
    assert exc_info.value.status_code == 403
