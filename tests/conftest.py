"""Shared fixtures: isolated SQLite database and no external API keys."""

from datetime import datetime
from types import SimpleNamespace

import pytest

from competitor_watcher import storage
from competitor_watcher.models import Competitor, Review

ANALYSIS_HTML = (
    '<h2 class="text-xl font-bold">1. Executive Summary</h2>'
    "<p>The area is <strong>crowded</strong> but underserved at breakfast.</p>"
    "<p>Most rivals open after 10am.</p>"
    "<h2>Market Overview</h2>"
    "<p>Twelve cafes operate within 1.5km.</p>"
    "<h2>SWOT Analysis</h2>"
    "<h3>Strengths</h3><ul><li>Corner location</li><li>Loyal <em>regulars</em></li></ul>"
    "<h3>Weaknesses</h3><ul><li>Small kitchen</li></ul>"
    "<h3>Opportunities</h3><ul><li>Breakfast delivery</li></ul>"
    "<h3>Threats</h3><ul><li>New chain opening</li></ul>"
    "<h2>Market Trends</h2><ul><li>Oat milk</li><li>Mobile ordering</li></ul>"
    "<h2>Practical Recommendations</h2><ul><li>Open at 7am</li><li>Add a loyalty card</li></ul>"
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("GOOGLE_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_MODEL", raising=False)
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("REPORTS_DIR", str(tmp_path / "reports"))


@pytest.fixture
def session():
    storage.init_db()
    with storage.get_db_session() as s:
        yield s


@pytest.fixture
def analysis_html():
    return ANALYSIS_HTML


@pytest.fixture
def competitors():
    return [
        Competitor(
            name="Morning Brew",
            address="1 Rua Augusta, Lisboa",
            rating=4.6,
            user_ratings_total=320,
            distance="450m",
            price_level="$$",
            reviews=[Review(author="Ana", rating=5, text="Great coffee")],
        ),
        Competitor(name="Bean & Leaf", address="9 Rua Aurea, Lisboa", rating=3.8, user_ratings_total=80),
        Competitor(name="No Rating Cafe", address="3 Rua Nova, Lisboa"),
    ]


@pytest.fixture
def report(analysis_html, competitors):
    return SimpleNamespace(
        id="r-1",
        business_id="b-1",
        business_name="Café <Lisboa>",
        ai_analysis=analysis_html,
        competitors=[c.to_dict() for c in competitors],
        language="en",
        generated_at=datetime(2026, 3, 2, 9, 30),
    )
