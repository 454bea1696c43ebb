"""Competitor analysis via Claude, with a template fallback for offline runs."""

import html
import logging
import re
from typing import Any

import anthropic

from . import config
from .errors import AnalysisError
from .i18n import heading, normalize_language
from .models import Competitor, competitor_stats
from .sections import SUBSECTIONS

logger = logging.getLogger(__name__)

BASIC_SECTIONS = (
    "market_overview",
    "key_competitors",
    "review_analysis",
    "market_gaps",
    "recommendations",
    "differentiation",
)
PRO_SECTIONS = (
    "executive_summary",
    "market_overview",
    "swot",
    "market_trends",
    "target_audience",
    "marketing_strategy",
    "customer_sentiment",
    "recommendations",
)

LANGUAGE_NAMES = {"en": "English", "pt": "Portuguese", "es": "Spanish", "fr": "French", "de": "German"}

_FENCE_RE = re.compile(r"^```[a-zA-Z]*\s*\n?(.*?)\n?```\s*$", re.DOTALL)


def sections_for_plan(plan: str | None) -> tuple[str, ...]:
    return PRO_SECTIONS if (plan or "").lower() == "pro" else BASIC_SECTIONS


def unwrap_fences(text: str) -> str:
    """Drop a surrounding ```html fence if the model added one."""
    match = _FENCE_RE.match(text.strip())
    return match.group(1).strip() if match else text.strip()


def _outline(sections: tuple[str, ...], language: str) -> str:
    lines = []
    for key in sections:
        lines.append(f"<h2>{heading(key, language)}</h2>")
        for sub in SUBSECTIONS.get(key, ()):
            lines.append(f"  <h3>{heading(sub, language)}</h3> followed by a <ul> list")
    return "\n".join(lines)


def _system_prompt(language: str, plan: str | None) -> str:
    sections = sections_for_plan(plan)
    return (
        "You are a local-market analyst writing a competitor analysis for a small "
        "business owner. Write in "
        f"{LANGUAGE_NAMES[language]}.\n\n"
        "Respond with an HTML fragment only: no markdown, no code fences, no <html> or "
        "<body> wrapper, no attributes on tags. Use only h2, h3, p, ul, li, strong and em.\n\n"
        "Use exactly these headings, in this order and spelled exactly as written:\n"
        f"{_outline(sections, language)}\n\n"
        "Under headings without sub-headings write one or two short paragraphs, or a "
        "<ul> list for trends, recommendations and differentiation strategies. "
        "Refer to competitors by name and ground every claim in the ratings, review "
        "counts, distances, price levels and review excerpts provided."
    )


def _competitor_brief(business: Any, competitors: list[Competitor]) -> str:
    parts = [
        f"Business: {business.name}",
        f"Type: {business.type}",
        f"Address: {getattr(business, 'address', None) or 'n/a'}",
        f"\nCompetitors ({len(competitors)}):",
    ]
    for i, c in enumerate(competitors, 1):
        line = f"{i}. {c.name} | rating {c.rating or 'n/a'} ({c.user_ratings_total or 0} reviews)"
        if c.distance:
            line += f" | {c.distance}"
        if c.price_level:
            line += f" | price {c.price_level}"
        parts.append(line)
        for review in c.reviews:
            parts.append(f'   - {review.rating}/5 "{review.text[:300]}"')
    return "\n".join(parts)


def analyze_competitors(
    business: Any,
    competitors: list[Competitor],
    language: str | None = "en",
    plan: str | None = "free",
) -> str:
    """
    Produce the HTML analysis for a business and its competitors.

    Falls back to ``template_analysis`` when ANTHROPIC_API_KEY is unset or there
    are no competitors. API failures raise AnalysisError.
    """
    language = normalize_language(language)
    if not competitors:
        return template_analysis(business, competitors, language, plan)

    api_key = config.anthropic_api_key()
    if not api_key:
        logger.warning("ANTHROPIC_API_KEY not set, using template analysis")
        return template_analysis(business, competitors, language, plan)

    client = anthropic.Anthropic(api_key=api_key)
    try:
        response = client.messages.create(
            model=config.anthropic_model(),
            max_tokens=4096,
            system=_system_prompt(language, plan),
            messages=[{"role": "user", "content": _competitor_brief(business, competitors)}],
        )
    except anthropic.APIError as e:
        logger.error("Analysis request failed: %s", e)
        raise AnalysisError(f"Analysis request failed: {e}") from e

    text = "".join(
        block.text for block in response.content or [] if getattr(block, "type", None) == "text"
    )
    if not text.strip():
        logger.error("Analysis response had no text (stop_reason=%s)", getattr(response, "stop_reason", None))
        raise AnalysisError("Analysis response contained no text")
    return unwrap_fences(text)


def _ul(items: list[str]) -> str:
    return "<ul>" + "".join(f"<li>{item}</li>" for item in items) + "</ul>"


def template_analysis(
    business: Any,
    competitors: list[Competitor],
    language: str | None = "en",
    plan: str | None = "free",
) -> str:
    """Deterministic analysis built from competitor numbers alone.

    Headings are localized so the result parses like a model response; the
    body text is English.
    """
    language = normalize_language(language)
    name = html.escape(business.name)

    def h(key):
        return f"<h2>{html.escape(heading(key, language))}</h2>"

    def h3(key):
        return f"<h3>{html.escape(heading(key, language))}</h3>"

    if not competitors:
        return (
            f"{h('market_overview')}"
            f"<p>No direct competitors were found in the immediate vicinity of <strong>{name}</strong>. "
            "This could indicate a market opportunity. Consider expanding the search radius "
            "to confirm.</p>"
        )

    stats = competitor_stats(competitors)
    avg = stats["avg_rating"]
    avg_text = f"{avg}/5.0" if avg is not None else "N/A"
    avg_reviews = round(stats["total_reviews"] / len(competitors))
    ranked = sorted(competitors, key=lambda c: (c.rating or 0, c.user_ratings_total or 0), reverse=True)
    leader = ranked[0]
    high = [c for c in competitors if (c.rating or 0) >= 4.5]
    low = [c for c in competitors if c.rating and c.rating < 4.0]

    def names(cs):
        return ", ".join(html.escape(c.name) for c in cs)

    high_text = (
        f"{len(high)} competitor(s) rated 4.5 or above ({names(high)}) have strong customer loyalty."
        if high
        else "No competitor is rated 4.5 or above, so the top spot for customer satisfaction is open."
    )
    low_text = (
        f"{len(low)} competitor(s) rated below 4.0 ({names(low)}) show service gaps you can win customers from."
        if low
        else "All rated competitors are at 4.0 or above, so service standards in the area are high."
    )
    opportunity = (
        "Customer satisfaction in the area has room to improve; aim to exceed current standards."
        if avg is not None and avg < 4.2
        else "Satisfaction standards are high; compete on innovation and unique offerings."
    )
    recommendations = [
        "Focus on <strong>customer service excellence</strong> to stand out from competitors",
        "Monitor competitor pricing and promotions",
        "Ask satisfied customers for reviews and reply to every review",
        "Define a clear value proposition that sets you apart",
        "Build local partnerships and community presence",
    ]

    blocks = {
        "executive_summary": (
            f"<p>We found {len(competitors)} competitor(s) near <strong>{name}</strong> "
            f"with an average rating of {avg_text}. {opportunity}</p>"
        ),
        "market_overview": (
            f"<p>{len(competitors)} competitor(s) operate nearby, averaging {avg_text} "
            f"and {avg_reviews} reviews each ({stats['total_reviews']:,} reviews in total).</p>"
        ),
        "key_competitors": (
            f"<p><strong>{html.escape(leader.name)}</strong> leads the area with a rating of "
            f"{leader.rating or 'N/A'} from {leader.user_ratings_total or 0} reviews. {high_text}</p>"
        ),
        "review_analysis": f"<p>{low_text}</p>",
        "market_gaps": f"<p>{opportunity}</p>",
        "recommendations": _ul(recommendations),
        "differentiation": _ul([
            "Offer a loyalty programme to retain customers",
            "Target customers of lower-rated competitors with focused marketing",
        ]),
        "swot": (
            h3("strengths") + _ul([f"Room to position against {len(competitors)} known competitors"])
            + h3("weaknesses") + _ul([f"Established rivals such as {html.escape(leader.name)} hold more reviews"])
            + h3("opportunities") + _ul([opportunity, "Win customers from lower-rated competitors"])
            + h3("threats") + _ul([high_text])
        ),
        "market_trends": _ul([
            "Customers compare options on online reviews before visiting",
            f"Review volume averages {avg_reviews} per competitor",
        ]),
        "target_audience": (
            h3("demographics") + _ul(["Local residents and workers within the search radius"])
            + h3("psychographics") + _ul(["Value reliable quality and good service"])
            + h3("pain_points") + _ul(["Inconsistent service at lower-rated competitors"])
        ),
        "marketing_strategy": (
            h3("primary_channels") + _ul(["Google Business Profile", "Local social media"])
            + h3("content_ideas") + _ul(["Behind-the-scenes posts", "Customer stories"])
            + h3("promotional_tactics") + _ul(["Introductory offers for new customers"])
        ),
        "customer_sentiment": (
            h3("common_praises") + _ul([f"Competitors average {avg_text}"])
            + h3("recurring_complaints") + _ul([low_text])
            + h3("unmet_needs") + _ul([opportunity])
        ),
    }

    return "\n".join(h(key) + blocks[key] for key in sections_for_plan(plan))
