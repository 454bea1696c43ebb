"""View model behind the in-app report dialog.

Everything the dialog shows comes from ``resolve_sections``; the exported HTML
and the PDF walk the same ``section_views`` output so the three surfaces agree
on which sections exist and in what order.
"""

from datetime import datetime
from typing import Any

from .formatting import sanitize_html
from .i18n import heading, label, normalize_language
from .models import as_competitors, competitor_stats
from .sections import LIST_SECTIONS, SUBSECTIONS, ParsedReport, resolve_sections


def section_views(parsed: ParsedReport, language: str | None = None) -> list[dict[str, Any]]:
    """Ordered, titled sections with content shaped by kind.

    kind "text" carries ``paragraphs``, "list" carries ``items`` and "groups"
    carries ``groups``: a list of titled item lists.
    """
    views = []
    for key in parsed.section_keys():
        value = getattr(parsed, key)
        view: dict[str, Any] = {"key": key, "title": heading(key, language)}
        if key in SUBSECTIONS:
            view["kind"] = "groups"
            view["groups"] = [
                {"key": sub, "title": heading(sub, language), "items": value[sub]}
                for sub in SUBSECTIONS[key]
                if value.get(sub)
            ]
        elif key in LIST_SECTIONS:
            view["kind"] = "list"
            view["items"] = list(value)
        else:
            view["kind"] = "text"
            view["paragraphs"] = [p for p in value.split("\n\n") if p]
        views.append(view)
    return views


def _iso(value: Any) -> str | None:
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def build_dialog_view(report: Any, language: str | None = None) -> dict[str, Any]:
    """JSON-ready payload for the report dialog."""
    lang = normalize_language(language or getattr(report, "language", None))
    competitors = as_competitors(getattr(report, "competitors", None))
    stats = competitor_stats(competitors)
    if stats["avg_rating"] is None:
        stats["avg_rating"] = "N/A"
    parsed = resolve_sections(report)
    return {
        "id": getattr(report, "id", None),
        "business_id": getattr(report, "business_id", None),
        "business_name": report.business_name,
        "title": label("title", lang),
        "generated_at": _iso(getattr(report, "generated_at", None)),
        "language": lang,
        "labels": {
            key: label(key, lang)
            for key in ("competitors_found", "avg_rating", "total_reviews", "nearby_competitors", "detailed_analysis")
        },
        "stats": stats,
        "sections": section_views(parsed, lang),
        "competitors": [c.to_dict() for c in competitors],
        "analysis_html": sanitize_html(getattr(report, "ai_analysis", None)),
    }
