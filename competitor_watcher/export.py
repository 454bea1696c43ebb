"""Standalone HTML document for the report download."""

import html
import re
from datetime import datetime
from typing import Any

from .dialog import section_views
from .i18n import label, normalize_language
from .models import Competitor, as_competitors, competitor_stats
from .sections import resolve_sections

_SLUG_RE = re.compile(r"[^a-z0-9]+")

_STYLE = """
    body {
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Arial, sans-serif;
        background: #f5f7fa;
        color: #1f2937;
        margin: 0;
        line-height: 1.6;
    }
    .container { max-width: 880px; margin: 0 auto; padding: 32px 24px; }
    .header { border-bottom: 4px solid #2563eb; padding-bottom: 16px; margin-bottom: 24px; }
    .header h1 { margin: 0 0 4px 0; font-size: 28px; }
    .header .subtitle { color: #6b7280; font-size: 14px; }
    .stats { display: flex; gap: 16px; margin-bottom: 32px; }
    .stat { flex: 1; background: white; border-radius: 8px; padding: 16px; text-align: center; }
    .stat .value { font-size: 24px; font-weight: 700; color: #2563eb; }
    .stat .name { font-size: 12px; color: #6b7280; text-transform: uppercase; }
    section { background: white; border-radius: 8px; padding: 20px 24px; margin-bottom: 20px; }
    section h2 { margin-top: 0; font-size: 20px; color: #111827; }
    section h3 { font-size: 15px; color: #2563eb; margin-bottom: 6px; }
    .groups { display: grid; grid-template-columns: 1fr 1fr; gap: 12px 24px; }
    .competitor { border-top: 1px solid #e5e7eb; padding: 10px 0; }
    .competitor .meta { color: #6b7280; font-size: 13px; }
    .footer { text-align: center; color: #9ca3af; font-size: 12px; margin-top: 32px; }
"""


def report_filename(business_name: str, extension: str = "html") -> str:
    """'Café Lisboa' -> 'report-caf-lisboa.html'."""
    slug = _SLUG_RE.sub("-", (business_name or "").lower()).strip("-") or "business"
    return f"report-{slug}.{extension}"


def _format_date(value: Any) -> str:
    if isinstance(value, datetime):
        return value.strftime("%Y-%m-%d %H:%M")
    return str(value or "")


def _section_html(view: dict[str, Any]) -> str:
    body = ""
    if view["kind"] == "text":
        body = "".join(f"<p>{p}</p>" for p in view["paragraphs"])
    elif view["kind"] == "list":
        body = "<ul>" + "".join(f"<li>{item}</li>" for item in view["items"]) + "</ul>"
    else:
        groups = ""
        for group in view["groups"]:
            items = "".join(f"<li>{item}</li>" for item in group["items"])
            groups += f'<div data-group="{group["key"]}"><h3>{html.escape(group["title"])}</h3><ul>{items}</ul></div>'
        body = f'<div class="groups">{groups}</div>'
    return f'<section data-section="{view["key"]}"><h2>{html.escape(view["title"])}</h2>{body}</section>'


def _competitor_html(competitor: Competitor, language: str) -> str:
    meta = []
    if competitor.rating:
        meta.append(f"&#9733; {competitor.rating}")
    if competitor.user_ratings_total:
        meta.append(f"{competitor.user_ratings_total} {label('reviews', language)}")
    if competitor.distance:
        meta.append(html.escape(competitor.distance))
    if competitor.price_level:
        meta.append(html.escape(competitor.price_level))
    return (
        '<div class="competitor">'
        f"<strong>{html.escape(competitor.name)}</strong>"
        f"<div>{html.escape(competitor.address or '')}</div>"
        f'<div class="meta">{" &middot; ".join(meta)}</div>'
        "</div>"
    )


def render_report_html(report: Any, language: str | None = None) -> str:
    """Full HTML document with inline CSS, readable without the app."""
    lang = normalize_language(language or getattr(report, "language", None))
    competitors = as_competitors(getattr(report, "competitors", None))
    stats = competitor_stats(competitors)
    parsed = resolve_sections(report)
    business_name = html.escape(report.business_name or "")

    sections = "\n".join(_section_html(view) for view in section_views(parsed, lang))

    if competitors:
        competitor_rows = "".join(_competitor_html(c, lang) for c in competitors)
    else:
        competitor_rows = f"<p>{html.escape(label('no_competitors', lang))}</p>"

    avg_rating = stats["avg_rating"] if stats["avg_rating"] is not None else "-"

    return f"""<!DOCTYPE html>
<html lang="{lang}">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{business_name} - {html.escape(label("title", lang))}</title>
<style>{_STYLE}</style>
</head>
<body>
<div class="container">
    <div class="header">
        <h1>{business_name}</h1>
        <div class="subtitle">{html.escape(label("title", lang))} &middot; {html.escape(label("generated", lang))} {_format_date(getattr(report, "generated_at", None))}</div>
    </div>
    <div class="stats">
        <div class="stat"><div class="value">{stats["competitors_found"]}</div><div class="name">{html.escape(label("competitors_found", lang))}</div></div>
        <div class="stat"><div class="value">{avg_rating}</div><div class="name">{html.escape(label("avg_rating", lang))}</div></div>
        <div class="stat"><div class="value">{stats["total_reviews"]:,}</div><div class="name">{html.escape(label("total_reviews", lang))}</div></div>
    </div>
{sections}
    <section class="competitors">
        <h2>{html.escape(label("nearby_competitors", lang))}</h2>
        {competitor_rows}
    </section>
    <div class="footer">Competitor Watcher</div>
</div>
</body>
</html>"""
