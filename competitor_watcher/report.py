"""HTML template + WeasyPrint PDF generation for competitor reports.

The PDF template never receives analysis HTML directly: every paragraph and
item goes through ``format_inline`` so only bold and italic survive.
"""

import html
import logging
from pathlib import Path
from typing import Any

from .dialog import section_views
from .formatting import format_inline, runs_to_markup
from .i18n import label, normalize_language
from .models import as_competitors, competitor_stats
from .sections import resolve_sections

logger = logging.getLogger(__name__)

PDF_MAX_COMPETITORS = 10


def _inline(fragment: str) -> str:
    return runs_to_markup(format_inline(fragment))


def _format_number(n: int) -> str:
    """Format number with commas: 1420 -> '1,420'."""
    return f"{n:,}"


def _section_block(view: dict[str, Any]) -> str:
    if view["kind"] == "text":
        body = "".join(f'<p class="para">{_inline(p)}</p>' for p in view["paragraphs"])
    elif view["kind"] == "list":
        body = '<ul class="items">' + "".join(f"<li>{_inline(i)}</li>" for i in view["items"]) + "</ul>"
    else:
        body = ""
        for group in view["groups"]:
            items = "".join(f"<li>{_inline(i)}</li>" for i in group["items"])
            body += (
                f'<div class="group" data-group="{group["key"]}">'
                f'<div class="group-title">{html.escape(group["title"])}</div>'
                f'<ul class="items">{items}</ul></div>'
            )
    return (
        f'<div class="section" data-section="{view["key"]}">'
        f'<div class="section-title">{html.escape(view["title"])}</div>{body}</div>'
    )


def build_pdf_html(report: Any, language: str | None = None) -> str:
    """HTML fed to WeasyPrint; competitor list capped at PDF_MAX_COMPETITORS."""
    lang = normalize_language(language or getattr(report, "language", None))
    competitors = as_competitors(getattr(report, "competitors", None))
    stats = competitor_stats(competitors)
    parsed = resolve_sections(report)
    business_name = html.escape(report.business_name or "")
    generated_at = getattr(report, "generated_at", None)
    generated = generated_at.strftime("%Y-%m-%d") if hasattr(generated_at, "strftime") else str(generated_at or "")

    section_blocks = "".join(_section_block(view) for view in section_views(parsed, lang))

    competitor_rows = ""
    for competitor in competitors[:PDF_MAX_COMPETITORS]:
        rating = f"{competitor.rating}" if competitor.rating else "-"
        competitor_rows += f"""
        <tr class="competitor-row">
            <td class="c-name">{html.escape(competitor.name)}<div class="c-address">{html.escape(competitor.address or "")}</div></td>
            <td class="c-num">{rating}</td>
            <td class="c-num">{_format_number(competitor.user_ratings_total or 0)}</td>
            <td class="c-num">{html.escape(competitor.distance or "")}</td>
        </tr>
        """
    if not competitor_rows:
        competitor_rows = f'<tr><td colspan="4">{html.escape(label("no_competitors", lang))}</td></tr>'

    avg_rating = stats["avg_rating"] if stats["avg_rating"] is not None else "-"

    return f"""<!DOCTYPE html>
<html lang="{lang}">
<head>
<meta charset="utf-8">
<style>
    @page {{
        size: A4;
        margin: 30px;
    }}

    * {{
        margin: 0;
        padding: 0;
        box-sizing: border-box;
    }}

    body {{
        font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, 'Helvetica Neue', Arial, sans-serif;
        color: #1a1a2e;
        font-size: 12px;
        line-height: 1.55;
    }}

    .top-bar {{
        height: 5px;
        background: linear-gradient(90deg, #2563eb, #1d4ed8);
        border-radius: 3px 3px 0 0;
    }}

    .header {{
        padding: 28px 32px 0 32px;
    }}

    .business-name {{
        font-size: 28px;
        font-weight: 700;
        margin-bottom: 4px;
    }}

    .report-subtitle {{
        font-size: 13px;
        color: #9ca3af;
        margin-bottom: 24px;
    }}

    .stats {{
        display: flex;
        margin: 0 32px 24px 32px;
    }}

    .stat {{
        flex: 1;
        border-left: 4px solid #2563eb;
        padding: 8px 14px;
    }}

    .stat-value {{
        font-size: 20px;
        font-weight: 700;
    }}

    .stat-name {{
        font-size: 10px;
        text-transform: uppercase;
        color: #6b7280;
        letter-spacing: 0.05em;
    }}

    .section {{
        margin: 0 32px 18px 32px;
        page-break-inside: avoid;
    }}

    .section-title {{
        font-size: 16px;
        font-weight: 700;
        border-bottom: 1px solid #e8eaed;
        padding-bottom: 4px;
        margin-bottom: 8px;
    }}

    .para {{
        margin-bottom: 8px;
    }}

    .items {{
        padding-left: 18px;
        margin-bottom: 6px;
    }}

    .group-title {{
        font-weight: 600;
        color: #2563eb;
        margin-top: 6px;
    }}

    table {{
        width: 100%;
        border-collapse: collapse;
    }}

    thead th {{
        text-transform: uppercase;
        font-size: 10px;
        font-weight: 600;
        color: #8b95a5;
        text-align: left;
        padding: 0 8px 8px 8px;
        border-bottom: 1px solid #e8eaed;
    }}

    .competitor-row td {{
        padding: 8px;
        border-bottom: 1px solid #e8eaed;
        vertical-align: top;
    }}

    .c-address {{
        color: #6b7280;
        font-size: 10px;
    }}

    .c-num {{
        white-space: nowrap;
    }}

    .footer {{
        text-align: center;
        margin: 24px 32px 0 32px;
        padding-top: 12px;
        border-top: 1px solid #e8eaed;
        font-size: 10px;
        color: #9ca3af;
    }}
</style>
</head>
<body>
    <div class="top-bar"></div>

    <div class="header">
        <div class="business-name">{business_name}</div>
        <div class="report-subtitle">{html.escape(label("title", lang))} &middot; {html.escape(label("generated", lang))} {html.escape(generated)}</div>
    </div>

    <div class="stats">
        <div class="stat"><div class="stat-value">{stats["competitors_found"]}</div><div class="stat-name">{html.escape(label("competitors_found", lang))}</div></div>
        <div class="stat"><div class="stat-value">{avg_rating}</div><div class="stat-name">{html.escape(label("avg_rating", lang))}</div></div>
        <div class="stat"><div class="stat-value">{_format_number(stats["total_reviews"])}</div><div class="stat-name">{html.escape(label("total_reviews", lang))}</div></div>
    </div>

    {section_blocks}

    <div class="section">
        <div class="section-title">{html.escape(label("nearby_competitors", lang))}</div>
        <table>
            <thead>
                <tr><th></th><th>&#9733;</th><th>{html.escape(label("reviews", lang))}</th><th></th></tr>
            </thead>
            <tbody>
                {competitor_rows}
            </tbody>
        </table>
    </div>

    <div class="footer">Competitor Watcher</div>
</body>
</html>"""


def render_report_pdf_bytes(report: Any, language: str | None = None) -> bytes:
    """PDF document as bytes, for HTTP downloads."""
    # WeasyPrint needs native pango/cairo; import only when a PDF is requested
    from weasyprint import HTML

    return HTML(string=build_pdf_html(report, language)).write_pdf()


def generate_report_pdf(report: Any, output_path: Path, language: str | None = None) -> Path:
    """
    Generate a competitor analysis PDF report.

    Args:
        report: Stored or freshly generated report
        output_path: Where to save the PDF
        language: Overrides the report's own language

    Returns:
        Path to the generated PDF
    """
    from weasyprint import HTML

    output_path = Path(output_path)
    HTML(string=build_pdf_html(report, language)).write_pdf(str(output_path))
    logger.info("Wrote PDF report to %s", output_path)
    return output_path
