"""Split an AI analysis blob into typed report sections.

The analysis arrives as free-form HTML or markdown. Everything here works on a
normalized HTML form: markdown is rendered first, script/style blocks are
dropped and tag attributes are removed, so headings like
``<h2 class="text-lg">2. SWOT Analysis</h2>`` reduce to a bare label that is
matched against the localized variants in ``i18n.HEADINGS``.

Missing sections never raise; they come back empty.
"""

import html
import logging
import re
from dataclasses import asdict, dataclass, field, fields
from typing import Any

from bs4 import BeautifulSoup, Comment, NavigableString
from markdown_it import MarkdownIt

from .i18n import HEADING_PATTERNS

logger = logging.getLogger(__name__)

TEXT_SECTIONS = (
    "executive_summary",
    "market_overview",
    "key_competitors",
    "review_analysis",
    "market_gaps",
)
LIST_SECTIONS = ("market_trends", "recommendations", "differentiation")
SUBSECTIONS = {
    "swot": ("strengths", "weaknesses", "opportunities", "threats"),
    "target_audience": ("demographics", "psychographics", "pain_points"),
    "marketing_strategy": ("primary_channels", "content_ideas", "promotional_tactics"),
    "customer_sentiment": ("common_praises", "recurring_complaints", "unmet_needs"),
}

# Display order shared by every rendering surface
SECTION_ORDER = (
    "executive_summary",
    "market_overview",
    "market_trends",
    "customer_sentiment",
    "key_competitors",
    "review_analysis",
    "market_gaps",
    "target_audience",
    "swot",
    "marketing_strategy",
    "recommendations",
    "differentiation",
)

_BLOCK_TAG_RE = re.compile(r"<(?:h[1-6]|p|ul|ol|li|div|table|br)\b", re.I)
_DROP_BLOCK_RE = re.compile(r"<(script|style|iframe|object|noscript)\b.*?</\1\s*>", re.I | re.S)
_TAG_ATTRS_RE = re.compile(r"""<(/?)([a-zA-Z][a-zA-Z0-9]*)\b(?:[^>"']|"[^"]*"|'[^']*')*?(/?)>""")
_BLOCK_BREAK_RE = re.compile(r"<(?:br|/p|/li|/h[1-6]|/div|/tr)\b[^>]*>", re.I)
_BLOCK_SPLIT_RE = re.compile(r"</?(?:p|li|ul|ol|div|br|h[1-6]|table|tr|td|th)\b[^>]*>", re.I)
_HEADING_RE = re.compile(r"<h([1-6])>(.*?)</h\1>", re.I | re.S)
_BOLD_LABEL_RE = re.compile(r"<p>\s*<(strong|b)>(.*?)</\1>\s*:?\s*</p>", re.I | re.S)
_LIST_ITEM_RE = re.compile(r"<li\b[^>]*>(.*?)(?=</li>|<li\b|</[uo]l>|$)", re.I | re.S)
_BRACKET_RE = re.compile(r"^\s*\[(.*)\]\s*$", re.S)
_LABEL_PREFIX_RE = re.compile(r"^[\W\d_]+")
_LABEL_SUFFIX_RE = re.compile(r"[\W_]+$")

# Bold paragraphs used as sub-headings rank below every real heading
_BOLD_LABEL_LEVEL = 7

_INLINE_TAGS = {"strong": "strong", "b": "strong", "em": "em", "i": "em"}

_markdown = MarkdownIt("commonmark")


@dataclass
class _Marker:
    start: int
    end: int
    level: int
    label: str


@dataclass
class ParsedReport:
    """Typed intermediate representation consumed by every renderer.

    Text sections hold paragraphs separated by blank lines; list items and
    paragraphs keep inline ``<strong>``/``<em>`` markup and nothing else.
    """

    executive_summary: str = ""
    market_overview: str = ""
    key_competitors: str = ""
    review_analysis: str = ""
    market_gaps: str = ""
    market_trends: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    differentiation: list[str] = field(default_factory=list)
    swot: dict[str, list[str]] = field(default_factory=dict)
    target_audience: dict[str, list[str]] = field(default_factory=dict)
    marketing_strategy: dict[str, list[str]] = field(default_factory=dict)
    customer_sentiment: dict[str, list[str]] = field(default_factory=dict)

    def section_keys(self) -> list[str]:
        """Keys with non-empty content, in display order."""
        return [key for key in SECTION_ORDER if getattr(self, key)]

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ParsedReport":
        names = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in names})


def markdown_to_html(text: str) -> str:
    """Render markdown analysis text to HTML.

    Two plain-text conventions seen in older analyses are folded into markdown
    first: "•" bullets and shouted "MARKET OVERVIEW:" lines as headings.
    """
    lines = []
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("•"):
            line = "- " + stripped.lstrip("•").strip()
        elif _is_shouted_heading(stripped):
            line = "## " + stripped.rstrip(":").strip()
        lines.append(line)
    return _markdown.render("\n".join(lines))


def _is_shouted_heading(line: str) -> bool:
    return (
        line.endswith(":")
        and len(line) <= 80
        and line.upper() == line
        and any(c.isalpha() for c in line)
    )


def normalize_analysis(text: str | None) -> str:
    """Bring an analysis blob into the attribute-free HTML the extractors expect."""
    if not text:
        return ""
    if not _BLOCK_TAG_RE.search(text):
        text = markdown_to_html(text)
    text = _DROP_BLOCK_RE.sub("", text)
    return _TAG_ATTRS_RE.sub(
        lambda m: f"<{m.group(1)}{m.group(2).lower()}{m.group(3)}>", text
    )


def strip_tags(fragment: str | None) -> str:
    """Plain text of an HTML fragment with whitespace collapsed."""
    if not fragment:
        return ""
    soup = BeautifulSoup(_BLOCK_BREAK_RE.sub(" ", fragment), "html.parser")
    return " ".join(soup.get_text().split())


def clean_inline(fragment: str | None) -> str:
    """Reduce a fragment to escaped text plus ``<strong>``/``<em>`` markup."""
    if not fragment:
        return ""
    soup = BeautifulSoup(_BLOCK_BREAK_RE.sub(" ", fragment), "html.parser")
    markup = "".join(_inline_markup(node) for node in soup.contents)
    return " ".join(markup.split())


def _inline_markup(node) -> str:
    if isinstance(node, Comment):
        return ""
    if isinstance(node, NavigableString):
        return html.escape(str(node), quote=False)
    inner = "".join(_inline_markup(child) for child in node.children)
    tag = _INLINE_TAGS.get(node.name)
    if tag and inner.strip():
        return f"<{tag}>{inner}</{tag}>"
    return inner


def _clean_label(inner: str) -> str:
    label = strip_tags(inner)
    label = _LABEL_PREFIX_RE.sub("", label)
    return _LABEL_SUFFIX_RE.sub("", label)


def _heading_markers(text: str, include_bold_labels: bool = False) -> list[_Marker]:
    markers = [
        _Marker(m.start(), m.end(), int(m.group(1)), _clean_label(m.group(2)))
        for m in _HEADING_RE.finditer(text)
    ]
    if include_bold_labels:
        markers.extend(
            _Marker(m.start(), m.end(), _BOLD_LABEL_LEVEL, _clean_label(m.group(2)))
            for m in _BOLD_LABEL_RE.finditer(text)
        )
        markers.sort(key=lambda marker: marker.start)
    return markers


def _slice_after(text: str, markers: list[_Marker], key: str) -> str | None:
    """Content under the first marker matching ``key``, or None if no marker matches.

    The slice ends at the next marker of the same or higher rank.
    """
    pattern = HEADING_PATTERNS.get(key)
    if pattern is None:
        return None
    for i, marker in enumerate(markers):
        if not pattern.match(marker.label):
            continue
        end = len(text)
        for following in markers[i + 1:]:
            if following.level <= marker.level:
                end = following.start
                break
        return text[marker.end:end].strip()
    return None


def extract_section(text: str | None, key: str) -> str:
    """HTML under the heading for ``key``, or "" when the section is absent.

    The market overview falls back to whatever precedes the first heading.
    """
    normalized = normalize_analysis(text)
    markers = _heading_markers(normalized)
    content = _slice_after(normalized, markers, key)
    if content is not None:
        return content
    if key == "market_overview" and markers and markers[0].start > 0:
        return normalized[: markers[0].start].strip()
    if key == "market_overview" and not markers:
        return normalized.strip()
    logger.debug("Section %s not found in analysis", key)
    return ""


def parse_bracket_list(text: str | None) -> list[str] | None:
    """'[a, b, c]' -> ['a', 'b', 'c']; None when the text is not bracketed."""
    match = _BRACKET_RE.match(text or "")
    if not match:
        return None
    parts = (part.strip().strip("'\"").strip() for part in match.group(1).split(","))
    return [part for part in parts if part]


def extract_list_items(fragment: str | None) -> list[str]:
    """List items of a fragment, falling back to a bracketed comma list."""
    if not fragment:
        return []
    items = [clean_inline(item) for item in _LIST_ITEM_RE.findall(fragment)]
    items = [item for item in items if item]
    if items:
        return items
    return parse_bracket_list(strip_tags(fragment)) or []


def _paragraphs(fragment: str) -> list[str]:
    """Block-level pieces of a fragment, in document order."""
    parts = (clean_inline(part) for part in _BLOCK_SPLIT_RE.split(fragment or ""))
    return [part for part in parts if part]


def _items_from_fragment(fragment: str) -> list[str]:
    return extract_list_items(fragment) or _paragraphs(fragment)


def extract_subsections(
    section_html: str | None,
    section_key: str,
    full_text: str | None = None,
) -> dict[str, list[str]]:
    """Items under each known sub-heading of a grouped section.

    Sub-headings may be h3/h4 elements or paragraphs made only of a bold
    label. When ``full_text`` is given, a sub-heading missing from the section
    is looked up across the whole analysis instead.
    """
    section = normalize_analysis(section_html)
    markers = _heading_markers(section, include_bold_labels=True)
    result: dict[str, list[str]] = {}
    for sub in SUBSECTIONS.get(section_key, ()):
        content = _slice_after(section, markers, sub)
        if content is None and full_text:
            content = extract_section(full_text, sub) or None
        if content is None:
            continue
        items = _items_from_fragment(content)
        if items:
            result[sub] = items
    return result


def parse_report(text: str | None) -> ParsedReport:
    """Extract every known section from one analysis blob."""
    normalized = normalize_analysis(text)
    parsed = ParsedReport()
    if not normalized:
        return parsed

    for key in TEXT_SECTIONS:
        setattr(parsed, key, "\n\n".join(_paragraphs(extract_section(normalized, key))))
    for key in LIST_SECTIONS:
        setattr(parsed, key, _items_from_fragment(extract_section(normalized, key)))
    has_swot_heading = _slice_after(normalized, _heading_markers(normalized), "swot") is not None
    for key in SUBSECTIONS:
        full_text = normalized if key == "swot" and has_swot_heading else None
        setattr(parsed, key, extract_subsections(extract_section(normalized, key), key, full_text))

    logger.debug("Parsed analysis sections: %s", parsed.section_keys())
    return parsed


# Report column -> ParsedReport field for the server-populated structured data
STRUCTURED_FIELDS = {
    "executive_summary": "executive_summary",
    "swot_analysis": "swot",
    "market_trends": "market_trends",
    "target_audience": "target_audience",
    "marketing_strategy": "marketing_strategy",
    "customer_sentiment": "customer_sentiment",
}


def _as_items(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        parts = (clean_inline(part) for part in value.split("\n\n"))
        return [part for part in parts if part]
    if isinstance(value, dict):
        parts = (clean_inline(f"{k}: {v}") for k, v in value.items() if v)
        return [part for part in parts if part]
    return [clean_inline(str(item)) for item in value if str(item).strip()]


def _as_groups(value: Any, section_key: str) -> dict[str, list[str]]:
    if not isinstance(value, dict):
        return {}
    groups = {}
    for sub in SUBSECTIONS[section_key]:
        items = _as_items(value.get(sub))
        if items:
            groups[sub] = items
    return groups


def resolve_sections(report: Any) -> ParsedReport:
    """Structured report fields win; anything missing is re-derived from ``ai_analysis``."""
    parsed = parse_report(getattr(report, "ai_analysis", None))
    for column, key in STRUCTURED_FIELDS.items():
        value = getattr(report, column, None)
        if key in SUBSECTIONS:
            resolved = _as_groups(value, key)
        elif key in LIST_SECTIONS:
            resolved = _as_items(value)
        else:
            resolved = "\n\n".join(_as_items(value))
        if resolved:
            setattr(parsed, key, resolved)
    return parsed
