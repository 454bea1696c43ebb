"""Inline bold/italic handling for surfaces that must not receive raw HTML."""

import html
import re
from dataclasses import dataclass

from bs4 import BeautifulSoup

from .sections import normalize_analysis

_TAG_RE = re.compile(r"""<(/?)([a-zA-Z][a-zA-Z0-9]*)\b(?:[^>"']|"[^"]*"|'[^']*')*?(/?)>""")
_STYLE_TAGS = {"strong": "bold", "b": "bold", "em": "italic", "i": "italic"}

ALLOWED_TAGS = {
    "h1", "h2", "h3", "h4", "h5", "h6", "p", "ul", "ol", "li", "strong", "em",
    "b", "i", "br", "hr", "blockquote", "table", "thead", "tbody", "tr", "th", "td",
}


@dataclass
class TextRun:
    text: str
    bold: bool = False
    italic: bool = False


def _strip_attributes(text: str) -> str:
    return _TAG_RE.sub(lambda m: f"<{m.group(1)}{m.group(2).lower()}{m.group(3)}>", text)


def _append(runs: list[TextRun], raw: str, depth: dict[str, int]) -> None:
    text = html.unescape(raw)
    if not text:
        return
    bold, italic = depth["bold"] > 0, depth["italic"] > 0
    if runs and runs[-1].bold == bold and runs[-1].italic == italic:
        runs[-1].text += text
    else:
        runs.append(TextRun(text, bold, italic))


def format_inline(fragment: str | None) -> list[TextRun]:
    """Split a fragment into styled runs.

    ``<strong>``/``<b>`` open bold and ``<em>``/``<i>`` open italic; nesting
    combines them. Unclosed tags run to the end of the input and stray closing
    tags are ignored. ``<br>`` becomes a newline; any other tag is kept in
    the text as written, minus its attributes.
    """
    if not fragment:
        return []
    text = _strip_attributes(fragment)
    runs: list[TextRun] = []
    depth = {"bold": 0, "italic": 0}
    pos = 0
    for match in _TAG_RE.finditer(text):
        closing, name, self_closing = match.group(1), match.group(2), match.group(3)
        if name == "br":
            _append(runs, text[pos:match.start()] + "\n", depth)
            pos = match.end()
            continue
        style = _STYLE_TAGS.get(name)
        if style is None:
            continue
        _append(runs, text[pos:match.start()], depth)
        pos = match.end()
        if closing:
            depth[style] = max(0, depth[style] - 1)
        elif not self_closing:
            depth[style] += 1
    _append(runs, text[pos:], depth)
    return runs


def runs_to_markup(runs: list[TextRun]) -> str:
    """Escaped text with only <b> and <i> wrappers."""
    parts = []
    for run in runs:
        piece = html.escape(run.text, quote=False).replace("\n", "<br>")
        if run.italic:
            piece = f"<i>{piece}</i>"
        if run.bold:
            piece = f"<b>{piece}</b>"
        parts.append(piece)
    return "".join(parts)


def plain_text(fragment: str | None) -> str:
    return "".join(run.text for run in format_inline(fragment))


def sanitize_html(text: str | None) -> str:
    """Analysis HTML reduced to structural and emphasis tags, without attributes."""
    soup = BeautifulSoup(normalize_analysis(text), "html.parser")
    for tag in soup.find_all(True):
        if tag.name not in ALLOWED_TAGS:
            tag.unwrap()
        else:
            tag.attrs = {}
    return str(soup).strip()
