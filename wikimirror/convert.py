"""HTML sanitization, markdown conversion and markdown cleanup passes."""

from __future__ import annotations

import logging
import re
from typing import Dict, FrozenSet, Iterable, List, Mapping, Optional

import bleach
from bs4 import BeautifulSoup
from crawl4ai.markdown_generation_strategy import DefaultMarkdownGenerator

LOGGER = logging.getLogger(__name__)

ALLOWED_TAGS: FrozenSet[str] = frozenset(
    {
        "a",
        "abbr",
        "address",
        "article",
        "b",
        "blockquote",
        "br",
        "caption",
        "center",
        "cite",
        "code",
        "col",
        "colgroup",
        "dd",
        "div",
        "dl",
        "dt",
        "em",
        "figcaption",
        "figure",
        "h1",
        "h2",
        "h3",
        "h4",
        "h5",
        "h6",
        "hr",
        "i",
        "kbd",
        "li",
        "ol",
        "p",
        "pre",
        "q",
        "s",
        "section",
        "small",
        "span",
        "strong",
        "sub",
        "sup",
        "table",
        "tbody",
        "td",
        "tfoot",
        "th",
        "thead",
        "tr",
        "u",
        "ul",
    }
)

ALLOWED_ATTRIBUTES: Dict[str, List[str]] = {
    "*": ["href", "align", "alt", "center", "bgcolor"],
}

# Dropped with their content; bleach would otherwise keep the inner text.
_DISCARDED_TAGS = ("script", "style", "title", "noscript")

_BROKEN_STRONG = re.compile(
    r"(\*\*|__)(?=\S)([^\n*_]+?)[ \t]*\n[ \t]*\1(?!\S)[ \t]*"
)
_ESCAPED_HASH_ITEM = re.compile(r"^([ \t]*)\\#[ \t]+", re.MULTILINE)
_BLANK_RUNS = re.compile(r"\n{3,}")


def sanitize_html(
    raw_html: str,
    allowed_tags: Iterable[str] = ALLOWED_TAGS,
    allowed_attributes: Mapping[str, List[str]] = ALLOWED_ATTRIBUTES,
) -> str:
    """Reduce ``raw_html`` to the allowed tags and attributes."""
    soup = BeautifulSoup(raw_html or "", "html.parser")
    for tag_name in _DISCARDED_TAGS:
        for node in soup.find_all(tag_name):
            node.decompose()
    return bleach.clean(
        str(soup),
        tags=frozenset(allowed_tags),
        attributes=dict(allowed_attributes),
        strip=True,
    )


def build_converter() -> DefaultMarkdownGenerator:
    """Markdown generator that keeps the whole fragment, links included."""
    return DefaultMarkdownGenerator(
        content_filter=None,
        options={
            "body_width": 0,
            "ignore_images": True,
            "ignore_links": False,
        },
    )


def html_to_markdown(
    html: str,
    *,
    base_url: str = "",
    generator: Optional[DefaultMarkdownGenerator] = None,
) -> str:
    """Convert ``html`` to markdown; relative links resolve against ``base_url``."""
    generator = generator or build_converter()
    result = generator.generate_markdown(
        html,
        base_url=base_url,
        options=generator.options,
        content_filter=None,
        citations=False,
    )
    return (result.raw_markdown or "").strip()


def sanitize_and_convert(
    raw_html: str,
    *,
    base_url: str = "",
    allowed_tags: Iterable[str] = ALLOWED_TAGS,
    allowed_attributes: Mapping[str, List[str]] = ALLOWED_ATTRIBUTES,
) -> str:
    return html_to_markdown(
        sanitize_html(raw_html, allowed_tags, allowed_attributes),
        base_url=base_url,
    )


def repair_markdown(markdown: str) -> str:
    """Undo conversion quirks before links are extracted.

    - ``**Foo`` followed by a line holding the closing ``**`` becomes
      ``**Foo**``.
    - A line opened by an escaped ``\\#`` becomes a ``-`` list item.

    Each pass is idempotent and independent of the other.
    """
    text = _BROKEN_STRONG.sub(r"\1\2\1\n", markdown or "")
    text = _ESCAPED_HASH_ITEM.sub(r"\1- ", text)
    return text


def format_markdown(markdown: str) -> str:
    """Tidy whitespace: LF line endings, no trailing blanks, single blank lines.

    Markdown hard breaks (two trailing spaces) are kept.
    """
    text = _normalize_line_endings(markdown or "")
    lines = [_tidy_line(line) for line in text.split("\n")]
    text = _BLANK_RUNS.sub("\n\n", "\n".join(lines).strip("\n"))
    return text + "\n" if text.strip() else ""


def _normalize_line_endings(text: str) -> str:
    return text.replace("\r\n", "\n").replace("\r", "\n")


def _tidy_line(line: str) -> str:
    stripped = line.rstrip()
    if stripped and line.endswith("  "):
        return stripped + "  "
    return stripped
