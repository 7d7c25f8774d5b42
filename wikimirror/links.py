"""Inline markdown link extraction and offset-based target rewriting."""

from __future__ import annotations

import logging
import re
from typing import Callable, Iterable, List, Optional, Sequence

from .document import LinkReference
from .identifiers import DEFAULT_HOST_PREFIXES, normalize_link

LOGGER = logging.getLogger(__name__)

# Single level: no brackets inside the text, no whitespace or bare
# brackets/parentheses inside the target. Backslash-escaped characters are
# allowed in the target. An optional quoted title may follow.
LINK_PATTERN = re.compile(
    r"(?<![!\\])\[(?P<text>[^\[\]]+)\]"
    r"\((?P<target>(?:\\.|[^\s()\[\]\\])*)(?P<title>\s+\"[^\"\n]*\")?\)"
)

_TARGET_ESCAPE = re.compile(r"\\(.)")


def unescape_target(target: str) -> str:
    """Undo markdown backslash escapes, e.g. ``kampf-\\(regel\\)``."""
    return _TARGET_ESCAPE.sub(r"\1", target)


def extract_links(
    markdown: str, prefixes: Sequence[str] = DEFAULT_HOST_PREFIXES
) -> List[LinkReference]:
    """Return every inline link in ``markdown``, left to right.

    Spans that look like links but cannot be one (empty target, text
    crossing a paragraph break, escaped closing bracket) are skipped.
    """
    links: List[LinkReference] = []
    for match in LINK_PATTERN.finditer(markdown or ""):
        text = match.group("text")
        target = match.group("target")
        if not target:
            LOGGER.debug("Skipping link without target: %r", match.group(0))
            continue
        if "\n\n" in text or text.endswith("\\"):
            LOGGER.debug("Skipping malformed link: %r", match.group(0))
            continue
        links.append(
            LinkReference(
                display_text=text,
                raw_target=target,
                normalized_target=normalize_link(unescape_target(target), prefixes),
                start=match.start(),
                end=match.end(),
                target_start=match.start("target"),
                target_end=match.end("target"),
            )
        )
    return links


def rewrite_links(
    markdown: str,
    links: Iterable[LinkReference],
    target_for: Callable[[LinkReference], Optional[str]],
) -> str:
    """Replace link targets in place, using the offsets recorded on extraction.

    ``target_for`` returns the new target, or ``None`` to leave the link
    as it is. ``links`` must come from :func:`extract_links` on this exact
    text; a link whose offsets no longer line up is left alone.
    """
    pieces: List[str] = []
    cursor = 0
    for link in sorted(links, key=lambda item: item.target_start):
        if link.target_start < cursor:
            continue
        if markdown[link.target_start:link.target_end] != link.raw_target:
            LOGGER.warning(
                "Link offsets out of date, leaving %s untouched", link.markdown
            )
            continue
        replacement = target_for(link)
        if replacement is None:
            continue
        pieces.append(markdown[cursor:link.target_start])
        pieces.append(replacement)
        cursor = link.target_end
    pieces.append(markdown[cursor:])
    return "".join(pieces)
