"""Mapping from wiki links to canonical paths and document IDs.

Every link the crawl sees goes through these functions: the frontier and
the visited set are keyed on :func:`canonical_path`, output files and
local cross-links are named after :func:`to_document_id`. They must agree
for every spelling of the same page (absolute, protocol-relative,
site-relative, percent-encoded), otherwise pages get fetched twice or
links dangle.
"""

from __future__ import annotations

from typing import Sequence
from urllib.parse import unquote, urlsplit

from .config import PAGE_EXTENSION, MirrorConfig

DEFAULT_HOST_PREFIXES = MirrorConfig().host_prefixes()

# Link targets with these suffixes are files, not wiki pages.
_ASSET_EXTS = {
    ".css",
    ".js",
    ".png",
    ".jpg",
    ".jpeg",
    ".gif",
    ".webp",
    ".svg",
    ".ico",
    ".pdf",
    ".zip",
    ".gz",
    ".mp3",
    ".mp4",
}


def _strip_host_prefix(link: str, prefixes: Sequence[str]) -> str:
    lowered = link.lower()
    for prefix in prefixes:
        if lowered.startswith(prefix.lower()):
            return link[len(prefix):]
    return link


def is_external(link: str) -> bool:
    """True for links that still carry a scheme or a foreign host."""
    if link.startswith("//"):
        return True
    return bool(urlsplit(link).scheme)


def normalize_link(raw: str, prefixes: Sequence[str] = DEFAULT_HOST_PREFIXES) -> str:
    """Strip the wiki's absolute prefixes so only the site-relative path is left.

    ``prefixes`` must be ordered most specific first, see
    :meth:`MirrorConfig.host_prefixes`. External links come back unchanged.
    """
    link = raw.strip()
    # Repeat until stable so that normalizing twice changes nothing.
    while True:
        stripped = _strip_host_prefix(link, prefixes)
        if stripped != link:
            link = stripped
            continue
        if is_external(link):
            return link
        stripped = link.lstrip("/")
        if stripped == link:
            return link
        link = stripped


def canonical_path(raw: str, prefixes: Sequence[str] = DEFAULT_HOST_PREFIXES) -> str:
    """Decoded site-relative path without query or fragment; ``""`` if not local."""
    link = normalize_link(raw, prefixes)
    if is_external(link):
        return ""
    path = link.split("#", 1)[0].split("?", 1)[0]
    return unquote(path)


def _is_asset(segment: str) -> bool:
    dot = segment.rfind(".")
    return dot > 0 and segment[dot:].lower() in _ASSET_EXTS


def to_document_id(
    raw: str,
    prefixes: Sequence[str] = DEFAULT_HOST_PREFIXES,
    page_extension: str = PAGE_EXTENSION,
) -> str:
    """Bare document ID (no namespace) for a link.

    Returns ``""`` when the link is external, points at a static asset or
    has no path segment at all.

    >>> to_document_id("https://ulisses-regelwiki.de/index.php/magie.html")
    'magie'
    """
    segments = [part for part in canonical_path(raw, prefixes).split("/") if part]
    if not segments:
        return ""
    last = segments[-1]
    if page_extension and last.endswith(page_extension):
        last = last[: -len(page_extension)]
    if not last or _is_asset(last):
        return ""
    return last


def is_local_link(raw: str, prefixes: Sequence[str] = DEFAULT_HOST_PREFIXES) -> bool:
    return to_document_id(raw, prefixes) != ""


def namespaced_id(document_id: str, prefix: str) -> str:
    return f"{prefix}{document_id}"
