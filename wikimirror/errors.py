"""Exceptions raised by the mirror."""

from __future__ import annotations


class WikiMirrorError(Exception):
    """Base class for mirror failures."""


class FetchError(WikiMirrorError):
    """Raised when a page cannot be fetched or has no usable content."""

    def __init__(self, url: str, reason: str) -> None:
        self.url = url
        self.reason = reason
        super().__init__(f"{url}: {reason}")
