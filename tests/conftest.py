"""Shared doubles for the crawl pipeline tests."""

from __future__ import annotations

from typing import Dict, Iterable, List, Optional
from urllib.parse import unquote

import pytest

from wikimirror.config import MirrorConfig
from wikimirror.document import PageContent
from wikimirror.errors import FetchError

BASE_URL = "https://example.org/"


class FakeFetcher:
    """Serves markdown "fragments" from a dict keyed by site-relative path."""

    def __init__(self, pages: Dict[str, str], titles: Optional[Dict[str, str]] = None):
        self.pages = pages
        self.titles = titles or {}
        self.breadcrumbs: Dict[str, List] = {}
        self.calls: List[str] = []

    async def fetch(self, url: str) -> PageContent:
        self.calls.append(url)
        path = unquote(url[len(BASE_URL):] if url.startswith(BASE_URL) else url)
        if path not in self.pages:
            raise FetchError(url, "HTTP 404")
        return PageContent(
            url=url,
            final_url=url,
            title=self.titles.get(path, f"{path} - Example Wiki"),
            raw_fragments=self.pages[path],
            breadcrumbs=list(self.breadcrumbs.get(path, [])),
        )


class MemorySink:
    """Document sink that keeps everything in a dict; can fail on demand."""

    def __init__(self, failing: Iterable[str] = ()):
        self.documents: Dict[str, str] = {}
        self.order: List[str] = []
        self.failing = set(failing)

    def write(self, document_id: str, content: str) -> None:
        if document_id in self.failing:
            raise OSError(f"disk full while writing {document_id}")
        self.documents[document_id] = content
        self.order.append(document_id)


def passthrough_convert(raw_html: str, base_url: str = "") -> str:
    return raw_html


@pytest.fixture
def config() -> MirrorConfig:
    return MirrorConfig(
        base_url=BASE_URL,
        id_prefix="ex-",
        title_suffix=" - Example Wiki",
        entry_points=["index.php/a.html"],
        tags=["example"],
    )


@pytest.fixture
def fetcher_factory():
    return FakeFetcher


@pytest.fixture
def sink_factory():
    return MemorySink


@pytest.fixture
def convert():
    return passthrough_convert
