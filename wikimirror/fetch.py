"""Page fetching through a single reused Crawl4AI browser session."""

from __future__ import annotations

import logging
from typing import Any, List, Optional, Protocol, Sequence

from bs4 import BeautifulSoup
from crawl4ai import AsyncWebCrawler, BrowserConfig, CrawlerRunConfig
from crawl4ai.models import CrawlResult

from .config import MirrorConfig, build_page_run_config
from .document import PageContent
from .errors import FetchError

LOGGER = logging.getLogger(__name__)


class PageFetcher(Protocol):
    """Anything that can turn a URL into a :class:`PageContent`."""

    async def fetch(self, url: str) -> PageContent: ...


def extract_page_content(
    url: str,
    html: str,
    *,
    content_selectors: Sequence[str],
    breadcrumb_selector: Optional[str] = None,
    final_url: str = "",
) -> PageContent:
    """Pick title, content fragments and breadcrumb trail out of rendered HTML.

    Fragments are the inner HTML of the first match of each selector,
    joined by a blank line in selector order; a missing region contributes
    an empty string.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    title = soup.title.get_text(" ", strip=True) if soup.title else ""

    fragments: List[str] = []
    for selector in content_selectors:
        node = soup.select_one(selector)
        fragments.append(node.decode_contents() if node is not None else "")

    breadcrumbs = []
    if breadcrumb_selector:
        for anchor in soup.select(breadcrumb_selector):
            href = anchor.get("href")
            label = anchor.get_text(" ", strip=True)
            if href and label:
                breadcrumbs.append((label, str(href)))

    return PageContent(
        url=url,
        final_url=final_url or url,
        title=title,
        raw_fragments="\n\n".join(fragments),
        breadcrumbs=breadcrumbs,
    )


def _derive_failure_reason(result: CrawlResult) -> str:
    if result.error_message:
        return result.error_message
    status_code = result.status_code or (result.metadata or {}).get("status_code")
    if status_code:
        return f"HTTP {status_code}"
    return "Crawler returned no content"


class BrowserPageFetcher:
    """Fetch adapter backed by one headless browser for the whole crawl.

    Use as an async context manager::

        async with BrowserPageFetcher(config) as fetcher:
            page = await fetcher.fetch("https://ulisses-regelwiki.de/index.php/magie.html")
    """

    def __init__(
        self,
        config: Optional[MirrorConfig] = None,
        *,
        run_config: Optional[CrawlerRunConfig] = None,
        browser_config: Optional[BrowserConfig] = None,
    ) -> None:
        self.config = config or MirrorConfig()
        self.run_config = run_config or build_page_run_config()
        self.browser_config = browser_config or BrowserConfig(
            headless=True,
            use_persistent_context=False,
            extra_args=["--no-sandbox"],
        )
        self._crawler: Optional[AsyncWebCrawler] = None

    async def __aenter__(self) -> "BrowserPageFetcher":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    async def start(self) -> None:
        if self._crawler is not None:
            return
        crawler = AsyncWebCrawler(config=self.browser_config)
        await crawler.start()
        self._crawler = crawler
        LOGGER.debug("Browser session started")

    async def close(self) -> None:
        if self._crawler is None:
            return
        crawler, self._crawler = self._crawler, None
        await crawler.close()
        LOGGER.debug("Browser session closed")

    async def fetch(self, url: str) -> PageContent:
        """Render ``url`` and extract its content.

        Raises:
            FetchError: navigation failed or the page has no usable content.
        """
        if self._crawler is None:
            raise RuntimeError("BrowserPageFetcher used outside of its session")

        try:
            container = await self._crawler.arun(url=url, config=self.run_config)
        except Exception as exc:
            raise FetchError(url, str(exc) or type(exc).__name__) from exc

        try:
            result = container[0]
        except (IndexError, TypeError):
            result = None

        if result is None:
            raise FetchError(url, "Crawler returned no results")
        if not result.success:
            raise FetchError(url, _derive_failure_reason(result))

        content = extract_page_content(
            url,
            result.html or "",
            content_selectors=self.config.content_selectors,
            breadcrumb_selector=self.config.breadcrumb_selector,
            final_url=str(result.url or url),
        )
        if not content.raw_fragments.strip():
            raise FetchError(url, "Page has no content in the expected regions")
        if not content.title:
            content.title = str((result.metadata or {}).get("title") or "")
        return content
