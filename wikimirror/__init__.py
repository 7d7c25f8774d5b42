"""Mirror the DSA rule wiki into a self-contained set of markdown files.

Every page reachable from a fixed list of entry points is rendered in a
headless browser, converted to markdown and written under a stable
document ID. Links between wiki pages are rewritten to those IDs, so the
output directory can be browsed without the source site.

Example usage:

    from wikimirror import MirrorConfig, mirror_wiki

    report = mirror_wiki(MirrorConfig(output_dir="result"))
    print(report.stats)
    for failure in report.failures:
        print(failure["stage"], failure["url"], failure["error"])
"""

from __future__ import annotations

import asyncio
from typing import Optional

from .config import MirrorConfig, build_page_run_config
from .document import (
    Breadcrumb,
    DocumentRecord,
    LinkReference,
    ManifestEntry,
    PageContent,
)
from .errors import FetchError, WikiMirrorError
from .fetch import BrowserPageFetcher, PageFetcher
from .identifiers import canonical_path, normalize_link, to_document_id
from .links import extract_links, rewrite_links
from .processor import PageProcessor
from .scheduler import CrawlReport, CrawlScheduler, CrawlState
from .writer import DocumentSink, FileDocumentWriter

__all__ = [
    # Data types
    "Breadcrumb",
    "DocumentRecord",
    "LinkReference",
    "ManifestEntry",
    "PageContent",
    # Errors
    "FetchError",
    "WikiMirrorError",
    # Identifiers and links
    "canonical_path",
    "normalize_link",
    "to_document_id",
    "extract_links",
    "rewrite_links",
    # Pipeline
    "BrowserPageFetcher",
    "PageFetcher",
    "PageProcessor",
    "CrawlScheduler",
    "CrawlReport",
    "CrawlState",
    "DocumentSink",
    "FileDocumentWriter",
    # Config
    "MirrorConfig",
    "build_page_run_config",
    # Entry points
    "mirror_wiki",
    "mirror_wiki_async",
]


async def mirror_wiki_async(
    config: Optional[MirrorConfig] = None,
    *,
    fetcher: Optional[PageFetcher] = None,
    writer: Optional[DocumentSink] = None,
) -> CrawlReport:
    """
    Crawl the wiki and write one markdown file per page.

    Args:
        config: Mirror settings; defaults to the built-in constants.
        fetcher: Page fetch adapter. Defaults to a headless browser session
            that is opened for the crawl and closed afterwards.
        writer: Document sink. Defaults to files in ``config.output_dir``.

    Returns:
        CrawlReport listing written document IDs and per-page failures.
    """
    config = config or MirrorConfig()
    writer = writer or FileDocumentWriter(config.output_dir)

    if fetcher is not None:
        return await CrawlScheduler(PageProcessor(fetcher, config), writer, config).run()

    async with BrowserPageFetcher(config) as browser:
        scheduler = CrawlScheduler(PageProcessor(browser, config), writer, config)
        return await scheduler.run()


def mirror_wiki(
    config: Optional[MirrorConfig] = None,
    *,
    fetcher: Optional[PageFetcher] = None,
    writer: Optional[DocumentSink] = None,
) -> CrawlReport:
    """Synchronous wrapper for mirror_wiki_async."""
    return asyncio.run(mirror_wiki_async(config, fetcher=fetcher, writer=writer))
