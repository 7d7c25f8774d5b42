"""Breadth-first traversal of the wiki from a fixed set of entry points."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Deque, Dict, Iterable, List, Optional, Set

from .config import MirrorConfig
from .document import DocumentRecord, LinkReference, ManifestEntry
from .errors import FetchError
from .identifiers import canonical_path
from .processor import PageProcessor
from .writer import DocumentSink, build_index_record, render_document

LOGGER = logging.getLogger(__name__)


class CrawlState(str, Enum):
    SEEDING = "seeding"
    DRAINING = "draining"
    DONE = "done"


@dataclass
class CrawlReport:
    """End-of-run summary: what was written and what went wrong."""

    written: List[str] = field(default_factory=list)
    failures: List[Dict[str, str]] = field(default_factory=list)
    stats: Dict[str, int] = field(default_factory=dict)
    state: CrawlState = CrawlState.SEEDING

    @property
    def ok(self) -> bool:
        return not self.failures

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "written": list(self.written),
            "failures": [dict(item) for item in self.failures],
            "stats": dict(self.stats),
        }


class CrawlScheduler:
    """Owns the frontier and the visited set and drives the page processor.

    One page at a time: the frontier and visited set are only touched
    between two ``process`` calls, so they need no locking. Visited keys
    are canonical paths (see :func:`wikimirror.identifiers.canonical_path`).
    """

    def __init__(
        self,
        processor: PageProcessor,
        writer: DocumentSink,
        config: Optional[MirrorConfig] = None,
    ) -> None:
        self.processor = processor
        self.writer = writer
        self.config = config or processor.config
        self.visited: Set[str] = set()
        self.frontier: Deque[LinkReference] = deque()
        self.manifest: List[ManifestEntry] = []
        self.state = CrawlState.SEEDING
        self.report = CrawlReport()
        self._prefixes = self.config.host_prefixes()
        self._owners: Dict[str, str] = {}
        self._processed = 0
        self._skipped = 0

    def key_for(self, target: str) -> str:
        return canonical_path(target, self._prefixes)

    async def run(self) -> CrawlReport:
        """Seed, write the root document, drain the frontier."""
        await self.seed()
        self.write_manifest()
        self.state = CrawlState.DRAINING
        await self.drain()
        self.state = CrawlState.DONE
        return self._finish()

    async def seed(self) -> None:
        for entry_point in self.config.entry_points:
            key = self.key_for(entry_point)
            if not key or key in self.visited:
                LOGGER.warning("Ignoring entry point %r", entry_point)
                continue
            self.visited.add(key)
            record = await self._process(key, entry_point=True)
            if record is not None:
                self.manifest.append(ManifestEntry(id=record.id, title=record.title))

    def write_manifest(self) -> None:
        record = build_index_record(
            self.manifest, root_id=self.config.root_id, title=self.config.root_title
        )
        self._write(record, entry_point=False, url=self.config.base_url)

    async def drain(self) -> None:
        while self.frontier:
            if self._limit_reached():
                LOGGER.info("Reached page limit of %d", self.config.max_pages)
                break
            link = self.frontier.popleft()
            key = self.key_for(link.normalized_target)
            if key in self.visited:
                self._skipped += 1
                continue
            self.visited.add(key)
            await self._process(key)

    def enqueue(self, links: Iterable[LinkReference]) -> None:
        """Append wiki-page links to the frontier tail; others are ignored."""
        for link in links:
            if self.processor.document_id(link.normalized_target):
                self.frontier.append(link)

    def _limit_reached(self) -> bool:
        limit = self.config.max_pages
        return limit is not None and self._processed >= limit

    async def _process(
        self, key: str, *, entry_point: bool = False
    ) -> Optional[DocumentRecord]:
        url = self.config.page_url(key)
        self._processed += 1
        LOGGER.info("[%d] %s (frontier: %d)", self._processed, key, len(self.frontier))

        try:
            record, links = await self.processor.process(url)
        except FetchError as exc:
            LOGGER.warning("Skipping %s: %s", url, exc.reason)
            self._fail(url, exc.reason, "fetch")
            return None
        except Exception as exc:
            LOGGER.warning("Failed to process %s: %s", url, exc)
            self._fail(url, str(exc) or type(exc).__name__, "process")
            return None

        self.enqueue(links)

        owner = self._owners.setdefault(record.id, key)
        if owner != key:
            LOGGER.warning(
                "Document ID %s of %s already taken by %s, not writing",
                record.id,
                key,
                owner,
            )
            self._fail(url, f"Document ID {record.id} already used by {owner}", "collision")
            return None

        if not self._write(record, entry_point=entry_point, url=url):
            return None
        return record

    def _write(self, record: DocumentRecord, *, entry_point: bool, url: str) -> bool:
        content = render_document(record, tags=self.config.tags, entry_point=entry_point)
        try:
            self.writer.write(record.id, content)
        except OSError as exc:
            LOGGER.warning("Could not write %s: %s", record.id, exc)
            self._fail(url, str(exc), "write")
            return False
        self.report.written.append(record.id)
        return True

    def _fail(self, url: str, error: str, stage: str) -> None:
        self.report.failures.append({"url": url, "error": error, "stage": stage})

    def _finish(self) -> CrawlReport:
        report = self.report
        report.state = self.state
        report.stats = {
            "processed_pages": self._processed,
            "written_documents": len(report.written),
            "failed_pages": len(report.failures),
            "skipped_duplicates": self._skipped,
        }
        LOGGER.info(
            "Crawl complete: %d pages processed, %d documents written, %d failures",
            self._processed,
            len(report.written),
            len(report.failures),
        )
        return report
