"""Data structures shared by the crawl pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Tuple


@dataclass(frozen=True, slots=True)
class LinkReference:
    """Inline markdown link ``[display_text](raw_target)`` found in a page.

    ``start``/``end`` delimit the whole link span in the markdown it was
    extracted from, ``target_start``/``target_end`` only the target.
    """

    display_text: str
    raw_target: str
    normalized_target: str
    start: int = 0
    end: int = 0
    target_start: int = 0
    target_end: int = 0

    @property
    def markdown(self) -> str:
        return f"[{self.display_text}]({self.raw_target})"


@dataclass(frozen=True, slots=True)
class Breadcrumb:
    """One step of a page's navigation trail."""

    label: str
    document_id: str


@dataclass(frozen=True, slots=True)
class DocumentRecord:
    """A converted page, ready to be written under ``id``."""

    id: str
    title: str
    body: str
    breadcrumbs: Tuple[Breadcrumb, ...] = ()


@dataclass(frozen=True, slots=True)
class ManifestEntry:
    """Entry point listed in the root document."""

    id: str
    title: str


@dataclass(slots=True)
class PageContent:
    """What the fetch adapter hands back for one URL."""

    url: str
    title: str
    raw_fragments: str
    final_url: str = ""
    breadcrumbs: List[Tuple[str, str]] = field(default_factory=list)
