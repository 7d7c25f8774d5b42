"""Turn one wiki page into a document record with local cross-links."""

from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from .config import MirrorConfig
from .convert import format_markdown, repair_markdown, sanitize_and_convert
from .document import Breadcrumb, DocumentRecord, LinkReference
from .fetch import PageFetcher
from .identifiers import namespaced_id, to_document_id
from .links import extract_links, rewrite_links

LOGGER = logging.getLogger(__name__)

Converter = Callable[..., str]


class PageProcessor:
    """Fetch, convert, rewrite links and assemble a :class:`DocumentRecord`.

    ``convert`` is called as ``convert(raw_html, base_url=...)`` and must
    return markdown. Wiki hrefs are site-relative, so ``base_url`` is the
    site root rather than the page URL. ``pretty_print`` is cosmetic: if it
    raises, the unformatted markdown is kept.
    """

    def __init__(
        self,
        fetcher: PageFetcher,
        config: Optional[MirrorConfig] = None,
        *,
        convert: Converter = sanitize_and_convert,
        pretty_print: Callable[[str], str] = format_markdown,
    ) -> None:
        self.fetcher = fetcher
        self.config = config or MirrorConfig()
        self.convert = convert
        self.pretty_print = pretty_print
        self._prefixes = self.config.host_prefixes()

    def document_id(self, link: str) -> str:
        """Bare document ID for ``link``; ``""`` when it is not a wiki page."""
        return to_document_id(link, self._prefixes, self.config.page_extension)

    def local_target(self, link: LinkReference) -> Optional[str]:
        """Namespaced ID a link should point to, ``None`` to keep it external."""
        document_id = self.document_id(link.normalized_target)
        if not document_id:
            return None
        return namespaced_id(document_id, self.config.id_prefix)

    def clean_title(self, title: str) -> str:
        title = (title or "").rstrip()
        suffix = self.config.title_suffix
        if suffix and title.endswith(suffix):
            title = title[: -len(suffix)]
        return title.strip()

    async def process(self, url: str) -> Tuple[DocumentRecord, List[LinkReference]]:
        """Process ``url`` and return its record plus the links it declares.

        The returned links carry their raw targets, not the rewritten
        ones.

        Raises:
            FetchError: propagated from the fetcher.
        """
        page = await self.fetcher.fetch(url)

        markdown = self.convert(page.raw_fragments, base_url=self.config.base_url)
        markdown = repair_markdown(markdown.strip())

        links = extract_links(markdown, self._prefixes)
        body = rewrite_links(markdown, links, self.local_target)
        try:
            body = self.pretty_print(body)
        except Exception as exc:
            LOGGER.warning("Formatting failed for %s, keeping raw markdown: %s", url, exc)

        bare_id = self.document_id(url)
        record = DocumentRecord(
            id=namespaced_id(bare_id, self.config.id_prefix),
            title=self.clean_title(page.title) or bare_id,
            body=body,
            breadcrumbs=self._breadcrumbs(page.breadcrumbs),
        )
        LOGGER.debug("Processed %s as %s (%d links)", url, record.id, len(links))
        return record, links

    def _breadcrumbs(self, trail: List[Tuple[str, str]]) -> Tuple[Breadcrumb, ...]:
        crumbs = []
        for label, href in trail:
            document_id = self.document_id(href)
            if document_id:
                crumbs.append(
                    Breadcrumb(label, namespaced_id(document_id, self.config.id_prefix))
                )
        return tuple(crumbs)
