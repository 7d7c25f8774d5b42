"""Rendering document records to markdown files."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Iterable, List, Protocol, Sequence, Union

from .document import DocumentRecord, ManifestEntry

LOGGER = logging.getLogger(__name__)


class DocumentSink(Protocol):
    """Destination for rendered documents, keyed by document ID."""

    def write(self, document_id: str, content: str) -> None: ...


def _scalar(value: str) -> str:
    # JSON strings are valid YAML scalars and survive ':' and quotes in titles.
    return json.dumps(value, ensure_ascii=False)


def render_document(
    record: DocumentRecord,
    *,
    tags: Sequence[str] = (),
    entry_point: bool = False,
) -> str:
    """Header block, breadcrumb trail and body of one output file.

    Example output::

        ---
        id: "dsa-rule-magie"
        title: "Magie"
        tags: ["dsa", "regelwiki"]
        entry_point: true
        ---

        [Regeln](dsa-rule-regeln) > [Magie](dsa-rule-magie)

        ...body...
    """
    lines: List[str] = [
        "---",
        f"id: {_scalar(record.id)}",
        f"title: {_scalar(record.title)}",
        f"tags: {json.dumps(list(tags), ensure_ascii=False)}",
        f"entry_point: {'true' if entry_point else 'false'}",
        "---",
        "",
    ]
    if record.breadcrumbs:
        lines.append(
            " > ".join(
                f"[{crumb.label}]({crumb.document_id})" for crumb in record.breadcrumbs
            )
        )
        lines.append("")
    lines.append(record.body.strip("\n"))
    return "\n".join(lines).rstrip("\n") + "\n"


def build_index_record(
    manifest: Iterable[ManifestEntry], *, root_id: str, title: str
) -> DocumentRecord:
    """Root document listing every entry point as a local link."""
    body = "\n".join(f"- [{entry.title}]({entry.id})" for entry in manifest)
    return DocumentRecord(id=root_id, title=title, body=body)


class FileDocumentWriter:
    """Writes ``<document_id>.md`` files into ``output_dir``."""

    def __init__(self, output_dir: Union[str, Path]) -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, document_id: str) -> Path:
        return self.output_dir / f"{document_id}.md"

    def write(self, document_id: str, content: str) -> None:
        """Persist one document; raises ``OSError`` when the write fails."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        path = self.path_for(document_id)
        path.write_text(content, encoding="utf-8")
        LOGGER.debug("Wrote %s", path)
