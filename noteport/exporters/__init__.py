"""Notebook exporters for the supported target formats."""

from __future__ import annotations

from ..config import Config, ExportFormat
from ..hierarchy import HierarchyProvider, PageRenderer
from ..links import LinkRegistry
from .base import NotebookExporter, NotebookExportResult
from .joplin import JoplinExporter
from .markdown import MarkdownExporter

_EXPORTERS: dict[ExportFormat, type[NotebookExporter]] = {
    ExportFormat.MARKDOWN: MarkdownExporter,
    ExportFormat.JOPLIN: JoplinExporter,
}


def create_exporter(
    config: Config,
    provider: HierarchyProvider,
    renderer: PageRenderer,
    *,
    registry: LinkRegistry | None = None,
) -> NotebookExporter:
    """Instantiate the exporter matching ``config.export_format``."""
    return _EXPORTERS[config.export_format](config, provider, renderer, registry=registry)


__all__ = [
    "JoplinExporter",
    "MarkdownExporter",
    "NotebookExportResult",
    "NotebookExporter",
    "create_exporter",
]
