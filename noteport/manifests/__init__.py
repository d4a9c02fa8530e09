"""Export manifest data structures, persistence and change detection."""

from .diff import ChangeKind, ExportDiff, SectionDiff, diff_pages, diff_sections
from .models import (
    CURRENT_MANIFEST_VERSION,
    ExportManifest,
    PageEntry,
    SectionEntry,
    SectionState,
)
from .store import (
    ManifestError,
    create_manifest,
    create_manifest_for,
    load_manifest,
    migrate_manifest,
    page_entry_for,
    pages_from_manifest,
    save_manifest,
    section_entry_for,
)

__all__ = [
    "CURRENT_MANIFEST_VERSION",
    "ChangeKind",
    "ExportDiff",
    "ExportManifest",
    "ManifestError",
    "PageEntry",
    "SectionDiff",
    "SectionEntry",
    "SectionState",
    "create_manifest",
    "create_manifest_for",
    "diff_pages",
    "diff_sections",
    "load_manifest",
    "migrate_manifest",
    "page_entry_for",
    "pages_from_manifest",
    "save_manifest",
    "section_entry_for",
]
