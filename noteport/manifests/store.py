"""Loading, saving and migrating export manifests."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from pydantic import ValidationError

from ..hierarchy import Notebook, Page, Section
from .models import (
    CURRENT_MANIFEST_VERSION,
    MANIFEST_VERSION_PAGES_ONLY,
    ExportManifest,
    PageEntry,
    SectionEntry,
    utc_now,
)

logger = logging.getLogger(__name__)


class ManifestError(RuntimeError):
    """Raised when a manifest checkpoint cannot be written."""


def load_manifest(path: Path) -> ExportManifest | None:
    """Return the manifest stored at ``path``, or ``None`` when there is no usable one."""
    if not path.exists():
        logger.debug("No manifest file found at %s", path)
        return None

    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        manifest = ExportManifest.model_validate(payload)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, ValidationError) as exc:
        logger.warning("Failed to load manifest from %s: %s", path, exc)
        return None

    logger.debug("Loaded manifest from %s with %d page(s)", path, len(manifest.pages))
    migrate_manifest(manifest)
    return manifest


def migrate_manifest(manifest: ExportManifest) -> ExportManifest:
    """Upgrade ``manifest`` in place to the current format version."""
    if manifest.version == MANIFEST_VERSION_PAGES_ONLY:
        logger.info(
            "Migrating manifest from v%s to v%s",
            MANIFEST_VERSION_PAGES_ONLY,
            CURRENT_MANIFEST_VERSION,
        )
        # Older exports recorded no section metadata: every section is new next run.
        manifest.sections = {}
        manifest.version = CURRENT_MANIFEST_VERSION
        logger.info("Manifest migrated; the next export will scan all sections.")
    elif manifest.version != CURRENT_MANIFEST_VERSION:
        logger.warning(
            "Manifest version %s is not recognised; reading it as v%s",
            manifest.version,
            CURRENT_MANIFEST_VERSION,
        )
    return manifest


def save_manifest(manifest: ExportManifest, path: Path) -> None:
    """Write the whole manifest to ``path``, replacing the previous file."""
    payload = manifest.model_dump(mode="json", by_alias=True)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, ensure_ascii=False, indent=2)
            os.replace(temp_name, path)
        except BaseException:
            Path(temp_name).unlink(missing_ok=True)
            raise
    except OSError as exc:
        logger.error("Failed to save manifest to %s: %s", path, exc)
        raise ManifestError(f"Unable to write manifest {path}: {exc}") from exc

    logger.debug("Saved manifest to %s with %d page(s)", path, len(manifest.pages))


def create_manifest(notebook_id: str, notebook_title: str, export_format: str) -> ExportManifest:
    return ExportManifest(
        version=CURRENT_MANIFEST_VERSION,
        notebook_id=notebook_id,
        notebook_title=notebook_title,
        export_format=export_format,
        last_export_date=utc_now(),
    )


def create_manifest_for(notebook: Notebook, export_format: str) -> ExportManifest:
    return create_manifest(notebook.source_id, notebook.title, export_format)


def section_entry_for(section: Section, *, max_file_name_length: int) -> SectionEntry:
    return SectionEntry(
        title=section.title,
        section_id=section.source_id,
        last_modification_date=section.last_modification_date,
        relative_path=section.relative_path(max_file_name_length),
        is_section_group=section.is_section_group,
    )


def page_entry_for(page: Page, export_path: str, section_id: str | None = None) -> PageEntry:
    if section_id is None and isinstance(page.parent, Section):
        section_id = page.parent.source_id
    return PageEntry(
        title=page.title,
        page_id=page.source_id,
        section_id=section_id,
        last_modification_date=page.last_modification_date,
        export_path=export_path,
    )


def pages_from_manifest(manifest: ExportManifest | None, section: Section) -> list[Page]:
    """Rebuild stub pages of an unchanged section from the cached manifest entries."""
    if manifest is None:
        return []

    pages = [
        Page(
            title=entry.title,
            source_id=entry.page_id,
            last_modification_date=entry.last_modification_date,
            parent=section,
            is_stub=True,
        )
        for entry in manifest.pages_in_section(section.source_id)
    ]
    logger.debug("Retrieved %d cached page(s) from manifest for section '%s'", len(pages), section.title)
    return pages
