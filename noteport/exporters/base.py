"""Two-phase incremental export of one notebook, shared by all target formats."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Sequence

from ..cleanup import delete_export_file, prune_empty_directories, reset_directory
from ..config import Config, ExportFormat
from ..hierarchy import HierarchyProvider, Notebook, Page, PageRenderer, Section, sanitize_title
from ..links import LinkRegistry, LinkRenderer
from ..manifests import (
    ChangeKind,
    ExportDiff,
    ExportManifest,
    SectionDiff,
    create_manifest_for,
    diff_pages,
    diff_sections,
    load_manifest,
    page_entry_for,
    pages_from_manifest,
    save_manifest,
    section_entry_for,
)

logger = logging.getLogger(__name__)

_STATUS_LABELS = {ChangeKind.NEW: "[NEW] ", ChangeKind.MODIFIED: "[UPDATE] "}


@dataclass
class NotebookExportResult:
    """Aggregate outcome of exporting one notebook."""

    notebook: str
    export_format: str
    export_folder: Path
    pages_on_error: int = 0
    pages_exported: int = 0
    pages_skipped: int = 0
    pages_deleted: int = 0
    sections_loaded: int = 0
    sections_cached: int = 0
    section_diff: SectionDiff | None = None
    page_diff: ExportDiff | None = None
    manifest_path: Path | None = None
    duration_seconds: float = 0.0
    warnings: list[str] = field(default_factory=list)

    @property
    def pages_total(self) -> int:
        return self.pages_exported + self.pages_skipped + self.pages_on_error


class NotebookExporter(ABC):
    """Export a notebook into a target layout, reusing the previous manifest when possible.

    Phase 1 collects sections and pages. Sections the manifest reports as
    unchanged are not enumerated through the provider; their pages are rebuilt
    from the cached entries instead. Phase 2 writes section nodes, assigns every
    page its output path (filling the link registry), then renders the pages that
    changed. The manifest is checkpointed after Phase 1 and after each exported
    page so an interrupted run resumes from the last committed page.
    """

    export_format: ExportFormat

    def __init__(
        self,
        config: Config,
        provider: HierarchyProvider,
        renderer: PageRenderer,
        *,
        registry: LinkRegistry | None = None,
    ) -> None:
        self.config = config
        self.provider = provider
        self.renderer = renderer
        self.registry = registry if registry is not None else LinkRegistry(config.link_handling)

    # Format hooks -----------------------------------------------------------

    @abstractmethod
    def page_relative_path(self, page: Page, parent_path: str | None) -> str:
        """Output path of ``page`` relative to the notebook export folder."""

    @abstractmethod
    def write_section_node(self, section: Section, export_folder: Path) -> None:
        """Write the structural output of a section or section group."""

    @abstractmethod
    def link_renderer(self, page_path: str) -> LinkRenderer:
        """Return the function rendering resolved links inside the page at ``page_path``."""

    def prepare_notebook(self, notebook: Notebook, export_folder: Path) -> None:
        export_folder.mkdir(parents=True, exist_ok=True)

    def restructure_page(self, page: Page, export_folder: Path) -> None:
        """Reshape the hierarchy of ``page`` before its path is assigned."""

    def finalize_markup(self, page: Page, markup: str) -> str:
        return markup

    def deleted_section_path(self, section_id: str, export_folder: Path) -> Path | None:
        return None

    def deleted_page_paths(self, page_id: str, export_folder: Path) -> list[Path]:
        """Format-specific files to remove along with a deleted page."""
        return []

    def requires_rewrite(self, page: Page, export_folder: Path) -> bool:
        """Whether an unchanged page must be written again."""
        return False

    # Locations --------------------------------------------------------------

    def export_folder(self, notebook: Notebook) -> Path:
        return self.config.output_dir / sanitize_title(notebook.title, self.config.max_file_name_length)

    def manifest_path(self, notebook: Notebook) -> Path:
        return self.export_folder(notebook) / self.config.manifest_filename

    # Entry points -----------------------------------------------------------

    def run(self, notebook: Notebook, *, force: bool = False) -> NotebookExportResult:
        """Export ``notebook``, loading the previous manifest unless ``force`` is set."""
        folder = self.export_folder(notebook)
        if force:
            logger.info("Force export: clearing %s", folder)
            reset_directory(folder)

        existing: ExportManifest | None = None
        if self.config.incremental and not force:
            existing = self._usable_manifest(notebook, load_manifest(self.manifest_path(notebook)))
        return self.export_notebook(notebook, existing)

    def plan(self, notebook: Notebook) -> tuple[SectionDiff, ExportDiff]:
        """Classify sections and pages against the stored manifest without writing anything."""
        existing = self._usable_manifest(notebook, load_manifest(self.manifest_path(notebook)))
        sections = self._select_sections(self.provider.list_sections(notebook, include_groups=True))
        section_diff = diff_sections(existing, sections)
        scratch = NotebookExportResult(
            notebook=notebook.title,
            export_format=self.export_format.value,
            export_folder=self.export_folder(notebook),
        )
        pages, _ = self._collect_pages(sections, existing, section_diff, None, scratch)
        return section_diff, diff_pages(existing, pages)

    def export_notebook(
        self,
        notebook: Notebook,
        existing: ExportManifest | None,
    ) -> NotebookExportResult:
        start = time.perf_counter()
        incremental = self.config.incremental
        folder = self.export_folder(notebook)
        manifest_path = self.manifest_path(notebook) if incremental else None
        result = NotebookExportResult(
            notebook=notebook.title,
            export_format=self.export_format.value,
            export_folder=folder,
            manifest_path=manifest_path,
        )

        sections = self._select_sections(self.provider.list_sections(notebook, include_groups=True))
        logger.info("Found %d section(s) and section group(s)", len(sections))

        # Phase 1: collect sections and pages.
        logger.info("Phase 1: collecting notebook structure")
        section_diff = diff_sections(existing, sections) if incremental else None
        new_manifest = create_manifest_for(notebook, self.export_format.value) if incremental else None
        result.section_diff = section_diff
        if section_diff is not None:
            logger.info(
                "Sections: %d total, %d new, %d modified, %d unchanged, %d deleted",
                section_diff.total,
                len(section_diff.new),
                len(section_diff.modified),
                len(section_diff.unchanged),
                len(section_diff.deleted),
            )

        pages, owners = self._collect_pages(sections, existing, section_diff, new_manifest, result)

        if new_manifest is not None and manifest_path is not None:
            save_manifest(new_manifest, manifest_path)
        if result.sections_cached:
            logger.info(
                "Phase 1: %d section(s) reused from manifest, %d loaded from source",
                result.sections_cached,
                result.sections_loaded,
            )

        page_diff = diff_pages(existing, pages) if incremental else None
        result.page_diff = page_diff
        if page_diff is not None:
            logger.info(
                "Pages: %d total, %d new, %d modified, %d unchanged, %d deleted",
                len(pages),
                len(page_diff.new),
                len(page_diff.modified),
                len(page_diff.unchanged),
                len(page_diff.deleted),
            )

        # Phase 2: write sections, assign page paths, render changed pages.
        logger.info("Phase 2: exporting content")
        self.prepare_notebook(notebook, folder)
        for index, section in enumerate(sections, start=1):
            logger.info(
                "- Section (%d/%d) : %s",
                index,
                len(sections),
                section.relative_path(self.config.max_file_name_length),
            )
            self.write_section_node(section, folder)

        paths = self._assign_paths(pages, existing, page_diff, folder)
        claimed = {path.casefold() for path in paths.values()}
        if existing is not None:
            claimed.update(
                entry.export_path.casefold() for page_id, entry in existing.pages.items() if page_id not in paths
            )
        failed_sections: set[str] = set()

        for index, page in enumerate(pages, start=1):
            label = f"{owners[page.source_id].title} / {page.title_with_level_indent}"
            kind = page_diff.kind_of(page) if page_diff is not None else None

            if kind is ChangeKind.UNCHANGED and not self.requires_rewrite(page, folder):
                logger.info("- [SKIP] Page %d/%d : %s", index, len(pages), label)
                result.pages_skipped += 1
                prior = existing.pages.get(page.source_id) if existing is not None else None
                if new_manifest is not None and prior is not None:
                    # Entries migrated from v1.0 carry no owning section.
                    new_manifest.pages[page.source_id] = prior.model_copy(
                        update={"section_id": owners[page.source_id].source_id}
                    )
                continue

            status = _STATUS_LABELS.get(kind, "")
            logger.info("- %sPage %d/%d : %s", status, index, len(pages), label)

            path = paths[page.source_id]
            if not self._export_page(page, path, folder):
                result.pages_on_error += 1
                result.warnings.append(f"Page '{label}' could not be exported")
                failed_sections.add(owners[page.source_id].source_id)
                continue

            result.pages_exported += 1
            prior = existing.pages.get(page.source_id) if existing is not None else None
            if (
                prior is not None
                and self.config.cleanup_deleted_pages
                and prior.export_path.casefold() not in claimed
            ):
                # Renamed or moved page: its previous file is no longer recorded anywhere.
                self._remove_output(prior.title, prior.export_path, folder)

            if new_manifest is not None and manifest_path is not None:
                new_manifest.pages[page.source_id] = page_entry_for(
                    page, path, owners[page.source_id].source_id
                )
                save_manifest(new_manifest, manifest_path)

        if new_manifest is not None and not self.config.page_filter:
            for section_id, entry in new_manifest.sections.items():
                if section_id not in failed_sections:
                    entry.clear_export_error()

        if incremental and existing is not None and new_manifest is not None:
            if self._is_partial:
                self._carry_forward(existing, new_manifest)
            elif self.config.cleanup_deleted_pages:
                self._delete_removed_output(section_diff, page_diff, new_manifest, folder, result)

        if new_manifest is not None and manifest_path is not None:
            save_manifest(new_manifest, manifest_path)
            logger.info("Manifest saved with %d page(s)", len(new_manifest.pages))

        if result.pages_skipped:
            logger.info(
                "Incremental export: %d page(s) skipped, %d page(s) processed",
                result.pages_skipped,
                len(pages) - result.pages_skipped,
            )

        result.duration_seconds = time.perf_counter() - start
        return result

    # Phase helpers ----------------------------------------------------------

    @property
    def _is_partial(self) -> bool:
        return bool(self.config.section_filter or self.config.page_filter)

    def _usable_manifest(self, notebook: Notebook, manifest: ExportManifest | None) -> ExportManifest | None:
        if manifest is None:
            return None
        if manifest.notebook_id and manifest.notebook_id != notebook.source_id:
            logger.warning(
                "Manifest belongs to notebook %s, not %s; starting from a clean state",
                manifest.notebook_id,
                notebook.source_id,
            )
            return None
        if manifest.export_format and manifest.export_format != self.export_format.value:
            logger.warning(
                "Manifest was written for format '%s'; starting a fresh '%s' export",
                manifest.export_format,
                self.export_format.value,
            )
            return None
        return manifest

    def _select_sections(self, sections: Sequence[Section]) -> list[Section]:
        wanted = self.config.section_filter
        if not wanted:
            return list(sections)

        keep: set[str] = set()
        for section in sections:
            if section.title != wanted:
                continue
            node: object = section
            while isinstance(node, Section):
                keep.add(node.source_id)
                node = node.parent
        return [section for section in sections if section.source_id in keep]

    def _filter_pages(self, pages: Sequence[Page]) -> list[Page]:
        wanted = self.config.page_filter
        return [page for page in pages if not wanted or page.title == wanted]

    def _collect_pages(
        self,
        sections: Sequence[Section],
        existing: ExportManifest | None,
        section_diff: SectionDiff | None,
        new_manifest: ExportManifest | None,
        result: NotebookExportResult,
    ) -> tuple[list[Page], dict[str, Section]]:
        pages: list[Page] = []
        owners: dict[str, Section] = {}
        max_length = self.config.max_file_name_length

        for index, section in enumerate(sections, start=1):
            logger.info("- Section (%d/%d) : %s", index, len(sections), section.relative_path(max_length))
            if section.is_section_group:
                continue

            entry = section_entry_for(section, max_file_name_length=max_length)
            if section_diff is not None and section_diff.is_unchanged(section):
                section_pages = self._filter_pages(pages_from_manifest(existing, section))
                if existing is not None:
                    entry.has_export_errors = existing.sections[section.source_id].has_export_errors
                result.sections_cached += 1
            else:
                section_pages = self._filter_pages(self.provider.list_pages(section))
                # Pending until every page of the section has been exported.
                entry.mark_export_error()
                result.sections_loaded += 1

            for page in section_pages:
                owners[page.source_id] = section
            pages.extend(section_pages)
            if new_manifest is not None:
                new_manifest.sections[section.source_id] = entry

        return pages, owners

    def _assign_paths(
        self,
        pages: Sequence[Page],
        existing: ExportManifest | None,
        page_diff: ExportDiff | None,
        folder: Path,
    ) -> dict[str, str]:
        for page in pages:
            self.restructure_page(page, folder)

        paths: dict[str, str] = {}
        used: set[str] = set()

        # Unchanged pages keep the file they were exported to.
        if page_diff is not None and existing is not None:
            for page in pages:
                prior = existing.pages.get(page.source_id)
                if prior is not None and page_diff.is_unchanged(page):
                    paths[page.source_id] = prior.export_path
                    used.add(prior.export_path.casefold())

        for page in pages:
            if page.source_id in paths:
                continue
            parent_path = paths.get(page.parent_page.source_id) if page.parent_page is not None else None
            path = _unique_path(self.page_relative_path(page, parent_path), used)
            paths[page.source_id] = path
            used.add(path.casefold())

        for page in pages:
            self._register_link(page, paths[page.source_id])
        logger.debug("Registered %d link target(s)", len(self.registry))
        return paths

    def _register_link(self, page: Page, path: str) -> None:
        key = page.link_key
        if key is None:
            try:
                key = self.provider.link_key(page)
            except Exception as exc:  # noqa: BLE001
                logger.warning("Failed to get link key for page '%s': %s", page.title, exc)
                return
        if key:
            self.registry.register(page.id, page.source_id, key, path, page.title)

    def _export_page(self, page: Page, path: str, folder: Path) -> bool:
        try:
            rendered = self.renderer.render(page)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Failed to render page '%s': %s", page.title, exc)
            logger.debug("Render failure for page %s", page.source_id, exc_info=True)
            return False

        if not rendered.success:
            logger.warning(
                "Failed to export page '%s': %s",
                page.title,
                rendered.reason or "renderer reported a failure",
            )
            return False

        if self.config.link_handling.resolves:
            missing = [key for key in rendered.links if key not in self.registry]
            if missing:
                logger.info("Page '%s' links to %d page(s) outside this export", page.title, len(missing))
        markup = self.registry.resolve(rendered.markup, self.link_renderer(path))
        markup = self.finalize_markup(page, markup)
        target = folder / path
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(markup, encoding="utf-8")
        except OSError as exc:
            logger.warning("Failed to write page '%s' to %s: %s", page.title, target, exc)
            return False
        return True

    def _carry_forward(self, existing: ExportManifest, new_manifest: ExportManifest) -> None:
        # Filtered runs only see part of the notebook; keep what they did not visit.
        for section_id, entry in existing.sections.items():
            new_manifest.sections.setdefault(section_id, entry.model_copy())
        for page_id, entry in existing.pages.items():
            new_manifest.pages.setdefault(page_id, entry.model_copy())
        logger.info("Filtered export: deleted content is not pruned")

    def _delete_removed_output(
        self,
        section_diff: SectionDiff | None,
        page_diff: ExportDiff | None,
        new_manifest: ExportManifest,
        folder: Path,
        result: NotebookExportResult,
    ) -> None:
        live_paths = {entry.export_path.casefold() for entry in new_manifest.pages.values()}

        for entry in page_diff.deleted if page_diff is not None else []:
            for extra in self.deleted_page_paths(entry.page_id, folder):
                if delete_export_file(extra):
                    logger.info("- [DELETE] %s (%s)", entry.title, extra.name)
            if entry.export_path.casefold() in live_paths:
                # Path now belongs to a page exported in this run.
                continue
            if self._remove_output(entry.title, entry.export_path, folder):
                result.pages_deleted += 1

        for section_entry in section_diff.deleted if section_diff is not None else []:
            target = self.deleted_section_path(section_entry.section_id, folder)
            if target is not None and delete_export_file(target):
                logger.info("- [DELETE] %s (%s)", section_entry.title, target.name)

    def _remove_output(self, title: str, export_path: str, folder: Path) -> bool:
        target = folder / export_path
        if folder.resolve() not in target.resolve().parents:
            logger.warning("Ignoring '%s' outside the export folder: %s", title, export_path)
            return False
        if not delete_export_file(target):
            return False
        logger.info("- [DELETE] %s (%s)", title, export_path)
        if self.config.prune_empty_directories:
            prune_empty_directories(target.parent, folder)
        return True


def _unique_path(path: str, used: set[str]) -> str:
    if path.casefold() not in used:
        return path
    stem, dot, suffix = path.rpartition(".")
    if not dot:
        stem, suffix = path, ""
    counter = 2
    while True:
        candidate = f"{stem} ({counter}).{suffix}" if suffix else f"{stem} ({counter})"
        if candidate.casefold() not in used:
            return candidate
        counter += 1
