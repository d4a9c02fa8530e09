"""Classify current sections and pages against the previous export manifest."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence

from ..hierarchy import Page, Section
from .models import ExportManifest, PageEntry, SectionEntry

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    NEW = "new"
    MODIFIED = "modified"
    UNCHANGED = "unchanged"
    DELETED = "deleted"


@dataclass
class SectionDiff:
    """Sections grouped by change since the last export; groups are never classified."""

    new: list[Section] = field(default_factory=list)
    modified: list[Section] = field(default_factory=list)
    unchanged: list[Section] = field(default_factory=list)
    deleted: list[SectionEntry] = field(default_factory=list)
    _kinds: dict[str, ChangeKind] | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def to_process(self) -> int:
        return len(self.new) + len(self.modified)

    @property
    def total(self) -> int:
        return len(self.new) + len(self.modified) + len(self.unchanged)

    def kind_of(self, section: Section) -> ChangeKind | None:
        if self._kinds is None:
            self._kinds = _index_kinds(self.new, self.modified, self.unchanged)
        return self._kinds.get(section.source_id)

    def is_unchanged(self, section: Section) -> bool:
        return self.kind_of(section) is ChangeKind.UNCHANGED


@dataclass
class ExportDiff:
    """Pages grouped by change since the last export."""

    new: list[Page] = field(default_factory=list)
    modified: list[Page] = field(default_factory=list)
    unchanged: list[Page] = field(default_factory=list)
    deleted: list[PageEntry] = field(default_factory=list)
    _kinds: dict[str, ChangeKind] | None = field(default=None, init=False, repr=False, compare=False)

    @property
    def to_process(self) -> int:
        return len(self.new) + len(self.modified)

    @property
    def total(self) -> int:
        return len(self.new) + len(self.modified) + len(self.unchanged)

    def kind_of(self, page: Page) -> ChangeKind | None:
        if self._kinds is None:
            self._kinds = _index_kinds(self.new, self.modified, self.unchanged)
        return self._kinds.get(page.source_id)

    def is_unchanged(self, page: Page) -> bool:
        return self.kind_of(page) is ChangeKind.UNCHANGED


def diff_sections(existing: ExportManifest | None, sections: Sequence[Section]) -> SectionDiff:
    """Compare current sections with the sections recorded in ``existing``."""
    diff = SectionDiff()
    candidates = [section for section in sections if not section.is_section_group]

    if existing is None or not existing.sections:
        # First export, or a manifest migrated from a version without sections.
        diff.new.extend(candidates)
        logger.debug("Section diff: all %d section(s) marked as new", len(diff.new))
        return diff

    remaining = {
        section_id
        for section_id, entry in existing.sections.items()
        if not entry.is_section_group
    }

    for section in candidates:
        entry = existing.sections.get(section.source_id)
        if entry is None:
            diff.new.append(section)
            continue

        remaining.discard(section.source_id)

        if section.last_modification_date > entry.last_modification_date:
            diff.modified.append(section)
        elif not existing.has_pages_for(section.source_id):
            # Recorded by an interrupted run before any of its pages were.
            logger.debug("Section '%s' has no pages in manifest; reloading", section.title)
            diff.modified.append(section)
        elif entry.has_export_errors:
            logger.debug("Section '%s' had export errors; reloading", section.title)
            diff.modified.append(section)
        else:
            diff.unchanged.append(section)

    diff.deleted.extend(
        entry for section_id, entry in existing.sections.items() if section_id in remaining
    )

    logger.debug(
        "Section diff computed: %d new, %d modified, %d unchanged, %d deleted",
        len(diff.new),
        len(diff.modified),
        len(diff.unchanged),
        len(diff.deleted),
    )
    return diff


def diff_pages(existing: ExportManifest | None, pages: Sequence[Page]) -> ExportDiff:
    """Compare current pages with the pages recorded in ``existing``.

    A page is modified only when its timestamp is strictly newer than the
    recorded one; equal timestamps count as unchanged.
    """
    diff = ExportDiff()

    if existing is None or existing.pages is None:
        diff.new.extend(pages)
        return diff

    remaining = set(existing.pages)

    for page in pages:
        entry = existing.pages.get(page.source_id)
        if entry is None:
            diff.new.append(page)
            continue

        remaining.discard(page.source_id)
        if page.last_modification_date > entry.last_modification_date:
            diff.modified.append(page)
        else:
            diff.unchanged.append(page)

    diff.deleted.extend(entry for page_id, entry in existing.pages.items() if page_id in remaining)

    logger.debug(
        "Page diff computed: %d new, %d modified, %d unchanged, %d deleted",
        len(diff.new),
        len(diff.modified),
        len(diff.unchanged),
        len(diff.deleted),
    )
    return diff


def _index_kinds(
    new: Sequence[Section | Page],
    modified: Sequence[Section | Page],
    unchanged: Sequence[Section | Page],
) -> dict[str, ChangeKind]:
    # Built on first lookup; the differs fill the lists before returning.
    kinds: dict[str, ChangeKind] = {}
    for kind, nodes in (
        (ChangeKind.UNCHANGED, unchanged),
        (ChangeKind.MODIFIED, modified),
        (ChangeKind.NEW, new),
    ):
        kinds.update((node.source_id, kind) for node in nodes)
    return kinds
