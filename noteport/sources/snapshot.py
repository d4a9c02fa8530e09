"""Hierarchy provider and renderer backed by a YAML notebook snapshot.

A snapshot lists notebooks, their sections (``group: true`` entries nest further
sections) and pages (``children`` nest sub-pages)::

    notebooks:
      - id: nb-1
        title: Work
        modified: 2025-01-06T09:00:00Z
        sections:
          - id: sec-1
            title: Meetings
            modified: 2025-01-06T09:00:00Z
            pages:
              - id: page-1
                title: Kickoff
                modified: 2025-01-06T09:00:00Z
                link: 5A1F-11
                content: pages/kickoff.md
                children:
                  - id: page-2
                    title: Notes
                    modified: 2025-01-06T09:00:00Z
                    body: "See [Kickoff](onenote:#Kickoff&page-id={5A1F-11})"

Page content is either inline (``body``) or read from a file relative to the
snapshot (``content``).
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from ..hierarchy import Notebook, Page, RenderResult, Section
from ..links import iter_link_keys

logger = logging.getLogger(__name__)


class SnapshotError(ValueError):
    """Raised when a notebook snapshot cannot be read or is invalid."""


class PageRecord(BaseModel):
    id: str
    title: str
    modified: datetime
    created: Optional[datetime] = None
    link: Optional[str] = Field(default=None, description="Stable cross-reference key.")
    body: Optional[str] = None
    content: Optional[Path] = None
    children: list["PageRecord"] = Field(default_factory=list)

    @field_validator("content", mode="before")
    def _ensure_path(cls, value: Any) -> Path | None:
        if value is None or value == "":
            return None
        return Path(value)


class SectionRecord(BaseModel):
    id: str
    title: str
    modified: datetime
    created: Optional[datetime] = None
    group: bool = False
    sections: list["SectionRecord"] = Field(default_factory=list)
    pages: list[PageRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_shape(self) -> "SectionRecord":
        if self.group and self.pages:
            raise ValueError(f"Section group '{self.title}' cannot hold pages directly")
        if not self.group and self.sections:
            raise ValueError(f"Section '{self.title}' cannot hold sections; mark it as a group")
        return self


class NotebookRecord(BaseModel):
    id: str
    title: str
    modified: datetime
    created: Optional[datetime] = None
    sections: list[SectionRecord] = Field(default_factory=list)


class Snapshot(BaseModel):
    notebooks: list[NotebookRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _unique_ids(self) -> "Snapshot":
        seen: set[str] = set()
        for identifier in _iter_ids(self):
            if identifier in seen:
                raise ValueError(f"Duplicate identifier '{identifier}' in snapshot")
            seen.add(identifier)
        return self


def _iter_ids(snapshot: Snapshot) -> Iterator[str]:
    def _pages(pages: list[PageRecord]) -> Iterator[str]:
        for page in pages:
            yield page.id
            yield from _pages(page.children)

    def _sections(sections: list[SectionRecord]) -> Iterator[str]:
        for section in sections:
            yield section.id
            yield from _sections(section.sections)
            yield from _pages(section.pages)

    for notebook in snapshot.notebooks:
        yield notebook.id
        yield from _sections(notebook.sections)


class SnapshotProvider:
    """Serve notebooks, sections and pages from a parsed snapshot."""

    def __init__(self, snapshot: Snapshot, base_dir: Path | None = None) -> None:
        self.snapshot = snapshot
        self.base_dir = base_dir or Path.cwd()
        self._notebooks: dict[str, Notebook] = {}
        self._sections: dict[str, list[tuple[Section, SectionRecord]]] = {}
        self._pages: dict[str, PageRecord] = {}
        for notebook_record in snapshot.notebooks:
            notebook = Notebook(
                title=notebook_record.title,
                source_id=notebook_record.id,
                last_modification_date=notebook_record.modified,
                creation_date=notebook_record.created,
            )
            self._notebooks[notebook.source_id] = notebook
            self._sections[notebook.source_id] = list(self._walk_sections(notebook_record.sections, notebook))
        self._index_pages()

    @classmethod
    def from_file(cls, path: Path) -> SnapshotProvider:
        try:
            with path.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        except FileNotFoundError as exc:
            raise SnapshotError(f"Snapshot not found: {path}") from exc
        except (OSError, yaml.YAMLError) as exc:
            raise SnapshotError(f"Unable to read snapshot {path}: {exc}") from exc
        provider = cls.from_mapping(data, base_dir=path.parent)
        logger.debug("Loaded snapshot %s with %d notebook(s)", path, len(provider.snapshot.notebooks))
        return provider

    @classmethod
    def from_mapping(cls, data: dict[str, Any], base_dir: Path | None = None) -> SnapshotProvider:
        if not isinstance(data, dict):
            raise SnapshotError("Snapshot should define a mapping with a 'notebooks' list")
        try:
            snapshot = Snapshot.model_validate(data)
        except ValidationError as exc:
            raise SnapshotError(f"Invalid snapshot: {exc}") from exc
        return cls(snapshot, base_dir=base_dir)

    def _walk_sections(
        self, records: list[SectionRecord], parent: Notebook | Section
    ) -> Iterator[tuple[Section, SectionRecord]]:
        for record in records:
            section = Section(
                title=record.title,
                source_id=record.id,
                last_modification_date=record.modified,
                creation_date=record.created,
                parent=parent,
                is_section_group=record.group,
            )
            yield section, record
            yield from self._walk_sections(record.sections, section)

    # HierarchyProvider ------------------------------------------------------

    def list_notebooks(self) -> list[Notebook]:
        return list(self._notebooks.values())

    def list_sections(self, notebook: Notebook, include_groups: bool = False) -> list[Section]:
        entries = self._sections.get(notebook.source_id, [])
        return [section for section, _ in entries if include_groups or not section.is_section_group]

    def list_pages(self, section: Section) -> list[Page]:
        record = self._section_record(section)
        pages: list[Page] = []

        def _add(page_records: list[PageRecord], parent_page: Page | None, level: int) -> None:
            for page_record in page_records:
                page = Page(
                    title=page_record.title,
                    source_id=page_record.id,
                    last_modification_date=page_record.modified,
                    creation_date=page_record.created,
                    parent=section,
                    level=level,
                    section_order=len(pages),
                    link_key=page_record.link,
                )
                if parent_page is not None:
                    parent_page.add_child(page)
                pages.append(page)
                _add(page_record.children, page, level + 1)

        _add(record.pages, None, 1)
        return pages

    def link_key(self, page: Page) -> str | None:
        record = self._page_record(page.source_id)
        return record.link if record is not None else None

    # Content ----------------------------------------------------------------

    def page_content(self, page_id: str) -> str | None:
        """Raw content of a page, or ``None`` when the snapshot holds none."""
        record = self._page_record(page_id)
        if record is None:
            return None
        if record.body is not None:
            return record.body
        if record.content is None:
            return None
        path = record.content if record.content.is_absolute() else self.base_dir / record.content
        return path.read_text(encoding="utf-8")

    def _section_record(self, section: Section) -> SectionRecord:
        for entries in self._sections.values():
            for candidate, record in entries:
                if candidate.source_id == section.source_id:
                    return record
        raise SnapshotError(f"Unknown section '{section.title}' ({section.source_id})")

    def _page_record(self, page_id: str) -> PageRecord | None:
        return self._pages.get(page_id)

    def _index_pages(self) -> None:
        def _index(page_records: list[PageRecord]) -> None:
            for page_record in page_records:
                self._pages[page_record.id] = page_record
                _index(page_record.children)

        for entries in self._sections.values():
            for _, record in entries:
                _index(record.pages)


class SnapshotRenderer:
    """Render snapshot pages whose content is already Markdown."""

    def __init__(self, provider: SnapshotProvider) -> None:
        self.provider = provider

    def render(self, page: Page) -> RenderResult:
        if page.is_stub:
            return RenderResult.failed("cached page carries no content")
        try:
            content = self.provider.page_content(page.source_id)
        except OSError as exc:
            return RenderResult.failed(f"unable to read content: {exc}")
        if content is None:
            return RenderResult.failed("page has no content")
        return RenderResult(markup=content, links=list(iter_link_keys(content)))
