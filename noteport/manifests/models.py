"""Pydantic models describing the export manifest file."""

from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..hierarchy import ensure_utc

# v1.0: pages only. v2.0: pages and sections.
MANIFEST_VERSION_PAGES_ONLY = "1.0"
CURRENT_MANIFEST_VERSION = "2.0"


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


class SectionState(str, Enum):
    """Export state of a section recorded in the manifest."""

    CLEAN = "clean"
    ERROR_PENDING = "error-pending"


class _ManifestModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class SectionEntry(_ManifestModel):
    """Exported section as recorded by the last run."""

    title: str = Field(default="")
    section_id: str = Field(...)
    last_modification_date: datetime = Field(...)
    relative_path: str = Field(default="", description="Section path within the notebook.")
    is_section_group: bool = Field(default=False)
    has_export_errors: bool = Field(
        default=False,
        description="Forces the section to be reloaded on the next run.",
    )

    @field_validator("last_modification_date")
    def _normalize_date(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def state(self) -> SectionState:
        return SectionState.ERROR_PENDING if self.has_export_errors else SectionState.CLEAN

    def mark_export_error(self) -> None:
        self.has_export_errors = True

    def clear_export_error(self) -> None:
        self.has_export_errors = False


class PageEntry(_ManifestModel):
    """Exported page as recorded by the last run."""

    title: str = Field(default="")
    page_id: str = Field(...)
    section_id: Optional[str] = Field(default=None, description="Owning section; absent in v1.0.")
    last_modification_date: datetime = Field(...)
    export_path: str = Field(..., description="Output file path relative to the notebook export folder.")

    @field_validator("last_modification_date")
    def _normalize_date(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("export_path")
    def _posix_path(cls, value: str) -> str:
        return value.replace("\\", "/")


class ExportManifest(_ManifestModel):
    """Snapshot of the last export of one notebook."""

    version: str = Field(default=CURRENT_MANIFEST_VERSION)
    notebook_id: str = Field(default="")
    notebook_title: str = Field(default="")
    export_format: str = Field(default="")
    last_export_date: datetime = Field(default_factory=utc_now)
    sections: dict[str, SectionEntry] = Field(default_factory=dict)
    pages: dict[str, PageEntry] = Field(default_factory=dict)

    @field_validator("last_export_date")
    def _normalize_date(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @field_validator("sections", "pages", mode="before")
    def _null_to_empty(cls, value: object) -> object:
        return {} if value is None else value

    def pages_in_section(self, section_id: str) -> list[PageEntry]:
        return [entry for entry in self.pages.values() if entry.section_id == section_id]

    def has_pages_for(self, section_id: str) -> bool:
        return any(entry.section_id == section_id for entry in self.pages.values())
