"""Export reporting helpers for noteport."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from pydantic import BaseModel, Field

from .exporters import NotebookExportResult
from .manifests import ExportDiff, SectionDiff


class SectionStats(BaseModel):
    total: int
    new: int
    modified: int
    unchanged: int
    deleted: int
    loaded: int
    cached: int


class PageStats(BaseModel):
    total: int
    new: int
    modified: int
    unchanged: int
    deleted: int
    exported: int
    skipped: int
    removed: int
    on_error: int


class ExportReport(BaseModel):
    notebook: str
    export_format: str
    generated_at: datetime
    duration_seconds: float
    incremental: bool
    sections: SectionStats
    pages: PageStats
    warnings: list[str] = Field(default_factory=list)


def build_section_stats(diff: SectionDiff | None, result: NotebookExportResult) -> SectionStats:
    if diff is None:
        loaded = result.sections_loaded
        return SectionStats(total=loaded, new=loaded, modified=0, unchanged=0, deleted=0, loaded=loaded, cached=0)
    return SectionStats(
        total=diff.total,
        new=len(diff.new),
        modified=len(diff.modified),
        unchanged=len(diff.unchanged),
        deleted=len(diff.deleted),
        loaded=result.sections_loaded,
        cached=result.sections_cached,
    )


def build_page_stats(diff: ExportDiff | None, result: NotebookExportResult) -> PageStats:
    total = result.pages_total
    if diff is None:
        return PageStats(
            total=total,
            new=total,
            modified=0,
            unchanged=0,
            deleted=0,
            exported=result.pages_exported,
            skipped=result.pages_skipped,
            removed=result.pages_deleted,
            on_error=result.pages_on_error,
        )
    return PageStats(
        total=diff.total,
        new=len(diff.new),
        modified=len(diff.modified),
        unchanged=len(diff.unchanged),
        deleted=len(diff.deleted),
        exported=result.pages_exported,
        skipped=result.pages_skipped,
        removed=result.pages_deleted,
        on_error=result.pages_on_error,
    )


def assemble_report(result: NotebookExportResult) -> ExportReport:
    return ExportReport(
        notebook=result.notebook,
        export_format=result.export_format,
        generated_at=datetime.now(timezone.utc),
        duration_seconds=result.duration_seconds,
        incremental=result.page_diff is not None,
        sections=build_section_stats(result.section_diff, result),
        pages=build_page_stats(result.page_diff, result),
        warnings=list(result.warnings),
    )


def write_report(report: ExportReport, target: Path) -> Path:
    target.parent.mkdir(parents=True, exist_ok=True)
    with target.open("w", encoding="utf-8") as handle:
        json.dump(report.model_dump(mode="json"), handle, ensure_ascii=False, indent=2)
    return target
