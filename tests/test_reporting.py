import json
from datetime import datetime, timezone
from pathlib import Path

from noteport.exporters import NotebookExportResult
from noteport.hierarchy import Notebook, Page, Section
from noteport.manifests import ExportDiff, PageEntry, SectionDiff
from noteport.reporting import assemble_report, build_page_stats, build_section_stats, write_report

T0 = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


def _section(source_id: str) -> Section:
    notebook = Notebook(title="Work", source_id="nb-1", last_modification_date=T0)
    return Section(title=source_id, source_id=source_id, last_modification_date=T0, parent=notebook)


def _page(source_id: str) -> Page:
    return Page(title=source_id, source_id=source_id, last_modification_date=T0, parent=_section("sec-1"))


def _result() -> NotebookExportResult:
    return NotebookExportResult(
        notebook="Work",
        export_format="md",
        export_folder=Path("export/Work"),
        pages_on_error=1,
        pages_exported=2,
        pages_skipped=3,
        pages_deleted=1,
        sections_loaded=1,
        sections_cached=2,
        duration_seconds=0.5,
        warnings=["Page 'Meetings / Agenda' could not be exported"],
    )


def test_build_section_stats_counts_classes() -> None:
    diff = SectionDiff(
        new=[_section("a")],
        unchanged=[_section("b"), _section("c")],
    )
    stats = build_section_stats(diff, _result())
    assert stats.total == 3
    assert stats.new == 1
    assert stats.unchanged == 2
    assert stats.loaded == 1
    assert stats.cached == 2


def test_build_page_stats_without_diff_counts_everything_as_new() -> None:
    stats = build_page_stats(None, _result())
    assert stats.total == 6
    assert stats.new == 6
    assert stats.on_error == 1


def test_write_report_writes_json(tmp_path: Path) -> None:
    result = _result()
    result.page_diff = ExportDiff(
        new=[_page("p1"), _page("p2")],
        unchanged=[_page("p3")],
        deleted=[PageEntry(page_id="p9", last_modification_date=T0, export_path="Meetings/Old.md")],
    )
    result.section_diff = SectionDiff(new=[_section("sec-1")])
    report = assemble_report(result)

    target = tmp_path / "reports" / "export-report.json"
    written = write_report(report, target)

    assert written == target
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["notebook"] == "Work"
    assert payload["incremental"] is True
    assert payload["pages"]["deleted"] == 1
    assert payload["pages"]["removed"] == 1
    assert payload["pages"]["exported"] == 2
    assert payload["sections"]["new"] == 1
    assert payload["warnings"] == ["Page 'Meetings / Agenda' could not be exported"]
