from __future__ import annotations

from datetime import datetime, timedelta, timezone

from noteport.hierarchy import Notebook, Page, Section
from noteport.manifests import (
    ChangeKind,
    ExportManifest,
    PageEntry,
    SectionEntry,
    create_manifest,
    diff_pages,
    diff_sections,
)

T0 = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=1)

NOTEBOOK = Notebook(title="Work", source_id="nb-1", last_modification_date=T0)


def _section(source_id: str, modified: datetime = T0, *, group: bool = False) -> Section:
    return Section(
        title=source_id.title(),
        source_id=source_id,
        last_modification_date=modified,
        parent=NOTEBOOK,
        is_section_group=group,
    )


def _page(source_id: str, section: Section, modified: datetime = T0) -> Page:
    return Page(title=source_id.title(), source_id=source_id, last_modification_date=modified, parent=section)


def _manifest(
    sections: dict[str, datetime],
    pages: dict[str, str],
    *,
    errors: tuple[str, ...] = (),
) -> ExportManifest:
    manifest = create_manifest("nb-1", "Work", "md")
    for section_id, modified in sections.items():
        manifest.sections[section_id] = SectionEntry(
            title=section_id.title(),
            section_id=section_id,
            last_modification_date=modified,
            has_export_errors=section_id in errors,
        )
    for page_id, section_id in pages.items():
        manifest.pages[page_id] = PageEntry(
            title=page_id.title(),
            page_id=page_id,
            section_id=section_id,
            last_modification_date=T0,
            export_path=f"{section_id}/{page_id}.md",
        )
    return manifest


def _ids(nodes: list) -> list[str]:
    return [node.source_id for node in nodes]


def test_all_sections_new_without_manifest() -> None:
    sections = [_section("a"), _section("b")]

    diff = diff_sections(None, sections)

    assert _ids(diff.new) == ["a", "b"]
    assert diff.modified == diff.unchanged == diff.deleted == []


def test_all_sections_new_when_manifest_has_no_sections() -> None:
    manifest = _manifest({}, {"p1": "a"})

    diff = diff_sections(manifest, [_section("a")])

    assert _ids(diff.new) == ["a"]


def test_section_groups_are_never_classified() -> None:
    group = _section("grp", group=True)

    diff = diff_sections(None, [group, _section("a")])

    assert _ids(diff.new) == ["a"]
    assert diff.total == 1


def test_newer_section_timestamp_is_modified() -> None:
    manifest = _manifest({"a": T0}, {"p1": "a"})

    diff = diff_sections(manifest, [_section("a", T1)])

    assert _ids(diff.modified) == ["a"]


def test_section_without_recorded_pages_is_reloaded() -> None:
    manifest = _manifest({"a": T0, "b": T0}, {"p1": "a"})

    diff = diff_sections(manifest, [_section("a"), _section("b")])

    assert _ids(diff.unchanged) == ["a"]
    assert _ids(diff.modified) == ["b"]


def test_section_with_export_errors_is_reloaded() -> None:
    manifest = _manifest({"a": T0}, {"p1": "a"}, errors=("a",))

    diff = diff_sections(manifest, [_section("a")])

    assert _ids(diff.modified) == ["a"]
    assert diff.kind_of(_section("a")) is ChangeKind.MODIFIED


def test_older_section_timestamp_is_unchanged() -> None:
    manifest = _manifest({"a": T1}, {"p1": "a"})

    diff = diff_sections(manifest, [_section("a", T0)])

    assert _ids(diff.unchanged) == ["a"]


def test_deleted_sections_keep_manifest_order_and_skip_groups() -> None:
    manifest = _manifest({"z": T0, "a": T0, "m": T0}, {"p1": "a"})
    manifest.sections["grp"] = SectionEntry(
        section_id="grp",
        last_modification_date=T0,
        is_section_group=True,
    )

    diff = diff_sections(manifest, [_section("a")])

    assert [entry.section_id for entry in diff.deleted] == ["z", "m"]


def test_all_pages_new_without_manifest() -> None:
    section = _section("a")
    pages = [_page("p1", section), _page("p2", section)]

    diff = diff_pages(None, pages)

    assert _ids(diff.new) == ["p1", "p2"]
    assert diff.deleted == []


def test_page_classification() -> None:
    manifest = _manifest({"a": T0}, {"p1": "a", "p2": "a", "p3": "a"})
    section = _section("a")
    pages = [
        _page("p1", section, T0),
        _page("p2", section, T1),
        _page("p4", section, T0),
    ]

    diff = diff_pages(manifest, pages)

    assert _ids(diff.unchanged) == ["p1"]
    assert _ids(diff.modified) == ["p2"]
    assert _ids(diff.new) == ["p4"]
    assert [entry.page_id for entry in diff.deleted] == ["p3"]
    assert diff.deleted[0].export_path == "a/p3.md"
    assert diff.to_process == 2


def test_equal_page_timestamp_is_unchanged() -> None:
    manifest = _manifest({"a": T0}, {"p1": "a"})

    diff = diff_pages(manifest, [_page("p1", _section("a"), T0)])

    assert _ids(diff.unchanged) == ["p1"]
    assert diff.modified == []


def test_page_and_section_classification_are_independent() -> None:
    manifest = _manifest({"a": T0}, {"p1": "a", "p2": "a"})
    section = _section("a", T0)

    section_diff = diff_sections(manifest, [section])
    page_diff = diff_pages(manifest, [_page("p1", section, T1), _page("p2", section, T0)])

    assert _ids(section_diff.unchanged) == ["a"]
    assert _ids(page_diff.modified) == ["p1"]
    assert _ids(page_diff.unchanged) == ["p2"]


def test_kind_of_looks_up_every_page_of_a_large_diff() -> None:
    section = _section("a")
    recorded = {f"p{index}": "a" for index in range(2000)}
    manifest = _manifest({"a": T0}, recorded)
    pages = [_page(f"p{index}", section, T1 if index % 2 else T0) for index in range(2000)]
    pages.append(_page("fresh", section))

    diff = diff_pages(manifest, pages)

    assert len(diff.unchanged) == 1000
    assert len(diff.modified) == 1000
    assert all(diff.kind_of(page) is ChangeKind.MODIFIED for page in diff.modified)
    assert all(diff.is_unchanged(page) for page in diff.unchanged)
    assert diff.kind_of(pages[-1]) is ChangeKind.NEW
    assert diff.kind_of(_page("elsewhere", section)) is None


def test_section_kind_of_covers_all_classes() -> None:
    manifest = _manifest({"a": T0, "b": T0}, {"p1": "a", "p2": "b"})
    sections = [_section("a"), _section("b", T1), _section("c"), _section("g", group=True)]

    diff = diff_sections(manifest, sections)

    assert diff.kind_of(sections[0]) is ChangeKind.UNCHANGED
    assert diff.kind_of(sections[1]) is ChangeKind.MODIFIED
    assert diff.kind_of(sections[2]) is ChangeKind.NEW
    assert diff.kind_of(sections[3]) is None
    assert diff.is_unchanged(sections[0])
