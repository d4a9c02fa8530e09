from __future__ import annotations

from pathlib import Path

from noteport.cleanup import delete_export_file, prune_empty_directories, reset_directory


def test_prune_removes_empty_ancestors_but_not_root(tmp_path: Path) -> None:
    root = tmp_path / "Work"
    leaf = root / "Projects" / "Alpha" / "Kickoff"
    leaf.mkdir(parents=True)

    removed = prune_empty_directories(leaf, root)

    assert removed == [leaf.resolve(), leaf.parent.resolve(), leaf.parent.parent.resolve()]
    assert root.is_dir()
    assert not (root / "Projects").exists()


def test_prune_stops_at_first_non_empty_directory(tmp_path: Path) -> None:
    root = tmp_path / "Work"
    leaf = root / "Projects" / "Alpha"
    leaf.mkdir(parents=True)
    (root / "Projects" / "keep.md").write_text("x", encoding="utf-8")

    removed = prune_empty_directories(leaf, root)

    assert removed == [leaf.resolve()]
    assert (root / "Projects").is_dir()


def test_prune_ignores_directories_outside_root(tmp_path: Path) -> None:
    outside = tmp_path / "elsewhere"
    outside.mkdir()

    assert prune_empty_directories(outside, tmp_path / "Work") == []
    assert outside.is_dir()


def test_delete_export_file(tmp_path: Path) -> None:
    target = tmp_path / "page.md"
    target.write_text("x", encoding="utf-8")

    assert delete_export_file(target) is True
    assert not target.exists()
    assert delete_export_file(target) is False


def test_reset_directory_empties_existing_folder(tmp_path: Path) -> None:
    folder = tmp_path / "Work"
    (folder / "nested").mkdir(parents=True)
    (folder / "nested" / "a.md").write_text("x", encoding="utf-8")

    reset_directory(folder)

    assert folder.is_dir()
    assert list(folder.iterdir()) == []
