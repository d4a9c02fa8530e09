"""Joplin raw directory target: one ``<id>.md`` file per notebook, folder and note."""

from __future__ import annotations

from datetime import datetime
from pathlib import Path

from ..cleanup import delete_export_file
from ..config import ExportFormat, PageHierarchy
from ..hierarchy import Node, Notebook, Page, Section, stable_node_id
from ..links import LinkRenderer
from .base import NotebookExporter

NOTE_TYPE = "1"
FOLDER_TYPE = "2"


def joplin_timestamp(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%S.000Z")


def page_folder_source_id(page_id: str) -> str:
    """Source id of the folder node that holds a page and its sub-pages."""
    return f"{page_id}#pages"


class JoplinExporter(NotebookExporter):
    export_format = ExportFormat.JOPLIN

    def page_relative_path(self, page: Page, parent_path: str | None) -> str:
        return f"{page.id}.md"

    def prepare_notebook(self, notebook: Notebook, export_folder: Path) -> None:
        super().prepare_notebook(notebook, export_folder)
        self._write_node_file(notebook, export_folder)

    def write_section_node(self, section: Section, export_folder: Path) -> None:
        self._write_node_file(section, export_folder)

    def restructure_page(self, page: Page, export_folder: Path) -> None:
        """Give a page with sub-pages its own folder holding the page and its children."""
        if self.config.page_hierarchy is not PageHierarchy.FOLDER_TREE:
            return
        folder_file = self._page_folder_file(page.source_id, export_folder)
        if not page.child_pages:
            if not page.is_stub:
                # Sub-pages may have been removed since the last export.
                delete_export_file(folder_file)
            return

        page_section = Section(
            title=page.title,
            source_id=page_folder_source_id(page.source_id),
            last_modification_date=page.last_modification_date,
            creation_date=page.creation_date,
            parent=page.parent,
            is_section_group=False,
        )
        for child in page.child_pages:
            child.replace_parent(page_section)
        page.replace_parent(page_section)
        self._write_node_file(page_section, export_folder)

    def requires_rewrite(self, page: Page, export_folder: Path) -> bool:
        """Rewrite notes whose recorded parent no longer matches, e.g. after folder-tree changes."""
        if page.is_stub or page.parent is None:
            return False
        try:
            text = (export_folder / f"{page.id}.md").read_text(encoding="utf-8")
        except OSError:
            return True
        _, found, footer = text.rpartition(f"\nid: {page.id}\n")
        return not found or not footer.startswith(f"parent_id: {page.parent.id}\n")

    def link_renderer(self, page_path: str) -> LinkRenderer:
        def _render(text: str, target_path: str, internal_id: str) -> str:
            return f"[{text}](:/{internal_id})"

        return _render

    def finalize_markup(self, page: Page, markup: str) -> str:
        return render_node_file(page, markup, title_prefix=self.config.page_hierarchy is PageHierarchy.TITLE_PREFIX)

    def deleted_section_path(self, section_id: str, export_folder: Path) -> Path | None:
        return export_folder / f"{stable_node_id(section_id)}.md"

    def deleted_page_paths(self, page_id: str, export_folder: Path) -> list[Path]:
        return [self._page_folder_file(page_id, export_folder)]

    def _page_folder_file(self, page_id: str, export_folder: Path) -> Path:
        return export_folder / f"{stable_node_id(page_folder_source_id(page_id))}.md"

    def _write_node_file(self, node: Node, export_folder: Path) -> None:
        export_folder.mkdir(parents=True, exist_ok=True)
        (export_folder / f"{node.id}.md").write_text(render_node_file(node, ""), encoding="utf-8")


def render_node_file(node: Node, body: str, *, title_prefix: bool = False) -> str:
    """Wrap ``body`` with the title line and metadata footer Joplin expects."""
    if isinstance(node, Page) and title_prefix:
        title = node.title_with_level_indent
    else:
        title = node.title

    updated = joplin_timestamp(node.last_modification_date)
    created = joplin_timestamp(node.creation_date or node.last_modification_date)
    data: dict[str, str] = {
        "id": node.id,
        "parent_id": node.parent.id if node.parent is not None else "",
        "is_shared": "0",
        "encryption_applied": "0",
        "encryption_cipher_text": "",
        "updated_time": updated,
        "user_updated_time": updated,
        "created_time": created,
        "user_created_time": created,
    }

    if isinstance(node, Page):
        data.update(
            {
                "is_conflict": "0",
                "latitude": "0.00000000",
                "longitude": "0.00000000",
                "altitude": "0.0000",
                "author": "",
                "source_url": "",
                "is_todo": "0",
                "todo_due": "0",
                "todo_completed": "0",
                "source": "noteport",
                "source_application": "noteport",
                "application_data": "",
                "order": str(100000000 - node.section_order * 100000),
                "markup_language": "1",
                "type_": NOTE_TYPE,
            }
        )
    else:
        data["type_"] = FOLDER_TYPE

    lines = [title, "", body, ""]
    lines.extend(f"{key}: {value}" for key, value in data.items())
    return "\n".join(lines)
