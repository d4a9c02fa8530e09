"""Markdown export target: one folder per section, one ``.md`` file per page."""

from __future__ import annotations

import posixpath
from pathlib import Path

import yaml

from ..config import ExportFormat, LinkHandling, PageHierarchy
from ..hierarchy import Page, Section, sanitize_title
from ..links import LinkRenderer
from .base import NotebookExporter


class MarkdownExporter(NotebookExporter):
    export_format = ExportFormat.MARKDOWN

    def page_relative_path(self, page: Page, parent_path: str | None) -> str:
        max_length = self.config.max_file_name_length
        name = sanitize_title(page.title, max_length)
        hierarchy = self.config.page_hierarchy

        if page.parent_page is not None and hierarchy is not PageHierarchy.IGNORE:
            if parent_path is None:
                parent_path = self.page_relative_path(page.parent_page, None)
            parent_stem = _strip_extension(parent_path)
            if hierarchy is PageHierarchy.FOLDER_TREE:
                return f"{parent_stem}/{name}.md"
            return f"{parent_stem}{self.config.page_prefix_separator}{name}.md"

        return f"{page.section.relative_path(max_length)}/{name}.md"

    def write_section_node(self, section: Section, export_folder: Path) -> None:
        (export_folder / section.relative_path(self.config.max_file_name_length)).mkdir(
            parents=True, exist_ok=True
        )

    def link_renderer(self, page_path: str) -> LinkRenderer:
        page_dir = posixpath.dirname(page_path) or "."
        wikilinks = self.config.link_handling is LinkHandling.WIKILINK

        def _render(text: str, target_path: str, internal_id: str) -> str:
            if wikilinks:
                target = _strip_extension(target_path)
                return f"[[{target}]]" if target == text else f"[[{target}|{text}]]"
            relative = posixpath.relpath(target_path, page_dir)
            return f"[{text}]({relative.replace(' ', '%20')})"

        return _render

    def finalize_markup(self, page: Page, markup: str) -> str:
        if not self.config.add_front_matter:
            return markup
        date_format = self.config.front_matter_date_format
        header = {
            "title": page.title,
            "updated": page.last_modification_date.strftime(date_format),
            "created": (page.creation_date or page.last_modification_date).strftime(date_format),
        }
        header_yaml = yaml.safe_dump(header, sort_keys=False, allow_unicode=True)
        return f"---\n{header_yaml}---\n\n{markup}"


def _strip_extension(path: str) -> str:
    root, ext = posixpath.splitext(path)
    return root if ext == ".md" else path
