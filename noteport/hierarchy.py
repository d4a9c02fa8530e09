"""Live notebook hierarchy nodes and the collaborator interfaces used by exporters."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol

# Namespace for deriving stable output ids from source identifiers.
NODE_NAMESPACE = uuid.UUID("6f1c9a52-3d0e-4c1b-9a57-2f4e8d7b1c30")

_INVALID_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1f]')
_WHITESPACE = re.compile(r"\s+")


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def stable_node_id(source_id: str) -> str:
    """Derive a 32-char hex id that stays the same for the same source identifier."""
    return uuid.uuid5(NODE_NAMESPACE, source_id).hex


def sanitize_title(title: str, max_length: int) -> str:
    """Turn a node title into a file-system safe name of at most ``max_length`` chars."""
    text = _INVALID_CHARS.sub("_", title or "")
    text = _WHITESPACE.sub(" ", text).strip()
    text = text[:max_length].rstrip(" .")
    return text or "Untitled"


@dataclass(eq=False)
class Node:
    """Common attributes of notebooks, sections and pages."""

    title: str
    source_id: str
    last_modification_date: datetime
    creation_date: datetime | None = None
    parent: Node | None = None

    def __post_init__(self) -> None:
        self.last_modification_date = ensure_utc(self.last_modification_date)
        if self.creation_date is None:
            self.creation_date = self.last_modification_date
        else:
            self.creation_date = ensure_utc(self.creation_date)

    @property
    def id(self) -> str:
        return stable_node_id(self.source_id)

    @property
    def notebook(self) -> Notebook:
        node: Node | None = self
        while node is not None:
            if isinstance(node, Notebook):
                return node
            node = node.parent
        raise ValueError(f"Node '{self.title}' is not attached to a notebook")

    def replace_parent(self, parent: Node) -> None:
        self.parent = parent


@dataclass(eq=False)
class Notebook(Node):
    """Top-level container of sections and section groups."""


@dataclass(eq=False)
class Section(Node):
    """A section (holds pages) or a section group (holds sections and groups)."""

    is_section_group: bool = False

    def path_parts(self, max_length: int) -> list[str]:
        """Sanitised titles from the top-level group down to this section."""
        parts: list[str] = []
        node: Node | None = self
        while isinstance(node, Section):
            parts.append(sanitize_title(node.title, max_length))
            node = node.parent
        parts.reverse()
        return parts

    def relative_path(self, max_length: int) -> str:
        return "/".join(self.path_parts(max_length))


@dataclass(eq=False)
class Page(Node):
    """A page of a section, optionally nested below another page.

    Pages rebuilt from a manifest entry are stubs: they carry the title, id and
    timestamp only and are never rendered.
    """

    level: int = 1
    section_order: int = 0
    parent_page: Page | None = None
    child_pages: list[Page] = field(default_factory=list)
    link_key: str | None = None
    is_stub: bool = False

    @property
    def section(self) -> Section:
        if not isinstance(self.parent, Section):
            raise ValueError(f"Page '{self.title}' has no owning section")
        return self.parent

    @property
    def title_with_level_indent(self) -> str:
        return "--" * max(self.level - 1, 0) + self.title

    def add_child(self, child: Page) -> None:
        child.parent_page = self
        self.child_pages.append(child)


@dataclass(slots=True)
class RenderResult:
    """Outcome of rendering a page into the target markup."""

    markup: str = ""
    success: bool = True
    links: list[str] = field(default_factory=list)
    reason: str | None = None

    @classmethod
    def failed(cls, reason: str) -> RenderResult:
        return cls(success=False, reason=reason)


class HierarchyProvider(Protocol):
    """Source of notebooks, sections and pages with stable identifiers."""

    def list_notebooks(self) -> list[Notebook]: ...

    def list_sections(self, notebook: Notebook, include_groups: bool = False) -> list[Section]:
        """Sections in hierarchy order; groups precede their children when included."""
        ...

    def list_pages(self, section: Section) -> list[Page]: ...

    def link_key(self, page: Page) -> str | None:
        """Stable cross-reference key of ``page``, independent of its source id."""
        ...


class PageRenderer(Protocol):
    """Converts one page's raw content into the target markup."""

    def render(self, page: Page) -> RenderResult: ...
