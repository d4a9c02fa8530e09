from enum import Enum
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

CONFIG_FILENAME = "noteport.yml"


class ExportFormat(str, Enum):
    """Target layouts supported by the exporters."""

    MARKDOWN = "md"
    JOPLIN = "joplin-raw-dir"


class PageHierarchy(str, Enum):
    """How parent/child pages are reflected in the output tree."""

    IGNORE = "ignore"
    FOLDER_TREE = "folder_tree"
    TITLE_PREFIX = "title_prefix"


class LinkHandling(str, Enum):
    """Policy applied to internal cross-page links found in rendered pages."""

    KEEP = "keep"
    REMOVE = "remove"
    MARKDOWN = "markdown"
    WIKILINK = "wikilink"

    @property
    def resolves(self) -> bool:
        return self in (LinkHandling.MARKDOWN, LinkHandling.WIKILINK)


class Config(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: Path = Field(
        default=Path("notebooks.yml"),
        description="Notebook snapshot read by the snapshot provider.",
    )
    output_dir: Path = Field(
        default=Path("export"),
        description="Export root; each notebook is written to its own folder below it.",
    )
    export_format: ExportFormat = Field(default=ExportFormat.MARKDOWN)
    incremental: bool = Field(
        default=True,
        description="Reuse the previous manifest to skip unchanged pages and prune deleted ones.",
    )
    cleanup_deleted_pages: bool = Field(
        default=True,
        description="Delete exported files of pages removed from the source (incremental only).",
    )
    prune_empty_directories: bool = Field(
        default=True,
        description="Remove directories left empty after deleting pages.",
    )
    manifest_filename: str = Field(default=".noteport-manifest.json")
    report_filename: str = Field(default="export-report.json")
    page_hierarchy: PageHierarchy = Field(default=PageHierarchy.FOLDER_TREE)
    page_prefix_separator: str = Field(default="_")
    link_handling: LinkHandling = Field(default=LinkHandling.MARKDOWN)
    add_front_matter: bool = Field(
        default=True,
        description="Prefix Markdown pages with a YAML header (title, created, updated).",
    )
    front_matter_date_format: str = Field(default="%Y-%m-%d %H:%M:%S")
    max_file_name_length: int = Field(default=50, ge=8, le=255)
    section_filter: str | None = Field(
        default=None,
        description="Only export the section with this exact title.",
    )
    page_filter: str | None = Field(
        default=None,
        description="Only export pages with this exact title.",
    )

    @field_validator("source", "output_dir", mode="before")
    def _ensure_path(cls, value: Any) -> Path:
        return Path(value)

    @field_validator("manifest_filename", "report_filename")
    def _plain_filename(cls, value: str) -> str:
        text = value.strip()
        if not text or Path(text).name != text:
            raise ValueError("Expected a bare file name without directories.")
        return text

    @field_validator("section_filter", "page_filter", mode="before")
    def _blank_to_none(cls, value: Any) -> str | None:
        if value is None:
            return None
        text = str(value).strip()
        return text or None


def load_config(path: str | Path) -> Config:
    """Load configuration and resolve relative paths based on the config location.

    The ``path`` argument may point to a file (e.g., ``/work/noteport.yml``) or a
    directory containing that file. All relative paths inside the configuration
    are interpreted relative to the directory holding the config file.
    """
    candidate = Path(path)
    data: dict[str, Any] = {}
    base_dir: Path
    if candidate.is_dir():
        config_file = candidate / CONFIG_FILENAME
        if config_file.exists():
            with config_file.open("r", encoding="utf-8") as handle:
                data = yaml.safe_load(handle) or {}
        base_dir = candidate.resolve()
    else:
        if not candidate.exists():
            raise FileNotFoundError(candidate)
        with candidate.open("r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or {}
        base_dir = candidate.parent.resolve()

    cfg = Config(**data)

    def _abs_required(value: Path) -> Path:
        return value if value.is_absolute() else (base_dir / value).resolve()

    cfg.source = _abs_required(cfg.source)
    cfg.output_dir = _abs_required(cfg.output_dir)
    return cfg
