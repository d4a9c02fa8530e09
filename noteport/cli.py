"""CLI entrypoints for noteport export tooling."""

import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from .config import Config, ExportFormat, load_config
from .exporters import NotebookExportResult, create_exporter
from .hierarchy import Notebook
from .manifests import ExportDiff, ManifestError, SectionDiff, load_manifest
from .reporting import assemble_report, write_report
from .sources import SnapshotError, SnapshotProvider, SnapshotRenderer

console = Console()
app = typer.Typer(help="Incremental notebook export toolkit.")

ConfigPathOption = Annotated[
    str,
    typer.Option("--config", "-c", help="Path to configuration file."),
]
NotebookOption = Annotated[
    str | None,
    typer.Option("--notebook", "-n", help="Only process the notebook with this title."),
]
VerboseFlag = Annotated[
    bool,
    typer.Option("--verbose", "-v", help="Show debug logging."),
]


@app.command()
def export(  # noqa: PLR0913
    config_path: ConfigPathOption = "noteport.yml",
    notebook: NotebookOption = None,
    export_format: Annotated[
        ExportFormat | None,
        typer.Option("--format", "-f", help="Override the configured export format."),
    ] = None,
    full: Annotated[
        bool,
        typer.Option("--full", help="Export every page without reading or writing a manifest."),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", help="Clear the notebook export folder and ignore the previous manifest."),
    ] = False,
    no_cleanup: Annotated[
        bool,
        typer.Option("--no-cleanup", help="Keep exported files of pages deleted from the source."),
    ] = False,
    verbose: VerboseFlag = False,
) -> None:
    """Export notebooks, rewriting only what changed since the last run."""
    _configure_logging(verbose)
    config = _load(config_path)

    overrides: dict[str, object] = {}
    if export_format is not None:
        overrides["export_format"] = export_format
    if full:
        overrides["incremental"] = False
    if no_cleanup:
        overrides["cleanup_deleted_pages"] = False
    if overrides:
        config = config.model_copy(update=overrides)

    provider = _load_provider(config)
    renderer = SnapshotRenderer(provider)
    pages_on_error = 0

    for selected in _select_notebooks(provider, notebook):
        console.print(f"[bold blue]Exporting[/]: notebook '{selected.title}' as {config.export_format.value}")
        exporter = create_exporter(config, provider, renderer)
        try:
            result = exporter.run(selected, force=force)
        except ManifestError as exc:
            console.print(f"[bold red]Export aborted[/]: {exc}")
            raise typer.Exit(code=1) from exc

        report_path = write_report(assemble_report(result), result.export_folder / config.report_filename)
        _print_export_summary(result, report_path)
        pages_on_error += result.pages_on_error

    if pages_on_error:
        console.print(f"[bold red]Finished with errors[/]: {pages_on_error} page(s) could not be exported.")
        raise typer.Exit(code=1)


@app.command()
def status(
    config_path: ConfigPathOption = "noteport.yml",
    notebook: NotebookOption = None,
    verbose: VerboseFlag = False,
) -> None:
    """Show what the next incremental export would do, without writing anything."""
    _configure_logging(verbose, quiet=not verbose)
    config = _load(config_path)
    provider = _load_provider(config)
    renderer = SnapshotRenderer(provider)

    for selected in _select_notebooks(provider, notebook):
        exporter = create_exporter(config, provider, renderer)
        section_diff, page_diff = exporter.plan(selected)
        _print_plan(selected, section_diff, page_diff)


@app.command()
def manifest(
    config_path: ConfigPathOption = "noteport.yml",
    notebook: NotebookOption = None,
) -> None:
    """Summarize the manifests stored by previous exports."""
    _configure_logging(False, quiet=True)
    config = _load(config_path)
    provider = _load_provider(config)
    renderer = SnapshotRenderer(provider)

    for selected in _select_notebooks(provider, notebook):
        path = create_exporter(config, provider, renderer).manifest_path(selected)
        stored = load_manifest(path)
        if stored is None:
            console.print(f"[bold yellow]No manifest[/]: '{selected.title}' has not been exported incrementally yet.")
            continue

        errors = [entry for entry in stored.sections.values() if entry.has_export_errors]
        console.print(
            f"[bold green]Manifest[/]: '{stored.notebook_title}' v{stored.version} "
            f"({stored.export_format}), last export {stored.last_export_date:%Y-%m-%d %H:%M:%S} UTC; "
            f"{len(stored.sections)} section(s), {len(stored.pages)} page(s)"
        )
        for entry in errors:
            console.print(f"[bold yellow]Retry pending[/]: section '{entry.relative_path or entry.title}'")


def _configure_logging(verbose: bool, *, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else (logging.WARNING if quiet else logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_time=False, show_path=False)],
        force=True,
    )


def _load(path: str) -> Config:
    try:
        return load_config(path)
    except FileNotFoundError as exc:
        raise typer.BadParameter(f"Config file not found: {path}") from exc
    except ValueError as exc:
        raise typer.BadParameter(str(exc)) from exc


def _load_provider(config: Config) -> SnapshotProvider:
    try:
        return SnapshotProvider.from_file(config.source)
    except SnapshotError as exc:
        console.print(f"[bold red]Cannot read notebooks[/]: {exc}")
        raise typer.Exit(code=1) from exc


def _select_notebooks(provider: SnapshotProvider, title: str | None) -> list[Notebook]:
    notebooks = provider.list_notebooks()
    if title is None:
        return notebooks
    selected = [item for item in notebooks if item.title == title]
    if not selected:
        console.print(f"[bold red]Notebook not found[/]: '{title}'")
        raise typer.Exit(code=1)
    return selected


def _print_export_summary(result: NotebookExportResult, report_path: Path) -> None:
    line = (
        "[bold green]Pages[/]: "
        f"{result.pages_exported} exported, "
        f"{result.pages_skipped} skipped"
    )
    if result.pages_deleted:
        line += f", {result.pages_deleted} removed"
    if result.pages_on_error:
        line += f", [bold red]{result.pages_on_error} on error[/]"
    console.print(line)

    if result.section_diff is not None:
        console.print(
            "[bold green]Sections[/]: "
            f"{result.sections_loaded} loaded, {result.sections_cached} reused from manifest"
        )
    console.print(
        "[bold green]Report[/]: "
        f"{_display_path(report_path)} "
        f"(duration {result.duration_seconds:.2f}s)"
    )
    if result.warnings:
        console.print("[bold yellow]Warnings:[/]")
        for warning in result.warnings:
            console.print(f"- {warning}")


def _print_plan(notebook: Notebook, section_diff: SectionDiff, page_diff: ExportDiff) -> None:
    console.print(f"[bold blue]Notebook[/]: {notebook.title}")
    console.print(
        "[bold green]Sections[/]: "
        f"{len(section_diff.new)} new, {len(section_diff.modified)} modified, "
        f"{len(section_diff.unchanged)} unchanged, {len(section_diff.deleted)} deleted"
    )
    console.print(
        "[bold green]Pages[/]: "
        f"{len(page_diff.new)} new, {len(page_diff.modified)} modified, "
        f"{len(page_diff.unchanged)} unchanged, {len(page_diff.deleted)} deleted"
    )
    for label, pages in (("NEW", page_diff.new), ("UPDATE", page_diff.modified)):
        for page in pages:
            console.print(f"- [{label}] {page.title}", markup=False)
    for entry in page_diff.deleted:
        console.print(f"- [DELETE] {entry.title} ({entry.export_path})", markup=False)


def _display_path(path: Path) -> str:
    try:
        return path.relative_to(Path.cwd()).as_posix()
    except ValueError:
        return path.as_posix()
