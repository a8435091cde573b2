"""CLI orchestration: wires config, translator and reporting together."""

import asyncio
import logging
import time

from rich.console import Console
from rich.logging import RichHandler
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from spreadsheet_i18n.catalog import READABLE_FORMATS, MessageCatalog
from spreadsheet_i18n.config import AppConfig, load_config
from spreadsheet_i18n.exceptions import ParseError, SpreadsheetI18nError
from spreadsheet_i18n.exporters import ExportArtifact
from spreadsheet_i18n.processor import BookResult
from spreadsheet_i18n.translator import SpreadsheetTranslator

console = Console()


def setup_logging(level: str = "INFO") -> None:
    """Configure logging with rich handler for colored, readable output."""
    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True)],
    )


def _print_artifacts_table(artifacts: list[ExportArtifact], elapsed: float) -> None:
    """Print a table of the files written during the run.

    Args:
        artifacts: Written artifacts in processing order.
        elapsed: Total elapsed time in seconds.
    """
    table = Table(title="Exported Files")
    table.add_column("Sheet", style="cyan")
    table.add_column("Locale", style="magenta")
    table.add_column("File", style="green")
    table.add_column("Bytes", justify="right")

    for artifact in artifacts:
        table.add_row(artifact.sheet_name, artifact.locale, str(artifact.path), str(len(artifact.data)))

    table.add_section()
    table.add_row("[bold]Total[/bold]", "", f"[bold]{len(artifacts)}[/bold] files", "")

    console.print()
    console.print(table)
    console.print(f"\n[dim]Completed in {elapsed:.1f}s[/dim]")


def _print_parse_errors(errors: list[ParseError]) -> None:
    if not errors:
        return
    console.print(f"\n[yellow bold]{len(errors)} rows skipped:[/yellow bold]")
    for error in errors:
        console.print(f"  [yellow]{error}[/yellow]")


def _print_failures(result: BookResult) -> None:
    for sheet_name, error in result.failures:
        console.print(f"[red bold]Sheet {sheet_name} failed:[/red bold] {error}")


def _show_translated_fragment(config: AppConfig, book_name: str, sheet_name: str, key: str, locale: str) -> None:
    """Look a key up in the files just exported and print it."""
    translator = SpreadsheetTranslator(config)
    book = translator.resolve_book(book_name)
    locale = locale or book.shared.default_locale

    catalog = MessageCatalog.for_book(book, sheet_name)
    text = catalog.trans(key, locale)
    console.print(f'Translation text for "{key}" in "{locale}": "{text}"')


async def _run_book_async(translator: SpreadsheetTranslator, book_name: str) -> BookResult:
    """Process a whole book while showing a progress bar."""
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
    ) as progress:
        progress_task = progress.add_task("Processing sheets...", total=None)

        async def on_progress(count: int) -> None:
            """Callback to advance the progress bar."""
            progress.advance(progress_task, advance=count)

        return await translator.process_book_async(book_name, progress_callback=on_progress)


def run(
    config_path: str = "config.yaml",
    sheet_name: str = "",
    book_name: str = "",
    all_sheets: bool = False,
    show_key: str = "",
    locale: str = "",
) -> None:
    """Main synchronous entry point for the CLI.

    Exports one sheet, or every sheet of the book with ``all_sheets``.

    Args:
        config_path: Path to the YAML configuration file.
        sheet_name: Sheet to export; required unless ``all_sheets``.
        book_name: Book to use; empty selects the first configured book.
        all_sheets: Export every sheet of the book.
        show_key: Dotted key to look up in the exported files afterwards.
        locale: Locale for the lookup; defaults to the book's default locale.
    """
    setup_logging()
    logger = logging.getLogger(__name__)

    if not sheet_name and not all_sheets:
        console.print("[red bold]Input error:[/red bold] a sheet name is required unless --all is given")
        raise SystemExit(2)

    try:
        console.print("[bold cyan]Spreadsheet Translation Exporter[/bold cyan]")
        console.print("[dim]" + "─" * 50 + "[/dim]")

        config = load_config(config_path)
        logging.getLogger().setLevel(config.settings.log_level)
        logger.info("Configuration loaded from %s", config_path)

        translator = SpreadsheetTranslator(config)

        if show_key:
            export_format = translator.resolve_book(book_name).exporter.format
            if export_format not in READABLE_FORMATS:
                console.print(
                    f"[red bold]Input error:[/red bold] --show cannot read {export_format} files "
                    f"(supported: {', '.join(READABLE_FORMATS)})"
                )
                raise SystemExit(2)

        start_time = time.time()

        if all_sheets:
            result = asyncio.run(_run_book_async(translator, book_name))
            artifacts = result.artifacts
            parse_errors = result.parse_errors
            processed = [sheet.sheet_name for sheet in result.sheets]
        else:
            result = None
            sheet_result = translator.process_sheet(sheet_name, book_name)
            artifacts = sheet_result.artifacts
            parse_errors = sheet_result.parse_errors
            processed = [sheet_result.sheet_name]

        elapsed = time.time() - start_time

        if artifacts:
            _print_artifacts_table(artifacts, elapsed)
        else:
            console.print("\n[yellow]No translations were exported.[/yellow]")
        _print_parse_errors(parse_errors)

        if show_key and processed:
            _show_translated_fragment(config, book_name, sheet_name or processed[0], show_key, locale)

        if result is not None and not result.ok:
            _print_failures(result)
            raise SystemExit(1)

    except FileNotFoundError as e:
        console.print(f"[red bold]Error:[/red bold] {e}")
        raise SystemExit(1)
    except ValueError as e:
        console.print(f"[red bold]Configuration error:[/red bold] {e}")
        raise SystemExit(1)
    except SpreadsheetI18nError as e:
        console.print(f"[red bold]Error:[/red bold] {e}")
        raise SystemExit(1)
    except KeyboardInterrupt:
        console.print("\n[yellow]Export cancelled by user.[/yellow]")
        raise SystemExit(130)
    except Exception as e:
        logger.exception("Unexpected error: %s", e)
        raise SystemExit(1)
