"""Sheet and book processing: fetch, parse, export."""

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any

from spreadsheet_i18n.config import BookConfig, Settings
from spreadsheet_i18n.exceptions import (
    OperationCancelled,
    ParseError,
    SheetNotFoundError,
    SpreadsheetI18nError,
)
from spreadsheet_i18n.exporters import ExportArtifact, export_tree
from spreadsheet_i18n.parser import RawMatrix, build_trees
from spreadsheet_i18n.providers import Provider, Workbook, get_provider

logger = logging.getLogger(__name__)


@dataclass
class SheetResult:
    """Artifacts and parse errors produced by one sheet."""

    sheet_name: str
    locales: list[str] = field(default_factory=list)
    artifacts: list[ExportArtifact] = field(default_factory=list)
    parse_errors: list[ParseError] = field(default_factory=list)


@dataclass
class BookResult:
    """Outcome of processing every sheet of a book."""

    book_name: str
    sheets: list[SheetResult] = field(default_factory=list)
    failures: list[tuple[str, SpreadsheetI18nError]] = field(default_factory=list)

    @property
    def artifacts(self) -> list[ExportArtifact]:
        return [artifact for sheet in self.sheets for artifact in sheet.artifacts]

    @property
    def parse_errors(self) -> list[ParseError]:
        return [error for sheet in self.sheets for error in sheet.parse_errors]

    @property
    def ok(self) -> bool:
        return not self.failures


def locate_sheet(workbook: Workbook, sheet: str | int) -> tuple[str, RawMatrix]:
    """Find a sheet by name, or by 0-based position for an int.

    Raises:
        SheetNotFoundError: If there is no such sheet.
    """
    names = list(workbook)
    if isinstance(sheet, int):
        if 0 <= sheet < len(names):
            name = names[sheet]
            return name, workbook[name]
        raise SheetNotFoundError(sheet, names)

    if sheet not in workbook:
        raise SheetNotFoundError(sheet, names)
    return sheet, workbook[sheet]


class SheetProcessor:
    """Turns one sheet of a book's workbook into per-locale resource files."""

    def __init__(
        self,
        book: BookConfig,
        settings: Settings | None = None,
        provider: Provider | None = None,
    ):
        self.book = book
        self.settings = settings or Settings()
        self.provider = provider or get_provider(book.provider)

    def fetch(self) -> Workbook:
        """Fetch the book's workbook from its provider."""
        return self.provider.fetch(self.book.provider.source_resource)

    def process_sheet(self, sheet: str | int, workbook: Workbook | None = None) -> SheetResult:
        """Parse one sheet and export a file per locale.

        Args:
            sheet: Sheet name, or 0-based sheet position.
            workbook: Already fetched workbook; fetched from the provider
                when omitted.

        Returns:
            SheetResult with the written artifacts and skipped-row errors.

        Raises:
            ProviderError: If the workbook has to be fetched and cannot be.
            SheetNotFoundError: If the sheet does not exist.
            ExportError: If a locale file cannot be written.
        """
        if workbook is None:
            workbook = self.fetch()

        sheet_name, matrix = locate_sheet(workbook, sheet)
        parsed = build_trees(
            matrix,
            separator=self.book.shared.name_separator,
            sheet_name=sheet_name,
            duplicate_keys=self.settings.duplicate_keys,
        )

        result = SheetResult(
            sheet_name=sheet_name,
            locales=list(parsed.locales),
            parse_errors=list(parsed.errors),
        )

        if not parsed.locales:
            logger.warning("Sheet %s has no locale columns", sheet_name)

        for error in parsed.errors:
            logger.warning("Skipped %s", error)

        for locale in parsed.locales:
            tree = parsed.trees[locale]
            if not tree:
                logger.info("Sheet %s has no %s translations, nothing to export", sheet_name, locale)
                continue

            artifact = export_tree(
                sheet_name,
                locale,
                tree,
                self.book,
                atomic=self.settings.atomic_writes,
            )
            result.artifacts.append(artifact)

        logger.info(
            "Sheet %s: %d files written, %d rows skipped",
            sheet_name,
            len(result.artifacts),
            len(result.parse_errors),
        )
        return result


class BookProcessor:
    """Processes every sheet of a book.

    Sheets come from the book's ``sheets`` setting, or from the workbook in
    encountered order. With ``fail_fast`` the first failing sheet aborts the
    book (files already written stay in place); otherwise failures are
    collected and the remaining sheets still run.
    """

    def __init__(
        self,
        book: BookConfig,
        settings: Settings | None = None,
        provider: Provider | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.book = book
        self.settings = settings or Settings()
        self.sheet_processor = SheetProcessor(book, self.settings, provider)
        self.cancel_event = cancel_event

    def sheet_names(self, workbook: Workbook) -> list[str]:
        if self.book.sheets:
            return list(self.book.sheets)
        return list(workbook)

    def process_book(self, workbook: Workbook | None = None, progress_callback: Any = None) -> BookResult:
        """Synchronous wrapper around :meth:`process_book_async`."""
        return asyncio.run(self.process_book_async(workbook, progress_callback))

    async def process_book_async(
        self,
        workbook: Workbook | None = None,
        progress_callback: Any = None,
    ) -> BookResult:
        """Process all sheets, at most ``max_workers`` at a time.

        Args:
            workbook: Already fetched workbook; fetched once when omitted.
            progress_callback: Optional async callable(count) called after
                each sheet.

        Returns:
            BookResult with sheets in processing order.

        Raises:
            SpreadsheetI18nError: The first sheet failure under fail-fast,
                or any provider failure while fetching.
            OperationCancelled: If the cancel event was set.
        """
        if workbook is None:
            workbook = await asyncio.to_thread(self.sheet_processor.fetch)

        names = self.sheet_names(workbook)
        semaphore = asyncio.Semaphore(self.settings.max_workers)
        aborted = False

        async def process_one(name: str) -> SheetResult | None:
            """Process a single sheet unless the book was already aborted."""
            nonlocal aborted

            async with semaphore:
                if aborted:
                    return None
                if self.cancel_event is not None and self.cancel_event.is_set():
                    aborted = True
                    raise OperationCancelled(f"Cancelled before sheet {name!r}")

                try:
                    sheet_result = await asyncio.to_thread(
                        self.sheet_processor.process_sheet, name, workbook
                    )
                except SpreadsheetI18nError:
                    if self.settings.fail_fast:
                        aborted = True
                    raise

                if progress_callback:
                    await progress_callback(1)
                return sheet_result

        logger.info(
            "Processing book %s: %d sheets (workers=%d, fail_fast=%s)",
            self.book.name,
            len(names),
            self.settings.max_workers,
            self.settings.fail_fast,
        )

        # Semaphore waiters are served in creation order, so one worker
        # processes sheets strictly in sheet order.
        outcomes = await asyncio.gather(
            *(process_one(name) for name in names), return_exceptions=True
        )

        result = BookResult(book_name=self.book.name)
        for name, outcome in zip(names, outcomes):
            if isinstance(outcome, OperationCancelled):
                raise outcome
            if isinstance(outcome, SpreadsheetI18nError):
                if self.settings.fail_fast:
                    logger.error(
                        "Aborting book %s at sheet %s (%d files already written)",
                        self.book.name,
                        name,
                        len(result.artifacts),
                    )
                    raise outcome
                logger.error("Sheet %s failed: %s", name, outcome)
                result.failures.append((name, outcome))
            elif isinstance(outcome, BaseException):
                raise outcome
            elif outcome is not None:
                result.sheets.append(outcome)

        return result
