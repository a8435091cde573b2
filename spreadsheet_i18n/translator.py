"""Entry points tying configuration, providers and processors together."""

import logging
import threading
from typing import Any

from spreadsheet_i18n.config import AppConfig, BookConfig, resolve_book
from spreadsheet_i18n.exceptions import ConfigurationError
from spreadsheet_i18n.processor import BookProcessor, BookResult, SheetProcessor, SheetResult
from spreadsheet_i18n.providers import Provider

logger = logging.getLogger(__name__)


class SpreadsheetTranslator:
    """Processes sheets or whole books from a loaded configuration.

    Args:
        config: Loaded application configuration (the book registry).
        provider: Provider used instead of the one named by each book.
        cancel_event: Set from another thread to stop a book run between
            sheets.
    """

    def __init__(
        self,
        config: AppConfig,
        provider: Provider | None = None,
        cancel_event: threading.Event | None = None,
    ):
        self.config = config
        self.provider = provider
        self.cancel_event = cancel_event

    def resolve_book(self, book_name: str = "") -> BookConfig:
        """Resolve a book name; empty selects the first configured book."""
        book = resolve_book(book_name, self.config.books)
        logger.debug("Using book %s", book.name)
        return book

    def process_sheet(self, sheet_name: str, book_name: str = "") -> SheetResult:
        """Fetch the book's source and export a single sheet.

        Raises:
            ConfigurationError: If the sheet name is empty or the book
                cannot be resolved.
        """
        if not sheet_name:
            raise ConfigurationError("sheet name is required")

        book = self.resolve_book(book_name)
        processor = SheetProcessor(book, self.config.settings, self.provider)
        return processor.process_sheet(sheet_name)

    def _book_processor(self, book_name: str) -> BookProcessor:
        book = self.resolve_book(book_name)
        return BookProcessor(book, self.config.settings, self.provider, self.cancel_event)

    def process_book(self, book_name: str = "", progress_callback: Any = None) -> BookResult:
        """Fetch the book's source and export every sheet of it."""
        return self._book_processor(book_name).process_book(progress_callback=progress_callback)

    async def process_book_async(self, book_name: str = "", progress_callback: Any = None) -> BookResult:
        """Async variant of :meth:`process_book` for callers already in a loop."""
        processor = self._book_processor(book_name)
        return await processor.process_book_async(progress_callback=progress_callback)
