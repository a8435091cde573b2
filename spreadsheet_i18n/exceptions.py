"""Exception hierarchy for the spreadsheet export pipeline.

Kept in its own module so providers, exporters and processors can raise
them without importing each other.
"""


class SpreadsheetI18nError(Exception):
    """Base class for every error raised by the pipeline."""


class ConfigurationError(SpreadsheetI18nError, ValueError):
    """No books configured, unknown book, or an invalid book definition."""


class ProviderError(SpreadsheetI18nError):
    """The source could not be fetched or did not contain tabular data."""


class SheetNotFoundError(SpreadsheetI18nError):
    """The requested sheet is not present in the fetched workbook."""

    def __init__(self, sheet: str | int, available: list[str] | None = None):
        self.sheet = sheet
        self.available = available or []
        message = f"Sheet {sheet!r} not found"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        super().__init__(message)


class ParseError(SpreadsheetI18nError):
    """A data row could not be turned into a key path.

    Parse errors are recorded and reported; the offending row is skipped.
    """

    def __init__(self, message: str, sheet: str = "", row: int = 0, key: str = ""):
        super().__init__(message)
        self.sheet = sheet
        self.row = row
        self.key = key

    def __str__(self) -> str:
        location = f"{self.sheet}:{self.row}" if self.sheet else f"row {self.row}"
        return f"{location}: {self.args[0]}"


class ExportError(SpreadsheetI18nError):
    """Unknown export format or a failed write."""


class OperationCancelled(SpreadsheetI18nError):
    """The run was cancelled before all sheets were processed."""
