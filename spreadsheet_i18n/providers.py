"""Sources of raw translation matrices.

A provider fetches a whole workbook: an ordered mapping of sheet name to
rows of raw cell values. Providers are looked up by the ``provider.name``
setting of a book.
"""

import csv
import io
import logging
import re
import zipfile
from pathlib import Path
from typing import Callable, Protocol

import httpx
import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

from spreadsheet_i18n.config import ProviderConfig
from spreadsheet_i18n.exceptions import ProviderError
from spreadsheet_i18n.parser import RawMatrix

logger = logging.getLogger(__name__)

Workbook = dict[str, RawMatrix]

_SPREADSHEET_ID_PATTERN = re.compile(r"/spreadsheets/d/([a-zA-Z0-9_-]+)")
_BARE_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{20,}$")


class Provider(Protocol):
    """Anything that can turn a source resource into a workbook."""

    def fetch(self, source_resource: str) -> Workbook: ...


def read_xlsx(source: str | Path | io.BytesIO, label: str = "") -> Workbook:
    """Read every worksheet of an xlsx file into raw rows.

    Args:
        source: Path or in-memory buffer holding the xlsx data.
        label: Name used in error messages.

    Raises:
        ProviderError: If the data is not a readable xlsx workbook.
    """
    label = label or str(source)
    try:
        wb = openpyxl.load_workbook(source, read_only=True, data_only=True)
    except (InvalidFileException, zipfile.BadZipFile, KeyError, OSError) as e:
        raise ProviderError(f"Could not read spreadsheet {label}: {e}") from e

    try:
        workbook: Workbook = {}
        for ws in wb.worksheets:
            workbook[ws.title] = [list(row) for row in ws.iter_rows(values_only=True)]
    finally:
        wb.close()

    if not workbook:
        raise ProviderError(f"Spreadsheet {label} has no sheets")

    logger.debug("Read %d sheets from %s", len(workbook), label)
    return workbook


def read_csv(path: Path) -> Workbook:
    """Read a csv file as a single-sheet workbook named after the file stem."""
    try:
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            rows: RawMatrix = [list(row) for row in csv.reader(f)]
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        raise ProviderError(f"Could not read {path}: {e}") from e

    return {path.stem: rows}


class LocalFileProvider:
    """Reads xlsx/xlsm workbooks and csv files from disk."""

    def __init__(self, config: ProviderConfig | None = None):
        self.config = config or ProviderConfig(name="local_file")

    def fetch(self, source_resource: str) -> Workbook:
        path = Path(source_resource)
        if not path.is_file():
            raise ProviderError(f"Source file not found: {source_resource}")

        logger.info("Reading %s", path)
        if path.suffix.lower() in (".csv", ".txt"):
            return read_csv(path)
        return read_xlsx(path)


class GoogleDriveProvider:
    """Downloads a Google spreadsheet through its xlsx export endpoint.

    The spreadsheet must be readable by anyone with the link; when it is not,
    Google answers with an HTML sign-in page instead of the workbook.
    """

    EXPORT_URL = "https://docs.google.com/spreadsheets/d/{spreadsheet_id}/export"

    def __init__(self, config: ProviderConfig | None = None, client: httpx.Client | None = None):
        self.config = config or ProviderConfig()
        self._client = client

    @staticmethod
    def extract_spreadsheet_id(url: str) -> str:
        """Extract the spreadsheet id from a sharing/edit URL or a bare id.

        Examples:
            >>> GoogleDriveProvider.extract_spreadsheet_id(
            ...     "https://docs.google.com/spreadsheets/d/1a2B3c_4D5e6F7g8H9i0J/edit#gid=0")
            '1a2B3c_4D5e6F7g8H9i0J'
        """
        match = _SPREADSHEET_ID_PATTERN.search(url)
        if match:
            return match.group(1)
        if _BARE_ID_PATTERN.match(url):
            return url
        raise ProviderError(f"Invalid Google spreadsheet URL: {url}")

    def _timeout(self) -> httpx.Timeout:
        return httpx.Timeout(self.config.timeout, connect=min(10.0, self.config.timeout))

    def fetch(self, source_resource: str) -> Workbook:
        spreadsheet_id = self.extract_spreadsheet_id(source_resource)
        url = self.EXPORT_URL.format(spreadsheet_id=spreadsheet_id)

        logger.info("Downloading spreadsheet %s", spreadsheet_id)
        client = self._client or httpx.Client(timeout=self._timeout(), follow_redirects=True)
        try:
            response = client.get(url, params={"format": "xlsx"})
            response.raise_for_status()
        except httpx.TimeoutException as e:
            raise ProviderError(
                f"Timed out after {self.config.timeout:g}s fetching spreadsheet {spreadsheet_id}"
            ) from e
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Spreadsheet {spreadsheet_id} returned HTTP {e.response.status_code}"
            ) from e
        except httpx.RequestError as e:
            raise ProviderError(f"Could not reach spreadsheet {spreadsheet_id}: {e}") from e
        finally:
            if self._client is None:
                client.close()

        content_type = response.headers.get("content-type", "")
        if content_type.startswith("text/html"):
            raise ProviderError(
                f"Spreadsheet {spreadsheet_id} is not publicly readable "
                "(received a sign-in page instead of the workbook)"
            )

        return read_xlsx(io.BytesIO(response.content), label=spreadsheet_id)


ProviderFactory = Callable[[ProviderConfig], Provider]

PROVIDERS: dict[str, ProviderFactory] = {
    "google_drive": GoogleDriveProvider,
    "local_file": LocalFileProvider,
}


def register_provider(name: str, factory: ProviderFactory) -> None:
    """Make a provider available under a configuration name."""
    PROVIDERS[name] = factory


def get_provider(config: ProviderConfig) -> Provider:
    """Instantiate the provider named by a book's provider settings.

    Raises:
        ProviderError: If no provider is registered under that name.
    """
    factory = PROVIDERS.get(config.name)
    if factory is None:
        raise ProviderError(
            f"Unknown provider {config.name!r} (available: {', '.join(PROVIDERS)})"
        )
    return factory(config)
