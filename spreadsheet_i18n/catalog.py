"""Read exported resource files back for key lookup.

This mirrors how a runtime translator consumes the exported files: one file
per locale and domain, keys addressed by their dotted path, and a fallback
chain when a locale lacks a translation.
"""

import json
import logging
from pathlib import Path
from typing import Any
from xml.etree import ElementTree as ET

import yaml

from spreadsheet_i18n.config import BookConfig
from spreadsheet_i18n.exporters import XLIFF_NAMESPACE
from spreadsheet_i18n.parser import flatten_tree

logger = logging.getLogger(__name__)


def _load_tree(path: Path, fmt: str) -> dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        if fmt in ("yml", "yaml"):
            data = yaml.safe_load(f)
        else:
            data = json.load(f)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} does not contain a mapping")
    return data


def _load_xliff(path: Path) -> dict[str, str]:
    ns = {"x": XLIFF_NAMESPACE}
    root = ET.parse(path).getroot()
    messages: dict[str, str] = {}
    for unit in root.iterfind(".//x:trans-unit", ns):
        key = unit.get("resname") or unit.get("id") or ""
        target = unit.find("x:target", ns)
        if key and target is not None:
            messages[key] = target.text or ""
    return messages


READABLE_FORMATS = ("yml", "yaml", "json", "xliff")


def load_messages(path: Path, fmt: str) -> dict[str, str]:
    """Load a resource file into a flat ``{dotted key: text}`` mapping.

    Raises:
        ValueError: If the format cannot be read back.
    """
    if fmt in ("yml", "yaml", "json"):
        return dict(flatten_tree(_load_tree(path, fmt)))
    if fmt == "xliff":
        return _load_xliff(path)
    raise ValueError(f"Cannot read {fmt} resource files")


class MessageCatalog:
    """Looks up translations in the files exported for one domain.

    Args:
        folder: Directory holding the exported files.
        domain: File stem, i.e. exporter prefix plus sheet name.
        fmt: Export format / file extension.
        fallback_locales: Locales tried, in order, after the requested
            locale and its language.
    """

    def __init__(
        self,
        folder: str | Path,
        domain: str,
        fmt: str = "yml",
        fallback_locales: list[str] | None = None,
    ):
        self.folder = Path(folder)
        self.domain = domain
        self.fmt = fmt
        self.fallback_locales = list(fallback_locales or [])
        self._messages: dict[str, dict[str, str]] = {}

    @classmethod
    def for_book(cls, book: BookConfig, sheet_name: str, fallback_locales: list[str] | None = None):
        """Catalog for the files a book exports for one sheet."""
        if fallback_locales is None:
            fallback_locales = [book.shared.default_locale]
        return cls(
            folder=book.exporter.destination_folder,
            domain=f"{book.exporter.prefix}{sheet_name}",
            fmt=book.exporter.format,
            fallback_locales=fallback_locales,
        )

    def path_for(self, locale: str) -> Path:
        return self.folder / f"{self.domain}.{locale}.{self.fmt}"

    def locales(self) -> list[str]:
        """Locales with an exported file for this domain, sorted."""
        found = []
        for path in self.folder.glob(f"{self.domain}.*.{self.fmt}"):
            middle = path.name[len(self.domain) + 1 : -(len(self.fmt) + 1)]
            if middle and "." not in middle:
                found.append(middle)
        return sorted(found)

    def messages(self, locale: str) -> dict[str, str]:
        """Flat messages for a locale; empty when no file was exported."""
        if locale not in self._messages:
            path = self.path_for(locale)
            if path.is_file():
                self._messages[locale] = load_messages(path, self.fmt)
                logger.debug("Loaded %d messages from %s", len(self._messages[locale]), path)
            else:
                self._messages[locale] = {}
        return self._messages[locale]

    def fallback_chain(self, locale: str) -> list[str]:
        """Locales tried for a lookup, without duplicates.

        Examples:
            >>> MessageCatalog(".", "demo_common", fallback_locales=["en"]).fallback_chain("es_ES")
            ['es_ES', 'es', 'en']
        """
        chain = [locale]
        if "_" in locale:
            chain.append(locale.split("_", 1)[0])
        chain.extend(self.fallback_locales)

        unique: list[str] = []
        for code in chain:
            if code and code not in unique:
                unique.append(code)
        return unique

    def trans(self, key: str, locale: str) -> str:
        """Translate a dotted key, or return the key when nothing matches."""
        for code in self.fallback_chain(locale):
            text = self.messages(code).get(key)
            if text is not None:
                return text
        logger.debug("No translation for %s in %s", key, locale)
        return key
