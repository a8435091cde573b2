"""Configuration loading, validation and book resolution."""

import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from spreadsheet_i18n.exceptions import ConfigurationError

PROJECT_DIR_PLACEHOLDERS = ("%project_dir%", "%kernel.project_dir%")
LOCALE_PATTERN = re.compile(r"^[a-z]{2,3}(_[A-Z]{2})?$")
DUPLICATE_KEY_POLICIES = ("overwrite", "reject")


@dataclass(frozen=True)
class ProviderConfig:
    """Where the translation matrix comes from."""

    name: str = "google_drive"
    source_resource: str = ""
    timeout: float = 30.0


@dataclass(frozen=True)
class ExporterConfig:
    """How and where resource files are written."""

    format: str = "yml"
    prefix: str = ""
    destination_folder: str = "translations"


@dataclass(frozen=True)
class SharedConfig:
    """Settings shared by the provider and the exporter."""

    default_locale: str = "en"
    name_separator: str = "."


@dataclass(frozen=True)
class BookConfig:
    """A named provider/exporter/shared triple."""

    name: str
    provider: ProviderConfig
    exporter: ExporterConfig
    shared: SharedConfig = field(default_factory=SharedConfig)
    sheets: tuple[str, ...] = ()


@dataclass(frozen=True)
class Settings:
    """Run-wide processing policy."""

    max_workers: int = 1
    fail_fast: bool = True
    duplicate_keys: str = "overwrite"
    atomic_writes: bool = True
    log_level: str = "INFO"


@dataclass
class AppConfig:
    """Top-level application configuration."""

    books: dict[str, BookConfig] = field(default_factory=dict)
    settings: Settings = field(default_factory=Settings)


def load_config(config_path: str = "config.yaml", project_dir: str | None = None) -> AppConfig:
    """Load the book registry and settings from a YAML file.

    Environment variable SPREADSHEET_I18N_LOG_LEVEL overrides the log level
    in the config file.

    Args:
        config_path: Path to the YAML configuration file.
        project_dir: Value substituted for the project-root placeholder in
            destination folders. Defaults to the config file's directory.

    Returns:
        Validated AppConfig instance.

    Raises:
        FileNotFoundError: If the config file does not exist.
        ConfigurationError: If the file does not describe valid books.
    """
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with open(path, "r", encoding="utf-8") as f:
        try:
            raw = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigurationError(f"{config_path} must contain a mapping")

    if project_dir is None:
        project_dir = str(path.resolve().parent)

    settings = parse_settings(raw.get("settings") or {})

    env_log_level = os.environ.get("SPREADSHEET_I18N_LOG_LEVEL")
    if env_log_level:
        settings = replace(settings, log_level=env_log_level.upper())

    books = parse_books(raw.get("books") or {}, project_dir)
    return AppConfig(books=books, settings=settings)


def _text(section: dict[str, Any], key: str, default: str) -> str:
    """Read a string setting; a blank YAML value reads as empty."""
    value = section.get(key, default)
    return "" if value is None else str(value)


def _number(section: dict[str, Any], key: str, default: Any, cast: type, label: str) -> Any:
    value = section.get(key, default)
    if isinstance(value, bool):
        raise ConfigurationError(f"{label} {key} must be a number, got {value!r}.")
    try:
        return cast(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{label} {key} must be a number, got {value!r}.") from e


def _flag(section: dict[str, Any], key: str, default: bool) -> bool:
    """Read a boolean setting; quoted strings such as "false" are rejected."""
    value = section.get(key, default)
    if not isinstance(value, bool):
        raise ConfigurationError(f"settings {key} must be true or false, got {value!r}.")
    return value


def parse_settings(raw: dict[str, Any]) -> Settings:
    """Build and validate the run-wide settings block."""
    if not isinstance(raw, dict):
        raise ConfigurationError("settings must be a mapping")

    settings = Settings(
        max_workers=_number(raw, "max_workers", Settings.max_workers, int, "settings"),
        fail_fast=_flag(raw, "fail_fast", Settings.fail_fast),
        duplicate_keys=_text(raw, "duplicate_keys", Settings.duplicate_keys),
        atomic_writes=_flag(raw, "atomic_writes", Settings.atomic_writes),
        log_level=_text(raw, "log_level", Settings.log_level).upper(),
    )

    if settings.max_workers < 1:
        raise ConfigurationError("max_workers must be at least 1.")

    if settings.duplicate_keys not in DUPLICATE_KEY_POLICIES:
        raise ConfigurationError(
            f"duplicate_keys must be one of {', '.join(DUPLICATE_KEY_POLICIES)}, "
            f"got {settings.duplicate_keys!r}."
        )

    return settings


def parse_books(raw_books: dict[str, Any], project_dir: str = ".") -> dict[str, BookConfig]:
    """Turn the raw ``books`` mapping into validated BookConfig objects.

    Insertion order of the mapping is preserved; it decides which book an
    empty book name resolves to.
    """
    if not isinstance(raw_books, dict):
        raise ConfigurationError("books must be a mapping of book name to settings")

    books: dict[str, BookConfig] = {}
    for name, raw in raw_books.items():
        books[str(name)] = parse_book(str(name), raw, project_dir)
    return books


def parse_book(name: str, raw: Any, project_dir: str = ".") -> BookConfig:
    """Parse a single book definition."""
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Book {name!r} must be a mapping")

    for section in ("provider", "exporter", "shared"):
        if not isinstance(raw.get(section), dict):
            raise ConfigurationError(f"Book {name!r} is missing the {section!r} section")

    provider_raw = raw["provider"]
    provider = ProviderConfig(
        name=_text(provider_raw, "name", ProviderConfig.name),
        source_resource=_text(provider_raw, "source_resource", ProviderConfig.source_resource),
        timeout=_number(provider_raw, "timeout", ProviderConfig.timeout, float, f"Book {name!r}: provider"),
    )

    exporter_raw = raw["exporter"]
    exporter = ExporterConfig(
        format=_text(exporter_raw, "format", ExporterConfig.format),
        prefix=_text(exporter_raw, "prefix", ExporterConfig.prefix),
        destination_folder=expand_project_dir(
            _text(exporter_raw, "destination_folder", ExporterConfig.destination_folder),
            project_dir,
        ),
    )

    shared_raw = raw["shared"]
    shared = SharedConfig(
        default_locale=_text(shared_raw, "default_locale", SharedConfig.default_locale),
        name_separator=_text(shared_raw, "name_separator", SharedConfig.name_separator),
    )

    sheets = raw.get("sheets") or ()
    if isinstance(sheets, str):
        sheets = (sheets,)

    book = BookConfig(
        name=name,
        provider=provider,
        exporter=exporter,
        shared=shared,
        sheets=tuple(str(s) for s in sheets),
    )
    _validate_book(book)
    return book


def expand_project_dir(folder: str, project_dir: str) -> str:
    """Replace the project-root placeholder in a destination folder."""
    for placeholder in PROJECT_DIR_PLACEHOLDERS:
        folder = folder.replace(placeholder, project_dir)
    return folder


def _validate_book(book: BookConfig) -> None:
    """Validate that a book carries everything the pipeline needs.

    Provider names and export formats are checked when they are looked up,
    so an unknown format surfaces as an export failure.

    Raises:
        ConfigurationError: If validation fails.
    """
    if not book.provider.name:
        raise ConfigurationError(f"Book {book.name!r}: provider name must not be empty.")

    if not book.provider.source_resource:
        raise ConfigurationError(f"Book {book.name!r}: provider source_resource must not be empty.")

    if book.provider.timeout <= 0:
        raise ConfigurationError(f"Book {book.name!r}: provider timeout must be positive.")

    if not book.exporter.format:
        raise ConfigurationError(f"Book {book.name!r}: exporter format must not be empty.")

    if not book.exporter.destination_folder:
        raise ConfigurationError(f"Book {book.name!r}: destination_folder must not be empty.")

    if not book.shared.name_separator:
        raise ConfigurationError(f"Book {book.name!r}: name_separator must not be empty.")

    if not LOCALE_PATTERN.match(book.shared.default_locale):
        raise ConfigurationError(
            f"Book {book.name!r}: default_locale {book.shared.default_locale!r} "
            "is not a valid locale code."
        )


def resolve_book(book_name: str, books: dict[str, BookConfig]) -> BookConfig:
    """Select one book from the registry.

    An empty name selects the first book in insertion order.

    Raises:
        ConfigurationError: If the registry is empty or the name is unknown.
    """
    if not book_name:
        if not books:
            raise ConfigurationError("no configuration available")
        return next(iter(books.values()))

    if book_name not in books:
        raise ConfigurationError(f"book not found: {book_name!r}")

    return books[book_name]
