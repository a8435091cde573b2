"""Tests for configuration loading and book resolution."""

import pytest
import yaml

from spreadsheet_i18n.config import (
    Settings,
    expand_project_dir,
    load_config,
    parse_book,
    parse_settings,
    resolve_book,
)
from spreadsheet_i18n.exceptions import ConfigurationError


def _raw_book(**overrides):
    raw = {
        "provider": {
            "name": "google_drive",
            "source_resource": "https://docs.google.com/spreadsheets/d/abc123/edit",
        },
        "exporter": {
            "format": "yml",
            "prefix": "demo_",
            "destination_folder": "%kernel.project_dir%/translations",
        },
        "shared": {"default_locale": "en", "name_separator": "_"},
    }
    raw.update(overrides)
    return raw


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "settings": {"max_workers": 2, "fail_fast": False},
                "books": {"frontend": _raw_book(), "backend": _raw_book(sheets=["messages"])},
            },
            sort_keys=False,
        ),
        encoding="utf-8",
    )
    return path


class TestResolveBook:
    """Test resolve_book selection rules."""

    def test_empty_name_returns_first_book(self):
        """Books {a, b} in that order: empty name resolves to a."""
        books = {
            "a": parse_book("a", _raw_book()),
            "b": parse_book("b", _raw_book()),
        }
        assert resolve_book("", books).name == "a"

    def test_named_book(self):
        books = {
            "a": parse_book("a", _raw_book()),
            "b": parse_book("b", _raw_book()),
        }
        assert resolve_book("b", books).name == "b"

    def test_unknown_book_fails(self):
        books = {"a": parse_book("a", _raw_book())}
        with pytest.raises(ConfigurationError, match="book not found"):
            resolve_book("c", books)

    def test_empty_registry_fails(self):
        with pytest.raises(ConfigurationError, match="no configuration available"):
            resolve_book("", {})

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            resolve_book("", {})


class TestLoadConfig:
    """Test load_config against YAML files."""

    def test_loads_books_in_file_order(self, config_file):
        config = load_config(str(config_file))
        assert list(config.books) == ["frontend", "backend"]

    def test_sections_are_parsed(self, config_file):
        book = load_config(str(config_file)).books["frontend"]
        assert book.provider.name == "google_drive"
        assert book.provider.timeout == 30.0
        assert book.exporter.format == "yml"
        assert book.exporter.prefix == "demo_"
        assert book.shared.default_locale == "en"
        assert book.shared.name_separator == "_"
        assert book.sheets == ()

    def test_project_dir_placeholder_defaults_to_config_dir(self, config_file, tmp_path):
        book = load_config(str(config_file)).books["frontend"]
        assert book.exporter.destination_folder == f"{tmp_path.resolve()}/translations"

    def test_explicit_project_dir(self, config_file):
        book = load_config(str(config_file), project_dir="/srv/app").books["frontend"]
        assert book.exporter.destination_folder == "/srv/app/translations"

    def test_sheet_list(self, config_file):
        assert load_config(str(config_file)).books["backend"].sheets == ("messages",)

    def test_settings(self, config_file):
        settings = load_config(str(config_file)).settings
        assert settings.max_workers == 2
        assert settings.fail_fast is False
        assert settings.duplicate_keys == "overwrite"

    def test_log_level_env_override(self, config_file, monkeypatch):
        monkeypatch.setenv("SPREADSHEET_I18N_LOG_LEVEL", "debug")
        assert load_config(str(config_file)).settings.log_level == "DEBUG"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "nope.yaml"))

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("books: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(str(path))

    def test_empty_file_has_no_books(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        config = load_config(str(path))
        assert config.books == {}
        with pytest.raises(ConfigurationError):
            resolve_book("", config.books)


class TestBookValidation:
    """Test parse_book validation."""

    @pytest.mark.parametrize("section", ["provider", "exporter", "shared"])
    def test_missing_section(self, section):
        raw = _raw_book()
        del raw[section]
        with pytest.raises(ConfigurationError, match=section):
            parse_book("broken", raw)

    def test_empty_separator(self):
        raw = _raw_book(shared={"default_locale": "en", "name_separator": ""})
        with pytest.raises(ConfigurationError, match="name_separator"):
            parse_book("broken", raw)

    def test_malformed_default_locale(self):
        raw = _raw_book(shared={"default_locale": "english", "name_separator": "."})
        with pytest.raises(ConfigurationError, match="default_locale"):
            parse_book("broken", raw)

    def test_missing_source_resource(self):
        raw = _raw_book(provider={"name": "google_drive"})
        with pytest.raises(ConfigurationError, match="source_resource"):
            parse_book("broken", raw)

    def test_unknown_format_is_accepted_until_export(self):
        raw = _raw_book(exporter={"format": "docx", "destination_folder": "out"})
        assert parse_book("docs", raw).exporter.format == "docx"

    def test_book_is_immutable(self):
        book = parse_book("frontend", _raw_book())
        with pytest.raises(AttributeError):
            book.name = "other"


class TestSettings:
    """Test parse_settings."""

    def test_defaults(self):
        assert parse_settings({}) == Settings()

    def test_invalid_duplicate_policy(self):
        with pytest.raises(ConfigurationError, match="duplicate_keys"):
            parse_settings({"duplicate_keys": "merge"})

    def test_invalid_worker_count(self):
        with pytest.raises(ConfigurationError, match="max_workers"):
            parse_settings({"max_workers": 0})


def test_expand_project_dir():
    assert expand_project_dir("%project_dir%/translations", "/app") == "/app/translations"
    assert expand_project_dir("out", "/app") == "out"


class TestBlankValues:
    """Blank YAML values (``key:`` with nothing after it) load as None."""

    def test_blank_source_resource(self):
        raw = _raw_book(provider={"name": "google_drive", "source_resource": None})
        with pytest.raises(ConfigurationError, match="source_resource"):
            parse_book("broken", raw)

    def test_blank_separator(self):
        raw = _raw_book(shared={"default_locale": "en", "name_separator": None})
        with pytest.raises(ConfigurationError, match="name_separator"):
            parse_book("broken", raw)

    def test_blank_format(self):
        raw = _raw_book(exporter={"format": None, "destination_folder": "out"})
        with pytest.raises(ConfigurationError, match="format"):
            parse_book("broken", raw)

    def test_blank_prefix_is_empty(self):
        raw = _raw_book(exporter={"format": "yml", "prefix": None, "destination_folder": "out"})
        assert parse_book("frontend", raw).exporter.prefix == ""

    @pytest.mark.parametrize("timeout", [None, "soon"])
    def test_bad_timeout(self, timeout):
        raw = _raw_book(provider={"name": "google_drive", "source_resource": "x", "timeout": timeout})
        with pytest.raises(ConfigurationError, match="timeout"):
            parse_book("broken", raw)

    def test_blank_values_in_yaml_file(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "books:\n"
            "  frontend:\n"
            "    provider:\n"
            "      name: google_drive\n"
            "      source_resource:\n"
            "    exporter:\n"
            "      format: yml\n"
            "    shared:\n"
            "      default_locale: en\n",
            encoding="utf-8",
        )
        with pytest.raises(ConfigurationError, match="source_resource"):
            load_config(str(path))


class TestSettingsTypes:
    """Settings only accept values of the right type."""

    @pytest.mark.parametrize("value", ["false", "no", 0, None])
    def test_fail_fast_must_be_boolean(self, value):
        with pytest.raises(ConfigurationError, match="fail_fast"):
            parse_settings({"fail_fast": value})

    def test_atomic_writes_must_be_boolean(self):
        with pytest.raises(ConfigurationError, match="atomic_writes"):
            parse_settings({"atomic_writes": "true"})

    def test_real_booleans(self):
        settings = parse_settings({"fail_fast": False, "atomic_writes": False})
        assert settings.fail_fast is False
        assert settings.atomic_writes is False

    @pytest.mark.parametrize("value", ["many", None, True])
    def test_max_workers_must_be_a_number(self, value):
        with pytest.raises(ConfigurationError, match="max_workers"):
            parse_settings({"max_workers": value})

    def test_unquoted_false_in_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("settings:\n  fail_fast: false\n", encoding="utf-8")
        assert load_config(str(path)).settings.fail_fast is False
