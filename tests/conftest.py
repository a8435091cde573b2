"""Shared fixtures: books, sample matrices and an in-memory provider."""

import openpyxl
import pytest

from spreadsheet_i18n.config import BookConfig, ExporterConfig, ProviderConfig, SharedConfig


class StaticProvider:
    """Provider returning a fixed workbook and counting fetches."""

    def __init__(self, workbook):
        self.workbook = workbook
        self.fetch_count = 0

    def fetch(self, source_resource):
        self.fetch_count += 1
        return self.workbook


def make_book(
    destination,
    fmt="yml",
    prefix="demo_",
    separator=".",
    default_locale="en",
    sheets=(),
    name="frontend",
):
    return BookConfig(
        name=name,
        provider=ProviderConfig(name="local_file", source_resource="unused.xlsx"),
        exporter=ExporterConfig(format=fmt, prefix=prefix, destination_folder=str(destination)),
        shared=SharedConfig(default_locale=default_locale, name_separator=separator),
        sheets=tuple(sheets),
    )


@pytest.fixture
def common_matrix():
    """A small sheet with nested keys and two locales."""
    return [
        ["key", "en_GB", "es_ES"],
        ["homepage.title", "Hello", "Hola"],
        ["homepage.intro", "Welcome", "Bienvenido"],
        ["footer.copyright", "All rights reserved", "Todos los derechos reservados"],
    ]


@pytest.fixture
def workbook(common_matrix):
    return {
        "common": common_matrix,
        "errors": [
            ["key", "en_GB", "es_ES"],
            ["not_found", "Page not found", "Página no encontrada"],
        ],
    }


@pytest.fixture
def provider(workbook):
    return StaticProvider(workbook)


@pytest.fixture
def book(tmp_path):
    return make_book(tmp_path / "translations")


@pytest.fixture
def xlsx_file(tmp_path, workbook):
    """The workbook fixture saved as a real xlsx file."""
    path = tmp_path / "source.xlsx"
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for title, rows in workbook.items():
        ws = wb.create_sheet(title)
        for row in rows:
            ws.append(row)
    wb.save(path)
    return path
