"""Serialize locale trees to resource files.

Each format is a plain function ``(tree, locale, source_locale) -> bytes``
registered in ``SERIALIZERS`` under its configuration name. The file
extension is the configured format name, so ``yml`` and ``yaml`` produce
identical content under different extensions.
"""

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Callable
from xml.etree import ElementTree as ET

import yaml

from spreadsheet_i18n.config import BookConfig, ExporterConfig
from spreadsheet_i18n.exceptions import ExportError
from spreadsheet_i18n.parser import TranslationTree, flatten_tree

logger = logging.getLogger(__name__)

XLIFF_NAMESPACE = "urn:oasis:names:tc:xliff:document:1.2"

Serializer = Callable[[TranslationTree, str, str], bytes]


@dataclass(frozen=True)
class ExportArtifact:
    """One written resource file."""

    sheet_name: str
    locale: str
    format: str
    path: Path
    data: bytes
    domain: str = ""


def dump_yaml(tree: TranslationTree, locale: str = "", source_locale: str = "") -> bytes:
    """Block-style YAML in tree order, non-ASCII kept as is."""
    text = yaml.safe_dump(
        tree,
        allow_unicode=True,
        sort_keys=False,
        default_flow_style=False,
        width=4096,
    )
    return text.encode("utf-8")


def dump_json(tree: TranslationTree, locale: str = "", source_locale: str = "") -> bytes:
    return (json.dumps(tree, ensure_ascii=False, indent=2) + "\n").encode("utf-8")


def _php_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _php_array_lines(tree: TranslationTree, depth: int) -> list[str]:
    indent = "    " * depth
    lines = []
    for key, value in tree.items():
        if isinstance(value, dict):
            lines.append(f"{indent}{_php_string(key)} => [")
            lines.extend(_php_array_lines(value, depth + 1))
            lines.append(f"{indent}],")
        else:
            lines.append(f"{indent}{_php_string(key)} => {_php_string(value)},")
    return lines


def dump_php(tree: TranslationTree, locale: str = "", source_locale: str = "") -> bytes:
    """A PHP file returning the tree as a nested associative array.

    Example output::

        <?php

        return [
            'homepage' => [
                'title' => 'Hello',
            ],
        ];
    """
    lines = ["<?php", "", "return ["]
    lines.extend(_php_array_lines(tree, 1))
    lines.append("];")
    return ("\n".join(lines) + "\n").encode("utf-8")


def dump_xliff(tree: TranslationTree, locale: str = "", source_locale: str = "") -> bytes:
    """An XLIFF 1.2 document with one trans-unit per flattened key.

    Nested keys are joined with ``.``; the key doubles as the unit id,
    resname and source text.
    """
    ET.register_namespace("", XLIFF_NAMESPACE)

    def tag(name: str) -> str:
        return f"{{{XLIFF_NAMESPACE}}}{name}"

    root = ET.Element(tag("xliff"), attrib={"version": "1.2"})
    file_elem = ET.SubElement(
        root,
        tag("file"),
        attrib={
            "source-language": source_locale or locale,
            "target-language": locale,
            "datatype": "plaintext",
            "original": "file.ext",
        },
    )
    body = ET.SubElement(file_elem, tag("body"))

    for key, value in flatten_tree(tree):
        unit = ET.SubElement(body, tag("trans-unit"), attrib={"id": key, "resname": key})
        ET.SubElement(unit, tag("source")).text = key
        ET.SubElement(unit, tag("target")).text = value

    ET.indent(root, space="  ")
    return ET.tostring(root, encoding="utf-8", xml_declaration=True) + b"\n"


SERIALIZERS: dict[str, Serializer] = {
    "yml": dump_yaml,
    "yaml": dump_yaml,
    "json": dump_json,
    "php": dump_php,
    "xliff": dump_xliff,
}


def register_format(name: str, serializer: Serializer) -> None:
    """Make an export format available under a configuration name."""
    SERIALIZERS[name] = serializer


def get_serializer(fmt: str) -> Serializer:
    """Look up the serializer for a format name.

    Raises:
        ExportError: If the format is not registered.
    """
    serializer = SERIALIZERS.get(fmt)
    if serializer is None:
        raise ExportError(
            f"Unknown export format {fmt!r} (available: {', '.join(SERIALIZERS)})"
        )
    return serializer


def destination_path(exporter: ExporterConfig, sheet_name: str, locale: str) -> Path:
    """``destination_folder / {prefix}{sheet}.{locale}.{format}``"""
    filename = f"{exporter.prefix}{sheet_name}.{locale}.{exporter.format}"
    return Path(exporter.destination_folder) / filename


def write_file(path: Path, data: bytes, atomic: bool = True) -> None:
    """Write data to path, replacing any existing file.

    With ``atomic`` the bytes go to a temporary file in the same directory
    which is then renamed over the target.

    Raises:
        ExportError: If the directory cannot be created or the write fails.
    """
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        if not atomic:
            path.write_bytes(data)
            return

        fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_name, 0o644)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except OSError as e:
        raise ExportError(f"Could not write {path}: {e}") from e


def export_tree(
    sheet_name: str,
    locale: str,
    tree: TranslationTree,
    book: BookConfig,
    atomic: bool = True,
) -> ExportArtifact:
    """Serialize one locale's tree and write it to its destination.

    Args:
        sheet_name: Sheet the tree came from.
        locale: Locale code of the tree.
        tree: Nested translations.
        book: Book whose exporter and shared settings apply.
        atomic: Write through a temporary file and rename.

    Returns:
        The written ExportArtifact.

    Raises:
        ExportError: On an unknown format or a failed write. Nothing is
            written for an unknown format.
    """
    serializer = get_serializer(book.exporter.format)
    data = serializer(tree, locale, book.shared.default_locale)
    path = destination_path(book.exporter, sheet_name, locale)

    write_file(path, data, atomic=atomic)
    logger.debug("Wrote %s (%d bytes)", path, len(data))

    return ExportArtifact(
        sheet_name=sheet_name,
        locale=locale,
        format=book.exporter.format,
        path=path,
        data=data,
        domain=f"{book.exporter.prefix}{sheet_name}",
    )
