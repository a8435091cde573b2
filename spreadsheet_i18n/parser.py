"""Turn a raw sheet matrix into per-locale nested translation trees.

A sheet looks like::

    key              en_GB    es_ES
    homepage.title   Hello    Hola
    homepage.intro   Welcome  Bienvenido

Column 0 holds the key, split on the configured separator into a key path;
every other header cell names a locale. Each locale gets its own nested
dict, built in first-seen key order:

    {"homepage": {"title": "Hello", "intro": "Welcome"}}
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from spreadsheet_i18n.config import LOCALE_PATTERN
from spreadsheet_i18n.exceptions import ParseError

logger = logging.getLogger(__name__)

KEY_COLUMN = 0

RawMatrix = list[list[Any]]
TranslationTree = dict[str, Any]


@dataclass
class ParsedSheet:
    """Result of parsing one sheet matrix."""

    locales: list[str] = field(default_factory=list)
    trees: dict[str, TranslationTree] = field(default_factory=dict)
    errors: list[ParseError] = field(default_factory=list)


def cell_text(value: Any) -> str:
    """Render a raw cell value as text.

    Whole floats lose their decimal part (spreadsheets store ``3`` as
    ``3.0``); None becomes an empty string.

    Examples:
        >>> cell_text(3.0)
        '3'
        >>> cell_text(None)
        ''
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def is_blank(value: Any) -> bool:
    return not cell_text(value).strip()


def is_valid_locale(code: str) -> bool:
    """Check a header cell against the ``language[_COUNTRY]`` form."""
    return bool(LOCALE_PATTERN.match(code))


def parse_key_path(key: str, separator: str) -> list[str]:
    """Split a key cell into its path segments.

    The key and each segment are stripped of surrounding whitespace, so
    ``"homepage . title"`` gives the same path as ``"homepage.title"``.
    A segment made only of whitespace counts as empty.

    Args:
        key: Raw key cell text.
        separator: The book's name separator.

    Returns:
        Ordered list of non-empty segments.

    Raises:
        ParseError: If any segment is empty (``"a..b"``, ``".a"``, ``"a."``).

    Examples:
        >>> parse_key_path("homepage.title", ".")
        ['homepage', 'title']
    """
    parts = [part.strip() for part in key.strip().split(separator)]
    if any(not part for part in parts):
        raise ParseError(f"Key {key!r} has an empty segment", key=key)
    return parts


def parse_header(header: list[Any]) -> list[tuple[int, str]]:
    """Find the locale columns of a header row.

    Blank or malformed locale cells are skipped; the key column is never a
    locale column.

    Returns:
        List of (column index, locale code) in column order.
    """
    columns: list[tuple[int, str]] = []
    seen: set[str] = set()

    for col_idx, value in enumerate(header):
        if col_idx == KEY_COLUMN:
            continue

        code = cell_text(value).strip()
        if not code:
            continue

        if not is_valid_locale(code):
            logger.warning("Skipping column %d: %r is not a locale code", col_idx + 1, code)
            continue

        if code in seen:
            logger.warning("Locale %s appears more than once; later columns win", code)
        seen.add(code)
        columns.append((col_idx, code))

    return columns


def set_leaf(tree: TranslationTree, path: list[str], value: str) -> None:
    """Store a value at a key path, creating intermediate subtrees.

    Args:
        tree: Locale tree to modify in place.
        path: Key path segments.
        value: Leaf value; replaces an existing leaf at the same path.

    Raises:
        ParseError: If the path runs through an existing leaf, or ends on an
            existing subtree.
    """
    current = tree
    for depth, part in enumerate(path[:-1]):
        node = current.setdefault(part, {})
        if not isinstance(node, dict):
            prefix = ".".join(path[: depth + 1])
            raise ParseError(f"{prefix!r} is already a translation, cannot nest under it")
        current = node

    last = path[-1]
    existing = current.get(last)
    if isinstance(existing, dict):
        raise ParseError(f"{'.'.join(path)!r} already has nested keys, cannot store a value")
    current[last] = value


def build_trees(
    matrix: RawMatrix,
    separator: str,
    sheet_name: str = "",
    duplicate_keys: str = "overwrite",
) -> ParsedSheet:
    """Parse a sheet matrix into one nested tree per locale.

    Rows with a blank key are skipped silently. Rows whose key has an empty
    segment are skipped and reported as ParseErrors. Only non-blank cells
    are written. A key path seen on an earlier row is overwritten
    (``duplicate_keys="overwrite"``) or reported and ignored
    (``duplicate_keys="reject"``).

    Args:
        matrix: Raw rows; row 0 is the header.
        separator: Key path separator.
        sheet_name: Used to label errors and log lines.
        duplicate_keys: Duplicate key path policy.

    Returns:
        ParsedSheet with locales in header order and the collected errors.
    """
    parsed = ParsedSheet()
    if not matrix:
        return parsed

    columns = parse_header(matrix[0])
    for _col_idx, code in columns:
        if code not in parsed.trees:
            parsed.locales.append(code)
            parsed.trees[code] = {}

    seen_paths: set[tuple[str, ...]] = set()

    # Spreadsheet row numbers are 1-based and the header is row 1.
    for row_number, row in enumerate(matrix[1:], start=2):
        if not row or is_blank(row[KEY_COLUMN]):
            continue

        key = cell_text(row[KEY_COLUMN]).strip()
        try:
            path = parse_key_path(key, separator)
        except ParseError as e:
            e.sheet, e.row = sheet_name, row_number
            parsed.errors.append(e)
            logger.debug("Skipping %s row %d: %s", sheet_name, row_number, e.args[0])
            continue

        path_key = tuple(path)
        if path_key in seen_paths and duplicate_keys == "reject":
            parsed.errors.append(
                ParseError(f"Duplicate key {key!r}", sheet=sheet_name, row=row_number, key=key)
            )
            continue
        seen_paths.add(path_key)

        for col_idx, code in columns:
            value = row[col_idx] if col_idx < len(row) else None
            if is_blank(value):
                continue
            try:
                set_leaf(parsed.trees[code], path, cell_text(value))
            except ParseError as e:
                parsed.errors.append(
                    ParseError(f"{code}: {e.args[0]}", sheet=sheet_name, row=row_number, key=key)
                )

    return parsed


def flatten_tree(tree: TranslationTree, prefix: str = "", separator: str = ".") -> list[tuple[str, str]]:
    """Flatten a nested tree into (dotted key, value) pairs in tree order.

    Example:
        >>> flatten_tree({"home": {"title": "Hello"}})
        [('home.title', 'Hello')]
    """
    pairs: list[tuple[str, str]] = []
    for key, value in tree.items():
        path = f"{prefix}{separator}{key}" if prefix else key
        if isinstance(value, dict):
            pairs.extend(flatten_tree(value, path, separator))
        else:
            pairs.append((path, value))
    return pairs
