"""Entry point for the spreadsheet translation exporter."""

import argparse

from spreadsheet_i18n.cli import run


def main() -> None:
    """Parse CLI arguments and run the export pipeline."""
    parser = argparse.ArgumentParser(
        description="Translate from a spreadsheet to per-locale translation files",
    )
    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to the YAML configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-s",
        "--sheet-name",
        default="",
        help="Sheet to export (required unless --all is given)",
    )
    parser.add_argument(
        "-b",
        "--book-name",
        default="",
        help="Book to use (default: the first book in the configuration)",
    )
    parser.add_argument(
        "-a",
        "--all",
        action="store_true",
        dest="all_sheets",
        help="Export every sheet of the book",
    )
    parser.add_argument(
        "--show",
        default="",
        metavar="KEY",
        help="After exporting, print the translation of KEY (dotted path)",
    )
    parser.add_argument(
        "--locale",
        default="",
        help="Locale used with --show (default: the book's default locale)",
    )
    args = parser.parse_args()
    run(
        config_path=args.config,
        sheet_name=args.sheet_name,
        book_name=args.book_name,
        all_sheets=args.all_sheets,
        show_key=args.show,
        locale=args.locale,
    )


if __name__ == "__main__":
    main()
