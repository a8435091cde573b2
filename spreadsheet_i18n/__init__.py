"""Export spreadsheet translation matrices to per-locale resource files."""

__version__ = "0.1.0"
