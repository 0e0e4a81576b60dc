"""Readers that turn uploaded spreadsheets into row dicts."""

from hr_backoffice.importers.sheets import SUPPORTED_EXTENSIONS, read_rows

__all__ = ["SUPPORTED_EXTENSIONS", "read_rows"]
