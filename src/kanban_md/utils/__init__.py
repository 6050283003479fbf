"""Utility functions."""

from .datetime import (
    date_before,
    format_age,
    format_date,
    format_duration,
    from_iso,
    now_utc,
    parse_date,
    parse_duration,
    start_of_day,
    to_iso,
)
from .files import atomic_write_text
from .locks import file_lock
from .slug import extract_id, generate_filename, slugify

__all__ = [
    "atomic_write_text",
    "date_before",
    "extract_id",
    "file_lock",
    "format_age",
    "format_date",
    "format_duration",
    "from_iso",
    "generate_filename",
    "now_utc",
    "parse_date",
    "parse_duration",
    "slugify",
    "start_of_day",
    "to_iso",
]
