import re
from datetime import date, datetime
from typing import Optional

STORAGE_FORMAT = "%d-%m-%Y"

# Accepted input layouts, tried in order, each with the exact shape the text
# must have. strptime alone accepts unpadded numbers, so the shape check keeps
# "2024-3-5" out. Only the layouts with a spelled-out month take a one-digit day.
# The first layout that parses the whole string wins, so "05/04/2024" reads as May 4th.
INPUT_FORMATS = (
    ("%Y-%m-%d", r"\d{4}-\d{2}-\d{2}"),
    ("%m/%d/%Y", r"\d{2}/\d{2}/\d{4}"),
    ("%d %B %Y", r"\d{1,2} [A-Za-z]+ \d{4}"),
    ("%Y/%m/%d", r"\d{4}/\d{2}/\d{2}"),
    ("%B %d, %Y", r"[A-Za-z]+ \d{1,2}, \d{4}"),
    ("%d %b, %Y", r"\d{2} [A-Za-z]{3}, \d{4}"),
    ("%Y, %b %d", r"\d{4}, [A-Za-z]{3} \d{2}"),
    ("%d/%m/%y", r"\d{2}/\d{2}/\d{2}"),
    ("%d/%m/%Y", r"\d{2}/\d{2}/\d{4}"),
    ("%d.%m.%Y", r"\d{2}\.\d{2}\.\d{4}"),
    (STORAGE_FORMAT, r"\d{2}-\d{2}-\d{4}"),
)


def parse_date(value: str) -> Optional[date]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    for fmt, shape in INPUT_FORMATS:
        if not re.fullmatch(shape, text):
            continue
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(value: str) -> Optional[str]:
    """Return ``value`` as DD-MM-YYYY, or None when no accepted layout matches."""
    parsed = parse_date(value)
    if parsed is None:
        return None
    return f"{parsed.day:02d}-{parsed.month:02d}-{parsed.year:04d}"


def sort_key(stored_date: str) -> str:
    """DD-MM-YYYY -> YYYY-MM-DD, which orders and prefix-matches by month."""
    parsed = datetime.strptime(stored_date, STORAGE_FORMAT).date()
    return f"{parsed.year:04d}-{parsed.month:02d}-{parsed.day:02d}"


def month_prefix(month: int, year: int) -> str:
    return f"{year:04d}-{month:02d}"
