"""Date helpers shared by the timeline grammar and the Senate collectors.

Congress exports write dates as ``dd/mm/yyyy`` while the Senate gazette
lines use long Spanish dates (``12 de marzo de 2024``). Everything is
normalised to ISO strings so that records from both sources sort and
compare the same way.
"""

import re
import unicodedata
from datetime import date, datetime
from typing import Optional


DATE_FORMATS = [
    "%d/%m/%Y",  # 15/01/2024
    "%Y-%m-%d",  # 2024-01-15
    "%d-%m-%Y",  # 15-01-2024
]

SPANISH_MONTHS = {
    "enero": 1,
    "febrero": 2,
    "marzo": 3,
    "abril": 4,
    "mayo": 5,
    "junio": 6,
    "julio": 7,
    "agosto": 8,
    "septiembre": 9,
    "setiembre": 9,
    "octubre": 10,
    "noviembre": 11,
    "diciembre": 12,
}

LONG_DATE_PATTERN = re.compile(
    r"(\d{1,2})\s+de\s+([a-záéíóú]+)\s+de\s+(\d{4})", re.I
)


def parse_date(date_text: Optional[str]) -> Optional[date]:
    """Parse a short date string into a date object.

    Args:
        date_text: Date string to parse

    Returns:
        Parsed date, or None if parsing fails
    """
    if not date_text:
        return None
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(date_text.strip(), fmt).date()
        except ValueError:
            continue
    return None


def normalize_date(date_text: Optional[str]) -> Optional[str]:
    """Return the ISO form of a date, or the trimmed text if unparseable."""
    if date_text is None:
        return None
    text = date_text.strip()
    if not text:
        return None
    parsed = parse_date(text)
    return parsed.isoformat() if parsed else text


def parse_spanish_long_date(text: Optional[str]) -> Optional[date]:
    """Extract the first ``<d> de <mes> de <yyyy>`` date found in text.

    Args:
        text: Free text such as a gazette reference line

    Returns:
        Parsed date, or None if no valid long date is present
    """
    if not text:
        return None
    match = LONG_DATE_PATTERN.search(text)
    if not match:
        return None
    month_name = "".join(
        ch
        for ch in unicodedata.normalize("NFD", match.group(2).lower())
        if unicodedata.category(ch) != "Mn"
    )
    month = SPANISH_MONTHS.get(month_name)
    if month is None:
        return None
    try:
        return date(int(match.group(3)), month, int(match.group(1)))
    except ValueError:
        return None
