"""Parsing helpers shared by the Senate approved-law collectors."""

import re
from typing import Optional

from timeline.extractors import parse_spanish_long_date


LAW_TITLE_RX = re.compile(r"^(Ley(?: Orgánica)?)[^\d]*(\d+/\d{4}),?\s*(.*)$", re.I)
DOCKET_IN_TITLE_RX = re.compile(r"\((\d{3})/(\d{6})\)")
GAZETTE_ISSUE_RX = re.compile(r"B\.O\.E\. n[ºo°] ?(\d+)", re.I)


def split_law_title(title: str) -> tuple[Optional[str], Optional[str], str]:
    """Split ``Ley Orgánica 1/2024, de ...`` into type, number and rest.

    Returns:
        (law type, law number, remaining title); type and number are None
        when the text does not start with a law designation
    """
    text = " ".join(title.split())
    match = LAW_TITLE_RX.match(text)
    if not match:
        return None, None, text
    law_type = match.group(1)
    # Keep the canonical capitalisation regardless of the source
    law_type = "Ley Orgánica" if "org" in law_type.lower() else "Ley"
    return law_type, match.group(2), match.group(3).strip()


def docket_from_title(title: str) -> Optional[str]:
    """The ``(NNN/NNNNNN)`` Congress docket quoted in a law title."""
    match = DOCKET_IN_TITLE_RX.search(title or "")
    return f"{match.group(1)}/{match.group(2)}" if match else None


def gazette_issue(line: Optional[str]) -> Optional[str]:
    """Issue number from a ``B.O.E. nº 123, de ...`` line."""
    match = GAZETTE_ISSUE_RX.search(line or "")
    return match.group(1) if match else None


def gazette_date(line: Optional[str]) -> Optional[str]:
    """ISO publication date from a gazette line."""
    parsed = parse_spanish_long_date(line)
    return parsed.isoformat() if parsed else None


def sanitize_export_url(url: str) -> str:
    """Remove a ``;jsessionid=...`` path segment, keeping the query string."""
    base, sep, query = url.partition("?")
    base = re.sub(r";jsessionid=[^?]*", "", base, flags=re.I)
    return f"{base}{sep}{query}"
