"""Best-effort scrape of the Senate "Leyes aprobadas" page.

Used only when no structured export is available. The page layout is not
stable, so any ``a``, ``h3`` or ``li`` whose text starts with a law
designation is taken as an entry and the element right after it is read
as its gazette line.
"""

import logging
import re
from typing import Union

from bs4 import BeautifulSoup

from collectors.utils import gazette_date, gazette_issue, split_law_title
from components.interfaces import fetch_soup
from components.models import ExternalLawRecord

logger = logging.getLogger(__name__)


ENTRY_RX = re.compile(r"^Ley( Orgánica)? \d+/\d{4}", re.I)


def _richness(law: ExternalLawRecord) -> tuple[int, int]:
    filled = sum(
        1 for value in (law.gazette_issue, law.gazette_date, law.gazette_url)
        if value
    )
    return filled, len(law.title)


def parse_approved_laws_page(
    page: Union[str, bytes, BeautifulSoup]
) -> list[ExternalLawRecord]:
    """Extract approved laws from the listing page.

    Args:
        page: HTML of the page, or an already parsed soup

    Returns:
        One record per law, keeping the most complete entry
    """
    soup = (
        page if isinstance(page, BeautifulSoup)
        else BeautifulSoup(page, "html.parser")
    )
    by_key: dict[str, ExternalLawRecord] = {}
    for element in soup.find_all(["a", "h3", "li"]):
        text = " ".join(element.get_text(" ").split())
        if not text or not ENTRY_RX.match(text):
            continue
        law_type, law_number, _ = split_law_title(text)
        if not law_type or not law_number:
            continue
        sibling = element.find_next_sibling()
        line = " ".join(sibling.get_text(" ").split()) if sibling else ""
        link = element.get("href") if element.name == "a" else None
        law = ExternalLawRecord(
            law_type=law_type,
            law_number=law_number,
            title=text,
            gazette_issue=gazette_issue(line),
            gazette_date=gazette_date(line),
            gazette_url=link if link and "boe.es" in link else None,
            source="scrape",
        )
        previous = by_key.get(law.key)
        if previous is None or _richness(law) > _richness(previous):
            by_key[law.key] = law
    logger.info("Scraped %d approved laws", len(by_key))
    return list(by_key.values())


def scrape_approved_laws(url: str, timeout: int = 30) -> list[ExternalLawRecord]:
    """Fetch and parse the approved-laws page.

    Raises:
        requests.RequestException: If the page cannot be fetched
    """
    return parse_approved_laws_page(fetch_soup(url, timeout))
