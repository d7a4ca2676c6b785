"""Reads the Senate's structured export of approved laws.

The export (``openData<timestamp>.xml``) lists organic and ordinary laws
under ``leyesAprobadas``; each entry has a title, a gazette line such as
``B.O.E. nº 72, de 23 de marzo de 2024`` and the gazette URL.
"""

import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Optional, Union

from bs4 import BeautifulSoup, Tag

from collectors.utils import (
    docket_from_title,
    gazette_date,
    gazette_issue,
    sanitize_export_url,
    split_law_title,
)
from components.interfaces import fetch_bytes
from components.models import ExternalLawRecord

logger = logging.getLogger(__name__)


EXPORT_FILE_RX = re.compile(r"^openData\d+\.xml$", re.I)

# (section element, entry element, law type when the title has none)
EXPORT_SECTIONS = [
    ("leyesOrganicas", "detalleLeyOrganica", "Ley Orgánica"),
    ("leyes", "detalleLey", "Ley"),
]


def _text(node: Tag, name: str) -> str:
    child = node.find(name, recursive=False)
    return " ".join(child.get_text().split()) if child else ""


def parse_export(content: Union[str, bytes]) -> list[ExternalLawRecord]:
    """Parse a structured export into law records.

    Args:
        content: Raw XML of the export

    Returns:
        Laws in document order, organic laws first; untitled entries are
        skipped
    """
    soup = BeautifulSoup(content, "lxml-xml")
    root = soup.find("leyesAprobadas")
    if root is None:
        logger.warning("Export has no leyesAprobadas element")
        return []
    laws = []
    for section_name, entry_name, default_type in EXPORT_SECTIONS:
        section = root.find(section_name, recursive=False)
        if section is None:
            continue
        for node in section.find_all(entry_name, recursive=False):
            title = _text(node, "titulo")
            if not title:
                continue
            law_type, law_number, _ = split_law_title(title)
            line = _text(node, "boe")
            laws.append(ExternalLawRecord(
                law_type=law_type or default_type,
                law_number=law_number or "",
                title=title,
                docket=docket_from_title(title),
                gazette_issue=gazette_issue(line),
                gazette_date=gazette_date(line),
                gazette_url=_text(node, "urlBoe") or None,
                source="export",
            ))
    logger.info("Parsed %d laws from Senate export", len(laws))
    return laws


def latest_export(directory: Path) -> Optional[Path]:
    """Most recently modified ``openData<digits>.xml`` in a directory."""
    if not directory.is_dir():
        return None
    candidates = [
        p for p in directory.iterdir()
        if p.is_file() and EXPORT_FILE_RX.match(p.name)
    ]
    if not candidates:
        return None
    return max(candidates, key=lambda p: (p.stat().st_mtime, p.name))


def download_export(
    url: str,
    target_dir: Path,
    timeout: int = 30,
    now: Optional[datetime] = None,
) -> Path:
    """Download the export and store it as ``openData<timestamp>.xml``.

    Raises:
        requests.RequestException: If the download fails
    """
    clean_url = sanitize_export_url(url)
    content = fetch_bytes(clean_url, timeout=timeout)
    target_dir.mkdir(parents=True, exist_ok=True)
    stamp = (now or datetime.now()).strftime("%Y%m%d%H%M%S")
    path = target_dir / f"openData{stamp}.xml"
    path.write_bytes(content)
    logger.info("Downloaded Senate export to %s", path)
    return path


def load_export(source: str, timeout: int = 30) -> list[ExternalLawRecord]:
    """Parse an export given as a local path or an http(s) URL."""
    if source.startswith(("http://", "https://")):
        return parse_export(fetch_bytes(sanitize_export_url(source), timeout))
    return parse_export(Path(source).read_bytes())
