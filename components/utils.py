"""Utility functions shared across the pipeline."""

import logging
import re
import unicodedata
from typing import Optional


_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging the same way for every batch run."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(threadName)-12s] %(levelname)-8s %(message)s",
        datefmt="%H:%M:%S",
    )


def strip_diacritics(text: str) -> str:
    """Remove accents and other combining marks (ñ becomes n)."""
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if unicodedata.category(ch) != "Mn")


def normalize_text(text: Optional[str]) -> str:
    """Lowercase, strip diacritics, collapse non-alphanumerics to spaces.

    >>> normalize_text("  Ley de Protección  del Medio-Ambiente ")
    'ley de proteccion del medio ambiente'
    """
    if not text:
        return ""
    folded = strip_diacritics(unicodedata.normalize("NFKC", text).lower())
    return _NON_ALNUM.sub(" ", folded).strip()


def tokenize(text: Optional[str]) -> set[str]:
    """Set of normalized whitespace tokens."""
    return set(normalize_text(text).split())
