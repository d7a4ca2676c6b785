"""Shared configuration and HTTP access for the legislative pipeline."""

from __future__ import annotations

import logging
import os
import threading
from pathlib import Path
from typing import Any, Optional

import requests  # type: ignore
from bs4 import BeautifulSoup
from dotenv import load_dotenv
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry
from yaml import safe_load  # type: ignore

# Setup logger
logger = logging.getLogger(__name__)


DEFAULT_ROOT_PATHS = [
    "results/result",
    "iniciativas/iniciativa",
    "proyectos/proyecto",
    "proposiciones/proposicion",
    "iniciativaslegislativas/iniciativalegislativa",
    "documentos/documento",
    "leyes/ley",
    "enmiendas/enmienda",
]

SENATE_APPROVED_LAWS_URL = (
    "https://www.senado.es/web/actividadparlamentaria/actualidad/leyes/"
    "aprobadas/index.html"
)


class _SessionManager:
    """Manages HTTP session lifecycle without global keyword."""

    def __init__(self) -> None:
        self._session: Optional[requests.Session] = None
        self._lock = threading.Lock()

    def get_session(self) -> requests.Session:
        """Get or create the HTTP session with connection pooling."""
        if self._session is None:
            with self._lock:
                if self._session is None:
                    session = requests.Session()
                    retry_strategy = Retry(
                        total=3,
                        backoff_factor=1,
                        status_forcelist=[429, 500, 502, 503, 504],
                        allowed_methods=["GET"]
                    )
                    adapter = HTTPAdapter(
                        pool_connections=10,
                        pool_maxsize=10,
                        max_retries=retry_strategy,
                        pool_block=False
                    )
                    session.mount("http://", adapter)
                    session.mount("https://", adapter)
                    session.headers.update({
                        "User-Agent": "cortes-tracker/0.1"
                    })
                    self._session = session
                    logger.debug("Created HTTP session")
        return self._session

    def cleanup(self) -> None:
        """Close the session."""
        with self._lock:
            if self._session:
                self._session.close()
                self._session = None
                logger.debug("Closed HTTP session")


_SESSION_MANAGER = _SessionManager()


def fetch_bytes(url: str, timeout: int = 30) -> bytes:
    """Download a resource, raising for HTTP errors."""
    response = _SESSION_MANAGER.get_session().get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


def fetch_soup(url: str, timeout: int = 30) -> BeautifulSoup:
    """Download an HTML page and parse it."""
    return BeautifulSoup(fetch_bytes(url, timeout), "html.parser")


def close_session() -> None:
    """Release pooled connections."""
    _SESSION_MANAGER.cleanup()


class Config:
    """Provides an interface and safe defaults for config.yaml values."""

    def __init__(
        self,
        config_path: Optional[str] = None,
        overrides: Optional[dict[str, Any]] = None,
    ):
        self.config: dict[str, Any] = {}
        if config_path and Path(config_path).exists():
            with open(config_path, "r", encoding="utf-8") as f:
                self.config = safe_load(f) or {}
        elif config_path:
            logger.info("No config at %s; using defaults", config_path)
        for section, values in (overrides or {}).items():
            if isinstance(values, dict):
                merged = dict(self.config.get(section) or {})
                merged.update(values)
                self.config[section] = merged
            else:
                self.config[section] = values

    class Extraction:
        """Extractor configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.extraction = config.get("extraction") or {}

        @property
        def max_document_mb(self) -> float:
            """Documents larger than this are skipped."""
            return float(self.extraction.get("max_document_mb", 100))

        @property
        def max_document_bytes(self) -> int:
            """Maximum document size in bytes."""
            return int(self.max_document_mb * 1024 * 1024)

        @property
        def root_paths(self) -> list[str]:
            """Known nesting paths of entry collections, in probe order."""
            return list(self.extraction.get("root_paths", DEFAULT_ROOT_PATHS))

    @property
    def extraction(self) -> Config.Extraction:
        """Extractor configuration."""
        return Config.Extraction(self.config)

    class Similarity:
        """Similarity engine configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.similarity = config.get("similarity") or {}

        @property
        def threshold(self) -> float:
            """Minimum composite score for a similar match."""
            return float(self.similarity.get("threshold", 0.6))

        @property
        def jaro_winkler_weight(self) -> float:
            """Weight of the Jaro-Winkler similarity."""
            return float(self.similarity.get("jaro_winkler_weight", 0.7))

        @property
        def levenshtein_weight(self) -> float:
            """Weight of the normalized Levenshtein similarity."""
            return float(self.similarity.get("levenshtein_weight", 0.3))

        @property
        def cache_capacity(self) -> int:
            """Number of cached pairs before the cache is purged."""
            return int(self.similarity.get("cache_capacity", 10000))

        @property
        def cache_policy(self) -> str:
            """Either "flush" or "lru"."""
            return str(self.similarity.get("cache_policy", "flush")).lower()

    @property
    def similarity(self) -> Config.Similarity:
        """Similarity engine configuration."""
        return Config.Similarity(self.config)

    class CrossRef:
        """Cross-source resolver configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.crossref = config.get("crossref") or {}

        @property
        def enabled(self) -> bool:
            """Whether to acquire the Senate corpus during a batch."""
            return bool(self.crossref.get("enabled", True))

        @property
        def title_match_threshold(self) -> float:
            """Minimum token Jaccard score for a title match."""
            return float(self.crossref.get("title_match_threshold", 0.65))

        @property
        def max_concurrent(self) -> int:
            """Concurrent corpus acquisition operations."""
            return max(1, int(self.crossref.get("max_concurrent", 5)))

        @property
        def export_dir(self) -> Optional[str]:
            """Directory holding downloaded openData exports."""
            value = self.crossref.get("export_dir", "data/senate")
            return str(value) if value else None

        @property
        def export_sources(self) -> list[str]:
            """Additional export files or URLs, in preference order."""
            return [str(s) for s in self.crossref.get("export_sources", [])]

        @property
        def export_url(self) -> Optional[str]:
            """URL of the structured export, env SENATE_XML_URL fallback."""
            value = self.crossref.get("export_url") or os.getenv(
                "SENATE_XML_URL"
            )
            return str(value) if value else None

        @property
        def scrape_url(self) -> str:
            """Senate page listing approved laws."""
            return str(
                self.crossref.get("scrape_url", SENATE_APPROVED_LAWS_URL)
            )

        @property
        def use_scrape_fallback(self) -> bool:
            """Scrape when no structured export yields laws."""
            return bool(self.crossref.get("use_scrape_fallback", True))

        @property
        def request_timeout(self) -> int:
            """HTTP timeout in seconds."""
            return int(self.crossref.get("request_timeout", 30))

    @property
    def crossref(self) -> Config.CrossRef:
        """Cross-source resolver configuration."""
        return Config.CrossRef(self.config)

    class History:
        """Stage history configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.history = config.get("history") or {}

        @property
        def backend(self) -> str:
            """Either "memory" or "duckdb"."""
            return str(self.history.get("backend", "memory")).lower()

        @property
        def db_path(self) -> str:
            """DuckDB database file."""
            return str(
                self.history.get("db_path", "cache/stage_history.duckdb")
            )

    @property
    def history(self) -> Config.History:
        """Stage history configuration."""
        return Config.History(self.config)

    class Logging:
        """Logging configuration."""

        def __init__(self, config: dict[str, Any]) -> None:
            self.logging = config.get("logging") or {}

        @property
        def level(self) -> str:
            """Root log level name."""
            return str(self.logging.get("level", "INFO")).upper()

    @property
    def logging(self) -> Config.Logging:
        """Logging configuration."""
        return Config.Logging(self.config)


def load_config(config_path: str = "config.yaml") -> Config:
    """Load .env into the environment, then read the YAML config."""
    load_dotenv()
    return Config(config_path)
