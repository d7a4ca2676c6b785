"""Append-only storage of stage transitions."""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Optional

import duckdb

from history.artifacts import StageHistoryEntry


class StageHistoryRepository(ABC):
    """Interface of a stage history store."""

    @abstractmethod
    def latest(self, record_id: str) -> Optional[StageHistoryEntry]:
        """Most recently appended entry for a record, if any."""

    @abstractmethod
    def append(self, entry: StageHistoryEntry) -> None:
        """Append one entry; existing entries are never modified."""

    @abstractmethod
    def entries(self, record_id: str) -> list[StageHistoryEntry]:
        """All entries of a record, oldest first."""


class InMemoryStageHistory(StageHistoryRepository):
    """History kept for the lifetime of the process."""

    def __init__(self) -> None:
        self._entries: dict[str, list[StageHistoryEntry]] = {}

    def latest(self, record_id: str) -> Optional[StageHistoryEntry]:
        entries = self._entries.get(record_id)
        return entries[-1] if entries else None

    def append(self, entry: StageHistoryEntry) -> None:
        self._entries.setdefault(entry.record_id, []).append(entry)

    def entries(self, record_id: str) -> list[StageHistoryEntry]:
        return list(self._entries.get(record_id, []))

    def __len__(self) -> int:
        return sum(len(v) for v in self._entries.values())


class DuckDBStageHistory(StageHistoryRepository):
    """Repository for storing stage history in DuckDB."""

    def __init__(self, db_path: str = "cache/stage_history.duckdb"):
        self.db_path = db_path
        self._init_db()

    def _init_db(self):
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        conn = duckdb.connect(self.db_path)
        try:
            conn.execute("CREATE SEQUENCE IF NOT EXISTS stage_history_seq")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS stage_history (
                    seq BIGINT DEFAULT nextval('stage_history_seq'),
                    entry_id VARCHAR PRIMARY KEY,
                    record_id VARCHAR NOT NULL,
                    stage VARCHAR NOT NULL,
                    step INTEGER NOT NULL,
                    reason VARCHAR NOT NULL,
                    recorded_at VARCHAR NOT NULL
                )
            """
            )
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_stage_history_record "
                "ON stage_history(record_id)"
            )
        finally:
            conn.close()

    @staticmethod
    def _row_to_entry(row) -> StageHistoryEntry:
        return StageHistoryEntry(
            entry_id=row[0],
            record_id=row[1],
            stage=row[2],
            step=int(row[3]),
            reason_json=row[4],
            recorded_at=datetime.fromisoformat(row[5]),
        )

    def latest(self, record_id: str) -> Optional[StageHistoryEntry]:
        conn = duckdb.connect(self.db_path)
        try:
            row = conn.execute(
                """
                SELECT entry_id, record_id, stage, step, reason, recorded_at
                FROM stage_history
                WHERE record_id = ?
                ORDER BY seq DESC
                LIMIT 1
                """,
                [record_id],
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_entry(row) if row else None

    def append(self, entry: StageHistoryEntry) -> None:
        conn = duckdb.connect(self.db_path)
        try:
            conn.execute(
                """
                INSERT INTO stage_history
                (entry_id, record_id, stage, step, reason, recorded_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    entry.entry_id,
                    entry.record_id,
                    entry.stage,
                    entry.step,
                    entry.reason_json,
                    entry.recorded_at.isoformat(),
                ],
            )
        finally:
            conn.close()

    def entries(self, record_id: str) -> list[StageHistoryEntry]:
        conn = duckdb.connect(self.db_path)
        try:
            rows = conn.execute(
                """
                SELECT entry_id, record_id, stage, step, reason, recorded_at
                FROM stage_history
                WHERE record_id = ?
                ORDER BY seq
                """,
                [record_id],
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_entry(row) for row in rows]


def create_history(backend: str, db_path: str) -> StageHistoryRepository:
    """Build the repository named by the history configuration."""
    if backend == "memory":
        return InMemoryStageHistory()
    if backend == "duckdb":
        return DuckDBStageHistory(db_path)
    raise ValueError(f"Unknown history backend: {backend}")
