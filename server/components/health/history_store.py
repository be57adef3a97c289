"""
Historical Trend Store
======================

Append-only log of past health analyses per project, read back newest-first
so the narrative step can call out score deltas and regressions, plus the
usage log that records every generation request (cached or not).
"""

import json
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional

from loguru import logger

from components.analysis.models import HealthScoreRecord

MAX_HISTORY_LIMIT = 50


@dataclass
class HistoryEntry:
    """One past analysis run"""
    id: int
    subject_id: str
    analysis_kind: str
    created_at: float
    scores: Optional[HealthScoreRecord]
    result: Dict[str, Any]
    tokens_used: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "result": self.result,
            "healthScores": self.scores.to_dict() if self.scores else None,
            "tokensUsed": self.tokens_used,
            "createdAt": self.created_at,
        }


@dataclass
class UsageRecord:
    """Token usage for one generation request"""
    subject_id: str
    analysis_kind: str
    organization_id: Optional[str] = None
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cached: bool = False


class HistoryStore:
    """SQLite-backed analysis history and usage log"""

    def __init__(self, db_path: str = "health.db", clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self._clock = clock
        self._lock = threading.Lock()
        self._init_database()

    def _init_database(self):
        """Initialize history and usage tables"""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS analysis_history (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subject_id TEXT NOT NULL,
                analysis_kind TEXT NOT NULL,
                result TEXT NOT NULL,
                health_scores TEXT,
                tokens_used INTEGER DEFAULT 0,
                created_at REAL NOT NULL
            )
        """)

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS usage_log (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subject_id TEXT NOT NULL,
                organization_id TEXT,
                analysis_kind TEXT NOT NULL,
                input_tokens INTEGER NOT NULL DEFAULT 0,
                output_tokens INTEGER NOT NULL DEFAULT 0,
                total_tokens INTEGER NOT NULL DEFAULT 0,
                cached INTEGER NOT NULL DEFAULT 0,
                created_at REAL NOT NULL
            )
        """)

        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_history_subject_kind_time "
            "ON analysis_history(subject_id, analysis_kind, created_at DESC)"
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_usage_org ON usage_log(organization_id)")
        self.conn.commit()
        logger.debug(f"[HistoryStore] Initialized at {self.db_path}")

    def append(self, subject_id: str, analysis_kind: str, scores: Optional[HealthScoreRecord],
               result: Dict[str, Any], tokens_used: int = 0) -> int:
        """Append one run; returns the new row id"""
        with self._lock:
            cursor = self.conn.execute("""
                INSERT INTO analysis_history (subject_id, analysis_kind, result, health_scores, tokens_used, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
            """, (subject_id, analysis_kind, json.dumps(result),
                  json.dumps(scores.to_dict()) if scores else None, tokens_used, self._clock()))
            self.conn.commit()
        logger.debug(f"[HistoryStore] Appended {analysis_kind} run for {subject_id}")
        return cursor.lastrowid

    def recent(self, subject_id: str, analysis_kind: str = "health", limit: int = 3,
               offset: int = 0) -> List[HistoryEntry]:
        """Most recent runs, newest first"""
        limit = min(MAX_HISTORY_LIMIT, max(1, int(limit)))
        offset = max(0, int(offset))
        with self._lock:
            cursor = self.conn.execute("""
                SELECT id, subject_id, analysis_kind, created_at, health_scores, result, tokens_used
                FROM analysis_history
                WHERE subject_id = ? AND analysis_kind = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ? OFFSET ?
            """, (subject_id, analysis_kind, limit, offset))
            rows = cursor.fetchall()

        entries = []
        for row in rows:
            try:
                entries.append(self._row_to_entry(row))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"[HistoryStore] Skipping undecodable history row {row[0]}: {e}")
        return entries

    def latest_scores(self, subject_ids: Iterable[str], analysis_kind: str = "health") -> Dict[str, HealthScoreRecord]:
        """Newest score snapshot per subject, for subjects that have one"""
        scores: Dict[str, HealthScoreRecord] = {}
        for subject_id in subject_ids:
            with self._lock:
                row = self.conn.execute("""
                    SELECT health_scores FROM analysis_history
                    WHERE subject_id = ? AND analysis_kind = ? AND health_scores IS NOT NULL
                    ORDER BY created_at DESC, id DESC
                    LIMIT 1
                """, (subject_id, analysis_kind)).fetchone()
            if not row:
                continue
            try:
                scores[subject_id] = HealthScoreRecord.from_dict(json.loads(row[0]))
            except (AttributeError, TypeError, ValueError) as e:
                logger.warning(f"[HistoryStore] Undecodable scores for {subject_id}: {e}")
        return scores

    def log_usage(self, record: UsageRecord) -> None:
        with self._lock:
            self.conn.execute("""
                INSERT INTO usage_log
                    (subject_id, organization_id, analysis_kind, input_tokens, output_tokens, total_tokens, cached, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (record.subject_id, record.organization_id, record.analysis_kind, record.input_tokens,
                  record.output_tokens, record.total_tokens, int(record.cached), self._clock()))
            self.conn.commit()

    def usage_totals(self, organization_id: Optional[str] = None) -> Dict[str, int]:
        """Request and token totals, optionally for one organization"""
        query = "SELECT COUNT(*), COALESCE(SUM(total_tokens), 0), COALESCE(SUM(cached), 0) FROM usage_log"
        params: tuple = ()
        if organization_id is not None:
            query += " WHERE organization_id = ?"
            params = (organization_id,)
        with self._lock:
            requests, tokens, cached = self.conn.execute(query, params).fetchone()
        return {"requests": requests, "total_tokens": tokens, "cached_requests": cached}

    @staticmethod
    def _row_to_entry(row) -> HistoryEntry:
        scores = HealthScoreRecord.from_dict(json.loads(row[4])) if row[4] else None
        return HistoryEntry(
            id=row[0], subject_id=row[1], analysis_kind=row[2], created_at=row[3],
            scores=scores, result=json.loads(row[5]), tokens_used=row[6] or 0,
        )

    def close(self):
        with self._lock:
            self.conn.close()
