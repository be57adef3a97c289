"""
Analysis Cache
==============

Get-or-compute storage for generated recommendations, keyed by
(subject, analysis kind, fingerprint) with a fixed time-to-live.

Entries are insert-only: a new fingerprint always creates a new row and a
lookup only considers rows whose expiry is still in the future. Concurrent
misses for the same key may both insert; reads take the newest row.
"""

import json
import sqlite3
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from loguru import logger

DEFAULT_TTL_SECONDS = 7 * 24 * 60 * 60


@dataclass
class AnalysisCacheEntry:
    """One cached generation result"""
    subject_id: str
    analysis_kind: str
    fingerprint: str
    result: Dict[str, Any]
    tokens_used: int
    created_at: float
    expires_at: float


class AnalysisCache:
    """SQLite-backed cache of generation results"""

    def __init__(self, db_path: str = "health.db", ttl_seconds: int = DEFAULT_TTL_SECONDS,
                 clock: Callable[[], float] = time.time):
        self.db_path = db_path
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._init_database()

    def _init_database(self):
        """Initialize cache table"""
        self.conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self.conn.execute("PRAGMA journal_mode=WAL")
        self.conn.execute("PRAGMA synchronous=NORMAL")

        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS analysis_cache (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                subject_id TEXT NOT NULL,
                analysis_kind TEXT NOT NULL,
                fingerprint TEXT NOT NULL,
                result TEXT NOT NULL,
                tokens_used INTEGER DEFAULT 0,
                created_at REAL NOT NULL,
                expires_at REAL NOT NULL
            )
        """)
        self.conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_analysis_cache_lookup "
            "ON analysis_cache(subject_id, analysis_kind, fingerprint)"
        )
        self.conn.execute("CREATE INDEX IF NOT EXISTS idx_analysis_cache_expires ON analysis_cache(expires_at)")
        self.conn.commit()
        logger.debug(f"[AnalysisCache] Initialized at {self.db_path} (ttl={self.ttl_seconds}s)")

    def get(self, subject_id: str, analysis_kind: str, fingerprint: str) -> Optional[AnalysisCacheEntry]:
        """Newest unexpired entry for the key, or None"""
        now = self._clock()
        with self._lock:
            cursor = self.conn.execute("""
                SELECT subject_id, analysis_kind, fingerprint, result, tokens_used, created_at, expires_at
                FROM analysis_cache
                WHERE subject_id = ? AND analysis_kind = ? AND fingerprint = ? AND expires_at > ?
                ORDER BY created_at DESC, id DESC
                LIMIT 1
            """, (subject_id, analysis_kind, fingerprint, now))
            row = cursor.fetchone()

        if row is None:
            logger.debug(f"[AnalysisCache] Miss {analysis_kind}:{subject_id}:{fingerprint}")
            return None

        try:
            result = json.loads(row[3])
        except (TypeError, ValueError) as e:
            logger.warning(f"[AnalysisCache] Undecodable entry {analysis_kind}:{subject_id}:{fingerprint}: {e}")
            return None
        if not isinstance(result, dict):
            logger.warning(f"[AnalysisCache] Entry {analysis_kind}:{subject_id}:{fingerprint} is not an object")
            return None

        logger.debug(f"[AnalysisCache] Hit {analysis_kind}:{subject_id}:{fingerprint}")
        return AnalysisCacheEntry(
            subject_id=row[0], analysis_kind=row[1], fingerprint=row[2],
            result=result, tokens_used=row[4] or 0,
            created_at=row[5], expires_at=row[6],
        )

    def put(self, subject_id: str, analysis_kind: str, fingerprint: str,
            result: Dict[str, Any], tokens_used: int = 0) -> AnalysisCacheEntry:
        """Insert a new entry expiring after the configured TTL"""
        now = self._clock()
        entry = AnalysisCacheEntry(
            subject_id=subject_id,
            analysis_kind=analysis_kind,
            fingerprint=fingerprint,
            result=result,
            tokens_used=tokens_used,
            created_at=now,
            expires_at=now + self.ttl_seconds,
        )
        with self._lock:
            self.conn.execute("""
                INSERT INTO analysis_cache
                    (subject_id, analysis_kind, fingerprint, result, tokens_used, created_at, expires_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
            """, (subject_id, analysis_kind, fingerprint, json.dumps(result), tokens_used,
                  entry.created_at, entry.expires_at))
            self.conn.commit()

        logger.debug(f"[AnalysisCache] Stored {analysis_kind}:{subject_id}:{fingerprint}")
        return entry

    def purge_expired(self) -> int:
        """Delete expired rows; lookups ignore them anyway"""
        now = self._clock()
        with self._lock:
            cursor = self.conn.execute("DELETE FROM analysis_cache WHERE expires_at <= ?", (now,))
            self.conn.commit()
        if cursor.rowcount:
            logger.info(f"[AnalysisCache] Purged {cursor.rowcount} expired entries")
        return cursor.rowcount

    def close(self):
        with self._lock:
            self.conn.close()
