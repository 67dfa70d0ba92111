"""
Result store (DuckDB).

Caller-side persistence used by the CLI: the engine itself never reads
or writes a store, it only hands back LookupResult records.

Environment Variables:
    RESULTS_DB: Path to results DuckDB file (will be created if not exists)
"""

import os
from datetime import date
from pathlib import Path
from typing import Mapping, Optional

import duckdb

from .result import LookupResult


RESULTS_DUCKDB = Path(os.environ.get("RESULTS_DB", "domain_lookups.duckdb"))


class ResultStore:
    """Writes lookup results to a DuckDB table keyed by domain."""

    def __init__(self, path: Path = RESULTS_DUCKDB):
        self.path = Path(path)
        self._conn = None  # Lazy
        self._init_db()

    def _get_conn(self):
        """Get or create DuckDB connection (read-write)."""
        if self._conn is None:
            self._conn = duckdb.connect(str(self.path))
        return self._conn

    def _init_db(self):
        conn = self._get_conn()
        conn.execute("""
            CREATE TABLE IF NOT EXISTS domain_lookups (
                domain VARCHAR PRIMARY KEY,
                is_registered BOOLEAN NOT NULL,
                expiry_date DATE,
                registrar VARCHAR,
                raw VARCHAR,
                error VARCHAR,
                checked_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """)

    def save_results(self, results: Mapping[str, Optional[LookupResult]]) -> int:
        """
        Upsert resolved entries. Unresolved (None) entries are skipped so a
        later run can retry them. Returns the number of rows written.
        """
        rows = [
            (
                r.domain,
                r.is_registered,
                date.fromisoformat(r.expiry_date) if r.expiry_date else None,
                r.registrar,
                r.raw,
                r.error,
            )
            for r in results.values()
            if r is not None
        ]
        if not rows:
            return 0

        conn = self._get_conn()
        conn.executemany(
            """
            INSERT OR REPLACE INTO domain_lookups
            (domain, is_registered, expiry_date, registrar, raw, error, checked_at)
            VALUES (?, ?, ?, ?, ?, ?, CURRENT_TIMESTAMP)
            """,
            rows,
        )
        return len(rows)

    def get_result(self, domain: str) -> Optional[LookupResult]:
        conn = self._get_conn()
        row = conn.execute(
            """
            SELECT domain, is_registered, CAST(expiry_date AS VARCHAR), registrar, raw, error
            FROM domain_lookups WHERE domain = ?
            """,
            [domain],
        ).fetchone()
        if not row:
            return None
        return LookupResult(
            domain=row[0],
            is_registered=row[1],
            expiry_date=row[2],
            registrar=row[3],
            raw=row[4] or "",
            error=row[5],
        )

    def get_stats(self) -> dict:
        """Counts of registered / available / error rows."""
        conn = self._get_conn()
        row = conn.execute("""
            SELECT
                COUNT(*) FILTER (WHERE error IS NULL AND is_registered),
                COUNT(*) FILTER (WHERE error IS NULL AND NOT is_registered),
                COUNT(*) FILTER (WHERE error IS NOT NULL),
                COUNT(*)
            FROM domain_lookups
        """).fetchone()
        return {
            "registered": row[0],
            "available": row[1],
            "error": row[2],
            "total": row[3],
        }

    def close(self):
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
