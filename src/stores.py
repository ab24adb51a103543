"""
Event stores supplying injection and symptom streams.

The analytics core only reads.  Two implementations:
  - InMemoryEventStore  — dict-backed, also loadable from a JSON snapshot
  - PostgresEventStore  — psycopg2 reads with retry + exponential backoff

Any store failure surfaces as ``DataUnavailable``; callers degrade to the
insufficient-data output instead of propagating it.
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence

import psycopg2
from dotenv import load_dotenv
from psycopg2.extras import RealDictCursor
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential

from models import InjectionEvent, SymptomLog, ensure_utc, parse_injections, parse_symptom_logs

log = logging.getLogger("stores")

TRANSIENT_ERRORS = (ConnectionError, TimeoutError, OSError, psycopg2.OperationalError)


class DataUnavailable(RuntimeError):
    """A store could not be read (after retries)."""


class InjectionStore(Protocol):
    def get_injections(self, user_id: str) -> Sequence[Any]:
        """Injection rows for ``user_id``, newest first."""


class SymptomStore(Protocol):
    def get_symptom_logs(self, user_id: str, since: datetime, limit: Optional[int] = None) -> Sequence[Any]:
        """Symptom rows for ``user_id`` logged at or after ``since``, newest first."""


# ─── In-memory ──────────────────────────────────────────────


class InMemoryEventStore:
    """Both stores in one, backed by already-validated records."""

    def __init__(
        self,
        injections: Optional[Dict[str, Sequence[Any]]] = None,
        symptoms: Optional[Dict[str, Sequence[Any]]] = None,
    ):
        self._injections: Dict[str, List[InjectionEvent]] = {
            user: parse_injections(rows) for user, rows in (injections or {}).items()
        }
        self._symptoms: Dict[str, List[SymptomLog]] = {
            user: parse_symptom_logs(rows) for user, rows in (symptoms or {}).items()
        }

    @classmethod
    def from_json(cls, path: str | Path) -> "InMemoryEventStore":
        """Load ``{"<user>": {"injections": [...], "symptoms": [...]}}``."""
        try:
            with open(path, encoding="utf-8") as fh:
                payload = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise DataUnavailable(f"Cannot read snapshot {path}: {e}") from e

        if not isinstance(payload, dict):
            raise DataUnavailable(f"Snapshot {path} must be a JSON object keyed by user id")
        return cls(
            injections={u: (d or {}).get("injections", []) for u, d in payload.items()},
            symptoms={u: (d or {}).get("symptoms", []) for u, d in payload.items()},
        )

    def get_injections(self, user_id: str) -> List[InjectionEvent]:
        return list(self._injections.get(user_id, []))

    def get_symptom_logs(self, user_id: str, since: datetime, limit: Optional[int] = None) -> List[SymptomLog]:
        since = ensure_utc(since)
        rows = [s for s in self._symptoms.get(user_id, []) if s.timestamp >= since]
        return rows[:limit] if limit is not None else rows


# ─── PostgreSQL ─────────────────────────────────────────────


def _conn_str() -> str:
    """POSTGRES_CONNECTION_STRING, else DATABASE_URL, with postgres:// normalised."""
    load_dotenv()
    url = (os.getenv("POSTGRES_CONNECTION_STRING") or os.getenv("DATABASE_URL") or "").strip()
    if url.startswith("postgres://"):
        url = "postgresql://" + url[len("postgres://"):]
    return url


class PostgresEventStore:
    """Read-only access to the ``injections`` and ``symptom_logs`` tables."""

    def __init__(self, conn_str: Optional[str] = None):
        self.conn_str = conn_str or _conn_str()

    def get_injections(self, user_id: str) -> List[Dict[str, Any]]:
        return self._read(
            """
            SELECT id, timestamp, medication, dose, site, notes
            FROM injections
            WHERE user_id = %s
            ORDER BY timestamp DESC
            """,
            (user_id,),
        )

    def get_symptom_logs(self, user_id: str, since: datetime, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        query = """
            SELECT id, symptom, severity, timestamp, meal_related, notes
            FROM symptom_logs
            WHERE user_id = %s AND timestamp >= %s
            ORDER BY timestamp DESC
        """
        params: tuple = (user_id, ensure_utc(since))
        if limit is not None:
            query += " LIMIT %s"
            params += (int(limit),)
        return self._read(query, params)

    def _read(self, query: str, params: tuple) -> List[Dict[str, Any]]:
        if not self.conn_str:
            raise DataUnavailable("POSTGRES_CONNECTION_STRING (or DATABASE_URL) is not configured")
        try:
            return self._query(self.conn_str, query, params)
        except Exception as e:
            raise DataUnavailable(f"Store read failed: {e}") from e

    @staticmethod
    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(TRANSIENT_ERRORS),
        reraise=True,
    )
    def _query(conn_str: str, query: str, params: tuple) -> List[Dict[str, Any]]:
        """Run one read with automatic retry on transient connection errors."""
        conn = psycopg2.connect(conn_str)
        try:
            with conn.cursor(cursor_factory=RealDictCursor) as cur:
                cur.execute(query, params)
                return [dict(row) for row in cur.fetchall()]
        finally:
            conn.close()
