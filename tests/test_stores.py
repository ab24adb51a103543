"""
Tests for the event stores.

Covers: in-memory filtering, JSON snapshot loading, PostgreSQL reads with
retry on transient errors (psycopg2 is mocked; no database is needed).
"""
import json
from datetime import timedelta
from unittest.mock import MagicMock, patch

import psycopg2
import pytest

import stores as stores_mod
from conftest import BASE, injection, symptom
from stores import DataUnavailable, InMemoryEventStore, PostgresEventStore


# ─── In-memory ──────────────────────────────────────────────


class TestInMemoryEventStore:

    def test_unknown_user_is_empty(self):
        store = InMemoryEventStore()
        assert store.get_injections("nobody") == []
        assert store.get_symptom_logs("nobody", BASE) == []

    def test_injections_newest_first(self):
        store = InMemoryEventStore(injections={
            "u1": [injection(BASE - timedelta(days=7), id="old"), injection(BASE, id="new")],
        })
        assert [i.id for i in store.get_injections("u1")] == ["new", "old"]

    def test_symptoms_since_and_limit(self):
        logs = [symptom(BASE - timedelta(days=d), id=f"s{d}") for d in range(10)]
        store = InMemoryEventStore(symptoms={"u1": logs})
        since = BASE - timedelta(days=4)
        assert [s.id for s in store.get_symptom_logs("u1", since)] == ["s0", "s1", "s2", "s3", "s4"]
        assert [s.id for s in store.get_symptom_logs("u1", since, limit=2)] == ["s0", "s1"]

    def test_users_are_isolated(self):
        store = InMemoryEventStore(injections={"a": [injection(BASE)], "b": []})
        assert len(store.get_injections("a")) == 1
        assert store.get_injections("b") == []

    def test_accepts_raw_rows(self):
        store = InMemoryEventStore(injections={"u1": [{
            "id": 7, "timestamp": "2026-03-02T09:00:00Z", "medication": "mounjaro", "dose": 5, "site": "arm-left",
        }]})
        assert store.get_injections("u1")[0].dose == 5.0


class TestFromJson:

    def test_loads_snapshot(self, tmp_path):
        path = tmp_path / "snapshot.json"
        path.write_text(json.dumps({
            "u1": {
                "injections": [{"id": "i1", "timestamp": "2026-03-01T09:00:00Z",
                                "medication": "wegovy", "dose": 1.7, "site": "thigh-left"}],
                "symptoms": [{"id": "s1", "symptom": "nausea", "severity": 6,
                              "timestamp": "2026-03-02T09:00:00Z", "mealRelated": True}],
            },
            "u2": None,
        }))
        store = InMemoryEventStore.from_json(path)
        assert store.get_injections("u1")[0].medication == "wegovy"
        assert store.get_symptom_logs("u1", BASE - timedelta(days=30))[0].meal_related is True
        assert store.get_injections("u2") == []

    def test_missing_file(self, tmp_path):
        with pytest.raises(DataUnavailable):
            InMemoryEventStore.from_json(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        with pytest.raises(DataUnavailable):
            InMemoryEventStore.from_json(path)

    def test_top_level_must_be_object(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[]")
        with pytest.raises(DataUnavailable):
            InMemoryEventStore.from_json(path)


# ─── PostgreSQL ─────────────────────────────────────────────


@pytest.fixture
def no_retry_sleep(monkeypatch):
    monkeypatch.setattr(PostgresEventStore._query.retry, "sleep", lambda _seconds: None)


def _connection(rows):
    cursor = MagicMock()
    cursor.fetchall.return_value = rows
    conn = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    return conn, cursor


class TestConnString:

    def test_prefers_postgres_connection_string(self, monkeypatch):
        monkeypatch.setattr(stores_mod, "load_dotenv", lambda: None)
        monkeypatch.setenv("POSTGRES_CONNECTION_STRING", "postgresql://a")
        monkeypatch.setenv("DATABASE_URL", "postgresql://b")
        assert stores_mod._conn_str() == "postgresql://a"

    def test_normalises_postgres_scheme(self, monkeypatch):
        monkeypatch.setattr(stores_mod, "load_dotenv", lambda: None)
        monkeypatch.delenv("POSTGRES_CONNECTION_STRING", raising=False)
        monkeypatch.setenv("DATABASE_URL", "postgres://user@host/db")
        assert stores_mod._conn_str() == "postgresql://user@host/db"


class TestPostgresEventStore:

    def test_unconfigured_is_unavailable(self, monkeypatch):
        monkeypatch.setattr(stores_mod, "_conn_str", lambda: "")
        with pytest.raises(DataUnavailable, match="not configured"):
            PostgresEventStore().get_injections("u1")

    def test_get_injections(self):
        row = {"id": "i1", "timestamp": BASE, "medication": "ozempic", "dose": 1.0, "site": "arm-left", "notes": None}
        conn, cursor = _connection([row])
        with patch("stores.psycopg2.connect", return_value=conn) as connect:
            rows = PostgresEventStore("postgresql://test").get_injections("u1")
        assert rows == [row]
        connect.assert_called_once_with("postgresql://test")
        query, params = cursor.execute.call_args[0]
        assert "FROM injections" in query
        assert params == ("u1",)
        conn.close.assert_called_once()

    def test_get_symptom_logs_with_limit(self):
        conn, cursor = _connection([])
        with patch("stores.psycopg2.connect", return_value=conn):
            PostgresEventStore("postgresql://test").get_symptom_logs("u1", BASE, limit=150)
        query, params = cursor.execute.call_args[0]
        assert "FROM symptom_logs" in query
        assert query.rstrip().endswith("LIMIT %s")
        assert params == ("u1", BASE, 150)

    def test_retries_transient_errors(self, no_retry_sleep):
        conn, _ = _connection([{"id": "i1"}])
        side_effects = [psycopg2.OperationalError("reset"), psycopg2.OperationalError("reset"), conn]
        with patch("stores.psycopg2.connect", side_effect=side_effects) as connect:
            rows = PostgresEventStore("postgresql://test").get_injections("u1")
        assert rows == [{"id": "i1"}]
        assert connect.call_count == 3

    def test_gives_up_after_three_attempts(self, no_retry_sleep):
        with patch("stores.psycopg2.connect", side_effect=psycopg2.OperationalError("down")) as connect:
            with pytest.raises(DataUnavailable, match="down"):
                PostgresEventStore("postgresql://test").get_injections("u1")
        assert connect.call_count == 3

    def test_non_transient_error_not_retried(self, no_retry_sleep):
        with patch("stores.psycopg2.connect", side_effect=psycopg2.ProgrammingError("bad sql")) as connect:
            with pytest.raises(DataUnavailable):
                PostgresEventStore("postgresql://test").get_injections("u1")
        assert connect.call_count == 1
