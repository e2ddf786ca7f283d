from __future__ import annotations

import json
import sqlite3
from typing import Any, List, Mapping, Optional

from domain.errors import StoreUnavailableError
from domain.repositories import KeyValueEntry, KeyValueStore


class SqliteKeyValueStore(KeyValueStore):
    """
    SQLite-backed implementation of `KeyValueStore`.

    Owns the `kv_entries` table (JSON values plus a version per key) and the
    single-row `kv_sequence` table from which versions are drawn. It is
    self-initialising: tables are created if needed.

    `commit` runs inside `BEGIN IMMEDIATE`, so the version checks and the
    writes happen under SQLite's write lock and are applied all-or-nothing.
    """

    def __init__(self, db_path: str, timeout: float = 5.0) -> None:
        self._db_path = db_path
        self._timeout = timeout
        self._ensure_table()

    def _get_connection(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=self._timeout)
        # Transactions are managed explicitly in `commit`.
        conn.isolation_level = None
        return conn

    def _ensure_table(self) -> None:
        conn = self._get_connection()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_entries (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    version INTEGER NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_sequence (
                    id INTEGER PRIMARY KEY CHECK (id = 1),
                    value INTEGER NOT NULL
                )
                """
            )
            cur.execute("INSERT OR IGNORE INTO kv_sequence (id, value) VALUES (1, 0)")
        except sqlite3.OperationalError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            conn.close()

    @staticmethod
    def _to_entry(row) -> KeyValueEntry:
        return KeyValueEntry(key=row[0], value=json.loads(row[1]), version=int(row[2]))

    @staticmethod
    def _next_version(cur: sqlite3.Cursor) -> int:
        cur.execute("UPDATE kv_sequence SET value = value + 1 WHERE id = 1")
        cur.execute("SELECT value FROM kv_sequence WHERE id = 1")
        return int(cur.fetchone()[0])

    def get(self, key: str) -> KeyValueEntry:
        conn = self._get_connection()
        try:
            cur = conn.cursor()
            cur.execute("SELECT key, value, version FROM kv_entries WHERE key = ?", (key,))
            row = cur.fetchone()
            if not row:
                return KeyValueEntry(key=key, value=None, version=None)
            return self._to_entry(row)
        except sqlite3.OperationalError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            conn.close()

    def list_by_prefix(self, prefix: str) -> List[KeyValueEntry]:
        conn = self._get_connection()
        try:
            cur = conn.cursor()
            cur.execute(
                """
                SELECT key, value, version
                FROM kv_entries
                WHERE substr(key, 1, ?) = ?
                ORDER BY key
                """,
                (len(prefix), prefix),
            )
            return [self._to_entry(row) for row in cur.fetchall()]
        except sqlite3.OperationalError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            conn.close()

    def set(self, key: str, value: Any) -> None:
        self._write({key: value})

    def delete(self, key: str) -> None:
        self._write({key: None})

    def _write(self, mutations: Mapping[str, Any]) -> None:
        self._apply(checks={}, mutations=mutations)

    def commit(
        self,
        checks: Mapping[str, Optional[int]],
        mutations: Mapping[str, Any],
    ) -> bool:
        return self._apply(checks, mutations)

    def _apply(
        self,
        checks: Mapping[str, Optional[int]],
        mutations: Mapping[str, Any],
    ) -> bool:
        conn = self._get_connection()
        try:
            cur = conn.cursor()
            cur.execute("BEGIN IMMEDIATE")
            try:
                for key, expected in checks.items():
                    cur.execute("SELECT version FROM kv_entries WHERE key = ?", (key,))
                    row = cur.fetchone()
                    current = int(row[0]) if row else None
                    if current != expected:
                        cur.execute("ROLLBACK")
                        return False

                if mutations:
                    version = self._next_version(cur)
                    for key, value in mutations.items():
                        if value is None:
                            cur.execute("DELETE FROM kv_entries WHERE key = ?", (key,))
                        else:
                            cur.execute(
                                """
                                INSERT INTO kv_entries (key, value, version)
                                VALUES (?, ?, ?)
                                ON CONFLICT (key)
                                DO UPDATE SET value = excluded.value, version = excluded.version
                                """,
                                (key, json.dumps(value), version),
                            )
                cur.execute("COMMIT")
                return True
            except BaseException:
                if conn.in_transaction:
                    cur.execute("ROLLBACK")
                raise
        except sqlite3.OperationalError as exc:
            raise StoreUnavailableError(str(exc)) from exc
        finally:
            conn.close()
