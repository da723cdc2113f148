"""SQLite management utilities."""

from __future__ import annotations

import math
import sqlite3
from array import array
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Sequence

DEFAULT_PRAGMAS = (
    "PRAGMA journal_mode=WAL;",
    "PRAGMA synchronous=NORMAL;",
    "PRAGMA foreign_keys=ON;",
    "PRAGMA temp_store=MEMORY;",
)


def pack_vector(vector: Sequence[float]) -> bytes:
    """Encode a vector as packed float32."""
    return array("f", vector).tobytes()


def cosine_distance(left: bytes | None, right: bytes | None) -> float | None:
    """SQL function: ``1 - cos(left, right)`` over packed float32 vectors.

    Returns NULL for missing, mismatched or zero-length vectors so they never
    clear a similarity threshold.
    """
    if left is None or right is None:
        return None
    a = array("f")
    a.frombytes(left)
    b = array("f")
    b.frombytes(right)
    if len(a) != len(b) or not a:
        return None
    dot = norm_a = norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y
    if norm_a == 0 or norm_b == 0:
        return None
    return 1.0 - dot / (math.sqrt(norm_a) * math.sqrt(norm_b))


class SQLiteDatabase:
    """Thin wrapper around sqlite3 providing pragmatic defaults."""

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path.expanduser()
        self._connection: sqlite3.Connection | None = None

    def connect(self) -> sqlite3.Connection:
        if self._connection is None:
            # One connection per request; FastAPI may open and close it on different threads.
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._connection = sqlite3.connect(self.db_path, check_same_thread=False)
            self._connection.row_factory = sqlite3.Row
            self._connection.create_function("cosine_distance", 2, cosine_distance, deterministic=True)
            for pragma in DEFAULT_PRAGMAS:
                self._connection.execute(pragma)
        return self._connection

    def close(self) -> None:
        if self._connection is not None:
            self._connection.close()
            self._connection = None

    def __enter__(self) -> "SQLiteDatabase":
        self.connect()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()
        else:
            self.rollback()
        self.close()

    def commit(self) -> None:
        if self._connection is not None:
            self._connection.commit()

    def rollback(self) -> None:
        if self._connection is not None:
            self._connection.rollback()

    def executescript(self, script: str) -> None:
        conn = self.connect()
        conn.executescript(script)

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> sqlite3.Cursor:
        conn = self.connect()
        return conn.execute(sql, params or [])

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[sqlite3.Row]:
        cursor = self.execute(sql, params)
        return cursor.fetchall()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Cursor]:
        conn = self.connect()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def ensure_schema(self, schema_sql: str | None = None) -> None:
        if schema_sql is None:
            schema_path = Path(__file__).with_name("schema.sql")
            schema_sql = schema_path.read_text(encoding="utf-8")
        self.executescript(schema_sql)


__all__ = ["SQLiteDatabase", "pack_vector", "cosine_distance"]
