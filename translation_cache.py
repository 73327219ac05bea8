#!/usr/bin/env python3
"""
Translation cache

A durable literal -> translation record mapping backed by a single SQLite
table. Rows are only ever inserted: once a literal has a row it is never sent
to the translation service again.
"""
import json
import logging
import sqlite3
from typing import Dict, Optional

logger = logging.getLogger(__name__)

CACHE_TABLE = "i18n"
CACHE_FILENAME = "i18n.sqlite"

TranslationRecord = Dict[str, str]


class TranslationCache:
    """
    Append-only store of translation records keyed by literal text.

    The store is opened once per run and used from a single thread.
    """

    def __init__(self, path: str) -> None:
        self.path = str(path)
        self._conn = sqlite3.connect(self.path)
        self._conn.execute(
            f"CREATE TABLE IF NOT EXISTS {CACHE_TABLE} (k TEXT PRIMARY KEY, v TEXT)"
        )
        self._conn.commit()
        logger.debug(f"Opened translation cache at {self.path}")

    def lookup(self, key: str) -> Optional[TranslationRecord]:
        """Return the stored record for key, or None when it was never translated."""
        row = self._conn.execute(
            f"SELECT v FROM {CACHE_TABLE} WHERE k = ?", (key,)
        ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def insert(self, key: str, record: TranslationRecord) -> None:
        """
        Persist a new record.

        Only call this after a lookup miss. Inserting an existing key raises
        sqlite3.IntegrityError; rows are never updated.
        """
        self._conn.execute(
            f"INSERT INTO {CACHE_TABLE} (k, v) VALUES (?, ?)",
            (key, json.dumps(record, ensure_ascii=False)),
        )
        # Commit per row so finished translations survive an interrupted run
        self._conn.commit()

    def __len__(self) -> int:
        return self._conn.execute(f"SELECT COUNT(*) FROM {CACHE_TABLE}").fetchone()[0]

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> "TranslationCache":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


def open_cache(path: str) -> TranslationCache:
    """Open (creating if needed) the cache file at path."""
    return TranslationCache(path)
