from __future__ import annotations

from pathlib import Path

from stressi.storage.duckdb_store import Storage


def default_storage() -> Storage:
    return Storage(Path(".stressi/stressi.duckdb"))


__all__ = ["Storage", "default_storage"]
