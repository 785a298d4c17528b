from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

import duckdb
import pandas as pd

from stressi.config import RunConfig
from stressi.metrics import RunReport


@dataclass(slots=True)
class Storage:
    db_path: Path

    def __post_init__(self) -> None:
        self.db_path = Path(self.db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> duckdb.DuckDBPyConnection:
        return duckdb.connect(str(self.db_path))

    def _init_schema(self) -> None:
        with self._connect() as con:
            con.execute(
                """
                CREATE TABLE IF NOT EXISTS runs (
                    run_id TEXT PRIMARY KEY,
                    created_at TIMESTAMP,
                    url TEXT,
                    method TEXT,
                    users BIGINT,
                    repetitions BIGINT,
                    started TIMESTAMP,
                    ended TIMESTAMP,
                    duration_sec DOUBLE,
                    total_requests BIGINT,
                    successful BIGINT,
                    further_action BIGINT,
                    user_errors BIGINT,
                    server_errors BIGINT,
                    exceptions BIGINT,
                    avg_ms BIGINT,
                    min_ms BIGINT,
                    max_ms BIGINT,
                    p50_ms DOUBLE,
                    p95_ms DOUBLE,
                    p99_ms DOUBLE,
                    bytes_sent BIGINT,
                    bytes_received BIGINT,
                    interrupted BOOLEAN,
                    config_json TEXT
                );
                """
            )

    def run_exists(self, run_id: str) -> bool:
        with self._connect() as con:
            result = con.execute(
                "SELECT COUNT(*) FROM runs WHERE run_id = ?",
                [run_id],
            ).fetchone()
            return bool(result and result[0] > 0)

    def save_report(self, report: RunReport, config: RunConfig) -> None:
        if self.run_exists(report.run_id):
            msg = f"Run {report.run_id} already exists"
            raise ValueError(msg)
        duration = report.duration.total_seconds() if report.duration is not None else None
        row = {
            "run_id": report.run_id,
            "created_at": datetime.now(timezone.utc).replace(tzinfo=None),
            "url": report.url,
            "method": report.method,
            "users": report.users,
            "repetitions": report.repetitions,
            "started": _naive_utc(report.started),
            "ended": _naive_utc(report.ended),
            "duration_sec": duration,
            "total_requests": report.total_requests,
            "successful": report.successful,
            "further_action": report.further_action,
            "user_errors": report.user_errors,
            "server_errors": report.server_errors,
            "exceptions": report.exceptions,
            "avg_ms": report.avg_ms,
            "min_ms": report.min_ms,
            "max_ms": report.max_ms,
            "p50_ms": report.p50_ms,
            "p95_ms": report.p95_ms,
            "p99_ms": report.p99_ms,
            "bytes_sent": report.bytes_sent,
            "bytes_received": report.bytes_received,
            "interrupted": report.interrupted,
            "config_json": json.dumps(config.to_metadata()),
        }
        placeholders = ", ".join("?" for _ in row)
        with self._connect() as con:
            con.execute(f"INSERT INTO runs VALUES ({placeholders})", list(row.values()))

    def list_runs(self) -> pd.DataFrame:
        with self._connect() as con:
            return con.execute(
                """
                SELECT run_id, created_at, url, method, total_requests, successful,
                       exceptions, avg_ms, duration_sec
                FROM runs ORDER BY created_at DESC
                """
            ).fetchdf()

    def load_report(self, run_id: str) -> dict[str, object] | None:
        with self._connect() as con:
            cursor = con.execute("SELECT * FROM runs WHERE run_id = ?", [run_id])
            row = cursor.fetchone()
            if not row:
                return None
            columns = [desc[0] for desc in cursor.description]
        record: dict[str, object] = dict(zip(columns, row))
        record["config"] = json.loads(str(record.pop("config_json")))
        return record


def _naive_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    return value.astimezone(timezone.utc).replace(tzinfo=None)
