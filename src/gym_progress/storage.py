"""Persistencia SQLite para configuracion y muestras de progreso por miembro."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime
from hashlib import sha256
from pathlib import Path
from typing import Any

from gym_progress.model import MetricSample, SubjectProgress
from gym_progress.sources.progress_json import decode_sample
from gym_progress.stats import WINDOW_MONTHS

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS app_config (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS metric_samples (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    member_id TEXT NOT NULL,
    metric TEXT NOT NULL,
    value REAL NOT NULL,
    unit TEXT,
    day TEXT NOT NULL,
    recorded_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_metric_samples_member
ON metric_samples(member_id, metric);
"""


@dataclass(frozen=True)
class AppConfig:
    """Configuracion persistida de la app."""

    api_base_url: str = ""
    export_dir: str = ""
    window_months: int = 3
    goal_weight: float | None = None


class SQLiteStore:
    """Repositorio SQLite append-only de muestras."""

    def __init__(self, db_path: Path) -> None:
        """Create store and ensure schema exists."""
        self._db_path = db_path
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_schema(self) -> None:
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)
            self._migrate(conn)
            conn.commit()

    def _migrate(self, conn: sqlite3.Connection) -> None:
        """Apply lightweight schema/data migrations."""
        cols = {
            row["name"] for row in conn.execute("PRAGMA table_info(metric_samples)")
        }
        if "sample_hash" not in cols:
            conn.execute("ALTER TABLE metric_samples ADD COLUMN sample_hash TEXT")

        rows = conn.execute(
            """
            SELECT id, member_id, metric, value, unit, day
            FROM metric_samples
            WHERE sample_hash IS NULL
            """
        ).fetchall()
        for row in rows:
            values = (
                row["member_id"],
                row["metric"],
                row["value"],
                row["unit"],
                row["day"],
            )
            conn.execute(
                "UPDATE metric_samples SET sample_hash = ? WHERE id = ?",
                (_sample_hash(values), row["id"]),
            )
        conn.execute(
            """
            CREATE INDEX IF NOT EXISTS idx_metric_samples_hash
            ON metric_samples(sample_hash)
            """
        )

    def load_config(self) -> AppConfig:
        """Devuelve configuracion guardada o defaults."""
        with self._connect() as conn:
            rows = conn.execute("SELECT key, value FROM app_config").fetchall()
        values = {row["key"]: row["value"] for row in rows}
        defaults = AppConfig()
        return AppConfig(
            api_base_url=values.get("api_base_url", defaults.api_base_url),
            export_dir=values.get("export_dir", defaults.export_dir),
            window_months=_parse_window(values.get("window_months")),
            goal_weight=_parse_optional_float(values.get("goal_weight")),
        )

    def save_config(self, config: AppConfig) -> None:
        """Guarda la configuracion en tabla key/value."""
        payload = {
            "api_base_url": config.api_base_url,
            "export_dir": config.export_dir,
            "window_months": str(config.window_months),
            "goal_weight": json.dumps(config.goal_weight),
        }
        with self._connect() as conn:
            conn.executemany(
                """
                INSERT INTO app_config(key, value) VALUES(?, ?)
                ON CONFLICT(key) DO UPDATE SET value=excluded.value
                """,
                payload.items(),
            )
            conn.commit()

    def record_sample(
        self, member_id: str, sample: MetricSample | dict[str, Any], metric: str = ""
    ) -> int:
        """Valida y agrega una muestra. Devuelve el id de la fila.

        Raises:
            SampleDecodeError: If the raw sample fails validation.
        """
        if isinstance(sample, MetricSample):
            sample = decode_sample(sample.metric, _sample_to_raw(sample))
        else:
            sample = decode_sample(metric, sample)
        row = _sample_row(member_id, sample)
        with self._connect() as conn:
            cur = conn.execute(_INSERT_SQL, (*row, _now()))
            conn.commit()
        return int(cur.lastrowid)

    def import_progress(self, progress: SubjectProgress) -> int:
        """Agrega las muestras nuevas de un miembro. Devuelve cuántas se insertaron.

        Samples are compared per (metric, day) in insertion order. When the
        stored samples of a day are a prefix of the incoming ones only the
        rest is appended, so re-importing the same export is a no-op. When
        they diverge the whole incoming day is appended, so the last sample
        of the source stays the latest one in the store.
        """
        recorded_at = _now()
        rows = [
            _sample_row(progress.member_id, s)
            for samples in progress.metrics.values()
            for s in samples
        ]
        with self._connect() as conn:
            stored = _stored_sequences(conn, progress.member_id)
            new_rows = _rows_to_append(rows, stored)
            if not new_rows:
                return 0
            conn.executemany(_INSERT_SQL, [(*row, recorded_at) for row in new_rows])
            conn.commit()
        logger.info(
            "Stored %d new samples for member %s (%d already present)",
            len(new_rows),
            progress.member_id,
            len(rows) - len(new_rows),
        )
        return len(new_rows)

    def load_progress(self, member_id: str) -> SubjectProgress:
        """Carga las muestras de un miembro en orden de insercion."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT metric, value, unit, day
                FROM metric_samples
                WHERE member_id = ?
                ORDER BY id
                """,
                (member_id,),
            ).fetchall()

        progress = SubjectProgress(member_id=member_id)
        for row in rows:
            progress.add(
                MetricSample(
                    metric=row["metric"],
                    value=float(row["value"]),
                    day=date.fromisoformat(row["day"]),
                    unit=row["unit"],
                )
            )
        return progress

    def members(self) -> list[str]:
        """Ids de miembros con al menos una muestra."""
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT member_id FROM metric_samples ORDER BY member_id"
            ).fetchall()
        return [str(row["member_id"]) for row in rows]


def _sample_to_raw(sample: MetricSample) -> dict[str, Any]:
    return {"value": sample.value, "unit": sample.unit, "date": sample.day}


def _parse_window(raw: str | None) -> int:
    try:
        value = int(raw) if raw is not None else AppConfig.window_months
    except ValueError:
        return AppConfig.window_months
    return value if value in WINDOW_MONTHS else AppConfig.window_months


def _parse_optional_float(raw: str | None) -> float | None:
    if raw is None:
        return None
    try:
        parsed: Any = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if isinstance(parsed, bool) or not isinstance(parsed, int | float):
        return None
    return float(parsed)


_INSERT_SQL = """
INSERT INTO metric_samples(
    sample_hash, member_id, metric, value, unit, day, recorded_at
) VALUES (?, ?, ?, ?, ?, ?, ?)
"""


def _now() -> str:
    return datetime.now().isoformat(timespec="seconds")


def _sample_row(member_id: str, sample: MetricSample) -> tuple[object, ...]:
    values = (
        member_id,
        sample.metric,
        float(sample.value),
        sample.unit,
        sample.day.isoformat(),
    )
    return (_sample_hash(values), *values)


def _sample_hash(values: tuple[object, ...]) -> str:
    payload = json.dumps(values, ensure_ascii=True, default=str)
    return sha256(payload.encode("utf-8")).hexdigest()


def _stored_sequences(
    conn: sqlite3.Connection, member_id: str
) -> dict[tuple[str, str], list[str]]:
    rows = conn.execute(
        """
        SELECT metric, day, sample_hash
        FROM metric_samples
        WHERE member_id = ?
        ORDER BY id
        """,
        (member_id,),
    ).fetchall()
    sequences: dict[tuple[str, str], list[str]] = defaultdict(list)
    for row in rows:
        sequences[(row["metric"], row["day"])].append(str(row["sample_hash"]))
    return sequences


def _rows_to_append(
    rows: list[tuple[object, ...]], stored: dict[tuple[str, str], list[str]]
) -> list[tuple[object, ...]]:
    groups: dict[tuple[str, str], list[tuple[object, ...]]] = defaultdict(list)
    for row in rows:
        groups[(str(row[2]), str(row[5]))].append(row)

    out: list[tuple[object, ...]] = []
    for key, group in groups.items():
        seen = stored.get(key, [])
        hashes = [row[0] for row in group]
        if hashes[: len(seen)] == seen:
            out.extend(group[len(seen) :])
        else:
            out.extend(group)
    return out
