from __future__ import annotations

import sqlite3
from datetime import date
from pathlib import Path

import pytest

from gym_progress.model import MetricSample, SampleDecodeError, SubjectProgress
from gym_progress.reconstruct import reconstruct_progress
from gym_progress.storage import AppConfig, SQLiteStore


def test_store_config_defaults_and_round_trip(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    assert store.load_config() == AppConfig()

    config = AppConfig(
        api_base_url="https://gym.example.com",
        export_dir="/data/out",
        window_months=6,
        goal_weight=75.0,
    )
    store.save_config(config)
    assert store.load_config() == config


def test_store_config_corrupt_values_fall_back(tmp_path: Path) -> None:
    db = tmp_path / "app.sqlite3"
    store = SQLiteStore(db)
    with sqlite3.connect(db) as conn:
        conn.executemany(
            "INSERT INTO app_config(key, value) VALUES(?, ?)",
            [("window_months", "5"), ("goal_weight", "{not json")],
        )
        conn.commit()
    loaded = store.load_config()
    assert loaded.window_months == 3
    assert loaded.goal_weight is None


def test_record_sample_validates_and_appends(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    first = store.record_sample(
        "m1", {"value": 80, "unit": "kg", "date": "2024-03-01"}, metric="weight"
    )
    second = store.record_sample("m1", MetricSample("weight", 82, date(2024, 3, 1)))
    assert second > first

    progress = store.load_progress("m1")
    assert [s.value for s in progress.metrics["weight"]] == [80.0, 82.0]
    # sin unidad se asume kg
    assert progress.metrics["weight"][1].unit == "kg"

    rows = reconstruct_progress(progress)
    assert rows[0].values["weight"] == 82.0


def test_record_sample_rejects_invalid(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    with pytest.raises(SampleDecodeError):
        store.record_sample(
            "m1", {"value": 80, "unit": "st", "date": "2024-01-01"}, metric="weight"
        )
    with pytest.raises(SampleDecodeError):
        store.record_sample("m1", {"value": 80, "date": "2024-01-01"}, metric="mood")
    assert store.load_progress("m1").metrics == {}


def test_import_progress_skips_already_stored_samples(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    progress = SubjectProgress(member_id="m1")
    progress.add(MetricSample("weight", 80, date(2024, 1, 1), "kg"))
    progress.add(MetricSample("height", 180, date(2024, 1, 1), "cm"))

    assert store.import_progress(progress) == 2
    assert store.import_progress(progress) == 0

    progress.add(MetricSample("weight", 78, date(2024, 2, 1), "kg"))
    assert store.import_progress(progress) == 1
    assert store.load_progress("m1").sample_count() == 3


def _weights(*values: float) -> SubjectProgress:
    progress = SubjectProgress(member_id="m1")
    for value in values:
        progress.add(MetricSample("weight", value, date(2024, 3, 1), "kg"))
    return progress


def test_import_progress_keeps_same_day_correction(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    assert store.import_progress(_weights(80, 82)) == 2

    # el último 80 corrige el 82 del mismo día
    upstream = _weights(80, 82, 80)
    assert store.import_progress(upstream) == 1

    stored = store.load_progress("m1")
    assert [s.value for s in stored.metrics["weight"]] == [80.0, 82.0, 80.0]
    assert reconstruct_progress(stored)[0].values["weight"] == 80.0
    assert reconstruct_progress(upstream)[0].values["weight"] == 80.0
    assert store.import_progress(upstream) == 0


def test_import_progress_reordered_day_follows_source(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    store.import_progress(_weights(80, 82))

    assert store.import_progress(_weights(82, 80)) == 2
    rows = reconstruct_progress(store.load_progress("m1"))
    assert rows[0].values["weight"] == 80.0


def test_import_progress_empty(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    assert store.import_progress(SubjectProgress(member_id="m1")) == 0
    assert store.members() == []


def test_members_lists_distinct_ids(tmp_path: Path) -> None:
    store = SQLiteStore(tmp_path / "app.sqlite3")
    store.record_sample("m2", MetricSample("weight", 70, date(2024, 1, 1)))
    store.record_sample("m1", MetricSample("weight", 80, date(2024, 1, 1)))
    store.record_sample("m1", MetricSample("weight", 81, date(2024, 1, 2)))
    assert store.members() == ["m1", "m2"]


def test_migration_backfills_sample_hash(tmp_path: Path) -> None:
    db = tmp_path / "legacy.sqlite3"
    with sqlite3.connect(db) as conn:
        conn.execute(
            """
            CREATE TABLE metric_samples (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                member_id TEXT NOT NULL,
                metric TEXT NOT NULL,
                value REAL NOT NULL,
                unit TEXT,
                day TEXT NOT NULL,
                recorded_at TEXT
            )
            """
        )
        conn.execute(
            "INSERT INTO metric_samples(member_id, metric, value, unit, day) "
            "VALUES ('m1', 'weight', 80.0, 'kg', '2024-01-01')"
        )
        conn.commit()

    store = SQLiteStore(db)
    progress = SubjectProgress(member_id="m1")
    progress.add(MetricSample("weight", 80.0, date(2024, 1, 1), "kg"))
    assert store.import_progress(progress) == 0
    assert store.load_progress("m1").sample_count() == 1
