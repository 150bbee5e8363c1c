from __future__ import annotations

import json
import logging
import os
from datetime import date, datetime
from pathlib import Path

import pytest

from gym_progress.model import MetricSample, SampleDecodeError
from gym_progress.sources.progress_json import (
    ProgressExportPaths,
    ProgressExportSource,
    decode_progress,
    decode_sample,
    parse_day,
)


def test_decode_sample_defaults_unit_per_metric() -> None:
    assert decode_sample("weight", {"value": 80, "date": "2024-01-01"}).unit == "kg"
    assert decode_sample("height", {"value": 180, "date": "2024-01-01"}).unit == "cm"


def test_decode_sample_body_fat_ignores_unit() -> None:
    item = {"value": 21.5, "unit": "kg", "date": "2024-01-01"}
    sample = decode_sample("bodyFat", item)
    assert sample == MetricSample("bodyFat", 21.5, date(2024, 1, 1), None)


@pytest.mark.parametrize(
    ("metric", "item", "match"),
    [
        ("shoeSize", {"value": 42, "date": "2024-01-01"}, "Invalid metric type"),
        ("weight", {"value": 80, "unit": "cm", "date": "2024-01-01"}, "kg or lbs"),
        ("waistMeasurement", {"value": 80, "unit": "kg", "date": "2024-01-01"}, "cm"),
        ("weight", {"value": "abc", "date": "2024-01-01"}, "Non-numeric"),
        ("weight", {"value": True, "date": "2024-01-01"}, "Invalid value"),
        ("weight", {"date": "2024-01-01"}, "Invalid value"),
        ("weight", {"value": float("nan"), "date": "2024-01-01"}, "Non-finite"),
        ("weight", {"value": 80}, "Missing"),
        ("weight", {"value": 80, "date": "31/01/2024"}, "Invalid date"),
        ("weight", [80, "2024-01-01"], "must be an object"),
    ],
)
def test_decode_sample_rejects(metric: str, item: object, match: str) -> None:
    with pytest.raises(SampleDecodeError, match=match):
        decode_sample(metric, item)


def test_decode_error_is_value_error() -> None:
    assert issubclass(SampleDecodeError, ValueError)


def test_parse_day_variants() -> None:
    assert parse_day("2024-01-15") == date(2024, 1, 15)
    assert parse_day("2024-01-15T23:30:00.000Z") == date(2024, 1, 15)
    assert parse_day("2024-01-15T08:00:00-03:00") == date(2024, 1, 15)
    assert parse_day(datetime(2024, 1, 15, 10, 0)) == date(2024, 1, 15)
    assert parse_day(date(2024, 1, 15)) == date(2024, 1, 15)


def test_decode_progress_unwraps_api_envelope() -> None:
    payload = {
        "success": True,
        "message": "Progress history retrieved",
        "data": {
            "BMI": 24.5,
            "progressMetrics": {
                "weight": [
                    {"_id": "a1", "value": 80, "unit": "kg", "date": "2024-01-01"}
                ],
                "height": [{"value": 180, "unit": "cm", "date": "2024-01-01"}],
            },
        },
    }
    progress = decode_progress(payload, member_id="m1")
    assert progress.member_id == "m1"
    assert progress.sample_count() == 2
    assert progress.metrics["weight"][0].value == 80.0


def test_decode_progress_bare_mapping_skips_bad_entries(
    caplog: pytest.LogCaptureFixture,
) -> None:
    payload = {
        "weight": [
            {"value": 80, "date": "2024-01-01"},
            {"value": 79, "date": "bad"},
        ],
        "bodyFat": "oops",
        "mood": [{"value": 5, "date": "2024-01-01"}],
    }
    with caplog.at_level(logging.WARNING):
        progress = decode_progress(payload)
    assert progress.sample_count() == 1
    assert "bodyFat" not in progress.metrics
    assert "Skipping weight sample 1" in caplog.text
    assert "Skipping unknown metric 'mood'" in caplog.text


def test_decode_progress_null_metrics() -> None:
    progress = decode_progress({"data": {"BMI": None, "progressMetrics": None}})
    assert progress.metrics == {}


def test_decode_progress_envelope_without_data_is_empty(
    caplog: pytest.LogCaptureFixture,
) -> None:
    with caplog.at_level(logging.WARNING):
        progress = decode_progress({"success": True, "message": "No progress yet"})
    assert progress.metrics == {}
    assert "Skipping unknown metric" not in caplog.text


def test_decode_progress_rejects_non_mapping_metrics() -> None:
    with pytest.raises(ValueError, match="progressMetrics"):
        decode_progress({"data": {"progressMetrics": [1, 2]}})


def test_export_source_loads_newest(tmp_path: Path) -> None:
    old_f = tmp_path / "progress_old.json"
    new_f = tmp_path / "progress_new.json"
    old_f.write_text(json.dumps({"weight": []}), encoding="utf-8")
    new_f.write_text(
        json.dumps({"weight": [{"value": 70, "date": "2024-01-01"}]}),
        encoding="utf-8",
    )
    os.utime(old_f, (1_000_000, 1_000_000))
    os.utime(new_f, (2_000_000, 2_000_000))

    src = ProgressExportSource(ProgressExportPaths(root=tmp_path))
    src.validate()
    newest = src.newest_json()
    assert newest == new_f

    progress = src.load_progress(newest, member_id="m7")
    assert progress.member_id == "m7"
    assert progress.metrics["weight"][0].value == 70.0


def test_export_source_validate_and_missing_files(tmp_path: Path) -> None:
    missing = tmp_path / "noexiste"
    with pytest.raises(FileNotFoundError, match=str(missing)):
        ProgressExportSource(ProgressExportPaths(root=missing)).validate()
    with pytest.raises(FileNotFoundError, match="No progress_"):
        ProgressExportSource(ProgressExportPaths(root=tmp_path)).newest_json()


def test_export_source_rejects_non_object(tmp_path: Path) -> None:
    p = tmp_path / "progress_list.json"
    p.write_text("[]", encoding="utf-8")
    src = ProgressExportSource(ProgressExportPaths(root=tmp_path))
    with pytest.raises(ValueError, match="must be an object"):
        src.load_progress(p, member_id="m1")
