"""Decodificación validada de payloads de progreso (exportaciones JSON y API)."""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

from dateutil import parser as date_parser

from gym_progress.model import (
    METRIC_NAMES,
    METRIC_UNITS,
    MetricSample,
    SampleDecodeError,
    SubjectProgress,
    default_unit,
)
from gym_progress.sources.base import DataSource, SourcePaths

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressExportPaths(SourcePaths):
    """Paths for progress JSON exports."""

    # root: folder containing progress_*.json


class ProgressExportSource(DataSource):
    """Progress JSON export reader."""

    def validate(self) -> None:
        """Validate that the export directory exists."""
        if not self._paths.root.exists():
            raise FileNotFoundError(str(self._paths.root))

    def newest_json(self) -> Path:
        """Return newest progress_*.json by mtime."""
        files = sorted(
            self._paths.root.glob("progress_*.json"),
            key=lambda p: p.stat().st_mtime,
            reverse=True,
        )
        if not files:
            raise FileNotFoundError(f"No progress_*.json in {self._paths.root}")
        return files[0]

    def load_progress(self, path: Path, member_id: str) -> SubjectProgress:
        """Parse a progress export into typed samples.

        Args:
            path: Path to JSON file.
            member_id: Member the export belongs to.

        Returns:
            Decoded progress; malformed samples are skipped.

        Raises:
            ValueError: If the JSON is not an object.
        """
        raw = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(raw, dict):
            raise ValueError("Progress JSON must be an object")
        return decode_progress(raw, member_id=member_id)


def parse_day(raw: Any) -> date:
    """Reduce an ISO-8601 date/timestamp (or date object) to a calendar day."""
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    if not isinstance(raw, str) or not raw.strip():
        raise SampleDecodeError(f"Missing or empty date: {raw!r}")
    try:
        return date_parser.isoparse(raw.strip()).date()
    except (ValueError, OverflowError) as exc:
        raise SampleDecodeError(f"Invalid date {raw!r}: {exc}") from exc


def _parse_value(raw: Any) -> float:
    # bool es subclase de int: no es un valor válido
    if raw is None or isinstance(raw, bool):
        raise SampleDecodeError(f"Invalid value: {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise SampleDecodeError(f"Non-numeric value: {raw!r}") from exc
    if not math.isfinite(value):
        raise SampleDecodeError(f"Non-finite value: {raw!r}")
    return value


def _parse_unit(metric: str, raw: Any) -> str | None:
    allowed = METRIC_UNITS[metric]
    if not allowed:
        return None
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return default_unit(metric)
    unit = str(raw).strip()
    if unit not in allowed:
        raise SampleDecodeError(
            f"Invalid unit {unit!r} for {metric}. Must be {' or '.join(allowed)}"
        )
    return unit


def decode_sample(metric: str, item: Any) -> MetricSample:
    """Validate one raw ``{value, unit?, date}`` item.

    Raises:
        SampleDecodeError: On unknown metric, bad value, bad unit or bad date.
    """
    if metric not in METRIC_UNITS:
        raise SampleDecodeError(
            f"Invalid metric type {metric!r}. Must be one of: {', '.join(METRIC_NAMES)}"
        )
    if isinstance(item, MetricSample):
        return item
    if not isinstance(item, Mapping):
        raise SampleDecodeError(f"Sample must be an object, got {type(item).__name__}")
    return MetricSample(
        metric=metric,
        value=_parse_value(item.get("value")),
        day=parse_day(item.get("date")),
        unit=_parse_unit(metric, item.get("unit")),
    )


def decode_metric_list(metric: str, items: Any) -> list[MetricSample]:
    """Decode a metric's sample list, logging and skipping bad entries."""
    if not isinstance(items, list | tuple):
        logger.warning(
            "Skipping %s: expected a list, got %s", metric, type(items).__name__
        )
        return []
    out: list[MetricSample] = []
    for idx, item in enumerate(items):
        try:
            out.append(decode_sample(metric, item))
        except SampleDecodeError as exc:
            logger.warning("Skipping %s sample %d: %s", metric, idx, exc)
    return out


def _unwrap(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """Devuelve el mapping progressMetrics, aceptando el sobre de la API."""
    if "data" not in payload and ("success" in payload or "message" in payload):
        # sobre de la API sin datos
        return {}
    data = payload.get("data", payload)
    if isinstance(data, Mapping) and "progressMetrics" in data:
        data = data["progressMetrics"]
    if data is None:
        return {}
    if not isinstance(data, Mapping):
        raise ValueError("progressMetrics must be an object")
    return data


def decode_progress(payload: Mapping[str, Any], member_id: str = "") -> SubjectProgress:
    """Decode a progress payload into a SubjectProgress.

    Accepts the bare ``progressMetrics`` mapping or the API envelope
    ``{"success": ..., "data": {"BMI": ..., "progressMetrics": {...}}}``.
    Unknown metrics and malformed samples are logged and skipped.
    """
    progress = SubjectProgress(member_id=member_id)
    for metric, items in _unwrap(payload).items():
        if metric not in METRIC_UNITS:
            logger.warning("Skipping unknown metric %r", metric)
            continue
        for sample in decode_metric_list(metric, items):
            progress.add(sample)
    return progress
