"""Reconstrucción de series alineadas por fecha (arrastre del último valor)."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any

import pandas as pd

from gym_progress.model import (
    METRIC_NAMES,
    METRIC_UNITS,
    AlignedRow,
    MetricSample,
    SubjectProgress,
)
from gym_progress.sources.progress_json import decode_metric_list
from gym_progress.stats import row_bmi

logger = logging.getLogger(__name__)

FRAME_COLUMNS: list[str] = ["date", *METRIC_NAMES, "bmi"]


def _clean_metrics(
    metrics: Mapping[str, Sequence[MetricSample | Mapping[str, Any]]],
) -> dict[str, list[MetricSample]]:
    """Decode and sort each metric's samples by day.

    ``sorted`` is stable, so samples sharing a day keep their input order and
    the last one inserted ends up last.
    """
    cleaned: dict[str, list[MetricSample]] = {}
    for metric, items in metrics.items():
        if metric not in METRIC_UNITS:
            logger.warning("Skipping unknown metric %r", metric)
            continue
        samples = decode_metric_list(metric, items)
        if samples:
            cleaned[metric] = sorted(samples, key=lambda s: s.day)
    return cleaned


def reconstruct(
    metrics: Mapping[str, Sequence[MetricSample | Mapping[str, Any]]],
) -> list[AlignedRow]:
    """Build one row per distinct sample date with carried-forward values.

    Row dates are the union of every metric's sample dates, oldest first.
    For each row, a metric holds the value of its latest sample dated on or
    before the row date; metrics with no such sample are left out of the row.
    Malformed samples are logged and skipped.

    Args:
        metrics: Metric name -> samples (``MetricSample`` or raw
            ``{value, unit?, date}`` mappings), in any order.

    Returns:
        Aligned rows sorted ascending by date.
    """
    cleaned = _clean_metrics(metrics)
    if not cleaned:
        return []

    all_days: set[date] = set()
    for samples in cleaned.values():
        all_days.update(s.day for s in samples)

    cursors = {metric: 0 for metric in cleaned}
    current: dict[str, MetricSample] = {}
    rows: list[AlignedRow] = []
    for day in sorted(all_days):
        for metric, samples in cleaned.items():
            idx = cursors[metric]
            # el cursor de cada métrica solo avanza
            while idx < len(samples) and samples[idx].day <= day:
                current[metric] = samples[idx]
                idx += 1
            cursors[metric] = idx

        rows.append(
            AlignedRow(
                day=day,
                values={m: s.value for m, s in current.items()},
                units={m: s.unit for m, s in current.items() if s.unit},
            )
        )
    return rows


def reconstruct_progress(progress: SubjectProgress) -> list[AlignedRow]:
    """Reconstruct the aligned series of one member."""
    rows = reconstruct(progress.metrics)
    logger.info(
        "Member %s: %d samples -> %d aligned rows",
        progress.member_id,
        progress.sample_count(),
        len(rows),
    )
    return rows


def rows_to_frame(rows: Sequence[AlignedRow]) -> pd.DataFrame:
    """Convert aligned rows to a DataFrame (one column per metric, NaN if absent).

    A ``bmi`` column is derived from each row's weight and height.
    """
    if not rows:
        return pd.DataFrame(columns=FRAME_COLUMNS)
    records = [{"date": row.day, **row.values, "bmi": row_bmi(row)} for row in rows]
    df = pd.DataFrame(records).reindex(columns=FRAME_COLUMNS)
    return df.sort_values("date").reset_index(drop=True)
