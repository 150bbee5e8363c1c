"""Estadísticas derivadas: deltas por ventana, IMC y distancia al objetivo."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from dateutil.relativedelta import relativedelta

from gym_progress.model import METRIC_NAMES, AlignedRow, DerivedStats, SubjectProgress

WINDOW_MONTHS: tuple[int, ...] = (1, 3, 6, 12)

_LBS_TO_KG = 0.453592
_IN_TO_M = 0.0254

# factor a la unidad base (kg, cm)
_TO_BASE_UNIT: dict[str, float] = {"kg": 1.0, "lbs": _LBS_TO_KG, "cm": 1.0, "in": 2.54}

_BMI_CATEGORIES: tuple[tuple[float, str], ...] = (
    (18.5, "Underweight"),
    (25.0, "Normal weight"),
    (30.0, "Overweight"),
)


def compute_bmi(
    weight: float,
    weight_unit: str | None,
    height: float,
    height_unit: str | None,
) -> float | None:
    """Body-mass index rounded to 2 decimals.

    Weight in kg (or lbs), height in cm (or in). Units default to kg/cm.
    Returns None when height is not positive.
    """
    weight_kg = weight * _LBS_TO_KG if weight_unit == "lbs" else weight
    height_m = height * _IN_TO_M if height_unit == "in" else height / 100
    if height_m <= 0:
        return None
    return round(weight_kg / (height_m * height_m), 2)


def row_bmi(row: AlignedRow) -> float | None:
    """BMI from a row's carried-forward weight and height (None if missing)."""
    weight = row.values.get("weight")
    height = row.values.get("height")
    if weight is None or height is None:
        return None
    return compute_bmi(weight, row.units.get("weight"), height, row.units.get("height"))


def latest_bmi(progress: SubjectProgress) -> float | None:
    """BMI of the most recently dated weight and height samples."""
    weights = progress.metrics.get("weight") or []
    heights = progress.metrics.get("height") or []
    if not weights or not heights:
        return None
    # max() devuelve el primero en empate; se invierte para que gane el último
    weight = max(reversed(weights), key=lambda s: s.day)
    height = max(reversed(heights), key=lambda s: s.day)
    return compute_bmi(weight.value, weight.unit, height.value, height.unit)


def bmi_category(bmi: float) -> str:
    for upper, label in _BMI_CATEGORIES:
        if bmi < upper:
            return label
    return "Obese"


def goal_distance(current: float | None, goal: float | None) -> float:
    """Distance left to a goal (``current - goal``); 0 when either is unknown."""
    if current is None or goal is None:
        return 0.0
    return round(current - goal, 2)


def _in_unit(value: float, unit: str | None, target: str | None) -> float:
    if unit == target or unit not in _TO_BASE_UNIT or target not in _TO_BASE_UNIT:
        return value
    return value * _TO_BASE_UNIT[unit] / _TO_BASE_UNIT[target]


def _delta(
    first: float | None,
    last: float | None,
    first_unit: str | None = None,
    last_unit: str | None = None,
) -> float:
    """``last - first``, with ``last`` expressed in the unit of ``first``."""
    if first is None or last is None:
        return 0.0
    return _in_unit(last, last_unit, first_unit) - first


def window_rows(
    rows: Sequence[AlignedRow], window_months: int, today: date
) -> list[AlignedRow]:
    """Rows dated within ``[today - window_months, today]``, oldest first."""
    start = today - relativedelta(months=window_months)
    return sorted(
        (row for row in rows if start <= row.day <= today),
        key=lambda r: r.day,
    )


def compute_stats(
    rows: Sequence[AlignedRow],
    window_months: int,
    today: date | None = None,
) -> DerivedStats:
    """First-vs-last deltas over the rows inside the trailing window.

    Args:
        rows: Aligned rows (any order).
        window_months: One of 1, 3, 6 or 12.
        today: Upper bound of the window; defaults to the current date.

    Returns:
        DerivedStats; every change is 0 when fewer than two rows fall in the
        window or when either endpoint lacks the metric. When the unit of a
        metric changes inside the window (lbs to kg, in to cm) the change is
        reported in the unit of the first row.

    Raises:
        ValueError: If ``window_months`` is not a supported window.
    """
    if window_months not in WINDOW_MONTHS:
        raise ValueError(
            f"window_months must be one of {WINDOW_MONTHS}, got {window_months!r}"
        )
    today = today or date.today()
    selected = window_rows(rows, window_months, today)

    if len(selected) < 2:
        return DerivedStats(
            window_months=window_months,
            changes={metric: 0.0 for metric in METRIC_NAMES},
            rows_in_window=len(selected),
            first_date=selected[0].day if selected else None,
            last_date=selected[-1].day if selected else None,
        )

    first, last = selected[0], selected[-1]
    changes = {
        metric: _delta(
            first.values.get(metric),
            last.values.get(metric),
            first.units.get(metric),
            last.units.get(metric),
        )
        for metric in METRIC_NAMES
    }
    return DerivedStats(
        window_months=window_months,
        changes=changes,
        bmi_change=_delta(row_bmi(first), row_bmi(last)),
        rows_in_window=len(selected),
        first_date=first.day,
        last_date=last.day,
    )
