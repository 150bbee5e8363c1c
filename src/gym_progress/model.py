"""Modelos tipados para muestras de progreso y series alineadas."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

METRIC_NAMES: tuple[str, ...] = (
    "weight",
    "height",
    "bodyFat",
    "muscleMass",
    "chestMeasurement",
    "waistMeasurement",
    "armMeasurement",
    "legMeasurement",
)

MASS_UNITS: tuple[str, ...] = ("kg", "lbs")
LENGTH_UNITS: tuple[str, ...] = ("cm", "in")

# bodyFat es porcentaje: no lleva unidad
METRIC_UNITS: dict[str, tuple[str, ...]] = {
    "weight": MASS_UNITS,
    "height": LENGTH_UNITS,
    "bodyFat": (),
    "muscleMass": MASS_UNITS,
    "chestMeasurement": LENGTH_UNITS,
    "waistMeasurement": LENGTH_UNITS,
    "armMeasurement": LENGTH_UNITS,
    "legMeasurement": LENGTH_UNITS,
}


class SampleDecodeError(ValueError):
    """Raised when a raw progress sample cannot be turned into a MetricSample."""


def default_unit(metric: str) -> str | None:
    """Return the unit assumed when a sample does not carry one."""
    allowed = METRIC_UNITS.get(metric, ())
    return allowed[0] if allowed else None


@dataclass(frozen=True)
class MetricSample:
    """One recorded observation of a metric (day granularity)."""

    metric: str
    value: float
    day: date
    unit: str | None = None


@dataclass
class SubjectProgress:
    """All samples recorded for one member, grouped by metric."""

    member_id: str
    metrics: dict[str, list[MetricSample]] = field(default_factory=dict)

    def add(self, sample: MetricSample) -> None:
        """Append a sample; metric lists are created on first use."""
        self.metrics.setdefault(sample.metric, []).append(sample)

    def sample_count(self) -> int:
        return sum(len(samples) for samples in self.metrics.values())


@dataclass(frozen=True)
class AlignedRow:
    """Carried-forward value of every metric as of one date."""

    day: date
    values: dict[str, float]
    units: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class DerivedStats:
    """First-vs-last deltas over the rows of a time window."""

    window_months: int
    changes: dict[str, float]
    bmi_change: float = 0.0
    rows_in_window: int = 0
    first_date: date | None = None
    last_date: date | None = None

    @property
    def weight_change(self) -> float:
        return self.changes.get("weight", 0.0)

    @property
    def body_fat_change(self) -> float:
        return self.changes.get("bodyFat", 0.0)

    @property
    def muscle_mass_change(self) -> float:
        return self.changes.get("muscleMass", 0.0)
