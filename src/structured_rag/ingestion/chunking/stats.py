"""Descriptive statistics for numeric columns."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable


def quantile(ordered: list[float], q: float) -> float:
    """Linear-interpolation quantile of an already sorted, non-empty list."""
    pos = (len(ordered) - 1) * q
    lo, hi = math.floor(pos), math.ceil(pos)
    return ordered[lo] + (ordered[hi] - ordered[lo]) * (pos - lo)


def format_number(value: float) -> str:
    """Integers without a decimal point, everything else to two places."""
    if float(value).is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class ColumnStats:
    count: int
    min: float
    max: float
    mean: float
    median: float
    q1: float
    q3: float

    @property
    def range(self) -> float:
        return self.max - self.min

    @classmethod
    def of(cls, values: Iterable[float]) -> ColumnStats | None:
        ordered = sorted(values)
        if not ordered:
            return None
        return cls(
            count=len(ordered),
            min=ordered[0],
            max=ordered[-1],
            mean=sum(ordered) / len(ordered),
            median=quantile(ordered, 0.5),
            q1=quantile(ordered, 0.25),
            q3=quantile(ordered, 0.75),
        )

    def describe(self, name: str) -> str:
        fields = {
            "count": self.count,
            "min": self.min,
            "max": self.max,
            "avg": self.mean,
            "median": self.median,
            "q1": self.q1,
            "q3": self.q3,
            "range": self.range,
        }
        return f"{name}: " + ", ".join(f"{k}={format_number(v)}" for k, v in fields.items())
