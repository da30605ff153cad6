"""Arithmetic primitives shared by the scoring algorithms.

Same inputs → same outputs. Anything time-dependent takes an explicit
``now`` so results stay reproducible.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

SECONDS_PER_DAY = 86_400
SECONDS_PER_HOUR = 3_600

SCORE_MIN = 0.0
SCORE_MAX = 100.0


@dataclass
class ScoreBreakdown:
    """Explainable score: final value plus the adjustments that produced it."""

    score: int
    base: float
    adjustments: dict[str, float] = field(default_factory=dict)
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": self.score,
            "base": self.base,
            "adjustments": {k: round(v, 2) for k, v in self.adjustments.items()},
            "reasons": self.reasons,
        }


def utc_now() -> datetime:
    """Current time, timezone-aware."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def clamp(value: float, low: float = SCORE_MIN, high: float = SCORE_MAX) -> float:
    """Clamp value into [low, high]."""
    return max(low, min(high, value))


def clamp_score(value: float) -> int:
    """Clamp to [0, 100] and round to the nearest integer."""
    # round() is banker's rounding; scores round half up
    return int(clamp(value) + 0.5)


def accumulate(base: float, adjustments: Iterable[float]) -> float:
    """Apply signed adjustments (penalties negative, bonuses positive) to a base."""
    total = base
    for adjustment in adjustments:
        total += adjustment
    return total


def days_between(then: datetime, now: datetime) -> int:
    """Whole days elapsed from ``then`` to ``now``; future timestamps count as 0."""
    elapsed = (ensure_aware(now) - ensure_aware(then)).total_seconds()
    return max(0, int(elapsed // SECONDS_PER_DAY))


def hours_between(then: datetime, now: datetime) -> float:
    """Fractional hours elapsed from ``then`` to ``now``; never negative."""
    elapsed = (ensure_aware(now) - ensure_aware(then)).total_seconds()
    return max(0.0, elapsed / SECONDS_PER_HOUR)


def tiered_value(
    measure: float,
    tiers: Sequence[tuple[float, float]],
    *,
    above: bool = True,
    default: float = 0.0,
) -> float:
    """Look up the value of the first matching tier.

    Args:
        measure: Quantity being bucketed
        tiers: ``(threshold, value)`` pairs, most extreme threshold first
        above: Match when ``measure > threshold`` (True) or ``measure < threshold`` (False)
        default: Value when no tier matches

    Returns:
        Value of the first tier whose threshold is crossed
    """
    for threshold, value in tiers:
        if (measure > threshold) if above else (measure < threshold):
            return value
    return default
