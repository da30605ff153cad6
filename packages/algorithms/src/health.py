"""Client Health Scoring.

A client starts at full health and loses points for stale contact,
unpaid invoices and weak engagement. The score is derived on read and
never persisted as source of truth.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from packages.core.src.config import get_config
from packages.core.src.types import ClientRecord, PaymentStatus, RiskLevel

from .score_math import (
    ScoreBreakdown,
    accumulate,
    clamp_score,
    days_between,
    tiered_value,
    utc_now,
)

HEALTH_BASE = 100.0

# (days strictly greater than, penalty), most severe first
RECENCY_PENALTY_TIERS: tuple[tuple[float, float], ...] = (
    (60, -25.0),
    (30, -15.0),
    (14, -5.0),
)

PAYMENT_PENALTIES: dict[PaymentStatus, float] = {
    PaymentStatus.OVERDUE: -30.0,
    PaymentStatus.PENDING: -15.0,
    PaymentStatus.CURRENT: 0.0,
}

ENGAGEMENT_NEUTRAL = 50.0
ENGAGEMENT_PENALTY_PER_POINT = 0.5

# Factor reporting
STALE_CONTACT_DAYS = 30
LOW_ENGAGEMENT_FACTOR = 40.0

# Risk bands
HIGH_RISK_BELOW = 40
MEDIUM_RISK_BELOW = 70


def days_since_contact(
    client: ClientRecord,
    now: datetime,
    missing_contact_days: int | None = None,
) -> int:
    """Days since the client was last contacted.

    A client that was never contacted is treated as a gap larger than any
    recency tier.
    """
    if client.last_contact_date is None:
        if missing_contact_days is None:
            missing_contact_days = get_config().missing_contact_days
        return missing_contact_days
    return days_between(client.last_contact_date, now)


class HealthScoreCalculator:
    """Deterministic 0-100 relationship health score."""

    def __init__(self, missing_contact_days: int | None = None):
        self.missing_contact_days = (
            missing_contact_days
            if missing_contact_days is not None
            else get_config().missing_contact_days
        )

    def recency_penalty(self, days: int) -> float:
        return tiered_value(days, RECENCY_PENALTY_TIERS)

    def payment_penalty(self, status: PaymentStatus) -> float:
        return PAYMENT_PENALTIES[status]

    def engagement_penalty(self, engagement: float) -> float:
        """Each point below neutral engagement costs half a point."""
        return -max(0.0, (ENGAGEMENT_NEUTRAL - engagement) * ENGAGEMENT_PENALTY_PER_POINT)

    def score(self, client: ClientRecord, now: datetime | None = None) -> int:
        """Health score for a client snapshot."""
        return self.explain(client, now).score

    def explain(self, client: ClientRecord, now: datetime | None = None) -> ScoreBreakdown:
        """Score a client with per-factor attribution.

        Args:
            client: Client snapshot
            now: Reference time (defaults to the current UTC time)

        Returns:
            Breakdown with the clamped, rounded score
        """
        now = now or utc_now()
        days = days_since_contact(client, now, self.missing_contact_days)

        adjustments = {
            "recency": self.recency_penalty(days),
            "payment": self.payment_penalty(client.payment_status),
            "engagement": self.engagement_penalty(client.engagement_score),
        }
        total = accumulate(HEALTH_BASE, adjustments.values())

        return ScoreBreakdown(
            score=clamp_score(total),
            base=HEALTH_BASE,
            adjustments=adjustments,
            reasons=self.factors(client, days),
        )

    def factors(self, client: ClientRecord, days: int) -> list[str]:
        """Human-readable reasons a client's health is reduced."""
        factors: list[str] = []

        if client.last_contact_date is None:
            factors.append("No contact history")
        elif days > STALE_CONTACT_DAYS:
            factors.append(f"No contact in {days} days")

        if client.payment_status == PaymentStatus.OVERDUE:
            factors.append("Overdue payments")
        elif client.payment_status == PaymentStatus.PENDING:
            factors.append("Pending payments")

        if client.engagement_score < LOW_ENGAGEMENT_FACTOR:
            factors.append("Low engagement")

        if client.open_cases == 0 and client.total_cases > 0:
            factors.append("No active cases")

        return factors


class RiskClassifier:
    """Map a health score to a contiguous, exhaustive risk band."""

    @staticmethod
    def classify(health_score: float) -> RiskLevel:
        if health_score < HIGH_RISK_BELOW:
            return RiskLevel.HIGH
        if health_score < MEDIUM_RISK_BELOW:
            return RiskLevel.MEDIUM
        return RiskLevel.LOW


@dataclass
class ClientHealth:
    """Derived health view of a client."""

    client: ClientRecord
    health_score: int
    risk_level: RiskLevel
    factors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.client.id,
            "name": self.client.name,
            "health_score": self.health_score,
            "risk_level": self.risk_level.value,
            "factors": self.factors,
        }


def assess_clients(
    clients: Iterable[ClientRecord],
    now: datetime | None = None,
    calculator: HealthScoreCalculator | None = None,
) -> list[ClientHealth]:
    """Score and classify every client in the given order."""
    calculator = calculator or HealthScoreCalculator()
    now = now or utc_now()
    results = []
    for client in clients:
        breakdown = calculator.explain(client, now)
        results.append(
            ClientHealth(
                client=client,
                health_score=breakdown.score,
                risk_level=RiskClassifier.classify(breakdown.score),
                factors=breakdown.reasons,
            )
        )
    return results


def summarize_client_health(assessments: Iterable[ClientHealth]) -> dict[str, int]:
    """Portfolio-level health counts.

    Returns:
        total, healthy (low risk), at_risk (medium), critical (high) and the
        rounded average health (100 for an empty portfolio)
    """
    items = list(assessments)
    total = len(items)
    average = (
        clamp_score(sum(a.health_score for a in items) / total) if total else int(HEALTH_BASE)
    )
    return {
        "total": total,
        "healthy": sum(1 for a in items if a.risk_level == RiskLevel.LOW),
        "at_risk": sum(1 for a in items if a.risk_level == RiskLevel.MEDIUM),
        "critical": sum(1 for a in items if a.risk_level == RiskLevel.HIGH),
        "average_health": average,
    }
