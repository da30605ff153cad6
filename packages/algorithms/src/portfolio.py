"""Portfolio metrics for dashboard summaries."""

from __future__ import annotations

from collections.abc import Iterable

from packages.core.src.config import get_config
from packages.core.src.types import CaseRecord, LeadRecord, LeadStatus

from .pipeline import AggregateStatsComputer
from .score_math import clamp_score


def win_rate(leads: Iterable[LeadRecord]) -> int:
    """Converted share of closed leads, as a rounded percentage (0 when none closed)."""
    converted = lost = 0
    for lead in leads:
        if lead.status == LeadStatus.CONVERTED:
            converted += 1
        elif lead.status == LeadStatus.LOST:
            lost += 1
    closed = converted + lost
    return clamp_score(converted / closed * 100) if closed else 0


def summarize_portfolio(
    cases: Iterable[CaseRecord],
    leads: Iterable[LeadRecord] = (),
    at_risk_threshold: float | None = None,
    computer: AggregateStatsComputer | None = None,
) -> dict[str, float | int]:
    """Headline numbers for the active case portfolio.

    Args:
        cases: Case snapshot (inactive cases are ignored)
        leads: Lead snapshot, used for the win rate
        at_risk_threshold: Case health below which a case is at risk
        computer: Aggregator to use

    Returns:
        active_cases, pipeline_value, weighted_value, average_case_health,
        cases_at_risk, win_rate
    """
    computer = computer or AggregateStatsComputer()
    if at_risk_threshold is None:
        at_risk_threshold = get_config().at_risk_case_health_threshold

    cases = list(cases)
    aggregate = computer.compute(cases)
    active = [c for c in cases if computer.participates(c)]

    average_health = (
        clamp_score(sum(c.health_score for c in active) / len(active)) if active else 100
    )
    return {
        "active_cases": aggregate.total_count,
        "pipeline_value": aggregate.total_value,
        "weighted_value": aggregate.weighted_value,
        "average_case_health": average_health,
        "cases_at_risk": sum(1 for c in active if c.health_score < at_risk_threshold),
        "win_rate": win_rate(leads),
    }
