"""Lead Scoring and Nurture Progression.

Scores inbound leads on acquisition channel, contact completeness,
message richness and freshness, and maps the score to a temperature.
Lifecycle helpers return updated copies; persistence belongs to the caller.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import Any

import structlog

from packages.core.src.errors import InvalidTransitionError
from packages.core.src.protocols import RecordStore
from packages.core.src.types import (
    CasePriority,
    CaseRecord,
    CaseStatus,
    ClientRecord,
    LeadRecord,
    LeadStatus,
    LeadTemperature,
    NurtureStage,
    PipelineStage,
    SourceQuality,
)

from .score_math import ScoreBreakdown, accumulate, clamp, hours_between, tiered_value, utc_now

logger = structlog.get_logger()

LEAD_BASE = 20.0
LEAD_MAX = 100.0

REFERRAL_ORIGINS = frozenset({"referido", "referral"})
PUBLIC_PROFILE_ORIGINS = frozenset({"perfil_publico", "profile"})
WEB_ORIGINS = frozenset({"web", "website"})

ORIGIN_BONUS_REFERRAL = 30.0
ORIGIN_BONUS_PUBLIC_PROFILE = 20.0
ORIGIN_BONUS_WEB = 10.0

PHONE_BONUS = 15.0

# (characters strictly greater than, bonus)
MESSAGE_BONUS_TIERS: tuple[tuple[float, float], ...] = (
    (200, 15.0),
    (100, 10.0),
)

# (hours strictly less than, bonus)
RECENCY_BONUS_TIERS: tuple[tuple[float, float], ...] = (
    (24, 20.0),
    (72, 10.0),
)

HOT_AT = 70
WARM_AT = 40

NURTURE_SEQUENCE: tuple[NurtureStage, ...] = tuple(NurtureStage)

NEW_CASE_PROBABILITY = 50.0


def normalize_origin(origin: str | None) -> str:
    return (origin or "").strip().lower()


def classify_source_quality(origin: str | None) -> SourceQuality:
    """Quality of an acquisition channel."""
    tag = normalize_origin(origin)
    if tag in REFERRAL_ORIGINS:
        return SourceQuality.EXCELLENT
    if tag in PUBLIC_PROFILE_ORIGINS:
        return SourceQuality.GOOD
    if tag in WEB_ORIGINS:
        return SourceQuality.AVERAGE
    return SourceQuality.UNKNOWN


def temperature_for(score: float) -> LeadTemperature:
    """Map a lead score to its temperature band."""
    if score >= HOT_AT:
        return LeadTemperature.HOT
    if score >= WARM_AT:
        return LeadTemperature.WARM
    return LeadTemperature.COLD


class LeadScoreCalculator:
    """Deterministic 0-100 lead score.

    Bonuses are additive on top of a base of 20; the sum is capped at 100.
    """

    ORIGIN_BONUSES = {
        SourceQuality.EXCELLENT: ORIGIN_BONUS_REFERRAL,
        SourceQuality.GOOD: ORIGIN_BONUS_PUBLIC_PROFILE,
        SourceQuality.AVERAGE: ORIGIN_BONUS_WEB,
        SourceQuality.UNKNOWN: 0.0,
    }

    def origin_bonus(self, origin: str | None) -> float:
        return self.ORIGIN_BONUSES[classify_source_quality(origin)]

    def phone_bonus(self, phone: str | None) -> float:
        return PHONE_BONUS if phone and phone.strip() else 0.0

    def message_bonus(self, message: str | None) -> float:
        """Length tiers count Unicode code points, not UTF-16 units."""
        return tiered_value(len(message or ""), MESSAGE_BONUS_TIERS)

    def recency_bonus(self, created_at: datetime, now: datetime) -> float:
        return tiered_value(hours_between(created_at, now), RECENCY_BONUS_TIERS, above=False)

    def explain(self, lead: LeadRecord, now: datetime | None = None) -> ScoreBreakdown:
        """Score a lead with per-factor attribution.

        Args:
            lead: Lead snapshot
            now: Reference time (defaults to the current UTC time)

        Returns:
            Breakdown with the capped score
        """
        now = now or utc_now()
        adjustments = {
            "origin": self.origin_bonus(lead.origin),
            "phone": self.phone_bonus(lead.phone),
            "message": self.message_bonus(lead.message),
            "recency": self.recency_bonus(lead.created_at, now),
        }
        reasons = []
        if adjustments["origin"]:
            reasons.append(f"Origin '{normalize_origin(lead.origin)}'")
        if adjustments["phone"]:
            reasons.append("Phone number provided")
        if adjustments["message"]:
            reasons.append("Detailed message")
        if adjustments["recency"]:
            reasons.append("Recent inquiry")

        total = clamp(accumulate(LEAD_BASE, adjustments.values()), 0.0, LEAD_MAX)
        return ScoreBreakdown(
            score=int(total),
            base=LEAD_BASE,
            adjustments=adjustments,
            reasons=reasons,
        )

    def score(self, lead: LeadRecord, now: datetime | None = None) -> int:
        """Lead score for a snapshot."""
        return self.explain(lead, now).score

    def temperature(self, lead: LeadRecord, now: datetime | None = None) -> LeadTemperature:
        return temperature_for(self.score(lead, now))


def summarize_leads(
    leads: Iterable[LeadRecord],
    now: datetime | None = None,
    calculator: LeadScoreCalculator | None = None,
) -> dict[str, int]:
    """Count leads per temperature band."""
    calculator = calculator or LeadScoreCalculator()
    now = now or utc_now()
    counts = {t: 0 for t in LeadTemperature}
    total = 0
    for lead in leads:
        counts[calculator.temperature(lead, now)] += 1
        total += 1
    return {
        "total": total,
        "hot": counts[LeadTemperature.HOT],
        "warm": counts[LeadTemperature.WARM],
        "cold": counts[LeadTemperature.COLD],
    }


def update_lead_status(lead: LeadRecord, status: LeadStatus | str) -> LeadRecord:
    """Move a lead to a new status. Converted and lost are final."""
    target = LeadStatus(status)
    if lead.status.is_terminal and target != lead.status:
        raise InvalidTransitionError(lead.id, lead.status.value, target.value)
    return lead.model_copy(update={"status": target})


def advance_nurture_stage(lead: LeadRecord) -> LeadRecord:
    """Move a lead one step along the nurture sequence.

    Leads already in negotiation stay there.
    """
    if lead.status.is_terminal:
        raise InvalidTransitionError(lead.id, lead.status.value, "nurture")
    position = NURTURE_SEQUENCE.index(lead.nurture_stage)
    if position == len(NURTURE_SEQUENCE) - 1:
        return lead
    return lead.model_copy(update={"nurture_stage": NURTURE_SEQUENCE[position + 1]})


def convert_lead(
    lead: LeadRecord,
    *,
    client_id: str,
    case_id: str,
    case_title: str | None = None,
    estimated_value: float | None = None,
) -> tuple[LeadRecord, ClientRecord, CaseRecord]:
    """Convert a lead into a client with an opening case.

    Args:
        lead: Lead being converted
        client_id: Identifier assigned to the new client
        case_id: Identifier assigned to the new case
        case_title: Case title (defaults to "Case <lead name>")
        estimated_value: Expected case value (defaults to the lead's estimate)

    Returns:
        (converted lead, new client, new case)
    """
    converted = update_lead_status(lead, LeadStatus.CONVERTED)
    client = ClientRecord(id=client_id, name=lead.name, email=lead.email)
    value = lead.estimated_case_value if estimated_value is None else estimated_value
    case = CaseRecord(
        id=case_id,
        client_id=client_id,
        title=case_title or f"Case {lead.name}".strip(),
        pipeline_stage=PipelineStage.INICIAL,
        expected_value=value,
        probability=NEW_CASE_PROBABILITY,
        priority=CasePriority.MEDIUM,
        status=CaseStatus.ACTIVE,
    )
    return converted, client, case


async def rescore_leads(
    leads: Iterable[LeadRecord],
    store: RecordStore,
    now: datetime | None = None,
    calculator: LeadScoreCalculator | None = None,
) -> list[dict[str, Any]]:
    """Score open leads and write the scores back.

    Leads in a terminal status are skipped. A failed write is logged and the
    lead is left out of the results; remaining leads are still processed.

    Returns:
        One entry per persisted lead with previous/new score and temperature
    """
    calculator = calculator or LeadScoreCalculator()
    now = now or utc_now()
    results = []
    for lead in leads:
        if lead.status.is_terminal:
            continue
        new_score = calculator.score(lead, now)
        try:
            await store.update_lead(lead.id, {"score": new_score})
        except Exception as e:
            logger.error("lead_score_persist_failed", lead_id=lead.id, error=str(e))
            continue
        results.append(
            {
                "id": lead.id,
                "name": lead.name,
                "previous_score": lead.score or 0,
                "new_score": new_score,
                "source_quality": classify_source_quality(lead.origin).value,
                "temperature": temperature_for(new_score).value,
            }
        )
    logger.info("leads_rescored", scored=len(results))
    return results
