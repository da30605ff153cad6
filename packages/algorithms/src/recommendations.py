"""Next-Action Recommendations.

Scans clients (and leads) and emits a short, priority-ordered list of
suggested actions. Generation has no side effects; accepting a
recommendation is a separate, explicit step.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

import structlog

from packages.core.src.config import get_config
from packages.core.src.protocols import RecordStore
from packages.core.src.types import (
    ClientRecord,
    LeadRecord,
    LeadStatus,
    LeadTemperature,
    PaymentStatus,
    Recommendation,
    RecommendationPriority,
    RecommendationType,
)

from .health import days_since_contact
from .leads import LeadScoreCalculator, temperature_for
from .score_math import utc_now

logger = structlog.get_logger()

CONTACT_GAP_DAYS = 30
URGENT_CONTACT_GAP_DAYS = 60
LOW_ENGAGEMENT_BELOW = 30.0


class RecommendationEngine:
    """Rule-based next-action generator.

    Client rules, evaluated per client and independent of each other:
    1. No contact for more than 30 days → call (high past 60 days)
    2. Overdue payment → payment reminder (high)
    3. Engagement below 30 with open cases → email update (medium)

    Lead rule, evaluated after all clients:
    4. Hot lead still untouched (status new) → schedule a meeting (medium)

    Output is stably sorted by priority and truncated.
    """

    def __init__(
        self,
        max_recommendations: int | None = None,
        lead_calculator: LeadScoreCalculator | None = None,
        missing_contact_days: int | None = None,
    ):
        config = get_config()
        self.max_recommendations = (
            max_recommendations
            if max_recommendations is not None
            else config.max_recommendations
        )
        self.lead_calculator = lead_calculator or LeadScoreCalculator()
        self.missing_contact_days = (
            missing_contact_days
            if missing_contact_days is not None
            else config.missing_contact_days
        )

    def generate(
        self,
        clients: Iterable[ClientRecord],
        leads: Iterable[LeadRecord] = (),
        now: datetime | None = None,
    ) -> list[Recommendation]:
        """Build the prioritized recommendation list.

        Args:
            clients: Client snapshots, in display order
            leads: Lead snapshots, in display order
            now: Reference time (defaults to the current UTC time)

        Returns:
            At most ``max_recommendations`` items, high priority first
        """
        now = now or utc_now()
        recs: list[Recommendation] = []
        for client in clients:
            recs.extend(self.client_recommendations(client, now))
        for lead in leads:
            recs.extend(self.lead_recommendations(lead, now))

        # list.sort is stable: ties keep evaluation order
        recs.sort(key=lambda r: r.priority.rank)
        selected = recs[: self.max_recommendations]

        logger.debug(
            "recommendations_generated",
            candidates=len(recs),
            returned=len(selected),
        )
        return selected

    def client_recommendations(
        self, client: ClientRecord, now: datetime
    ) -> list[Recommendation]:
        recs = []
        days = days_since_contact(client, now, self.missing_contact_days)

        if days > CONTACT_GAP_DAYS:
            who = client.name or client.id
            message = (
                f"{who} has not been contacted in {days} days"
                if client.last_contact_date
                else f"{who} has never been contacted"
            )
            recs.append(
                Recommendation(
                    id=f"call-{client.id}",
                    type=RecommendationType.CALL,
                    priority=(
                        RecommendationPriority.HIGH
                        if days > URGENT_CONTACT_GAP_DAYS
                        else RecommendationPriority.MEDIUM
                    ),
                    target_id=client.id,
                    target_name=client.name,
                    message=message,
                    action="Schedule a follow-up call",
                )
            )

        if client.payment_status == PaymentStatus.OVERDUE:
            recs.append(
                Recommendation(
                    id=f"payment-{client.id}",
                    type=RecommendationType.PAYMENT,
                    priority=RecommendationPriority.HIGH,
                    target_id=client.id,
                    target_name=client.name,
                    message=f"{client.name or client.id} has overdue payments",
                    action="Send a payment reminder",
                )
            )

        if client.engagement_score < LOW_ENGAGEMENT_BELOW and client.open_cases > 0:
            recs.append(
                Recommendation(
                    id=f"engagement-{client.id}",
                    type=RecommendationType.EMAIL,
                    priority=RecommendationPriority.MEDIUM,
                    target_id=client.id,
                    target_name=client.name,
                    message=(
                        f"{client.name or client.id} shows low engagement "
                        f"with {client.open_cases} active case(s)"
                    ),
                    action="Send a case status update",
                )
            )

        return recs

    def lead_recommendations(self, lead: LeadRecord, now: datetime) -> list[Recommendation]:
        if lead.status != LeadStatus.NEW:
            return []
        score = self.lead_calculator.score(lead, now)
        if temperature_for(score) != LeadTemperature.HOT:
            return []
        return [
            Recommendation(
                id=f"meeting-{lead.id}",
                type=RecommendationType.MEETING,
                priority=RecommendationPriority.MEDIUM,
                target_id=lead.id,
                target_kind="lead",
                target_name=lead.name,
                message=f"Hot lead {lead.name or lead.id} (score {score}) has not been contacted",
                action="Schedule an initial consultation",
            )
        ]


def record_interaction(client: ClientRecord, now: datetime | None = None) -> ClientRecord:
    """Copy of the client with the interaction logged as its last contact."""
    return client.model_copy(update={"last_contact_date": now or utc_now()})


async def accept_recommendation(
    recommendation: Recommendation,
    clients: Sequence[ClientRecord],
    store: RecordStore,
    now: datetime | None = None,
) -> list[ClientRecord]:
    """Log the interaction behind an accepted client recommendation.

    The store is written first; the returned snapshot only reflects the
    interaction once it has been persisted. Store errors propagate.

    Returns:
        Updated client snapshot (unchanged for lead recommendations)
    """
    if recommendation.target_kind != "client":
        return list(clients)

    now = now or utc_now()
    await store.update_client_contact(recommendation.target_id, now)
    logger.info(
        "interaction_recorded",
        client_id=recommendation.target_id,
        recommendation=recommendation.id,
    )
    return [
        record_interaction(c, now) if c.id == recommendation.target_id else c for c in clients
    ]
