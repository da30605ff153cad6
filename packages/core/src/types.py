"""LexCRM Type Definitions.

Record snapshots consumed and produced by the relationship intelligence
engine. Records are immutable; updates are expressed as copies.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from numbers import Real
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

# =============================================================================
# Enums
# =============================================================================


class PaymentStatus(str, Enum):
    """Client billing standing."""

    CURRENT = "current"
    PENDING = "pending"
    OVERDUE = "overdue"


class RiskLevel(str, Enum):
    """Risk band derived from a health score."""

    LOW = "low"  # >= 70
    MEDIUM = "medium"  # 40 - 69
    HIGH = "high"  # < 40


class ClientStatus(str, Enum):
    """Client lifecycle status."""

    ACTIVE = "active"
    INACTIVE = "inactive"


class LeadStatus(str, Enum):
    """Lead qualification status."""

    NEW = "new"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    CONVERTED = "converted"
    LOST = "lost"

    @property
    def is_terminal(self) -> bool:
        return self in (LeadStatus.CONVERTED, LeadStatus.LOST)


class LeadTemperature(str, Enum):
    """Conversion urgency band derived from a lead score."""

    HOT = "hot"  # >= 70
    WARM = "warm"  # 40 - 69
    COLD = "cold"  # < 40


class SourceQuality(str, Enum):
    """Quality of a lead acquisition channel."""

    EXCELLENT = "excellent"
    GOOD = "good"
    AVERAGE = "average"
    UNKNOWN = "unknown"


class NurtureStage(str, Enum):
    """Outreach sequence position of a lead. Declaration order is catalog order."""

    NEW = "new"
    FIRST_CONTACT = "first_contact"
    FOLLOW_UP = "follow_up"
    MEETING_SCHEDULED = "meeting_scheduled"
    PROPOSAL_SENT = "proposal_sent"
    NEGOTIATION = "negotiation"


class PipelineStage(str, Enum):
    """Case workflow stage. Declaration order is display order."""

    INICIAL = "inicial"
    INVESTIGACION = "investigacion"
    EN_CURSO = "en_curso"
    AUDIENCIAS = "audiencias"
    RESOLUCION = "resolucion"
    COBRO = "cobro"


class CasePriority(str, Enum):
    """Case priority."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CaseStatus(str, Enum):
    """Case lifecycle status."""

    ACTIVE = "active"
    ON_HOLD = "on_hold"
    CLOSED = "closed"


class RecommendationType(str, Enum):
    """Kind of suggested next action."""

    CALL = "call"
    EMAIL = "email"
    MEETING = "meeting"
    PAYMENT = "payment"


class RecommendationPriority(str, Enum):
    """Priority tier of a recommendation."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort key: high sorts first."""
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    RecommendationPriority.HIGH: 0,
    RecommendationPriority.MEDIUM: 1,
    RecommendationPriority.LOW: 2,
}


def _as_number(value: Any) -> Any:
    """Coerce numeric strings, Decimals and other reals to float.

    Values that do not parse are returned unchanged for pydantic to reject.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (Real, Decimal)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(Decimal(value.strip()))
        except InvalidOperation:
            return value
    return value


def _clamp_percent(value: Any, default: float) -> Any:
    """Replace a missing percentage with its default and clamp it into [0, 100]."""
    if value is None:
        return default
    value = _as_number(value)
    if isinstance(value, float):
        return max(0.0, min(100.0, value))
    return value


def _non_negative(value: Any) -> Any:
    """Replace a missing or negative amount with 0."""
    if value is None:
        return 0.0
    value = _as_number(value)
    if isinstance(value, float) and value < 0:
        return 0.0
    return value


# =============================================================================
# Records
# =============================================================================


class ClientRecord(BaseModel):
    """Client or organization snapshot.

    Health score and risk level are never stored here; they are derived
    on read by the health calculator.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    email: str | None = Field(default=None)
    status: ClientStatus = Field(default=ClientStatus.ACTIVE)
    last_contact_date: datetime | None = Field(default=None)
    payment_status: PaymentStatus = Field(default=PaymentStatus.CURRENT)
    engagement_score: float = Field(default=50.0, ge=0, le=100)
    open_cases: int = Field(default=0, ge=0, description="Active cases owned by the client")
    total_cases: int = Field(default=0, ge=0)

    @field_validator("engagement_score", mode="before")
    @classmethod
    def normalize_engagement(cls, v: Any) -> Any:
        return _clamp_percent(v, 50.0)

    @field_validator("payment_status", mode="before")
    @classmethod
    def default_payment_status(cls, v: Any) -> Any:
        return PaymentStatus.CURRENT if v is None else v

    @field_validator("open_cases", "total_cases", mode="before")
    @classmethod
    def default_counts(cls, v: Any) -> Any:
        return 0 if v is None else v


class LeadRecord(BaseModel):
    """Inbound lead snapshot."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str = Field(default="")
    email: str | None = Field(default=None)
    origin: str = Field(default="", description="Acquisition channel tag")
    phone: str | None = Field(default=None)
    message: str = Field(default="")
    created_at: datetime
    status: LeadStatus = Field(default=LeadStatus.NEW)
    nurture_stage: NurtureStage = Field(default=NurtureStage.NEW)
    score: int | None = Field(default=None, ge=0, le=100, description="Last persisted score")
    estimated_case_value: float = Field(default=0.0, ge=0)

    @field_validator("origin", "message", mode="before")
    @classmethod
    def default_text(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        return LeadStatus.NEW if v is None else v

    @field_validator("nurture_stage", mode="before")
    @classmethod
    def default_nurture_stage(cls, v: Any) -> Any:
        return NurtureStage.NEW if v is None else v

    @field_validator("score", mode="before")
    @classmethod
    def clamp_score(cls, v: Any) -> Any:
        clamped = _clamp_percent(v, 0.0) if v is not None else None
        return round(clamped) if isinstance(clamped, float) else clamped

    @field_validator("estimated_case_value", mode="before")
    @classmethod
    def normalize_estimated_value(cls, v: Any) -> Any:
        return _non_negative(v)


class CaseRecord(BaseModel):
    """Legal case snapshot as tracked on the pipeline board."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    client_id: str = Field(..., min_length=1)
    title: str = Field(default="")
    pipeline_stage: PipelineStage = Field(default=PipelineStage.INICIAL)
    expected_value: float = Field(default=0.0, ge=0)
    probability: float = Field(default=50.0, ge=0, le=100)
    health_score: float = Field(default=100.0, ge=0, le=100)
    priority: CasePriority = Field(default=CasePriority.MEDIUM)
    status: CaseStatus = Field(default=CaseStatus.ACTIVE)

    @field_validator("pipeline_stage", mode="before")
    @classmethod
    def default_stage(cls, v: Any) -> Any:
        return PipelineStage.INICIAL if v is None else v

    @field_validator("expected_value", mode="before")
    @classmethod
    def normalize_expected_value(cls, v: Any) -> Any:
        return _non_negative(v)

    @field_validator("probability", mode="before")
    @classmethod
    def normalize_probability(cls, v: Any) -> Any:
        return _clamp_percent(v, 50.0)

    @field_validator("health_score", mode="before")
    @classmethod
    def normalize_health(cls, v: Any) -> Any:
        return _clamp_percent(v, 100.0)

    @field_validator("priority", mode="before")
    @classmethod
    def default_priority(cls, v: Any) -> Any:
        return CasePriority.MEDIUM if v is None else v

    @field_validator("status", mode="before")
    @classmethod
    def default_status(cls, v: Any) -> Any:
        return CaseStatus.ACTIVE if v is None else v

    @property
    def weighted_value(self) -> float:
        """Expected value discounted by probability of success."""
        return self.expected_value * self.probability / 100


# =============================================================================
# Derived values
# =============================================================================


class Recommendation(BaseModel):
    """Suggested next action. Ephemeral, recomputed on demand."""

    model_config = ConfigDict(frozen=True)

    id: str
    type: RecommendationType
    priority: RecommendationPriority
    target_id: str
    target_kind: str = Field(default="client", description="client or lead")
    target_name: str = Field(default="")
    message: str
    action: str


class StageAggregate(BaseModel):
    """Per-stage case count and value sums."""

    stage: PipelineStage
    count: int = Field(default=0, ge=0)
    total_value: float = Field(default=0.0, ge=0)
    weighted_value: float = Field(default=0.0, ge=0)


class PipelineAggregate(BaseModel):
    """Per-stage aggregates plus portfolio totals."""

    stages: dict[PipelineStage, StageAggregate]
    total_count: int = Field(default=0, ge=0)
    total_value: float = Field(default=0.0, ge=0)
    weighted_value: float = Field(default=0.0, ge=0)

    def stage(self, stage: PipelineStage | str) -> StageAggregate:
        """Aggregate for a single stage."""
        return self.stages[PipelineStage(stage)]

    def to_dict(self) -> dict[str, Any]:
        return {
            "stages": {
                s.value: {
                    "count": agg.count,
                    "total_value": round(agg.total_value, 2),
                    "weighted_value": round(agg.weighted_value, 2),
                }
                for s, agg in self.stages.items()
            },
            "total_count": self.total_count,
            "total_value": round(self.total_value, 2),
            "weighted_value": round(self.weighted_value, 2),
        }
