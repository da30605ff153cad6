"""LexCRM Algorithms Package.

Relationship intelligence engine: deterministic scoring, recommendations
and pipeline aggregates for the legal-practice CRM.

Layer: ANALYTICAL
- Health: client health score and risk band
- Leads: lead score, temperature, nurture progression
- Recommendations: prioritized next actions
- Pipeline: case stage transitions and stage aggregates
"""

from .health import (
    ClientHealth,
    HealthScoreCalculator,
    RiskClassifier,
    assess_clients,
    summarize_client_health,
)
from .leads import (
    LeadScoreCalculator,
    advance_nurture_stage,
    classify_source_quality,
    convert_lead,
    rescore_leads,
    summarize_leads,
    temperature_for,
    update_lead_status,
)
from .pipeline import (
    PIPELINE_STAGES,
    AggregateStatsComputer,
    OptimisticPipeline,
    PipelineStateMachine,
    TransitionResult,
)
from .portfolio import summarize_portfolio, win_rate
from .recommendations import (
    RecommendationEngine,
    accept_recommendation,
    record_interaction,
)
from .score_math import ScoreBreakdown

__all__ = [
    # Health
    "HealthScoreCalculator",
    "RiskClassifier",
    "ClientHealth",
    "assess_clients",
    "summarize_client_health",
    # Leads
    "LeadScoreCalculator",
    "classify_source_quality",
    "temperature_for",
    "summarize_leads",
    "update_lead_status",
    "advance_nurture_stage",
    "convert_lead",
    "rescore_leads",
    # Recommendations
    "RecommendationEngine",
    "record_interaction",
    "accept_recommendation",
    # Pipeline
    "PIPELINE_STAGES",
    "PipelineStateMachine",
    "AggregateStatsComputer",
    "OptimisticPipeline",
    "TransitionResult",
    # Portfolio
    "summarize_portfolio",
    "win_rate",
    # Shared
    "ScoreBreakdown",
]
