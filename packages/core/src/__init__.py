"""LexCRM Core Package - Types, Config, Errors, and Protocols."""

from .config import EngineConfig, Environment, clear_config_cache, get_config
from .errors import (
    IntegrationError,
    InvalidStageError,
    InvalidTransitionError,
    LexCRMError,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from .protocols import RecordStore
from .types import (
    CasePriority,
    CaseRecord,
    CaseStatus,
    ClientRecord,
    ClientStatus,
    LeadRecord,
    LeadStatus,
    LeadTemperature,
    NurtureStage,
    PaymentStatus,
    PipelineAggregate,
    PipelineStage,
    Recommendation,
    RecommendationPriority,
    RecommendationType,
    RiskLevel,
    SourceQuality,
    StageAggregate,
)

__all__ = [
    # Config
    "EngineConfig",
    "Environment",
    "get_config",
    "clear_config_cache",
    # Errors
    "LexCRMError",
    "ValidationError",
    "InvalidStageError",
    "InvalidTransitionError",
    "RecordNotFoundError",
    "IntegrationError",
    "PersistenceError",
    # Enums
    "PaymentStatus",
    "RiskLevel",
    "ClientStatus",
    "LeadStatus",
    "LeadTemperature",
    "SourceQuality",
    "NurtureStage",
    "PipelineStage",
    "CasePriority",
    "CaseStatus",
    "RecommendationType",
    "RecommendationPriority",
    # Records
    "ClientRecord",
    "LeadRecord",
    "CaseRecord",
    "Recommendation",
    "StageAggregate",
    "PipelineAggregate",
    # Protocols
    "RecordStore",
]
