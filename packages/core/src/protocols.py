"""LexCRM Protocols - Interface definitions for external collaborators."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from .types import CaseRecord, PipelineStage


@runtime_checkable
class RecordStore(Protocol):
    """Persistent record store consumed by the engine.

    The hosting application provides the implementation (hosted datastore,
    ORM session, test double). The engine only reads snapshots and issues
    field-level writes; health scores are never written back.
    """

    async def fetch_cases(self) -> list[CaseRecord]:
        """Fetch the current case snapshot.

        Returns:
            All cases visible to the caller
        """
        ...

    async def update_case_stage(self, case_id: str, stage: PipelineStage) -> None:
        """Persist a pipeline stage change.

        Raises:
            Any exception on rejection; the caller reverts its snapshot.
        """
        ...

    async def update_client_contact(self, client_id: str, when: datetime) -> None:
        """Persist a logged interaction."""
        ...

    async def update_lead(self, lead_id: str, fields: dict[str, Any]) -> None:
        """Persist lead fields (score, status, nurture_stage)."""
        ...
