"""Pytest configuration and fixtures for LexCRM tests."""

import asyncio
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest

from packages.core.src.config import clear_config_cache
from packages.core.src.types import (
    CaseRecord,
    ClientRecord,
    LeadRecord,
    PipelineStage,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=UTC)


class InMemoryRecordStore:
    """Record store double that can be told to reject writes."""

    def __init__(self, cases: list[CaseRecord] | None = None):
        self.cases: dict[str, CaseRecord] = {c.id: c for c in cases or []}
        self.fail_writes = False
        self.fail_fetches = False
        self.stage_writes: list[tuple[str, PipelineStage]] = []
        self.contact_writes: list[tuple[str, datetime]] = []
        self.lead_writes: list[tuple[str, dict[str, Any]]] = []
        self.failing_leads: set[str] = set()
        self.failing_cases: set[str] = set()
        self.write_gates: dict[str, asyncio.Event] = {}

    async def fetch_cases(self) -> list[CaseRecord]:
        if self.fail_fetches:
            raise ConnectionError("store unavailable")
        return list(self.cases.values())

    async def update_case_stage(self, case_id: str, stage: PipelineStage) -> None:
        if case_id in self.write_gates:
            await self.write_gates[case_id].wait()
        if self.fail_writes or case_id in self.failing_cases:
            raise ConnectionError("write rejected")
        self.stage_writes.append((case_id, stage))
        self.cases[case_id] = self.cases[case_id].model_copy(update={"pipeline_stage": stage})

    async def update_client_contact(self, client_id: str, when: datetime) -> None:
        if self.fail_writes:
            raise ConnectionError("write rejected")
        self.contact_writes.append((client_id, when))

    async def update_lead(self, lead_id: str, fields: dict[str, Any]) -> None:
        if self.fail_writes or lead_id in self.failing_leads:
            raise ConnectionError("write rejected")
        self.lead_writes.append((lead_id, fields))


@pytest.fixture(autouse=True)
def fresh_config():
    """Reload configuration for every test."""
    clear_config_cache()
    yield
    clear_config_cache()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def make_client() -> Callable[..., ClientRecord]:
    def _make(client_id: str = "client-1", days_ago: float | None = 5, **kwargs: Any):
        last_contact = NOW - timedelta(days=days_ago) if days_ago is not None else None
        name = kwargs.pop("name", f"Client {client_id}")
        return ClientRecord(
            id=client_id,
            name=name,
            last_contact_date=last_contact,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_lead() -> Callable[..., LeadRecord]:
    def _make(lead_id: str = "lead-1", hours_ago: float = 100, **kwargs: Any):
        name = kwargs.pop("name", f"Lead {lead_id}")
        return LeadRecord(
            id=lead_id,
            name=name,
            created_at=NOW - timedelta(hours=hours_ago),
            **kwargs,
        )

    return _make


@pytest.fixture
def make_case() -> Callable[..., CaseRecord]:
    def _make(case_id: str = "case-1", **kwargs: Any):
        client_id = kwargs.pop("client_id", "client-1")
        return CaseRecord(id=case_id, client_id=client_id, **kwargs)

    return _make


@pytest.fixture
def sample_cases(make_case) -> list[CaseRecord]:
    return [
        make_case("case-1", pipeline_stage="inicial", expected_value=5_000_000, probability=80),
        make_case("case-2", pipeline_stage="inicial", expected_value=1_000_000, probability=50),
        make_case("case-3", pipeline_stage="audiencias", expected_value=2_500_000, probability=30),
        make_case(
            "case-4",
            pipeline_stage="cobro",
            expected_value=9_000_000,
            probability=90,
            status="on_hold",
        ),
        make_case(
            "case-5",
            pipeline_stage="en_curso",
            expected_value=750_000,
            probability=None,
            status="closed",
        ),
    ]


@pytest.fixture
def store(sample_cases) -> InMemoryRecordStore:
    return InMemoryRecordStore(sample_cases)
