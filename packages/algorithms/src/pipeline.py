"""Case Pipeline State and Aggregates.

Cases sit in one of six fixed stages and may move from any stage to any
other. Stage aggregates (count, total value, probability-weighted value)
are recomputed from the case snapshot, never tracked incrementally.

Transitions are pure: they take a snapshot and return a new one.
``OptimisticPipeline`` layers the optimistic-update-then-confirm protocol
on top for callers that own a mutable view backed by a record store.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from packages.core.src.errors import InvalidStageError, PersistenceError, RecordNotFoundError
from packages.core.src.protocols import RecordStore
from packages.core.src.types import (
    CaseRecord,
    CaseStatus,
    PipelineAggregate,
    PipelineStage,
    StageAggregate,
)

logger = structlog.get_logger()

PIPELINE_STAGES: tuple[PipelineStage, ...] = tuple(PipelineStage)


class AggregateStatsComputer:
    """Reduce a case collection into per-stage and portfolio aggregates.

    Only active cases participate; on-hold and closed cases are excluded.
    """

    @staticmethod
    def participates(case: CaseRecord) -> bool:
        return case.status == CaseStatus.ACTIVE

    def stage_aggregate(self, cases: Iterable[CaseRecord], stage: PipelineStage) -> StageAggregate:
        count = 0
        total_value = 0.0
        weighted_value = 0.0
        for case in cases:
            if case.pipeline_stage != stage or not self.participates(case):
                continue
            count += 1
            total_value += case.expected_value
            weighted_value += case.weighted_value
        return StageAggregate(
            stage=stage,
            count=count,
            total_value=total_value,
            weighted_value=weighted_value,
        )

    def compute(self, cases: Iterable[CaseRecord]) -> PipelineAggregate:
        """Aggregate every stage of the catalog."""
        cases = list(cases)
        return self._with_totals(
            {stage: self.stage_aggregate(cases, stage) for stage in PIPELINE_STAGES}
        )

    def recompute_stages(
        self,
        aggregate: PipelineAggregate,
        cases: Iterable[CaseRecord],
        stages: Iterable[PipelineStage],
    ) -> PipelineAggregate:
        """Refresh only the given stages and the portfolio totals."""
        cases = list(cases)
        refreshed = dict(aggregate.stages)
        for stage in set(stages):
            refreshed[stage] = self.stage_aggregate(cases, stage)
        return self._with_totals(refreshed)

    @staticmethod
    def _with_totals(stages: dict[PipelineStage, StageAggregate]) -> PipelineAggregate:
        ordered = {stage: stages[stage] for stage in PIPELINE_STAGES}
        return PipelineAggregate(
            stages=ordered,
            total_count=sum(a.count for a in ordered.values()),
            total_value=sum(a.total_value for a in ordered.values()),
            weighted_value=sum(a.weighted_value for a in ordered.values()),
        )


@dataclass(frozen=True)
class TransitionResult:
    """Outcome of a stage transition: the new snapshot and its aggregates."""

    case_id: str
    previous_stage: PipelineStage
    stage: PipelineStage
    cases: tuple[CaseRecord, ...]
    aggregate: PipelineAggregate

    @property
    def changed(self) -> bool:
        return self.previous_stage != self.stage

    def to_dict(self) -> dict[str, Any]:
        return {
            "case_id": self.case_id,
            "previous_stage": self.previous_stage.value,
            "stage": self.stage.value,
            "aggregate": self.aggregate.to_dict(),
        }


class PipelineStateMachine:
    """Fixed stage catalog with unconstrained any-to-any transitions."""

    def __init__(self, computer: AggregateStatsComputer | None = None):
        self.computer = computer or AggregateStatsComputer()

    @property
    def stages(self) -> tuple[PipelineStage, ...]:
        return PIPELINE_STAGES

    def validate_stage(self, stage: PipelineStage | str) -> PipelineStage:
        """Resolve a stage id against the catalog.

        Raises:
            InvalidStageError: stage is not in the catalog
        """
        try:
            return PipelineStage(stage)
        except ValueError:
            raise InvalidStageError(str(stage), [s.value for s in PIPELINE_STAGES]) from None

    def apply_transition(
        self,
        cases: Sequence[CaseRecord],
        case_id: str,
        target_stage: PipelineStage | str,
        aggregate: PipelineAggregate | None = None,
    ) -> TransitionResult:
        """Move a case to another stage.

        Args:
            cases: Current case snapshot (not modified)
            case_id: Case to move
            target_stage: Destination stage id
            aggregate: Aggregate matching ``cases``; computed when omitted

        Returns:
            New snapshot with source and destination stages recomputed

        Raises:
            InvalidStageError: target is not in the catalog
            RecordNotFoundError: no case with ``case_id`` in the snapshot
        """
        target = self.validate_stage(target_stage)

        index = next((i for i, c in enumerate(cases) if c.id == case_id), None)
        if index is None:
            raise RecordNotFoundError("case", case_id)

        current = cases[index]
        updated = list(cases)
        updated[index] = current.model_copy(update={"pipeline_stage": target})

        if aggregate is None:
            new_aggregate = self.computer.compute(updated)
        else:
            new_aggregate = self.computer.recompute_stages(
                aggregate, updated, (current.pipeline_stage, target)
            )

        return TransitionResult(
            case_id=case_id,
            previous_stage=current.pipeline_stage,
            stage=target,
            cases=tuple(updated),
            aggregate=new_aggregate,
        )

    def cases_in_stage(
        self, cases: Iterable[CaseRecord], stage: PipelineStage | str
    ) -> list[CaseRecord]:
        """Active cases currently in a stage, in snapshot order."""
        target = self.validate_stage(stage)
        return [
            c for c in cases if c.pipeline_stage == target and self.computer.participates(c)
        ]


class OptimisticPipeline:
    """Case board that applies transitions locally before the store confirms.

    On a rejected or cancelled write the transition is compensated in full
    (case stage and aggregates) before the error reaches the caller. Moves
    still awaiting confirmation survive a refetch-based revert of another
    case. Concurrent moves of the same case are not reconciled; the last
    write to the store wins.
    """

    def __init__(
        self,
        store: RecordStore,
        cases: Iterable[CaseRecord] = (),
        state_machine: PipelineStateMachine | None = None,
    ):
        self.store = store
        self.state_machine = state_machine or PipelineStateMachine()
        self._cases: tuple[CaseRecord, ...] = tuple(cases)
        self._aggregate = self.state_machine.computer.compute(self._cases)
        self._pending: dict[int, tuple[str, PipelineStage]] = {}
        self._next_token = 0

    @property
    def cases(self) -> tuple[CaseRecord, ...]:
        return self._cases

    @property
    def aggregate(self) -> PipelineAggregate:
        return self._aggregate

    @property
    def pending(self) -> list[tuple[str, PipelineStage]]:
        """Moves applied locally whose store write has not settled yet."""
        return list(self._pending.values())

    def get_case(self, case_id: str) -> CaseRecord:
        for case in self._cases:
            if case.id == case_id:
                return case
        raise RecordNotFoundError("case", case_id)

    async def refresh(self) -> PipelineAggregate:
        """Replace the local snapshot with the store's.

        Moves still awaiting confirmation are re-applied on top.
        """
        cases = tuple(await self.store.fetch_cases())
        aggregate = self.state_machine.computer.compute(cases)
        for case_id, stage in self._pending.values():
            try:
                replay = self.state_machine.apply_transition(cases, case_id, stage, aggregate)
            except RecordNotFoundError:
                continue
            cases, aggregate = replay.cases, replay.aggregate
        self._cases, self._aggregate = cases, aggregate
        return self._aggregate

    async def move(
        self,
        case_id: str,
        target_stage: PipelineStage | str,
        *,
        refetch_on_failure: bool = False,
    ) -> TransitionResult:
        """Move a case and persist the change.

        Args:
            case_id: Case to move
            target_stage: Destination stage id
            refetch_on_failure: Revert by re-reading the store instead of
                replaying the inverse transition

        Raises:
            InvalidStageError: nothing was changed
            RecordNotFoundError: nothing was changed
            PersistenceError: store rejected the write; local state reverted
            asyncio.CancelledError: move was cancelled; local state reverted
        """
        try:
            result = self.state_machine.apply_transition(
                self._cases, case_id, target_stage, self._aggregate
            )
        except (InvalidStageError, RecordNotFoundError) as e:
            logger.warning(
                "pipeline_transition_rejected",
                case_id=case_id,
                target_stage=str(target_stage),
                error=e.code,
            )
            raise

        self._cases, self._aggregate = result.cases, result.aggregate
        token = self._next_token
        self._next_token += 1
        self._pending[token] = (case_id, result.stage)

        try:
            await self.store.update_case_stage(case_id, result.stage)
        except Exception as e:
            del self._pending[token]
            await self._revert(result, refetch_on_failure)
            logger.error(
                "pipeline_transition_reverted",
                case_id=case_id,
                from_stage=result.previous_stage.value,
                to_stage=result.stage.value,
                error=str(e),
            )
            raise PersistenceError("update_case_stage", case_id, cause=e) from e
        except BaseException:
            # Cancelled mid-write: undo locally without awaiting again
            del self._pending[token]
            self._replay_inverse(result)
            logger.warning(
                "pipeline_transition_cancelled",
                case_id=case_id,
                from_stage=result.previous_stage.value,
                to_stage=result.stage.value,
            )
            raise

        del self._pending[token]
        logger.info(
            "pipeline_transition_applied",
            case_id=case_id,
            from_stage=result.previous_stage.value,
            to_stage=result.stage.value,
        )
        return result

    async def _revert(self, result: TransitionResult, refetch: bool) -> None:
        if refetch:
            try:
                await self.refresh()
                return
            except Exception as e:
                logger.warning("pipeline_refetch_failed", case_id=result.case_id, error=str(e))
        self._replay_inverse(result)

    def _replay_inverse(self, result: TransitionResult) -> None:
        inverse = self.state_machine.apply_transition(
            self._cases, result.case_id, result.previous_stage, self._aggregate
        )
        self._cases, self._aggregate = inverse.cases, inverse.aggregate
