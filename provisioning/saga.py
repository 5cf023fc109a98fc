"""Ordered provisioning steps with paired compensations.

The backing store offers no transaction spanning several resource kinds, so a
provisioning run is a saga: steps execute strictly in order, each successful
step is pushed on a stack together with the ids it produced, and the first
failure unwinds that stack in reverse order. A run is single-attempt: a failed
step is never retried and a compensated run cannot be resumed.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence

from provisioning.errors import CompensationError, ProvisioningCancelled, ProvisioningStepError

logger = logging.getLogger("provisioning.saga")


class CancellationToken:
    """
    Cooperative cancellation for one run. Checked at every step boundary; an
    expired deadline counts as a cancellation.
    """

    def __init__(self, timeout_seconds: Optional[float] = None, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._event = threading.Event()
        self._reason: Optional[str] = None
        self.deadline = clock() + timeout_seconds if timeout_seconds else None

    def cancel(self, reason: str = "cancelled by caller") -> None:
        self._reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or (self.deadline is not None and self._clock() >= self.deadline)

    def raise_if_cancelled(self, step_name: str) -> None:
        if self._event.is_set():
            raise ProvisioningCancelled(f"{self._reason} before step '{step_name}'")
        if self.deadline is not None and self._clock() >= self.deadline:
            raise ProvisioningCancelled(f"deadline exceeded before step '{step_name}'")


@dataclass
class ProvisioningContext:
    """Mutable state shared by the steps of one run. The blueprint itself is never modified."""

    blueprint: Any
    store: Any
    cancellation: CancellationToken = field(default_factory=CancellationToken)
    project_id: Optional[str] = None
    phase_ids: List[str] = field(default_factory=list)
    produced: Dict[str, List[str]] = field(default_factory=dict)


@dataclass(frozen=True)
class Step:
    """
    apply(ctx, produced) performs the forward action and returns the ids it
    created. Steps that insert in several calls append ids to ``produced`` as
    they go, so a step failing halfway can still be undone.
    compensate(ctx, ids) deletes exactly those ids.
    """

    name: str
    apply: Callable[[ProvisioningContext, List[str]], Sequence[str]]
    compensate: Callable[[ProvisioningContext, List[str]], Any]


@dataclass(frozen=True)
class CompletedStep:
    step: Step
    produced_ids: List[str]


@dataclass
class CompensationRecord:
    step_name: str
    produced_ids: List[str]
    status: str  # compensated, failed, nothing_to_undo
    error: Optional[CompensationError] = None


@dataclass
class CompensationOutcome:
    records: List[CompensationRecord] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return all(r.status != "failed" for r in self.records)

    @property
    def failures(self) -> List[CompensationError]:
        return [r.error for r in self.records if r.error is not None]

    def summary(self) -> Dict[str, Any]:
        return {
            "complete": self.complete,
            "steps": [
                {"step": r.step_name, "status": r.status, "ids": list(r.produced_ids)}
                for r in self.records
            ],
        }


class ProvisioningOrchestrator:
    def __init__(self, steps: Sequence[Step]):
        names = [s.name for s in steps]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate step names: {names}")
        self.steps = list(steps)

    def run(self, ctx: ProvisioningContext) -> List[CompletedStep]:
        completed: List[CompletedStep] = []

        for step in self.steps:
            produced: List[str] = []
            try:
                ctx.cancellation.raise_if_cancelled(step.name)
                logger.info("[saga] %s: start", step.name)
                result = step.apply(ctx, produced)
            except Exception as e:
                logger.error("[saga] %s failed: %s", step.name, e)
                outcome = self._unwind(ctx, step, produced, completed, e)
                raise ProvisioningStepError(step.name, e, outcome) from e

            ids = [str(i) for i in (result if result is not None else produced)]
            ctx.produced[step.name] = ids
            completed.append(CompletedStep(step, ids))
            if ids:
                logger.info("[saga] %s: done (%d id(s))", step.name, len(ids))
            else:
                logger.info("[saga] %s: nothing to create, skipped", step.name)

        return completed

    def _unwind(
        self,
        ctx: ProvisioningContext,
        failed_step: Step,
        partial_ids: List[str],
        completed: List[CompletedStep],
        original_error: BaseException,
    ) -> CompensationOutcome:
        outcome = CompensationOutcome()

        # rows the failing step inserted before it broke
        if partial_ids:
            outcome.records.append(self._compensate(ctx, failed_step, list(partial_ids), original_error))

        while completed:
            entry = completed.pop()
            outcome.records.append(self._compensate(ctx, entry.step, entry.produced_ids, original_error))

        if outcome.complete:
            logger.info("[saga] rollback complete after failure in %s", failed_step.name)
        else:
            logger.error(
                "[saga] rollback INCOMPLETE after failure in %s; manual cleanup needed: %s",
                failed_step.name,
                outcome.summary(),
            )
        return outcome

    def _compensate(
        self,
        ctx: ProvisioningContext,
        step: Step,
        ids: List[str],
        original_error: BaseException,
    ) -> CompensationRecord:
        if not ids:
            return CompensationRecord(step.name, [], "nothing_to_undo")
        try:
            step.compensate(ctx, ids)
            logger.info("[saga] compensated %s (%d id(s))", step.name, len(ids))
            return CompensationRecord(step.name, ids, "compensated")
        except Exception as e:
            err = CompensationError(step.name, ids, e, original_error)
            logger.error(
                "[saga] compensation of %s failed: ids=%s cause=%s original_error=%s",
                step.name,
                ids,
                e,
                original_error,
            )
            return CompensationRecord(step.name, ids, "failed", err)
