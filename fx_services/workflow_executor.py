"""
fx_services.workflow_executor -- Workflow transition gatekeeping.

Responsibility:
    Decide whether an action may run against an entity in its current
    state: find the declared transition, check its capability through the
    ``AuthorizationPort`` and evaluate its guard.  Every decision is
    written as a ``workflow_transition`` trace record.

Architecture position:
    Services layer.  Consumes declarative ``Workflow`` definitions from
    ``fx_modules.*.workflows`` and the ``AuthorizationPort``.  Performs no
    persistence: the caller mutates the store only after ``authorize``
    returns, then reports the status it re-read via ``record_outcome``.

Invariants enforced:
    - A rejected action raises before any store call (no partial mutation).
    - The executor never asserts a resulting state; for externally
      confirmed transitions the observed state is whatever the store says.

Failure modes:
    - PreconditionFailedError when no transition exists from the current
      state or a guard does not hold.
    - ForbiddenError when the transition's capability is not granted.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from fx_kernel.domain.workflow import Guard, Transition, Workflow
from fx_kernel.exceptions import ForbiddenError, PreconditionFailedError
from fx_kernel.logging_config import LogContext, get_logger
from fx_services.authority import (
    AuthorizationPort,
    Capability,
    StaticCapabilities,
    require_capability,
)

logger = get_logger("services.workflow_executor")

TRACE_TYPE_WORKFLOW_TRANSITION = "WORKFLOW_TRANSITION"
OUTCOME_SUCCESS = "success"
OUTCOME_NOT_ADVANCED = "not_advanced"
OUTCOME_GUARD_FAILED = "guard_failed"
OUTCOME_NO_TRANSITION = "no_transition"
OUTCOME_FORBIDDEN = "forbidden"


def _emit_workflow_trace(
    workflow_name: str,
    action: str,
    entity_type: str,
    entity_id: UUID,
    from_state: str,
    outcome: str,
    reason: str,
    duration_ms: float,
    to_state: str | None = None,
    outcome_sink: Callable[[dict], None] | None = None,
) -> None:
    """Emit a structured workflow transition record."""
    record: dict[str, Any] = {
        "trace_type": TRACE_TYPE_WORKFLOW_TRANSITION,
        "ts": datetime.now(UTC).isoformat(),
        "workflow": workflow_name,
        "action": action,
        "entity_type": entity_type,
        "entity_id": str(entity_id),
        "from_state": from_state,
        "outcome": outcome,
        "reason": reason,
        "duration_ms": round(duration_ms, 3),
    }
    if to_state is not None:
        record["to_state"] = to_state
    record.update(LogContext.get_all())
    logger.info("workflow_transition", extra=record)
    if outcome_sink is not None:
        outcome_sink(dict(record, message="workflow_transition"))


class GuardExecutor:
    """Evaluates named guards against a context mapping.

    Guards without a registered evaluator fall back to the boolean value of
    ``context[guard.name]``.
    """

    def __init__(self) -> None:
        self._evaluators: dict[str, Callable[[Mapping[str, Any]], bool]] = {}

    def register(
        self, guard_name: str, evaluator: Callable[[Mapping[str, Any]], bool],
    ) -> None:
        self._evaluators[guard_name] = evaluator

    def evaluate(self, guard: Guard, context: Mapping[str, Any] | None) -> bool:
        ctx = context or {}
        fn = self._evaluators.get(guard.name)
        if fn is None:
            return bool(ctx.get(guard.name, False))
        return bool(fn(ctx))


class WorkflowExecutor:
    """Checks requested actions against a workflow before they reach the store."""

    def __init__(
        self,
        authority: AuthorizationPort | None = None,
        guard_executor: GuardExecutor | None = None,
        outcome_sink: Callable[[dict], None] | None = None,
    ) -> None:
        self._authority = authority or StaticCapabilities()
        self._guard_executor = guard_executor or GuardExecutor()
        self._outcome_sink = outcome_sink

    @property
    def authority(self) -> AuthorizationPort:
        return self._authority

    def authorize(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID,
        current_state: str,
        action: str,
        context: Mapping[str, Any] | None = None,
    ) -> Transition:
        """Return the transition for ``action`` or raise without side effects."""
        t0 = time.monotonic()

        transition = workflow.find_transition(current_state, action)
        if transition is None:
            legal_from = tuple(
                t.from_state for t in workflow.transitions if t.action == action
            )
            reason = (
                f"No transition from '{current_state}' via action '{action}' "
                f"in workflow '{workflow.name}'"
            )
            self._trace(workflow, action, entity_type, entity_id, current_state,
                        OUTCOME_NO_TRANSITION, reason, t0)
            raise PreconditionFailedError(
                action,
                "status_" + "|".join(legal_from) if legal_from else "action_declared",
                f"order is {current_state}",
            )

        if transition.requires_capability is not None:
            capability = Capability(transition.requires_capability)
            try:
                require_capability(self._authority, capability, action)
            except ForbiddenError:
                self._trace(workflow, action, entity_type, entity_id, current_state,
                            OUTCOME_FORBIDDEN, f"Capability denied: {capability.value}", t0)
                raise

        if transition.guard is not None:
            if not self._guard_executor.evaluate(transition.guard, context):
                self._trace(workflow, action, entity_type, entity_id, current_state,
                            OUTCOME_GUARD_FAILED,
                            f"Guard not satisfied: {transition.guard.name}", t0)
                raise PreconditionFailedError(
                    action, transition.guard.name, transition.guard.description,
                )

        return transition

    def record_outcome(
        self,
        workflow: Workflow,
        entity_type: str,
        entity_id: UUID,
        transition: Transition,
        observed_state: str | None,
        started_at: float | None = None,
    ) -> None:
        """Trace the state the store reported after the mutation.

        ``observed_state`` is None when the entity no longer exists.
        """
        t0 = started_at if started_at is not None else time.monotonic()
        if transition.externally_confirmed and observed_state == transition.from_state:
            outcome = OUTCOME_NOT_ADVANCED
            reason = f"Store kept '{observed_state}'"
        else:
            outcome = OUTCOME_SUCCESS
            reason = ""
        self._trace(workflow, transition.action, entity_type, entity_id,
                    transition.from_state, outcome, reason, t0,
                    to_state=observed_state if observed_state is not None else "deleted")

    def _trace(
        self,
        workflow: Workflow,
        action: str,
        entity_type: str,
        entity_id: UUID,
        from_state: str,
        outcome: str,
        reason: str,
        t0: float,
        to_state: str | None = None,
    ) -> None:
        _emit_workflow_trace(
            workflow_name=workflow.name,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            from_state=from_state,
            outcome=outcome,
            reason=reason,
            duration_ms=(time.monotonic() - t0) * 1000,
            to_state=to_state,
            outcome_sink=self._outcome_sink,
        )
