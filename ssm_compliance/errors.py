"""Error taxonomy for the deadline & alerting engine."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID

if TYPE_CHECKING:
    from ssm_compliance.obligation_types import EntityRef


class ComplianceEngineError(Exception):
    """Base class for engine errors."""


class CalculationError(ComplianceEngineError):
    """Bad or missing date data on one entity. Isolated: skip and log."""

    def __init__(self, message: str, entity_ref: EntityRef | None = None) -> None:
        super().__init__(message)
        self.entity_ref = entity_ref


class StateTransitionError(ComplianceEngineError):
    """Invalid alert status transition. Rejected and surfaced to the caller."""

    def __init__(self, alert_id: int | None, current: str, target: str) -> None:
        super().__init__(f"Alert {alert_id}: transition {current} -> {target} is not allowed")
        self.alert_id = alert_id
        self.current = current
        self.target = target


class DispatchError(ComplianceEngineError):
    """Channel-level delivery failure.

    transient=True (timeouts, 5xx, connection errors) is retried with backoff;
    transient=False (invalid recipient, 4xx) fails the job immediately.
    """

    def __init__(self, message: str, *, channel: str, transient: bool) -> None:
        super().__init__(message)
        self.channel = channel
        self.transient = transient


class SweepOverlapError(ComplianceEngineError):
    """A sweep is already running for this organization. The new invocation is rejected."""

    def __init__(self, organization_id: UUID | str) -> None:
        super().__init__(f"Sweep already running for organization {organization_id}")
        self.organization_id = organization_id


class SweepTimeoutError(ComplianceEngineError):
    """The organization sweep exceeded its execution budget."""

    def __init__(self, stage: str, elapsed: float, budget: float) -> None:
        super().__init__(f"Sweep budget exceeded at stage={stage} ({elapsed:.1f}s > {budget:.1f}s)")
        self.stage = stage
        self.elapsed = elapsed
        self.budget = budget
