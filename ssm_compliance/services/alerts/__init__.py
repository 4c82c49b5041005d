"""Alert state machine, reconciliation and user actions."""

from ssm_compliance.services.alerts.alert_actions import (
    acknowledge_alert,
    dismiss_alert,
    resolve_alert,
)
from ssm_compliance.services.alerts.reconciliation import (
    AlertTransition,
    apply_transitions,
    load_alert_state,
    reconcile,
)
from ssm_compliance.services.alerts.state_machine import ALLOWED_TRANSITIONS, transition

__all__ = [
    "ALLOWED_TRANSITIONS",
    "AlertTransition",
    "acknowledge_alert",
    "apply_transitions",
    "dismiss_alert",
    "load_alert_state",
    "reconcile",
    "resolve_alert",
    "transition",
]
