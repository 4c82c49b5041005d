"""Deadline calculator and severity policy."""

from ssm_compliance.services.deadlines.deadline_calculator import (
    add_months,
    classify_severity,
    compute_due_date,
    days_until_due,
    resolve_due_date,
)

__all__ = [
    "add_months",
    "classify_severity",
    "compute_due_date",
    "days_until_due",
    "resolve_due_date",
]
