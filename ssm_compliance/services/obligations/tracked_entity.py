"""TrackedEntity: uniform projection of every obligation source record."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import date

from ssm_compliance.obligation_types import Category, EntityRef


@dataclass(frozen=True)
class TrackedEntity:
    """One obligation with a deadline, regardless of which table it came from.

    periodicity_months None means one-time: the explicit due date applies.
    """

    ref: EntityRef
    organization_id: uuid.UUID
    reference_date: date | None
    periodicity_months: int | None
    explicit_due_date: date | None
    owner_id: str | None = None
    label: str = ""
    published_at: date | None = None

    @property
    def category(self) -> Category:
        return self.ref.category
