"""Per-kind entity loaders.

Each loader reads one source table for one organization and projects its rows
into TrackedEntity. Soft-deleted rows and rows whose owner (employee or
equipment) is inactive or deleted are excluded here, so nothing downstream
has to know about ownership.
"""

from __future__ import annotations

import uuid
from collections.abc import Callable

from sqlalchemy import select
from sqlalchemy.orm import Session

from ssm_compliance.models import (
    Employee,
    Equipment,
    EquipmentCheck,
    LegalObligationInstance,
    MedicalExamination,
    TrainingAssignment,
)
from ssm_compliance.obligation_types import EntityKind, EntityRef
from ssm_compliance.services.obligations.tracked_entity import TrackedEntity

EntityLoader = Callable[[Session, uuid.UUID], list[TrackedEntity]]


def load_medical_examinations(db: Session, organization_id: uuid.UUID) -> list[TrackedEntity]:
    stmt = (
        select(MedicalExamination, Employee)
        .join(Employee, Employee.id == MedicalExamination.employee_id)
        .where(
            MedicalExamination.organization_id == organization_id,
            MedicalExamination.deleted_at.is_(None),
            Employee.is_active.is_(True),
            Employee.deleted_at.is_(None),
        )
    )
    return [
        TrackedEntity(
            ref=EntityRef(EntityKind.MEDICAL_EXAMINATION, str(exam.id)),
            organization_id=exam.organization_id,
            reference_date=exam.examination_date,
            periodicity_months=exam.periodicity_months,
            explicit_due_date=exam.expiry_date,
            owner_id=str(employee.id),
            label=f"Control medical ({exam.examination_type}) - {employee.full_name}",
        )
        for exam, employee in db.execute(stmt).all()
    ]


def load_training_assignments(db: Session, organization_id: uuid.UUID) -> list[TrackedEntity]:
    stmt = (
        select(TrainingAssignment, Employee)
        .join(Employee, Employee.id == TrainingAssignment.employee_id)
        .where(
            TrainingAssignment.organization_id == organization_id,
            TrainingAssignment.deleted_at.is_(None),
            Employee.is_active.is_(True),
            Employee.deleted_at.is_(None),
        )
    )
    return [
        TrackedEntity(
            ref=EntityRef(EntityKind.TRAINING_ASSIGNMENT, str(assignment.id)),
            organization_id=assignment.organization_id,
            reference_date=assignment.completed_on,
            periodicity_months=assignment.periodicity_months,
            explicit_due_date=assignment.due_date,
            owner_id=str(employee.id),
            label=f"{assignment.training_name} - {employee.full_name}",
        )
        for assignment, employee in db.execute(stmt).all()
    ]


def load_equipment_checks(db: Session, organization_id: uuid.UUID) -> list[TrackedEntity]:
    stmt = (
        select(EquipmentCheck, Equipment)
        .join(Equipment, Equipment.id == EquipmentCheck.equipment_id)
        .where(
            EquipmentCheck.organization_id == organization_id,
            EquipmentCheck.deleted_at.is_(None),
            Equipment.is_active.is_(True),
            Equipment.deleted_at.is_(None),
        )
    )
    return [
        TrackedEntity(
            ref=EntityRef(EntityKind.EQUIPMENT_CHECK, str(check.id)),
            organization_id=check.organization_id,
            reference_date=check.last_check_date,
            periodicity_months=check.periodicity_months,
            explicit_due_date=check.next_check_date,
            owner_id=str(equipment.id),
            label=f"{equipment.name} ({equipment.equipment_type.upper()}) - {check.check_type}",
        )
        for check, equipment in db.execute(stmt).all()
    ]


def load_legal_obligations(db: Session, organization_id: uuid.UUID) -> list[TrackedEntity]:
    stmt = select(LegalObligationInstance).where(
        LegalObligationInstance.organization_id == organization_id,
        LegalObligationInstance.deleted_at.is_(None),
    )
    return [
        TrackedEntity(
            ref=EntityRef(EntityKind.LEGAL_OBLIGATION, str(obligation.id)),
            organization_id=obligation.organization_id,
            reference_date=obligation.last_fulfilled_on,
            periodicity_months=obligation.periodicity_months,
            explicit_due_date=obligation.due_date,
            label=obligation.title,
            published_at=obligation.published_at,
        )
        for obligation in db.scalars(stmt).all()
    ]


ENTITY_LOADERS: dict[EntityKind, EntityLoader] = {
    EntityKind.MEDICAL_EXAMINATION: load_medical_examinations,
    EntityKind.TRAINING_ASSIGNMENT: load_training_assignments,
    EntityKind.EQUIPMENT_CHECK: load_equipment_checks,
    EntityKind.LEGAL_OBLIGATION: load_legal_obligations,
}

# Source table per kind, for cache write-back
ENTITY_MODELS: dict[EntityKind, type] = {
    EntityKind.MEDICAL_EXAMINATION: MedicalExamination,
    EntityKind.TRAINING_ASSIGNMENT: TrainingAssignment,
    EntityKind.EQUIPMENT_CHECK: EquipmentCheck,
    EntityKind.LEGAL_OBLIGATION: LegalObligationInstance,
}
