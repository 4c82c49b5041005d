"""SQLAlchemy models."""

from ssm_compliance.models.alert import Alert
from ssm_compliance.models.compliance_score_snapshot import ComplianceScoreSnapshot
from ssm_compliance.models.employee import Employee
from ssm_compliance.models.equipment import Equipment
from ssm_compliance.models.equipment_check import EquipmentCheck
from ssm_compliance.models.legal_obligation_instance import LegalObligationInstance
from ssm_compliance.models.medical_examination import MedicalExamination
from ssm_compliance.models.notification_job import NotificationJob
from ssm_compliance.models.notification_preference import NotificationPreference
from ssm_compliance.models.organization import Organization
from ssm_compliance.models.organization_member import OrganizationMember
from ssm_compliance.models.sweep_lock import SweepLock
from ssm_compliance.models.sweep_run import SweepRun
from ssm_compliance.models.training_assignment import TrainingAssignment

__all__ = [
    "Alert",
    "ComplianceScoreSnapshot",
    "Employee",
    "Equipment",
    "EquipmentCheck",
    "LegalObligationInstance",
    "MedicalExamination",
    "NotificationJob",
    "NotificationPreference",
    "Organization",
    "OrganizationMember",
    "SweepLock",
    "SweepRun",
    "TrainingAssignment",
]
