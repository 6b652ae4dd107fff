from hospital_reports.models.hospital import (
    Department,
    Doctor,
    Patient,
    Appointment,
    Treatment,
    Billing,
    PatientStatusEnum,
    AppointmentStatusEnum,
    PaymentStatusEnum
)

# Base model for all tables
from hospital_reports.core.database import Base

# Parents before children, matching foreign key dependencies
ALL_MODELS = [
    Department,
    Doctor,
    Patient,
    Appointment,
    Treatment,
    Billing
]


def get_all_table_names() -> list[str]:
    """Get all table names in the system"""
    return [model.__tablename__ for model in ALL_MODELS]


__all__ = [
    "Base",
    "Department",
    "Doctor",
    "Patient",
    "Appointment",
    "Treatment",
    "Billing",
    "PatientStatusEnum",
    "AppointmentStatusEnum",
    "PaymentStatusEnum",
    "ALL_MODELS",
    "get_all_table_names"
]
