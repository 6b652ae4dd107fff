"""
The canonical report catalog.

Each report is pure data; adding one means adding a ``ReportDefinition`` to
``CANONICAL_REPORTS``.
"""

import operator
from datetime import date

from sqlalchemy import func, select

from hospital_reports.core.config import AppConstants
from hospital_reports.models import (
    Appointment,
    AppointmentStatusEnum,
    Billing,
    Department,
    Doctor,
    Patient,
    PaymentStatusEnum,
    Treatment,
)
from hospital_reports.services.descriptors import (
    Dimension,
    Join,
    Predicate,
    ReportDefinition,
    ReportParameter,
    SortKey,
    average,
    count_distinct,
    earliest,
    latest,
    ratio,
    share_of_total,
    total,
)

PRECISION = AppConstants.DECIMAL_PLACES
PERCENT = AppConstants.PERCENT_SCALE


# Shared parameters

DATE_FROM = ReportParameter(
    name="date_from",
    type=date,
    column=Appointment.appointment_date,
    op=operator.ge,
    join_target=Appointment,
    description="Only count appointments on or after this date (YYYY-MM-DD)",
)

DATE_TO = ReportParameter(
    name="date_to",
    type=date,
    column=Appointment.appointment_date,
    op=operator.le,
    join_target=Appointment,
    description="Only count appointments on or before this date (YYYY-MM-DD)",
)


def id_parameter(name: str, column, references, description: str) -> ReportParameter:
    """Equality filter on a primary key of ``references``"""
    return ReportParameter(
        name=name,
        type=int,
        column=column,
        references=references,
        description=description,
        minimum=AppConstants.MIN_ROW_ID,
        maximum=AppConstants.MAX_ROW_ID,
    )


# Per-appointment rollups, so sibling one-to-many joins do not multiply rows

treatments_per_appointment = (
    select(
        Treatment.appointment_id.label("appointment_id"),
        func.count(Treatment.id).label("treatment_count"),
    )
    .group_by(Treatment.appointment_id)
    .subquery("treatments_per_appointment")
)

billing_per_appointment = (
    select(
        Billing.appointment_id.label("appointment_id"),
        func.sum(Billing.total_amount).label("billed_amount"),
        func.count(Billing.id).label("bill_count"),
    )
    .group_by(Billing.appointment_id)
    .subquery("billing_per_appointment")
)


DOCTOR_WORKLOAD = ReportDefinition(
    name="doctor_workload",
    title="Doctor Workload",
    description=(
        "Patients seen, appointments and billed revenue per doctor. Doctors "
        "without appointments are listed with zero counts."
    ),
    base=Doctor,
    joins=(
        Join(Department, Doctor.department_id == Department.id),
        Join(Appointment, Appointment.doctor_id == Doctor.id),
        Join(Patient, Appointment.patient_id == Patient.id),
        Join(Billing, Billing.appointment_id == Appointment.id),
    ),
    dimensions=(
        Dimension("doctor_id", Doctor.id),
        Dimension("doctor_name", Doctor.name),
        Dimension("specialty", Doctor.specialty),
        Dimension("department_name", Department.name),
    ),
    aggregates=(
        count_distinct("total_patients", Patient.id),
        count_distinct("total_appointments", Appointment.id),
        average("avg_billing_amount", Billing.total_amount, precision=PRECISION),
        total("total_revenue", Billing.total_amount),
    ),
    order_by=(SortKey("total_revenue"),),
    tie_break=Doctor.id,
    parameters=(
        id_parameter("department_id", Doctor.department_id, Department, "Restrict to doctors of this department"),
        id_parameter("doctor_id", Doctor.id, Doctor, "Restrict to a single doctor"),
        DATE_FROM,
        DATE_TO,
    ),
)


PATIENT_STATUS_DISTRIBUTION = ReportDefinition(
    name="patient_status_distribution",
    title="Patient Status Distribution",
    description=(
        "Patients per status with their share of all patients, appointment "
        "volume and appointment outcomes."
    ),
    base=Patient,
    joins=(
        Join(Appointment, Appointment.patient_id == Patient.id),
    ),
    dimensions=(
        Dimension("status", Patient.status),
    ),
    aggregates=(
        count_distinct("patient_count", Patient.id),
        share_of_total("percentage_of_total", of="patient_count", scale=PERCENT, precision=PRECISION),
        count_distinct("total_appointments", Appointment.id),
        ratio("avg_appointments_per_patient", "total_appointments", "patient_count", precision=PRECISION),
        count_distinct(
            "completed_appointments", Appointment.id,
            where=Appointment.status == AppointmentStatusEnum.COMPLETED,
        ),
        count_distinct(
            "scheduled_appointments", Appointment.id,
            where=Appointment.status == AppointmentStatusEnum.SCHEDULED,
        ),
        count_distinct(
            "cancelled_appointments", Appointment.id,
            where=Appointment.status == AppointmentStatusEnum.CANCELLED,
        ),
        count_distinct(
            "no_show_appointments", Appointment.id,
            where=Appointment.status == AppointmentStatusEnum.NO_SHOW,
        ),
    ),
    order_by=(SortKey("patient_count"),),
    tie_break=Patient.status,
    parameters=(
        id_parameter("doctor_id", Patient.assigned_doctor_id, Doctor, "Restrict to patients assigned to this doctor"),
        DATE_FROM,
        DATE_TO,
    ),
)


DEPARTMENT_FINANCIAL_PERFORMANCE = ReportDefinition(
    name="department_financial_performance",
    title="Department Financial Performance",
    description=(
        "Billed and collected revenue per department with its collection "
        "rate. Departments without revenue are omitted."
    ),
    base=Department,
    joins=(
        Join(Doctor, Doctor.department_id == Department.id),
        Join(Appointment, Appointment.doctor_id == Doctor.id),
        Join(Billing, Billing.appointment_id == Appointment.id),
    ),
    dimensions=(
        Dimension("department_id", Department.id),
        Dimension("department_name", Department.name),
        Dimension("department_head", Department.head),
    ),
    aggregates=(
        count_distinct("total_doctors", Doctor.id),
        count_distinct("total_appointments", Appointment.id),
        total("total_revenue", Billing.total_amount),
        ratio("avg_revenue_per_appointment", "total_revenue", "total_appointments", precision=PRECISION),
        total(
            "collected_revenue", Billing.total_amount,
            where=Billing.payment_status == PaymentStatusEnum.PAID,
            default=0,
        ),
        ratio("collection_rate", "collected_revenue", "total_revenue", scale=PERCENT, precision=PRECISION),
    ),
    having=(Predicate("total_revenue", operator.gt, 0),),
    order_by=(SortKey("total_revenue"),),
    tie_break=Department.id,
    parameters=(
        id_parameter("department_id", Department.id, Department, "Restrict to a single department"),
        DATE_FROM,
        DATE_TO,
    ),
)


HIGH_VALUE_PATIENTS = ReportDefinition(
    name="high_value_patients",
    title="High-Value Patient Analysis",
    description=(
        "Patients ranked by total billed spend with visit and treatment "
        "counts and their first and last visit."
    ),
    base=Patient,
    joins=(
        Join(Doctor, Patient.assigned_doctor_id == Doctor.id),
        Join(Appointment, Appointment.patient_id == Patient.id),
        Join(treatments_per_appointment, treatments_per_appointment.c.appointment_id == Appointment.id),
        Join(billing_per_appointment, billing_per_appointment.c.appointment_id == Appointment.id),
    ),
    dimensions=(
        Dimension("patient_id", Patient.id),
        Dimension("patient_name", Patient.name),
        Dimension("status", Patient.status),
        Dimension("assigned_doctor", Doctor.name),
    ),
    aggregates=(
        count_distinct("total_appointments", Appointment.id),
        total("total_treatments", treatments_per_appointment.c.treatment_count, default=0),
        total("total_bills", billing_per_appointment.c.bill_count, default=0),
        total("total_spent", billing_per_appointment.c.billed_amount, default=0),
        ratio("avg_bill_amount", "total_spent", "total_bills", precision=PRECISION),
        earliest("first_visit", Appointment.appointment_date),
        latest("last_visit", Appointment.appointment_date),
    ),
    having=(Predicate("total_spent", operator.gt, 0),),
    order_by=(SortKey("total_spent"),),
    tie_break=Patient.id,
    limit=AppConstants.HIGH_VALUE_PATIENT_LIMIT,
    parameters=(
        id_parameter("doctor_id", Patient.assigned_doctor_id, Doctor, "Restrict to patients assigned to this doctor"),
        DATE_FROM,
        DATE_TO,
    ),
)


CANONICAL_REPORTS = (
    DOCTOR_WORKLOAD,
    PATIENT_STATUS_DISTRIBUTION,
    DEPARTMENT_FINANCIAL_PERFORMANCE,
    HIGH_VALUE_PATIENTS,
)


__all__ = [
    "DOCTOR_WORKLOAD",
    "PATIENT_STATUS_DISTRIBUTION",
    "DEPARTMENT_FINANCIAL_PERFORMANCE",
    "HIGH_VALUE_PATIENTS",
    "CANONICAL_REPORTS",
]
