import enum

from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    Date,
    Text,
    ForeignKey,
    Index,
    CheckConstraint,
    Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from hospital_reports.core.database import Base


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class PatientStatusEnum(str, enum.Enum):
    """Clinical status of a patient"""
    STABLE = "Stable"
    CRITICAL = "Critical"
    RECOVERING = "Recovering"


class AppointmentStatusEnum(str, enum.Enum):
    """Appointment lifecycle outcome"""
    SCHEDULED = "Scheduled"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    NO_SHOW = "No-Show"


class PaymentStatusEnum(str, enum.Enum):
    """Billing payment status"""
    PAID = "Paid"
    PENDING = "Pending"
    OVERDUE = "Overdue"


class Department(Base):
    """Hospital department"""

    __tablename__ = "departments"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False, unique=True)
    head = Column(String(100))

    doctors = relationship("Doctor", back_populates="department")

    def __repr__(self):
        return f"<Department(id={self.id}, name='{self.name}')>"


class Doctor(Base):
    """Doctor and their department affiliation"""

    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    specialty = Column(String(100))
    department_id = Column(Integer, ForeignKey("departments.id"))

    department = relationship("Department", back_populates="doctors")
    patients = relationship("Patient", back_populates="assigned_doctor")
    appointments = relationship("Appointment", back_populates="doctor")

    __table_args__ = (
        Index("idx_doctor_department", "department_id"),
    )

    def __repr__(self):
        return f"<Doctor(id={self.id}, name='{self.name}')>"


class Patient(Base):
    """Patient with current status and assigned doctor"""

    __tablename__ = "patients"

    id = Column(Integer, primary_key=True)
    name = Column(String(100), nullable=False)
    status = Column(
        SQLEnum(PatientStatusEnum, name="patient_status", values_callable=_enum_values),
        nullable=False,
        default=PatientStatusEnum.STABLE
    )
    assigned_doctor_id = Column(Integer, ForeignKey("doctors.id"))

    assigned_doctor = relationship("Doctor", back_populates="patients")
    appointments = relationship("Appointment", back_populates="patient")

    __table_args__ = (
        Index("idx_patient_status", "status"),
        Index("idx_patient_assigned_doctor", "assigned_doctor_id"),
    )

    def __repr__(self):
        return f"<Patient(id={self.id}, status='{self.status}')>"


class Appointment(Base):
    """Appointment between a patient and a doctor"""

    __tablename__ = "appointments"

    id = Column(Integer, primary_key=True)
    patient_id = Column(Integer, ForeignKey("patients.id"), nullable=False)
    doctor_id = Column(Integer, ForeignKey("doctors.id"), nullable=False)
    appointment_date = Column(Date, nullable=False)
    status = Column(
        SQLEnum(AppointmentStatusEnum, name="appointment_status", values_callable=_enum_values),
        nullable=False,
        default=AppointmentStatusEnum.SCHEDULED
    )

    patient = relationship("Patient", back_populates="appointments")
    doctor = relationship("Doctor", back_populates="appointments")
    treatments = relationship("Treatment", back_populates="appointment")
    bills = relationship("Billing", back_populates="appointment")

    __table_args__ = (
        Index("idx_appointment_patient", "patient_id"),
        Index("idx_appointment_doctor_date", "doctor_id", "appointment_date"),
    )

    def __repr__(self):
        return f"<Appointment(id={self.id}, date={self.appointment_date}, status='{self.status}')>"


class Treatment(Base):
    """Treatment administered during an appointment"""

    __tablename__ = "treatments"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False)
    description = Column(Text)
    cost = Column(Numeric(12, 2), nullable=False, default=0)

    appointment = relationship("Appointment", back_populates="treatments")

    __table_args__ = (
        CheckConstraint("cost >= 0", name="check_treatment_cost"),
        Index("idx_treatment_appointment", "appointment_id"),
    )


class Billing(Base):
    """Bill raised for an appointment"""

    __tablename__ = "billing"

    id = Column(Integer, primary_key=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    payment_status = Column(
        SQLEnum(PaymentStatusEnum, name="payment_status", values_callable=_enum_values),
        nullable=False,
        default=PaymentStatusEnum.PENDING
    )

    appointment = relationship("Appointment", back_populates="bills")

    __table_args__ = (
        CheckConstraint("total_amount >= 0", name="check_billing_total"),
        CheckConstraint("amount_paid >= 0", name="check_billing_paid"),
        Index("idx_billing_appointment", "appointment_id"),
        Index("idx_billing_status", "payment_status"),
    )

    def __repr__(self):
        return f"<Billing(id={self.id}, total={self.total_amount}, status='{self.payment_status}')>"
