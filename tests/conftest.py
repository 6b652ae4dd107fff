import logging
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Iterable

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from hospital_reports.core.database import Base, db_manager
from hospital_reports.main import app
from hospital_reports.models import (
    Appointment,
    AppointmentStatusEnum,
    Billing,
    Department,
    Doctor,
    Patient,
    PatientStatusEnum,
    PaymentStatusEnum,
    Treatment,
)
from hospital_reports.services.report_catalog import ReportCatalog

# Configure logging for tests
logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

# In-memory SQLite; the database manager switches to StaticPool for this URL
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture
def empty_engine():
    """Initialized engine with no tables, standing in for a broken data source."""
    db_manager.close()
    db_manager.initialize(TEST_DATABASE_URL)
    yield db_manager.engine
    db_manager.close()


@pytest.fixture
def engine(empty_engine):
    """Engine with the full reporting schema created and no rows."""
    Base.metadata.create_all(bind=empty_engine)
    return empty_engine


@pytest.fixture
def seed(engine) -> Callable[[Iterable[Any]], None]:
    """Insert ORM objects in one committed transaction, like the external loader would."""

    def _seed(records: Iterable[Any]) -> None:
        with Session(bind=engine) as session:
            session.add_all(list(records))
            session.commit()

    return _seed


@pytest.fixture
def db_session(engine):
    """Read-only session handed out the same way the API gets one."""
    with db_manager.get_session() as session:
        yield session


@pytest.fixture
def catalog() -> ReportCatalog:
    return ReportCatalog()


@pytest.fixture
def client(engine):
    """Create a test client for the FastAPI application."""
    return TestClient(app)


def build_sample_hospital():
    """
    Small but complete hospital dataset.

    - Pediatrics has no doctors; Radiology bills exactly 0
    - Dr. Evan Shaw has no department and no appointments
    - appointment 6 carries two bills and one treatment
    - Ivy Chen has no appointments at all
    """
    d = date
    return [
        Department(id=1, name="Cardiology", head="Dr. Alice Grant"),
        Department(id=2, name="Neurology", head="Dr. Chen Wu"),
        Department(id=3, name="Pediatrics", head="Dr. Rosa Diaz"),
        Department(id=4, name="Radiology", head="Dr. Dana Ortiz"),

        Doctor(id=1, name="Dr. Alice Grant", specialty="Cardiologist", department_id=1),
        Doctor(id=2, name="Dr. Brian Lee", specialty="Cardiologist", department_id=1),
        Doctor(id=3, name="Dr. Chen Wu", specialty="Neurologist", department_id=2),
        Doctor(id=4, name="Dr. Dana Ortiz", specialty="Radiologist", department_id=4),
        Doctor(id=5, name="Dr. Evan Shaw", specialty="General Practice", department_id=None),

        Patient(id=1, name="John Carter", status=PatientStatusEnum.STABLE, assigned_doctor_id=1),
        Patient(id=2, name="Maria Lopez", status=PatientStatusEnum.CRITICAL, assigned_doctor_id=1),
        Patient(id=3, name="Sam Patel", status=PatientStatusEnum.RECOVERING, assigned_doctor_id=2),
        Patient(id=4, name="Lena Novak", status=PatientStatusEnum.STABLE, assigned_doctor_id=3),
        Patient(id=5, name="Omar Haddad", status=PatientStatusEnum.CRITICAL, assigned_doctor_id=3),
        Patient(id=6, name="Grace Kim", status=PatientStatusEnum.STABLE, assigned_doctor_id=4),
        Patient(id=7, name="Ivy Chen", status=PatientStatusEnum.RECOVERING, assigned_doctor_id=5),

        Appointment(id=1, patient_id=1, doctor_id=1, appointment_date=d(2024, 1, 10), status=AppointmentStatusEnum.COMPLETED),
        Appointment(id=2, patient_id=1, doctor_id=1, appointment_date=d(2024, 2, 15), status=AppointmentStatusEnum.COMPLETED),
        Appointment(id=3, patient_id=2, doctor_id=1, appointment_date=d(2024, 3, 1), status=AppointmentStatusEnum.COMPLETED),
        Appointment(id=4, patient_id=3, doctor_id=2, appointment_date=d(2024, 1, 20), status=AppointmentStatusEnum.CANCELLED),
        Appointment(id=5, patient_id=3, doctor_id=2, appointment_date=d(2024, 4, 5), status=AppointmentStatusEnum.COMPLETED),
        Appointment(id=6, patient_id=4, doctor_id=3, appointment_date=d(2024, 2, 11), status=AppointmentStatusEnum.COMPLETED),
        Appointment(id=7, patient_id=5, doctor_id=3, appointment_date=d(2024, 3, 22), status=AppointmentStatusEnum.NO_SHOW),
        Appointment(id=8, patient_id=5, doctor_id=3, appointment_date=d(2024, 5, 2), status=AppointmentStatusEnum.SCHEDULED),
        Appointment(id=9, patient_id=6, doctor_id=4, appointment_date=d(2024, 3, 14), status=AppointmentStatusEnum.COMPLETED),

        Treatment(id=1, appointment_id=1, description="ECG", cost=Decimal("80.00")),
        Treatment(id=2, appointment_id=1, description="Blood panel", cost=Decimal("40.00")),
        Treatment(id=3, appointment_id=3, description="Angioplasty", cost=Decimal("450.00")),
        Treatment(id=4, appointment_id=6, description="MRI", cost=Decimal("250.00")),
        Treatment(id=5, appointment_id=9, description="X-Ray", cost=Decimal("60.00")),

        Billing(id=1, appointment_id=1, total_amount=Decimal("100.00"), amount_paid=Decimal("100.00"), payment_status=PaymentStatusEnum.PAID),
        Billing(id=2, appointment_id=2, total_amount=Decimal("200.00"), amount_paid=Decimal("0.00"), payment_status=PaymentStatusEnum.PENDING),
        Billing(id=3, appointment_id=3, total_amount=Decimal("500.00"), amount_paid=Decimal("500.00"), payment_status=PaymentStatusEnum.PAID),
        Billing(id=4, appointment_id=5, total_amount=Decimal("150.00"), amount_paid=Decimal("50.00"), payment_status=PaymentStatusEnum.OVERDUE),
        Billing(id=5, appointment_id=6, total_amount=Decimal("300.00"), amount_paid=Decimal("300.00"), payment_status=PaymentStatusEnum.PAID),
        Billing(id=6, appointment_id=6, total_amount=Decimal("50.00"), amount_paid=Decimal("0.00"), payment_status=PaymentStatusEnum.PENDING),
        Billing(id=7, appointment_id=9, total_amount=Decimal("0.00"), amount_paid=Decimal("0.00"), payment_status=PaymentStatusEnum.PAID),
    ]


@pytest.fixture
def sample_hospital(seed):
    """Seed the sample hospital dataset."""
    seed(build_sample_hospital())


@pytest.fixture
def cardiology_example(seed):
    """One department, one doctor, two appointments billed 100 (Paid) and 200 (Pending)."""
    seed([
        Department(id=1, name="Cardiology", head="Dr. A"),
        Doctor(id=1, name="Dr. A", specialty="Cardiologist", department_id=1),
        Patient(id=1, name="Patient One", status=PatientStatusEnum.STABLE, assigned_doctor_id=1),
        Appointment(id=1, patient_id=1, doctor_id=1, appointment_date=date(2024, 6, 1), status=AppointmentStatusEnum.COMPLETED),
        Appointment(id=2, patient_id=1, doctor_id=1, appointment_date=date(2024, 6, 8), status=AppointmentStatusEnum.COMPLETED),
        Billing(id=1, appointment_id=1, total_amount=Decimal("100.00"), amount_paid=Decimal("100.00"), payment_status=PaymentStatusEnum.PAID),
        Billing(id=2, appointment_id=2, total_amount=Decimal("200.00"), amount_paid=Decimal("0.00"), payment_status=PaymentStatusEnum.PENDING),
    ])
