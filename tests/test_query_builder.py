import operator

import pytest
from sqlalchemy.dialects import postgresql, sqlite

from hospital_reports.models import Appointment, Billing, Department, Doctor, PaymentStatusEnum
from hospital_reports.services.descriptors import (
    Dimension,
    Join,
    Predicate,
    ReportDefinition,
    ReportParameter,
    SortKey,
    count_distinct,
    ratio,
    share_of_total,
    total,
)
from hospital_reports.services.query_builder import build_report_query
from hospital_reports.services.report_catalog import ReportCatalog
from hospital_reports.services.report_definitions import (
    DEPARTMENT_FINANCIAL_PERFORMANCE,
    DOCTOR_WORKLOAD,
    HIGH_VALUE_PATIENTS,
    PATIENT_STATUS_DISTRIBUTION,
)


def render(statement, dialect=None):
    return str(statement.compile(dialect=dialect or sqlite.dialect()))


class TestReportDefinitionValidation:
    """Test descriptor checks performed at definition time"""

    def _definition(self, **overrides):
        fields = dict(
            name="doctors_per_department",
            title="Doctors per Department",
            description="Doctor headcount per department",
            base=Department,
            joins=(Join(Doctor, Doctor.department_id == Department.id),),
            dimensions=(Dimension("department_id", Department.id),),
            aggregates=(count_distinct("doctor_count", Doctor.id),),
            tie_break=Department.id,
        )
        fields.update(overrides)
        return ReportDefinition(**fields)

    def test_valid_definition(self):
        """Test a well-formed definition exposes its columns"""
        definition = self._definition()

        assert definition.columns == ["department_id", "doctor_count"]
        assert definition.entities == ["departments", "doctors"]
        assert definition.tie_break_column == "department_id"

    def test_duplicate_column(self):
        """Test duplicate output names are rejected"""
        with pytest.raises(ValueError, match="duplicate"):
            self._definition(aggregates=(count_distinct("department_id", Doctor.id),))

    def test_ratio_with_unknown_operand(self):
        """Test derived aggregates must reference earlier columns"""
        with pytest.raises(ValueError, match="unknown columns"):
            self._definition(aggregates=(
                count_distinct("doctor_count", Doctor.id),
                ratio("doctors_per_bed", "doctor_count", "bed_count"),
            ))

    def test_having_on_unknown_column(self):
        """Test HAVING may only name output columns"""
        with pytest.raises(ValueError, match="unknown output column"):
            self._definition(having=(Predicate("revenue", operator.gt, 0),))

    def test_parameter_on_unjoined_entity(self):
        """Test join-scoped parameters need their join"""
        parameter = ReportParameter(
            name="date_from",
            type=str,
            column=Appointment.appointment_date,
            op=operator.ge,
            join_target=Appointment,
        )
        with pytest.raises(ValueError, match="not joined"):
            self._definition(parameters=(parameter,))

    def test_identifier_parameters_are_bounded(self):
        """Test id parameters validate against the primary key range"""
        from pydantic import TypeAdapter, ValidationError

        parameter = DOCTOR_WORKLOAD.get_parameter("doctor_id")
        adapter = TypeAdapter(parameter.annotation)

        assert adapter.validate_python("42") == 42
        for value in ("0", str(2**63)):
            with pytest.raises(ValidationError):
                adapter.validate_python(value)

    def test_unbounded_parameter_annotation(self):
        """Test parameters without bounds validate against their plain type"""
        parameter = DOCTOR_WORKLOAD.get_parameter("date_from")

        assert parameter.annotation is parameter.type

    def test_non_positive_limit(self):
        """Test a zero limit is rejected"""
        with pytest.raises(ValueError, match="limit"):
            self._definition(limit=0)


class TestQueryCompilation:
    """Test the SQL shape produced for the canonical reports"""

    def test_outer_joins(self):
        """Test every join is a LEFT OUTER JOIN"""
        sql = render(build_report_query(DOCTOR_WORKLOAD, {}))

        assert sql.count("LEFT OUTER JOIN") == 4
        assert "GROUP BY" in sql
        assert "count(DISTINCT patients.id)" in sql

    def test_having_and_nulls_last(self):
        """Test revenue filtering and null-last ordering"""
        sql = render(build_report_query(DEPARTMENT_FINANCIAL_PERFORMANCE, {}))

        assert "HAVING sum(billing.total_amount) > " in sql
        assert "NULLS LAST" in sql
        assert "nullif(" in sql
        assert "CASE WHEN" in sql

    def test_share_uses_window(self):
        """Test percentages are computed with a window over all groups"""
        sql = render(build_report_query(PATIENT_STATUS_DISTRIBUTION, {}))

        assert "OVER ()" in sql

    def test_limit(self):
        """Test the high-value report is capped"""
        statement = build_report_query(HIGH_VALUE_PATIENTS, {})
        sql = render(statement)

        assert "LIMIT" in sql
        assert "treatments_per_appointment" in sql
        assert "billing_per_appointment" in sql

    def test_date_parameter_in_join_condition(self):
        """Test date filters go into the appointment join, not WHERE"""
        from datetime import date

        sql = render(build_report_query(DOCTOR_WORKLOAD, {"date_from": date(2024, 1, 1)}))
        join_clause = sql.split("LEFT OUTER JOIN appointments ON", 1)[1].split("LEFT OUTER JOIN", 1)[0]

        assert "appointments.appointment_date >=" in join_clause
        assert "WHERE" not in sql

    def test_entity_parameter_in_where(self):
        """Test entity filters restrict the base rows"""
        sql = render(build_report_query(DOCTOR_WORKLOAD, {"doctor_id": 3}))

        assert "WHERE doctors.id = " in sql

    def test_none_parameters_ignored(self):
        """Test absent values add no conditions"""
        assert render(build_report_query(DOCTOR_WORKLOAD, {"doctor_id": None})) == \
            render(build_report_query(DOCTOR_WORKLOAD, {}))

    def test_postgres_compilation(self):
        """Test the same statement compiles for PostgreSQL"""
        sql = render(build_report_query(HIGH_VALUE_PATIENTS, {}), postgresql.dialect())

        assert "NULLS LAST" in sql
        assert "LIMIT" in sql


REVENUE_BY_PAYMENT_STATUS = ReportDefinition(
    name="revenue_by_payment_status",
    title="Revenue by Payment Status",
    description="Billed amount and share of billing per payment status",
    base=Billing,
    dimensions=(Dimension("payment_status", Billing.payment_status),),
    aggregates=(
        count_distinct("bill_count", Billing.id),
        total("billed_amount", Billing.total_amount, default=0),
        share_of_total("share_of_bills", of="bill_count"),
    ),
    order_by=(SortKey("billed_amount"),),
    tie_break=Billing.payment_status,
)


@pytest.mark.usefixtures("sample_hospital")
class TestCustomReport:
    """Test a report added purely as data"""

    def test_runs_through_catalog(self, db_session):
        """Test a fifth definition needs no new query code"""
        catalog = ReportCatalog([REVENUE_BY_PAYMENT_STATUS])
        result = catalog.run_report("revenue_by_payment_status", db=db_session)

        by_status = {row["payment_status"]: row for row in result.rows}
        assert [row["payment_status"] for row in result.rows] == [
            PaymentStatusEnum.PAID.value,
            PaymentStatusEnum.PENDING.value,
            PaymentStatusEnum.OVERDUE.value,
        ]
        assert by_status["Paid"]["bill_count"] == 4
        assert by_status["Paid"]["billed_amount"] == pytest.approx(900.0)
        assert by_status["Pending"]["billed_amount"] == pytest.approx(250.0)
        assert sum(row["share_of_bills"] for row in result.rows) == pytest.approx(100.0, abs=0.05)
