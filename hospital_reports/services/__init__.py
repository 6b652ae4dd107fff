from hospital_reports.services.report_catalog import ReportCatalog
from hospital_reports.services.report_definitions import CANONICAL_REPORTS

__all__ = ["ReportCatalog", "CANONICAL_REPORTS"]
