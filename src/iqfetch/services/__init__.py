"""Report generation services."""

from iqfetch.services.policy_report import PolicyReportService

__all__ = ["PolicyReportService"]
