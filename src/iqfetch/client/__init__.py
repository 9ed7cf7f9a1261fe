"""IQ Server REST client."""

from iqfetch.client.iq_client import IQClient
from iqfetch.client.types import (
    Application,
    Component,
    Constraint,
    Organization,
    ReportInfo,
    Violation,
    ViolationReport,
)

__all__ = [
    "Application",
    "Component",
    "Constraint",
    "IQClient",
    "Organization",
    "ReportInfo",
    "Violation",
    "ViolationReport",
]
