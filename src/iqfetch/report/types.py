"""Flat output row types for the CSV report."""

from __future__ import annotations

from dataclasses import dataclass

CSV_HEADERS: tuple[str, ...] = (
    "No.",
    "Application",
    "Organization",
    "Policy",
    "Format",
    "Component",
    "Threat",
    "Policy/Action",
    "Constraint Name",
    "Condition",
    "CVE",
)


@dataclass(frozen=True)
class FlatRow:
    """One (component, violation, constraint) triple; row numbers are assigned at write time."""

    application: str
    organization: str
    policy: str
    format: str
    component: str
    threat: int
    policy_action: str
    constraint_name: str
    condition: str
    cve: str = ""  # IQ Server's policy report does not carry CVE ids

    def to_record(self, number: int) -> list[str]:
        return [
            str(number),
            self.application,
            self.organization,
            self.policy,
            self.format,
            self.component,
            str(self.threat),
            self.policy_action,
            self.constraint_name,
            self.condition,
            self.cve,
        ]
