"""Flatten nested policy violation reports into CSV rows."""

from __future__ import annotations

import math

from iqfetch.client.types import ViolationReport
from iqfetch.report.types import FlatRow

POLICY_ACTION_PREFIX = "Security"
CONDITION_SEPARATOR = " | "


def policy_action_label(threat: int) -> str:
    return f"{POLICY_ACTION_PREFIX}-{threat}"


def threat_level(value: float) -> int:
    """Truncate toward zero; values with no integer form count as 0."""
    return int(value) if math.isfinite(value) else 0


def flatten_violations(report: ViolationReport, application: str, organization: str) -> list[FlatRow]:
    """Emit one row per constraint, walking components, violations and constraints in source order.

    Violations without constraints produce no rows.
    """
    rows: list[FlatRow] = []
    for component in report.components:
        for violation in component.violations:
            threat = threat_level(violation.policy_threat_level)
            action = policy_action_label(threat)
            for constraint in violation.constraints:
                rows.append(
                    FlatRow(
                        application=application,
                        organization=organization,
                        policy=violation.policy_name,
                        format=component.format,
                        component=component.display_name,
                        threat=threat,
                        policy_action=action,
                        constraint_name=constraint.constraint_name,
                        condition=CONDITION_SEPARATOR.join(constraint.conditions),
                    )
                )
    return rows
