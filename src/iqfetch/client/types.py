"""IQ Server API payload types."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any


def _text(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    return value if isinstance(value, str) else ""


def _number(data: dict[str, Any], key: str) -> float:
    value = data.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    try:
        number = float(value)
    except OverflowError:
        return 0.0
    # NaN and infinities are valid JSON to the parser but not a threat level.
    return number if math.isfinite(number) else 0.0


def _mappings(data: dict[str, Any], key: str) -> list[dict[str, Any]]:
    value = data.get(key)
    if not isinstance(value, list):
        return []
    return [item for item in value if isinstance(item, dict)]


@dataclass(frozen=True)
class Application:
    """Application record from the applications listing."""

    id: str
    public_id: str
    organization_id: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Application:
        return cls(
            id=_text(data, "id"),
            public_id=_text(data, "publicId"),
            organization_id=_text(data, "organizationId"),
        )


@dataclass(frozen=True)
class Organization:
    id: str
    name: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Organization:
        return cls(id=_text(data, "id"), name=_text(data, "name"))


@dataclass(frozen=True)
class ReportInfo:
    """Metadata for one evaluation report of an application."""

    stage: str
    report_html_url: str

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ReportInfo:
        return cls(stage=_text(data, "stage"), report_html_url=_text(data, "reportHtmlUrl"))


@dataclass(frozen=True)
class Constraint:
    constraint_name: str
    conditions: tuple[str, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Constraint:
        return cls(
            constraint_name=_text(data, "constraintName"),
            conditions=tuple(_text(item, "conditionSummary") for item in _mappings(data, "conditions")),
        )


@dataclass(frozen=True)
class Violation:
    policy_name: str
    policy_threat_level: float  # IQ Server sends a JSON number, possibly fractional
    constraints: tuple[Constraint, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Violation:
        return cls(
            policy_name=_text(data, "policyName"),
            policy_threat_level=_number(data, "policyThreatLevel"),
            constraints=tuple(Constraint.from_dict(item) for item in _mappings(data, "constraints")),
        )


@dataclass(frozen=True)
class Component:
    display_name: str
    format: str
    violations: tuple[Violation, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Component:
        identifier = data.get("componentIdentifier")
        package_format = _text(identifier, "format") if isinstance(identifier, dict) else ""
        return cls(
            display_name=_text(data, "displayName"),
            format=package_format,
            violations=tuple(Violation.from_dict(item) for item in _mappings(data, "violations")),
        )


@dataclass(frozen=True)
class ViolationReport:
    """Top-level policy violation report for one application evaluation."""

    components: tuple[Component, ...]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ViolationReport:
        return cls(components=tuple(Component.from_dict(item) for item in _mappings(data, "components")))
