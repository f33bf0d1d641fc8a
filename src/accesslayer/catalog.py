"""
Condition builder catalog.

Read-only lookup tables used by policy authoring tools: the common
attributes (with their value types), the operators offered for each value
type, and ready-made condition templates. None of this is consulted at
evaluation time; the evaluator accepts any well-formed attribute path.
"""

from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Literal, Mapping

from accesslayer.policies.conditions import ConditionNode, freeze_value, parse_conditions, thaw_value

AttributeType = Literal["string", "number", "boolean", "date"]

ATTRIBUTE_TYPES: tuple[str, ...] = ("string", "number", "boolean", "date")


@dataclass(frozen=True)
class AttributeDefinition:
    value: str
    label: str
    type: AttributeType


@dataclass(frozen=True)
class OperatorDefinition:
    value: str
    label: str


@dataclass(frozen=True)
class ConditionTemplate:
    """A named, reusable condition tree."""

    name: str
    description: str
    conditions: Mapping[str, Any]

    def to_wire(self) -> dict[str, Any]:
        """Mutable wire-format copy of the template's conditions."""
        return thaw_value(self.conditions)

    def parse(self) -> ConditionNode | None:
        return parse_conditions(self.to_wire())


COMMON_ATTRIBUTES: tuple[AttributeDefinition, ...] = (
    AttributeDefinition("user.id", "User ID", "string"),
    AttributeDefinition("user.role", "User Role", "string"),
    AttributeDefinition("user.department", "User Department", "string"),
    AttributeDefinition("user.clearance_level", "User Clearance Level", "number"),
    AttributeDefinition("user.employment_type", "Employment Type", "string"),
    AttributeDefinition("user.certification", "User Certification", "string"),
    AttributeDefinition("user.assigned_region", "Assigned Region", "string"),
    AttributeDefinition("resource.id", "Resource ID", "string"),
    AttributeDefinition("resource.type", "Resource Type", "string"),
    AttributeDefinition("resource.owner_id", "Resource Owner ID", "string"),
    AttributeDefinition("resource.amount", "Resource Amount", "number"),
    AttributeDefinition("resource.sensitivity", "Resource Sensitivity", "string"),
    AttributeDefinition("resource.status", "Resource Status", "string"),
    AttributeDefinition("resource.is_emergency", "Is Emergency", "boolean"),
    AttributeDefinition("environment.hour", "Current Hour (0-23)", "number"),
    AttributeDefinition("environment.day_of_week", "Day of Week", "string"),
    AttributeDefinition("environment.date", "Current Date", "date"),
    AttributeDefinition("environment.ip_address", "IP Address", "string"),
)

_EQUALITY = (
    OperatorDefinition("=", "Equals"),
    OperatorDefinition("!=", "Not Equals"),
)

OPERATORS: Mapping[str, tuple[OperatorDefinition, ...]] = MappingProxyType(
    {
        "string": _EQUALITY
        + (
            OperatorDefinition("IN", "In List"),
            OperatorDefinition("NOT_IN", "Not In List"),
            OperatorDefinition("CONTAINS", "Contains"),
            OperatorDefinition("STARTS_WITH", "Starts With"),
            OperatorDefinition("ENDS_WITH", "Ends With"),
            OperatorDefinition("MATCHES", "Matches Regex"),
        ),
        "number": _EQUALITY
        + (
            OperatorDefinition(">", "Greater Than"),
            OperatorDefinition("<", "Less Than"),
            OperatorDefinition(">=", "Greater Than or Equal"),
            OperatorDefinition("<=", "Less Than or Equal"),
            OperatorDefinition("BETWEEN", "Between"),
            OperatorDefinition("IN", "In List"),
        ),
        "boolean": _EQUALITY,
        "date": (
            OperatorDefinition("=", "Equals"),
            OperatorDefinition(">", "After"),
            OperatorDefinition("<", "Before"),
            OperatorDefinition("BETWEEN", "Between"),
        ),
    }
)

CONDITION_TEMPLATES: tuple[ConditionTemplate, ...] = tuple(
    ConditionTemplate(name=name, description=description, conditions=freeze_value(conditions))
    for name, description, conditions in (
        (
            "Department Access",
            "User must be in specific department",
            {"attribute": "user.department", "operator": "=", "value": "engineering"},
        ),
        (
            "Business Hours Only",
            "Only during 9 AM to 5 PM",
            {
                "AND": [
                    {"attribute": "environment.hour", "operator": ">=", "value": 9},
                    {"attribute": "environment.hour", "operator": "<", "value": 17},
                ]
            },
        ),
        (
            "High-Value Threshold",
            "Amount exceeds 100,000",
            {"attribute": "resource.amount", "operator": ">", "value": 100000},
        ),
        (
            "Manager or Admin",
            "User has manager or admin role",
            {
                "OR": [
                    {"attribute": "user.role", "operator": "=", "value": "manager"},
                    {"attribute": "user.role", "operator": "=", "value": "admin"},
                ]
            },
        ),
        (
            "Weekday Only",
            "Monday through Friday",
            {
                "attribute": "environment.day_of_week",
                "operator": "NOT_IN",
                "value": ["Saturday", "Sunday"],
            },
        ),
        (
            "Resource Owner",
            "User is the resource owner",
            {"attribute": "user.id", "operator": "=", "value": "{{resource.owner_id}}"},
        ),
    )
)

_ATTRIBUTES_BY_PATH: Mapping[str, AttributeDefinition] = MappingProxyType(
    {a.value: a for a in COMMON_ATTRIBUTES}
)


def attribute_type(path: str) -> str:
    """Value type of a catalog attribute; unknown paths are treated as strings."""
    definition = _ATTRIBUTES_BY_PATH.get(path)
    return definition.type if definition else "string"


def operators_for(value_type: str) -> tuple[OperatorDefinition, ...]:
    """Operators offered for a value type (string operators for unknown types)."""
    return OPERATORS.get(value_type, OPERATORS["string"])


def operators_for_attribute(path: str) -> tuple[OperatorDefinition, ...]:
    return operators_for(attribute_type(path))


def get_template(name: str) -> ConditionTemplate | None:
    for template in CONDITION_TEMPLATES:
        if template.name == name:
            return template
    return None
