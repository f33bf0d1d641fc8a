"""
Attribute resolution for policy evaluation.

Resolves dotted attribute paths against the subject, resource and
environment of an evaluation request:

    user.department          -> subject attributes["department"]
    subject.id               -> subject id
    resource.owner_id        -> resource attributes["owner_id"]
    resource.type            -> "project" for resource "project:42"
    environment.hour         -> context["hour"], or the evaluation clock

Resolution never raises. Anything that cannot be found resolves to
UNDEFINED, which the operators treat as fail-closed.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from accesslayer.policies.models import EvaluationRequest


class _Undefined:
    """Sentinel for attribute paths that do not resolve."""

    _instance: _Undefined | None = None

    def __new__(cls) -> _Undefined:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "UNDEFINED"

    def __copy__(self) -> _Undefined:
        return self

    def __deepcopy__(self, memo: dict[int, Any]) -> _Undefined:
        return self


UNDEFINED: Any = _Undefined()

SUBJECT_ROOTS: frozenset[str] = frozenset({"user", "subject"})
RESOURCE_ROOTS: frozenset[str] = frozenset({"resource"})
ENVIRONMENT_ROOTS: frozenset[str] = frozenset({"environment", "env", "context"})
ATTRIBUTE_ROOTS: frozenset[str] = SUBJECT_ROOTS | RESOURCE_ROOTS | ENVIRONMENT_ROOTS

DAY_NAMES: tuple[str, ...] = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


def split_resource(resource: str) -> tuple[str, str | None]:
    """Split a "type:id" resource string on its first colon.

    A resource without a colon (or with an empty id) has no id.
    """
    resource_type, sep, resource_id = (resource or "").partition(":")
    if not sep or not resource_id:
        return resource_type, None
    return resource_type, resource_id


@dataclass(frozen=True)
class EvaluationContext:
    """Everything attribute paths can resolve against for one decision."""

    subject_id: str | None = None
    subject_type: str | None = None
    subject_attributes: Mapping[str, Any] = field(default_factory=dict)
    resource: str = ""
    resource_attributes: Mapping[str, Any] | None = None
    environment: Mapping[str, Any] = field(default_factory=dict)
    now: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @classmethod
    def from_request(
        cls,
        request: EvaluationRequest,
        now: datetime | None = None,
    ) -> EvaluationContext:
        """Build a context from an evaluation request."""
        return cls(
            subject_id=request.subject.id,
            subject_type=request.subject.type,
            subject_attributes=request.subject.attributes,
            resource=request.resource,
            resource_attributes=request.resource_attributes,
            environment=request.context,
            now=now or datetime.now(timezone.utc),
        )


def resolve(path: str, ctx: EvaluationContext) -> Any:
    """
    Resolve a dotted attribute path.

    Args:
        path: Attribute path such as "user.department"
        ctx: Evaluation context for the current request

    Returns:
        The resolved value, or UNDEFINED if the path does not resolve
    """
    if not isinstance(path, str):
        return UNDEFINED

    root, _, rest = path.strip().partition(".")
    if not rest:
        return UNDEFINED
    segments = rest.split(".")

    if root in SUBJECT_ROOTS:
        return _resolve_subject(segments, ctx)
    if root in RESOURCE_ROOTS:
        return _resolve_resource(segments, ctx)
    if root in ENVIRONMENT_ROOTS:
        return _resolve_environment(segments, ctx)
    return UNDEFINED


def _resolve_subject(segments: list[str], ctx: EvaluationContext) -> Any:
    head = segments[0]

    if head == "attributes":
        return _walk(ctx.subject_attributes, segments[1:])
    if len(segments) == 1:
        if head == "id" and ctx.subject_id is not None:
            return ctx.subject_id
        if head == "type" and ctx.subject_type is not None:
            return ctx.subject_type

    return _walk(ctx.subject_attributes, segments)


def _resolve_resource(segments: list[str], ctx: EvaluationContext) -> Any:
    if ctx.resource_attributes is not None:
        value = _walk(ctx.resource_attributes, segments)
        if value is not UNDEFINED:
            return value

    # Derived from "type:id" when not supplied explicitly
    if len(segments) == 1:
        resource_type, resource_id = split_resource(ctx.resource)
        if segments[0] == "type" and resource_type:
            return resource_type
        if segments[0] == "id" and resource_id is not None:
            return resource_id

    return UNDEFINED


def _resolve_environment(segments: list[str], ctx: EvaluationContext) -> Any:
    value = _walk(ctx.environment, segments)
    if value is not UNDEFINED or len(segments) != 1:
        return value

    # Clock-derived defaults
    name = segments[0]
    if name == "hour":
        return ctx.now.hour
    if name == "day_of_week":
        return DAY_NAMES[ctx.now.weekday()]
    if name == "date":
        return ctx.now.date().isoformat()
    return UNDEFINED


def _walk(value: Any, segments: list[str]) -> Any:
    current = value
    for segment in segments:
        if isinstance(current, Mapping):
            if segment not in current:
                return UNDEFINED
            current = current[segment]
        elif isinstance(current, (list, tuple)) and segment.isdigit():
            index = int(segment)
            if index >= len(current):
                return UNDEFINED
            current = current[index]
        else:
            return UNDEFINED
    return current


def stringify(value: Any) -> str:
    """Render a value as text for string operators and template interpolation."""
    if value is UNDEFINED or value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return ",".join(stringify(item) for item in value)
    if isinstance(value, Mapping):
        return json.dumps(dict(value), sort_keys=True, default=str)
    return str(value)
