"""
Policy and evaluation models.

Wire-facing request/response shapes are pydantic models. A validated Policy
is a frozen dataclass owning its condition tree; policies are built from a
PolicyPayload once and never mutated afterwards (updates produce new
instances).
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from accesslayer.core.errors import ValidationError
from accesslayer.policies.conditions import (
    ConditionLimits,
    ConditionNode,
    conditions_to_dict,
    parse_conditions,
)


class PolicyEffect(StrEnum):
    """Outcome a policy produces when it matches."""

    ALLOW = "ALLOW"
    DENY = "DENY"


class PolicyStatus(StrEnum):
    """Policy lifecycle states. Only active policies are evaluated."""

    DRAFT = "draft"
    ACTIVE = "active"
    INACTIVE = "inactive"
    ARCHIVED = "archived"


class SubjectType(StrEnum):
    """Kinds of subject a policy can target."""

    USER = "user"
    GROUP = "group"
    ROLE = "role"
    SERVICE = "service"


NAME_PATTERN = re.compile(r"^[a-z0-9][a-z0-9_-]*$")
RESOURCE_PATTERN = re.compile(r"^(\*|[^\s:*]+(:[^\s]+)?)$")
ACTION_PATTERN = re.compile(r"^\S+$")

MIN_PRIORITY = 0
MAX_PRIORITY = 1000
DEFAULT_PRIORITY = 100


class PolicySubject(BaseModel):
    """Subject matcher: every provided field must match the request subject."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    type: SubjectType | None = None
    id: str | None = None
    attributes: dict[str, Any] = Field(default_factory=dict)


class PolicyPayload(BaseModel):
    """Policy as submitted by the administration UI or a policy bundle."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    name: str = Field(max_length=100)
    display_name: str
    description: str = ""
    effect: PolicyEffect
    priority: int = Field(default=DEFAULT_PRIORITY, ge=MIN_PRIORITY, le=MAX_PRIORITY)
    status: PolicyStatus = PolicyStatus.DRAFT
    tenant_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("tenant_id", "business_vertical_id"),
    )
    resources: list[str]
    actions: list[str]
    subjects: list[PolicySubject] = Field(default_factory=list)
    conditions: dict[str, Any] | list[Any] | None = None

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = value.strip()
        if not NAME_PATTERN.match(value):
            raise ValueError("name must be a lowercase slug (letters, digits, '-' and '_')")
        return value

    @field_validator("display_name")
    @classmethod
    def _check_display_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("display_name is required")
        return value

    @field_validator("effect", mode="before")
    @classmethod
    def _normalize_effect(cls, value: Any) -> Any:
        return value.strip().upper() if isinstance(value, str) else value

    @field_validator("status", mode="before")
    @classmethod
    def _normalize_status(cls, value: Any) -> Any:
        return value.strip().lower() if isinstance(value, str) else value

    @field_validator("tenant_id", mode="before")
    @classmethod
    def _blank_tenant_is_global(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("resources")
    @classmethod
    def _check_resources(cls, value: list[str]) -> list[str]:
        patterns = [item.strip() for item in value if item and item.strip()]
        if not patterns:
            raise ValueError("at least one resource is required")
        for pattern in patterns:
            if not RESOURCE_PATTERN.match(pattern):
                raise ValueError(f"invalid resource pattern: {pattern!r}")
        return patterns

    @field_validator("actions")
    @classmethod
    def _check_actions(cls, value: list[str]) -> list[str]:
        patterns = [item.strip() for item in value if item and item.strip()]
        if not patterns:
            raise ValueError("at least one action is required")
        for pattern in patterns:
            if not ACTION_PATTERN.match(pattern):
                raise ValueError(f"invalid action pattern: {pattern!r}")
        return patterns

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> PolicyPayload:
        """Validate raw input, converting pydantic errors to ValidationError."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                "invalid policy",
                details={"errors": _format_errors(e)},
            ) from e


@dataclass(frozen=True)
class Policy:
    """A validated policy. Instances are immutable snapshots."""

    id: str
    name: str
    display_name: str
    effect: PolicyEffect
    resources: tuple[str, ...]
    actions: tuple[str, ...]
    priority: int = DEFAULT_PRIORITY
    status: PolicyStatus = PolicyStatus.DRAFT
    description: str = ""
    tenant_id: str | None = None
    subjects: tuple[PolicySubject, ...] = ()
    conditions: ConditionNode | None = None
    version: int = 1
    sequence: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None
    created_by: str | None = None
    updated_by: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status is PolicyStatus.ACTIVE

    @property
    def is_global(self) -> bool:
        return self.tenant_id is None

    @classmethod
    def from_payload(
        cls,
        payload: PolicyPayload,
        *,
        policy_id: str,
        limits: ConditionLimits | None = None,
        **fields: Any,
    ) -> Policy:
        """Build a policy from a validated payload, parsing its condition tree."""
        return cls(
            id=policy_id,
            name=payload.name,
            display_name=payload.display_name,
            description=payload.description,
            effect=payload.effect,
            priority=payload.priority,
            status=payload.status,
            tenant_id=payload.tenant_id,
            resources=tuple(payload.resources),
            actions=tuple(payload.actions),
            subjects=tuple(payload.subjects),
            conditions=parse_conditions(payload.conditions, limits),
            **fields,
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], limits: ConditionLimits | None = None) -> Policy:
        """Build a policy from a full stored document (policy bundles)."""
        payload = PolicyPayload.parse(data)
        version = data.get("version", 1)
        if not isinstance(version, int) or isinstance(version, bool) or version < 1:
            raise ValidationError("version must be a positive integer", details={"name": payload.name})
        return cls.from_payload(
            payload,
            policy_id=str(data.get("id") or payload.name),
            limits=limits,
            version=version,
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
            created_by=data.get("created_by"),
            updated_by=data.get("updated_by"),
        )

    def summary(self) -> MatchedPolicy:
        return MatchedPolicy(
            id=self.id,
            name=self.name,
            effect=self.effect,
            priority=self.priority,
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to the administration API shape."""
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "description": self.description,
            "effect": self.effect.value,
            "priority": self.priority,
            "status": self.status.value,
            "tenant_id": self.tenant_id,
            "resources": list(self.resources),
            "actions": list(self.actions),
            "subjects": [s.model_dump(mode="json", exclude_none=True) for s in self.subjects],
            "conditions": conditions_to_dict(self.conditions),
            "version": self.version,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "created_by": self.created_by,
            "updated_by": self.updated_by,
        }


# -- Evaluation request/response --


class RequestSubject(BaseModel):
    """The subject requesting access."""

    id: str | None = None
    type: str | None = SubjectType.USER.value
    attributes: dict[str, Any] = Field(default_factory=dict)


class EvaluationRequest(BaseModel):
    """An access request: who wants to do what to which resource."""

    model_config = ConfigDict(extra="ignore")

    subject: RequestSubject = Field(default_factory=RequestSubject)
    action: str
    resource: str
    context: dict[str, Any] = Field(default_factory=dict)
    tenant_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices("tenant_id", "business_vertical_id"),
    )
    resource_attributes: dict[str, Any] | None = None

    @field_validator("action", "resource")
    @classmethod
    def _require_text(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @classmethod
    def parse(cls, data: Mapping[str, Any]) -> EvaluationRequest:
        """Validate raw input, converting pydantic errors to ValidationError."""
        try:
            return cls.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(
                "invalid evaluation request",
                details={"errors": _format_errors(e)},
            ) from e


class MatchedPolicy(BaseModel):
    id: str
    name: str
    effect: PolicyEffect
    priority: int


class PolicyError(BaseModel):
    policy_id: str
    policy_name: str
    error: str


class EvaluationDetails(BaseModel):
    conditions_evaluated: int = 0
    conditions_passed: int = 0
    reason: str | None = None
    errors: list[PolicyError] = Field(default_factory=list)


class EvaluationResult(BaseModel):
    """Decision returned to the caller and to the Test Policy screen."""

    result: PolicyEffect
    matched_policies: list[MatchedPolicy] = Field(default_factory=list)
    evaluation_time_ms: float = 0.0
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    details: EvaluationDetails = Field(default_factory=EvaluationDetails)

    @property
    def allowed(self) -> bool:
        return self.result is PolicyEffect.ALLOW

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def _format_errors(error: PydanticValidationError) -> list[str]:
    return [
        f"{'.'.join(str(part) for part in item['loc']) or 'body'}: {item['msg']}"
        for item in error.errors()
    ]


def _parse_timestamp(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as e:
        raise ValidationError("invalid timestamp", details={"value": str(value)}) from e
