"""
Attribute directory.

Stores attribute assignments for users and resources, each with an optional
validity window, and enriches evaluation requests with the assignments in
force at decision time. Values supplied on the request itself always win
over directory values.

Assigning an attribute supersedes (deactivates) earlier assignments of the
same name; deactivated assignments stay available as history.
"""

from __future__ import annotations

import threading
from collections.abc import Mapping
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any

import structlog

from accesslayer.policies.attributes import split_resource
from accesslayer.policies.models import EvaluationRequest

logger = structlog.get_logger()


@dataclass(frozen=True)
class AttributeAssignment:
    """A single attribute value assigned to a user or resource."""

    name: str
    value: Any
    valid_from: datetime | None = None
    valid_until: datetime | None = None
    is_active: bool = True
    assigned_by: str | None = None
    assigned_at: datetime | None = None

    def is_valid_at(self, moment: datetime) -> bool:
        if not self.is_active:
            return False
        if self.valid_from is not None and moment < _aware(self.valid_from):
            return False
        if self.valid_until is not None and moment >= _aware(self.valid_until):
            return False
        return True


class AttributeDirectory:
    """Thread-safe store of user and resource attribute assignments."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, dict[str, list[AttributeAssignment]]] = {}
        self._resources: dict[tuple[str, str], dict[str, list[AttributeAssignment]]] = {}

    # -- Users --

    def assign_user_attribute(
        self,
        user_id: str,
        name: str,
        value: Any,
        *,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        assigned_by: str | None = None,
    ) -> AttributeAssignment:
        """Assign an attribute to a user, superseding any earlier value."""
        assignment = AttributeAssignment(
            name=name,
            value=value,
            valid_from=valid_from,
            valid_until=valid_until,
            assigned_by=assigned_by,
            assigned_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._assign(self._users.setdefault(user_id, {}), assignment)
        logger.debug("user_attribute_assigned", user_id=user_id, attribute=name)
        return assignment

    def bulk_assign_user_attributes(
        self,
        user_id: str,
        attributes: Mapping[str, Any],
        assigned_by: str | None = None,
    ) -> list[AttributeAssignment]:
        return [
            self.assign_user_attribute(user_id, name, value, assigned_by=assigned_by)
            for name, value in attributes.items()
        ]

    def remove_user_attribute(self, user_id: str, name: str) -> bool:
        with self._lock:
            return self._deactivate(self._users.get(user_id, {}), name)

    def user_attributes(self, user_id: str, at: datetime | None = None) -> dict[str, Any]:
        """Attributes in force for a user at the given moment (default now)."""
        with self._lock:
            return self._effective(self._users.get(user_id, {}), at)

    def user_attribute_history(self, user_id: str, name: str) -> list[AttributeAssignment]:
        with self._lock:
            return list(self._users.get(user_id, {}).get(name, []))

    # -- Resources --

    def assign_resource_attribute(
        self,
        resource_type: str,
        resource_id: str,
        name: str,
        value: Any,
        *,
        valid_from: datetime | None = None,
        valid_until: datetime | None = None,
        assigned_by: str | None = None,
    ) -> AttributeAssignment:
        """Assign an attribute to a resource, superseding any earlier value."""
        assignment = AttributeAssignment(
            name=name,
            value=value,
            valid_from=valid_from,
            valid_until=valid_until,
            assigned_by=assigned_by,
            assigned_at=datetime.now(timezone.utc),
        )
        with self._lock:
            self._assign(self._resources.setdefault((resource_type, resource_id), {}), assignment)
        logger.debug(
            "resource_attribute_assigned",
            resource_type=resource_type,
            resource_id=resource_id,
            attribute=name,
        )
        return assignment

    def remove_resource_attribute(self, resource_type: str, resource_id: str, name: str) -> bool:
        with self._lock:
            return self._deactivate(self._resources.get((resource_type, resource_id), {}), name)

    def resource_attributes(
        self,
        resource_type: str,
        resource_id: str,
        at: datetime | None = None,
    ) -> dict[str, Any]:
        """Attributes in force for a resource at the given moment (default now)."""
        with self._lock:
            return self._effective(self._resources.get((resource_type, resource_id), {}), at)

    # -- Enrichment --

    def enrich(self, request: EvaluationRequest, now: datetime | None = None) -> EvaluationRequest:
        """
        Return a copy of the request with directory attributes merged in.

        Args:
            request: The incoming evaluation request
            now: Moment used for validity windows (default now)

        Returns:
            A new EvaluationRequest; the input is not modified
        """
        moment = now or datetime.now(timezone.utc)
        update: dict[str, Any] = {}

        if request.subject.id:
            stored = self.user_attributes(request.subject.id, at=moment)
            if stored:
                subject = request.subject.model_copy(
                    update={"attributes": {**stored, **request.subject.attributes}}
                )
                update["subject"] = subject

        resource_type, resource_id = split_resource(request.resource)
        if resource_id is not None:
            stored = self.resource_attributes(resource_type, resource_id, at=moment)
            if stored:
                update["resource_attributes"] = {**stored, **(request.resource_attributes or {})}

        return request.model_copy(update=update) if update else request

    # -- Internals --

    @staticmethod
    def _assign(table: dict[str, list[AttributeAssignment]], assignment: AttributeAssignment) -> None:
        history = table.setdefault(assignment.name, [])
        history[:] = [replace(a, is_active=False) if a.is_active else a for a in history]
        history.append(assignment)

    @staticmethod
    def _deactivate(table: dict[str, list[AttributeAssignment]], name: str) -> bool:
        history = table.get(name)
        if not history or not any(a.is_active for a in history):
            return False
        history[:] = [replace(a, is_active=False) for a in history]
        return True

    @staticmethod
    def _effective(table: dict[str, list[AttributeAssignment]], at: datetime | None) -> dict[str, Any]:
        moment = _aware(at) if at else datetime.now(timezone.utc)
        result: dict[str, Any] = {}
        for name, history in table.items():
            for assignment in reversed(history):
                if assignment.is_valid_at(moment):
                    result[name] = assignment.value
                    break
        return result


def _aware(moment: datetime) -> datetime:
    return moment if moment.tzinfo is not None else moment.replace(tzinfo=timezone.utc)
