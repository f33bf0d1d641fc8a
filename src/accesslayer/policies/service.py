"""
Policy administration service.

Python rendition of the policy administration surface:

    create_policy       POST   /policies
    update_policy       PUT    /policies/{id}
    get_policy          GET    /policies/{id}
    list_policies       GET    /policies
    delete_policy       DELETE /policies/{id}
    activate_policy     POST   /policies/{id}/activate
    deactivate_policy   POST   /policies/{id}/deactivate
    archive_policy      POST   /policies/{id}/archive
    test_policy         POST   /policies/{id}/test
    evaluate            POST   /evaluate
    get_versions        GET    /policies/{id}/versions
    get_stats           GET    /policies/stats

Every method takes and returns wire-shaped dictionaries. Changes go through
the PolicyStore (copy-on-write) and are recorded by the audit recorder.
"""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any, Mapping

import structlog

from accesslayer.config.settings import Settings, get_settings
from accesslayer.core.errors import ValidationError
from accesslayer.policies.audit import build_stats
from accesslayer.policies.conditions import ConditionLimits
from accesslayer.policies.decision import PolicyDecisionPoint
from accesslayer.policies.directory import AttributeDirectory
from accesslayer.policies.models import (
    EvaluationRequest,
    Policy,
    PolicyPayload,
    PolicyStatus,
)
from accesslayer.policies.recorder import PolicyAuditRecorder
from accesslayer.policies.repository import AuditRepository, InMemoryAuditRepository
from accesslayer.policies.store import (
    ALLOWED_TRANSITIONS,
    PolicyStore,
    check_editable,
    check_transition,
)

logger = structlog.get_logger()


class PolicyAdministrationService:
    """Administers policies and answers evaluation requests."""

    def __init__(
        self,
        store: PolicyStore | None = None,
        *,
        settings: Settings | None = None,
        repository: AuditRepository | None = None,
        directory: AttributeDirectory | None = None,
    ):
        self.settings = settings or get_settings()
        self.store = store if store is not None else PolicyStore()
        self.repository = (
            repository
            if repository is not None
            else InMemoryAuditRepository(retention=self.settings.audit_retention)
        )
        self.recorder = PolicyAuditRecorder(self.repository)
        self.directory = directory
        self.limits = ConditionLimits(
            max_depth=self.settings.max_condition_depth,
            max_nodes=self.settings.max_condition_nodes,
            max_regex_length=self.settings.max_regex_length,
        )
        self.pdp = PolicyDecisionPoint(
            self.store,
            settings=self.settings,
            recorder=self.recorder,
            directory=directory,
        )

    # -- Policy CRUD --

    def create_policy(self, payload: Mapping[str, Any], actor: str | None = None) -> dict[str, Any]:
        """
        Create a policy.

        Policies start as drafts. A payload requesting "active" or "archived"
        is stored directly in that status; the audit log still shows the
        create followed by the transition.

        Raises:
            ValidationError: Malformed payload or condition tree, duplicate name
        """
        parsed = PolicyPayload.parse(payload)
        requested = parsed.status
        if requested is not PolicyStatus.DRAFT and requested not in ALLOWED_TRANSITIONS[PolicyStatus.DRAFT]:
            raise ValidationError(
                f"new policies cannot be created as {requested.value}",
                details={"name": parsed.name},
            )

        now = datetime.now(timezone.utc)
        policy = Policy.from_payload(
            parsed,
            policy_id=str(uuid.uuid4()),
            limits=self.limits,
            created_at=now,
            updated_at=now,
            created_by=actor,
            updated_by=actor,
        )
        # Published once, already in the requested status
        stored = self.store.add(replace(policy, status=requested))
        created = replace(stored, status=PolicyStatus.DRAFT)
        self.recorder.record_change("create", None, created, actor=actor)
        logger.info("policy_created", policy_id=stored.id, policy_name=stored.name, actor=actor)

        if requested is not PolicyStatus.DRAFT:
            self._record_transition(created, stored, actor)
        return stored.to_dict()

    def update_policy(
        self,
        policy_id: str,
        payload: Mapping[str, Any],
        actor: str | None = None,
    ) -> dict[str, Any]:
        """
        Replace a policy's definition.

        Only draft and inactive policies can be edited. The version is
        incremented on every successful update. A status in the payload that
        differs from the current one is applied as a lifecycle transition
        in the same store update, so the edit and the transition become
        visible together or not at all.

        Raises:
            PolicyNotFoundError: Unknown policy id
            PolicyStateError: Policy is active or archived
            ValidationError: Malformed payload
        """
        parsed = PolicyPayload.parse(payload)
        status_requested = "status" in parsed.model_fields_set
        now = datetime.now(timezone.utc)

        def apply(current: Policy) -> Policy:
            check_editable(current)
            if status_requested and parsed.status is not current.status:
                check_transition(current, parsed.status)
            updated = Policy.from_payload(
                parsed,
                policy_id=current.id,
                limits=self.limits,
                version=current.version + 1,
                created_at=current.created_at,
                created_by=current.created_by,
                updated_at=now,
                updated_by=actor,
            )
            return replace(updated, status=parsed.status if status_requested else current.status)

        before, after = self.store.update(policy_id, apply)
        edited = replace(after, status=before.status)
        self.recorder.record_change("update", before, edited, actor=actor)
        logger.info(
            "policy_updated",
            policy_id=after.id,
            policy_name=after.name,
            version=after.version,
            actor=actor,
        )

        if after.status is not before.status:
            self._record_transition(edited, after, actor)
        return after.to_dict()

    def get_policy(self, policy_id: str) -> dict[str, Any]:
        return self.store.get(policy_id).to_dict()

    def list_policies(
        self,
        status: str | PolicyStatus | None = None,
        tenant_id: str | None = None,
    ) -> list[dict[str, Any]]:
        """List policies in precedence order, optionally filtered."""
        wanted = PolicyStatus(status) if status is not None else None
        policies = sorted(self.store.snapshot().policies, key=lambda p: (p.priority, p.sequence))
        return [
            p.to_dict()
            for p in policies
            if (wanted is None or p.status is wanted) and (tenant_id is None or p.tenant_id == tenant_id)
        ]

    def delete_policy(self, policy_id: str, actor: str | None = None) -> None:
        removed = self.store.remove(policy_id)
        self.recorder.record_change("delete", removed, None, actor=actor)
        logger.info("policy_deleted", policy_id=removed.id, policy_name=removed.name, actor=actor)

    # -- Lifecycle --

    def activate_policy(self, policy_id: str, actor: str | None = None) -> dict[str, Any]:
        return self._transition(policy_id, PolicyStatus.ACTIVE, actor).to_dict()

    def deactivate_policy(self, policy_id: str, actor: str | None = None) -> dict[str, Any]:
        return self._transition(policy_id, PolicyStatus.INACTIVE, actor).to_dict()

    def archive_policy(self, policy_id: str, actor: str | None = None) -> dict[str, Any]:
        return self._transition(policy_id, PolicyStatus.ARCHIVED, actor).to_dict()

    def _transition(self, policy_id: str, target: PolicyStatus, actor: str | None) -> Policy:
        now = datetime.now(timezone.utc)

        def apply(current: Policy) -> Policy:
            check_transition(current, target)
            return replace(current, status=target, updated_at=now, updated_by=actor)

        before, after = self.store.update(policy_id, apply)
        self._record_transition(before, after, actor)
        return after

    def _record_transition(self, before: Policy, after: Policy, actor: str | None) -> None:
        self.recorder.record_change(_TRANSITION_ACTIONS[after.status], before, after, actor=actor)
        logger.info(
            "policy_status_changed",
            policy_id=after.id,
            policy_name=after.name,
            from_status=before.status.value,
            to_status=after.status.value,
            actor=actor,
        )

    # -- Evaluation --

    def test_policy(self, policy_id: str, request_body: Mapping[str, Any]) -> dict[str, Any]:
        """
        Evaluate a request against one policy in isolation.

        The policy is treated as active whatever its status, so drafts can be
        tried before activation.
        """
        policy = self.store.get(policy_id)
        request = EvaluationRequest.parse(request_body)
        result = self.pdp.evaluate_policies(
            [replace(policy, status=PolicyStatus.ACTIVE)],
            request,
            source="test",
        )
        return result.to_dict()

    def evaluate(self, request_body: Mapping[str, Any]) -> dict[str, Any]:
        """Decide a request against the current policy set."""
        request = EvaluationRequest.parse(request_body)
        return self.pdp.evaluate(request).to_dict()

    # -- History and statistics --

    def get_versions(self, policy_id: str) -> list[dict[str, Any]]:
        """Version history of a policy, newest first."""
        self.store.get(policy_id)
        versions = self.repository.get_versions(policy_id)
        return [v.to_dict() for v in sorted(versions, key=lambda v: v.version, reverse=True)]

    def get_stats(self) -> dict[str, Any]:
        return build_stats(
            self.store.snapshot().policies,
            self.repository.get_evaluations(),
            now=datetime.now(timezone.utc),
        ).to_dict()


_TRANSITION_ACTIONS: dict[PolicyStatus, str] = {
    PolicyStatus.ACTIVE: "activate",
    PolicyStatus.INACTIVE: "deactivate",
    PolicyStatus.ARCHIVED: "archive",
    PolicyStatus.DRAFT: "update",
}
