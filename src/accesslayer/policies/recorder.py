"""
Writes decisions, policy changes and version snapshots to an AuditRepository.

A failing repository is logged and otherwise ignored, so a broken audit
sink never changes a decision or blocks an admin action.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog

from accesslayer.policies.audit import (
    AuditLogEntry,
    PolicyEvaluationRecord,
    PolicyVersion,
    diff_policies,
)
from accesslayer.policies.repository import AuditRepository

if TYPE_CHECKING:
    from accesslayer.policies.models import EvaluationRequest, EvaluationResult, Policy

logger = structlog.get_logger()


class PolicyAuditRecorder:
    """Turns engine events into audit rows; repository failures are logged, not raised."""

    def __init__(self, repository: AuditRepository) -> None:
        self.repository = repository

    def record_decision(
        self,
        request: EvaluationRequest,
        result: EvaluationResult,
        source: str = "evaluate",
        snapshot_version: int | None = None,
    ) -> PolicyEvaluationRecord | None:
        """Record an access decision.

        Returns None on repository error (fail open).
        """
        try:
            record = PolicyEvaluationRecord(
                id=str(uuid.uuid4()),
                timestamp=result.timestamp,
                tenant_id=request.tenant_id,
                subject_id=request.subject.id,
                action=request.action,
                resource=request.resource,
                result=result.result.value,
                matched_policy_ids=tuple(p.id for p in result.matched_policies),
                evaluation_time_ms=result.evaluation_time_ms,
                reason=result.details.reason,
                source=source,
                snapshot_version=snapshot_version,
            )
            self.repository.record_evaluation(record)
            return record

        except Exception:
            logger.warning(
                "policy_audit_record_failed",
                action="evaluate",
                resource=request.resource,
                exc_info=True,
            )
            return None

    def record_change(
        self,
        action: str,
        before: Policy | None,
        after: Policy | None,
        actor: str | None = None,
        comment: str | None = None,
    ) -> AuditLogEntry | None:
        """Record an administrative change to a policy.

        Creates an AuditLogEntry, and a PolicyVersion whenever the policy's
        version number advanced (create and update).

        Returns None on repository error (fail open).
        """
        subject = after or before
        if subject is None:
            return None

        try:
            now = datetime.now(timezone.utc)
            entry = AuditLogEntry(
                id=str(uuid.uuid4()),
                created_at=now,
                action=action,
                resource_type="policy",
                resource_id=subject.id,
                actor=actor,
                before=before.to_dict() if before else None,
                after=after.to_dict() if after else None,
            )
            self.repository.record_audit_log(entry)

            if after is not None and (before is None or after.version != before.version):
                self.repository.record_version(
                    PolicyVersion(
                        policy_id=after.id,
                        version=after.version,
                        changes=diff_policies(before, after),
                        changed_by=actor,
                        changed_at=now,
                        comment=comment,
                    )
                )

            logger.info(
                "policy_change_recorded",
                action=action,
                policy_id=subject.id,
                policy_name=subject.name,
                actor=actor,
            )
            return entry

        except Exception:
            logger.warning(
                "policy_audit_record_failed",
                action=action,
                policy_id=subject.id,
                exc_info=True,
            )
            return None
