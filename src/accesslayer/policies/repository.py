"""
Policy audit repository.

Holds decision records, administrative audit entries and version history.
All audit collections are insert-only (no update/delete). The in-memory
implementation bounds decision and audit-log retention.
"""

from __future__ import annotations

import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Protocol

from accesslayer.policies.audit import AuditLogEntry, PolicyEvaluationRecord, PolicyVersion


class AuditRepository(Protocol):
    """Storage interface for policy audit records."""

    def record_evaluation(self, record: PolicyEvaluationRecord) -> None: ...

    def record_audit_log(self, entry: AuditLogEntry) -> None: ...

    def record_version(self, version: PolicyVersion) -> None: ...

    def get_evaluations(
        self, hours: int | None = None, policy_id: str | None = None
    ) -> list[PolicyEvaluationRecord]: ...

    def get_audit_logs(self, resource_id: str | None = None) -> list[AuditLogEntry]: ...

    def get_versions(self, policy_id: str) -> list[PolicyVersion]: ...


class InMemoryAuditRepository:
    """Thread-safe in-memory audit repository."""

    def __init__(self, retention: int = 10_000) -> None:
        self._lock = threading.Lock()
        self._evaluations: deque[PolicyEvaluationRecord] = deque(maxlen=retention)
        self._audit_logs: deque[AuditLogEntry] = deque(maxlen=retention)
        self._versions: dict[str, list[PolicyVersion]] = {}

    def record_evaluation(self, record: PolicyEvaluationRecord) -> None:
        """Insert a decision record."""
        with self._lock:
            self._evaluations.append(record)

    def record_audit_log(self, entry: AuditLogEntry) -> None:
        """Insert an administrative audit entry."""
        with self._lock:
            self._audit_logs.append(entry)

    def record_version(self, version: PolicyVersion) -> None:
        """Append to a policy's version history."""
        with self._lock:
            self._versions.setdefault(version.policy_id, []).append(version)

    def get_evaluations(
        self,
        hours: int | None = None,
        policy_id: str | None = None,
    ) -> list[PolicyEvaluationRecord]:
        """Get decision records, newest first, optionally filtered."""
        with self._lock:
            records = list(self._evaluations)

        if hours is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(hours=hours)
            records = [r for r in records if r.timestamp >= cutoff]
        if policy_id is not None:
            records = [r for r in records if policy_id in r.matched_policy_ids]
        return sorted(records, key=lambda r: r.timestamp, reverse=True)

    def get_audit_logs(self, resource_id: str | None = None) -> list[AuditLogEntry]:
        """Get audit entries, newest first."""
        with self._lock:
            entries = list(self._audit_logs)
        if resource_id is not None:
            entries = [e for e in entries if e.resource_id == resource_id]
        return sorted(entries, key=lambda e: e.created_at, reverse=True)

    def get_versions(self, policy_id: str) -> list[PolicyVersion]:
        """Get a policy's version history, oldest first."""
        with self._lock:
            return list(self._versions.get(policy_id, []))
