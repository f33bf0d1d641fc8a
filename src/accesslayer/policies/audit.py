"""
Policy audit domain models.

Immutable records of policy decisions, administrative changes and policy
versions, plus the aggregate statistics shown on the policy dashboard.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from accesslayer.policies.models import Policy


@dataclass(frozen=True)
class PolicyEvaluationRecord:
    """Record of one access decision."""

    id: str
    timestamp: datetime
    tenant_id: str | None
    subject_id: str | None
    action: str
    resource: str
    result: str  # "ALLOW" | "DENY"
    matched_policy_ids: tuple[str, ...]
    evaluation_time_ms: float
    reason: str | None
    source: str = "evaluate"  # "evaluate" | "test"
    snapshot_version: int | None = None


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: Any
    new_value: Any


@dataclass(frozen=True)
class AuditLogEntry:
    """Record of an administrative action on a policy."""

    id: str
    created_at: datetime
    action: str  # create | update | delete | activate | deactivate | archive
    resource_type: str
    resource_id: str
    actor: str | None
    before: dict[str, Any] | None = None
    after: dict[str, Any] | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class PolicyVersion:
    """One entry in a policy's version history."""

    policy_id: str
    version: int
    changes: tuple[FieldChange, ...]
    changed_by: str | None
    changed_at: datetime
    comment: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "policy_id": self.policy_id,
            "version": self.version,
            "changes": [
                {"field": c.field, "old_value": c.old_value, "new_value": c.new_value}
                for c in self.changes
            ],
            "changed_by": self.changed_by,
            "changed_at": self.changed_at.isoformat(),
            "comment": self.comment,
        }


@dataclass
class PolicyStats:
    """Aggregate policy and evaluation statistics."""

    by_status: dict[str, int]
    by_effect: dict[str, int]
    total_policies: int
    active_policies: int
    total_evaluations: int
    evaluations_last_24h: int
    allow_count: int
    deny_count: int
    avg_evaluation_time_ms: float
    most_used_policies: list[dict[str, Any]]
    test_runs: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "by_status": [{"status": k, "count": v} for k, v in sorted(self.by_status.items())],
            "by_effect": [{"effect": k, "count": v} for k, v in sorted(self.by_effect.items())],
            "total_policies": self.total_policies,
            "active_policies": self.active_policies,
            "total_evaluations": self.total_evaluations,
            "evaluations_last_24h": self.evaluations_last_24h,
            "evaluations_by_result": {"allow": self.allow_count, "deny": self.deny_count},
            "avg_evaluation_time_ms": self.avg_evaluation_time_ms,
            "most_used_policies": self.most_used_policies,
            "test_runs": self.test_runs,
        }


# Fields that change on every update and are not part of a version diff
_VOLATILE_FIELDS = frozenset({"version", "updated_at", "updated_by", "created_at", "created_by"})


def diff_policies(before: Policy | None, after: Policy) -> tuple[FieldChange, ...]:
    """List the fields that differ between two versions of a policy."""
    old = before.to_dict() if before else {}
    new = after.to_dict()
    return tuple(
        FieldChange(field=name, old_value=old.get(name), new_value=value)
        for name, value in new.items()
        if name not in _VOLATILE_FIELDS and old.get(name) != value
    )


def build_stats(
    policies: Iterable[Policy],
    evaluations: Iterable[PolicyEvaluationRecord],
    now: datetime,
    top: int = 5,
) -> PolicyStats:
    """Compute dashboard statistics from a policy set and evaluation log.

    Only live decisions (source "evaluate") feed the usage figures; Test
    Policy dry runs are counted separately in ``test_runs``.
    """
    policy_list = list(policies)
    records = []
    test_runs = 0
    for record in evaluations:
        if record.source == "evaluate":
            records.append(record)
        else:
            test_runs += 1
    names = {p.id: p.name for p in policy_list}

    cutoff = now - timedelta(hours=24)
    usage: Counter[str] = Counter()
    for record in records:
        # The winning policy is listed first
        if record.matched_policy_ids:
            usage[record.matched_policy_ids[0]] += 1

    total_time = sum(r.evaluation_time_ms for r in records)

    return PolicyStats(
        by_status=dict(Counter(p.status.value for p in policy_list)),
        by_effect=dict(Counter(p.effect.value for p in policy_list)),
        total_policies=len(policy_list),
        active_policies=sum(1 for p in policy_list if p.is_active),
        total_evaluations=len(records),
        evaluations_last_24h=sum(1 for r in records if r.timestamp >= cutoff),
        allow_count=sum(1 for r in records if r.result == "ALLOW"),
        deny_count=sum(1 for r in records if r.result == "DENY"),
        avg_evaluation_time_ms=round(total_time / len(records), 3) if records else 0.0,
        most_used_policies=[
            {
                "policy_id": policy_id,
                "policy_name": names.get(policy_id, policy_id),
                "evaluation_count": count,
            }
            for policy_id, count in usage.most_common(top)
        ],
        test_runs=test_runs,
    )
