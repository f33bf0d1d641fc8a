"""Tests for policy audit models, repository and recorder."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

from accesslayer.policies.audit import (
    AuditLogEntry,
    PolicyEvaluationRecord,
    PolicyVersion,
    build_stats,
    diff_policies,
)
from accesslayer.policies.models import (
    EvaluationRequest,
    EvaluationResult,
    MatchedPolicy,
    Policy,
    PolicyEffect,
    PolicyStatus,
)
from accesslayer.policies.recorder import PolicyAuditRecorder
from accesslayer.policies.repository import InMemoryAuditRepository

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def _policy(name="p1", **overrides):
    fields = {
        "id": f"id-{name}",
        "name": name,
        "display_name": name,
        "effect": PolicyEffect.ALLOW,
        "resources": ("*",),
        "actions": ("*",),
    }
    fields.update(overrides)
    return Policy(**fields)


def _record(result="ALLOW", matched=("id-p1",), timestamp=NOW, elapsed=1.0, source="evaluate"):
    return PolicyEvaluationRecord(
        id="r",
        timestamp=timestamp,
        tenant_id=None,
        subject_id="alice",
        action="read",
        resource="doc:1",
        result=result,
        matched_policy_ids=matched,
        evaluation_time_ms=elapsed,
        reason=None,
        source=source,
    )


def _entry(resource_id, created_at):
    return AuditLogEntry(
        id="e",
        created_at=created_at,
        action="update",
        resource_type="policy",
        resource_id=resource_id,
        actor=None,
    )


class TestDiffPolicies:
    """Tests for diff_policies."""

    def test_create_lists_all_fields(self):
        changes = {c.field: c for c in diff_policies(None, _policy())}

        assert changes["name"].old_value is None
        assert changes["name"].new_value == "p1"
        assert "version" not in changes

    def test_only_changed_fields(self):
        before = _policy()
        after = replace(before, priority=5, version=2, updated_by="bob")

        changes = diff_policies(before, after)

        assert [(c.field, c.old_value, c.new_value) for c in changes] == [("priority", 100, 5)]


class TestBuildStats:
    """Tests for build_stats."""

    def test_counts(self):
        policies = [
            _policy("p1", status=PolicyStatus.ACTIVE),
            _policy("p2", effect=PolicyEffect.DENY),
        ]
        records = [
            _record(elapsed=1.0),
            _record(elapsed=3.0),
            _record(result="DENY", matched=(), timestamp=NOW - timedelta(days=2), elapsed=2.0),
        ]

        stats = build_stats(policies, records, now=NOW).to_dict()

        assert stats["by_status"] == [{"status": "active", "count": 1}, {"status": "draft", "count": 1}]
        assert stats["by_effect"] == [{"effect": "ALLOW", "count": 1}, {"effect": "DENY", "count": 1}]
        assert stats["active_policies"] == 1
        assert stats["total_evaluations"] == 3
        assert stats["evaluations_last_24h"] == 2
        assert stats["evaluations_by_result"] == {"allow": 2, "deny": 1}
        assert stats["avg_evaluation_time_ms"] == 2.0
        assert stats["most_used_policies"] == [
            {"policy_id": "id-p1", "policy_name": "p1", "evaluation_count": 2}
        ]

    def test_only_winning_policy_counted(self):
        stats = build_stats([], [_record(matched=("a", "b"))], now=NOW)

        assert stats.most_used_policies == [{"policy_id": "a", "policy_name": "a", "evaluation_count": 1}]

    def test_empty(self):
        stats = build_stats([], [], now=NOW)

        assert stats.total_evaluations == 0
        assert stats.avg_evaluation_time_ms == 0.0

    def test_dry_runs_kept_out_of_usage(self):
        records = [_record(), _record(result="DENY", matched=(), source="test"), _record(source="test")]

        stats = build_stats([_policy("p1")], records, now=NOW)

        assert stats.total_evaluations == 1
        assert (stats.allow_count, stats.deny_count) == (1, 0)
        assert stats.test_runs == 2
        assert stats.most_used_policies[0]["evaluation_count"] == 1


class TestInMemoryAuditRepository:
    """Tests for InMemoryAuditRepository."""

    def test_retention_bound(self):
        repo = InMemoryAuditRepository(retention=2)
        for i in range(3):
            repo.record_evaluation(_record(timestamp=NOW + timedelta(seconds=i)))

        records = repo.get_evaluations()

        assert len(records) == 2
        assert records[0].timestamp == NOW + timedelta(seconds=2)

    def test_filter_by_policy(self):
        repo = InMemoryAuditRepository()
        repo.record_evaluation(_record(matched=("a",)))
        repo.record_evaluation(_record(matched=("b", "a")))
        repo.record_evaluation(_record(matched=("b",)))

        assert len(repo.get_evaluations(policy_id="a")) == 2

    def test_filter_by_hours(self):
        repo = InMemoryAuditRepository()
        now = datetime.now(timezone.utc)
        repo.record_evaluation(_record(timestamp=now))
        repo.record_evaluation(_record(timestamp=now - timedelta(hours=30)))

        assert len(repo.get_evaluations(hours=24)) == 1

    def test_audit_logs_newest_first(self):
        repo = InMemoryAuditRepository()
        repo.record_audit_log(_entry("a", NOW))
        repo.record_audit_log(_entry("a", NOW + timedelta(minutes=1)))
        repo.record_audit_log(_entry("b", NOW))

        logs = repo.get_audit_logs("a")

        assert [e.created_at for e in logs] == [NOW + timedelta(minutes=1), NOW]

    def test_versions_oldest_first(self):
        repo = InMemoryAuditRepository()
        for version in (1, 2):
            repo.record_version(
                PolicyVersion(policy_id="a", version=version, changes=(), changed_by=None, changed_at=NOW)
            )

        assert [v.version for v in repo.get_versions("a")] == [1, 2]
        assert repo.get_versions("missing") == []


class TestPolicyAuditRecorder:
    """Tests for PolicyAuditRecorder."""

    def _decision(self):
        request = EvaluationRequest.model_validate(
            {"subject": {"id": "alice"}, "action": "read", "resource": "doc:1", "tenant_id": "acme"}
        )
        result = EvaluationResult(
            result=PolicyEffect.ALLOW,
            matched_policies=[MatchedPolicy(id="id-p1", name="p1", effect=PolicyEffect.ALLOW, priority=1)],
            evaluation_time_ms=0.4,
        )
        return request, result

    def test_record_decision(self):
        repo = InMemoryAuditRepository()
        request, result = self._decision()

        record = PolicyAuditRecorder(repo).record_decision(request, result, source="test", snapshot_version=7)

        assert record.subject_id == "alice"
        assert record.tenant_id == "acme"
        assert record.matched_policy_ids == ("id-p1",)
        assert record.source == "test"
        assert record.snapshot_version == 7
        assert repo.get_evaluations() == [record]

    def test_record_decision_fails_open(self):
        repo = MagicMock()
        repo.record_evaluation.side_effect = RuntimeError("disk full")
        request, result = self._decision()

        assert PolicyAuditRecorder(repo).record_decision(request, result) is None

    def test_record_change_creates_version(self):
        repo = InMemoryAuditRepository()
        recorder = PolicyAuditRecorder(repo)
        before = _policy()
        after = replace(before, version=2, priority=1)

        entry = recorder.record_change("update", before, after, actor="bob", comment="tighten")

        assert entry.before["priority"] == 100
        assert entry.after["priority"] == 1
        versions = repo.get_versions("id-p1")
        assert versions[0].version == 2
        assert versions[0].comment == "tighten"
        assert versions[0].changed_by == "bob"

    def test_status_change_creates_no_version(self):
        repo = InMemoryAuditRepository()
        before = _policy()

        PolicyAuditRecorder(repo).record_change("activate", before, replace(before, status=PolicyStatus.ACTIVE))

        assert len(repo.get_audit_logs()) == 1
        assert repo.get_versions("id-p1") == []

    def test_delete_entry(self):
        repo = InMemoryAuditRepository()

        entry = PolicyAuditRecorder(repo).record_change("delete", _policy(), None)

        assert entry.after is None
        assert entry.resource_id == "id-p1"

    def test_record_change_fails_open(self):
        repo = MagicMock()
        repo.record_audit_log.side_effect = RuntimeError("disk full")

        assert PolicyAuditRecorder(repo).record_change("create", None, _policy()) is None

    def test_nothing_to_record(self):
        repo = MagicMock()

        assert PolicyAuditRecorder(repo).record_change("delete", None, None) is None
        repo.record_audit_log.assert_not_called()
