"""
In-memory policy store with immutable snapshots.

Readers call snapshot() once per decision and work on the returned
PolicySnapshot; writers build a new snapshot under a lock and swap the
reference. A refresh concurrent with an in-flight decision is therefore never
observed mid-evaluation.

Lifecycle:
    draft    -> active, archived
    active   -> inactive, archived
    inactive -> active, archived
    archived -> (terminal)

Edits are allowed while draft or inactive.
"""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace

import structlog

from accesslayer.core.errors import PolicyNotFoundError, PolicyStateError, ValidationError
from accesslayer.policies.models import Policy, PolicyStatus

logger = structlog.get_logger()

ALLOWED_TRANSITIONS: dict[PolicyStatus, frozenset[PolicyStatus]] = {
    PolicyStatus.DRAFT: frozenset({PolicyStatus.ACTIVE, PolicyStatus.ARCHIVED}),
    PolicyStatus.ACTIVE: frozenset({PolicyStatus.INACTIVE, PolicyStatus.ARCHIVED}),
    PolicyStatus.INACTIVE: frozenset({PolicyStatus.ACTIVE, PolicyStatus.ARCHIVED}),
    PolicyStatus.ARCHIVED: frozenset(),
}

EDITABLE_STATUSES: frozenset[PolicyStatus] = frozenset({PolicyStatus.DRAFT, PolicyStatus.INACTIVE})


def check_transition(policy: Policy, target: PolicyStatus) -> None:
    """Raise PolicyStateError unless policy may move to target."""
    if target not in ALLOWED_TRANSITIONS[policy.status]:
        raise PolicyStateError(
            f"cannot move policy from {policy.status.value} to {target.value}",
            details={"policy_id": policy.id, "status": policy.status.value},
        )


def check_editable(policy: Policy) -> None:
    """Raise PolicyStateError unless policy may be edited."""
    if policy.status not in EDITABLE_STATUSES:
        raise PolicyStateError(
            f"policy is {policy.status.value}; only draft or inactive policies can be edited",
            details={"policy_id": policy.id, "status": policy.status.value},
        )


@dataclass(frozen=True)
class PolicySnapshot:
    """An immutable view of the policy set at one version."""

    version: int
    policies: tuple[Policy, ...] = ()

    def get(self, policy_id: str) -> Policy | None:
        for policy in self.policies:
            if policy.id == policy_id:
                return policy
        return None

    def active(self) -> tuple[Policy, ...]:
        return tuple(p for p in self.policies if p.is_active)

    def __len__(self) -> int:
        return len(self.policies)


class PolicyStore:
    """Copy-on-write policy set."""

    def __init__(self, policies: Iterable[Policy] = ()) -> None:
        self._lock = threading.Lock()
        self._next_sequence = 0
        self._snapshot = PolicySnapshot(version=0)
        if policies:
            self.replace_all(policies)

    def snapshot(self) -> PolicySnapshot:
        """Current snapshot. Safe to hold across a whole decision."""
        return self._snapshot

    @property
    def version(self) -> int:
        return self._snapshot.version

    def get(self, policy_id: str) -> Policy:
        policy = self._snapshot.get(policy_id)
        if policy is None:
            raise PolicyNotFoundError(f"policy not found: {policy_id}", details={"policy_id": policy_id})
        return policy

    def add(self, policy: Policy) -> Policy:
        """Add a new policy, assigning its creation sequence."""
        with self._lock:
            current = self._snapshot.policies
            if any(p.id == policy.id for p in current):
                raise ValidationError("policy id already exists", details={"policy_id": policy.id})
            self._check_unique_name(policy, current)

            stored = replace(policy, sequence=self._allocate_sequence())
            self._publish(current + (stored,))

        logger.debug("policy_stored", policy_id=stored.id, version=self.version)
        return stored

    def update(self, policy_id: str, updater: Callable[[Policy], Policy]) -> tuple[Policy, Policy]:
        """
        Atomically replace a policy with updater(current).

        The updater runs under the store lock and may raise to abort.

        Returns:
            Tuple of (before, after)
        """
        with self._lock:
            current = self._snapshot.policies
            before = self._find(policy_id, current)
            after = replace(updater(before), id=before.id, sequence=before.sequence)
            self._check_unique_name(after, current)
            self._publish(tuple(after if p.id == policy_id else p for p in current))
        return before, after

    def remove(self, policy_id: str) -> Policy:
        """Delete a policy (and with it, its condition tree)."""
        with self._lock:
            current = self._snapshot.policies
            removed = self._find(policy_id, current)
            self._publish(tuple(p for p in current if p.id != policy_id))
        return removed

    def replace_all(self, policies: Iterable[Policy]) -> PolicySnapshot:
        """Swap in a complete policy set (e.g. a reloaded bundle)."""
        with self._lock:
            stored: list[Policy] = []
            for policy in policies:
                if any(p.id == policy.id for p in stored):
                    raise ValidationError("duplicate policy id", details={"policy_id": policy.id})
                self._check_unique_name(policy, stored)
                stored.append(replace(policy, sequence=self._allocate_sequence()))
            self._publish(tuple(stored))
            snapshot = self._snapshot

        logger.info("policy_set_replaced", policies=len(snapshot), version=snapshot.version)
        return snapshot

    def _publish(self, policies: tuple[Policy, ...]) -> None:
        self._snapshot = PolicySnapshot(version=self._snapshot.version + 1, policies=policies)

    def _allocate_sequence(self) -> int:
        self._next_sequence += 1
        return self._next_sequence

    @staticmethod
    def _find(policy_id: str, policies: Iterable[Policy]) -> Policy:
        for policy in policies:
            if policy.id == policy_id:
                return policy
        raise PolicyNotFoundError(f"policy not found: {policy_id}", details={"policy_id": policy_id})

    @staticmethod
    def _check_unique_name(policy: Policy, policies: Iterable[Policy]) -> None:
        for other in policies:
            if other.name == policy.name and other.id != policy.id:
                raise ValidationError(
                    f"policy name already in use: {policy.name}",
                    details={"name": policy.name},
                )
