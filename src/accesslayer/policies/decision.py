"""
Policy Decision Point.

Combines policy matching across a policy set into a single decision:

1. Restrict to active policies in scope for the request's tenant
   (global policies plus the tenant's own).
2. Match each policy (resource, action, subject, conditions).
3. No match: DENY with reason "no matching policy" (default deny).
4. Sort matches by priority ascending, ties broken by creation order.
5. The effect of the first match wins (first-applicable, not
   deny-overrides).
6. All matches are reported, in priority order, for audit.

A policy whose conditions raise EvaluationError is excluded and its error
recorded; the remaining policies are unaffected. decide() itself never
raises: a timeout or internal fault produces a fail-closed DENY.
"""

from __future__ import annotations

import time
from collections.abc import Iterable
from datetime import datetime, timezone
from typing import Any

import structlog

from accesslayer.config.settings import Settings, get_settings
from accesslayer.core.errors import EvaluationError, EvaluationTimeout
from accesslayer.logging import bind_context
from accesslayer.policies.attributes import EvaluationContext
from accesslayer.policies.directory import AttributeDirectory
from accesslayer.policies.evaluator import EvaluationStats
from accesslayer.policies.matcher import PolicyMatcher
from accesslayer.policies.models import (
    EvaluationDetails,
    EvaluationRequest,
    EvaluationResult,
    Policy,
    PolicyEffect,
    PolicyError,
)
from accesslayer.policies.operators import DEFAULT_MAX_REGEX_LENGTH
from accesslayer.policies.recorder import PolicyAuditRecorder
from accesslayer.policies.store import PolicyStore

logger = structlog.get_logger()

NO_MATCH_REASON = "no matching policy"
TIMEOUT_REASON = "evaluation timeout"
INTERNAL_ERROR_REASON = "internal error"

# Sentinel: use the timeout configured in settings
_DEFAULT_TIMEOUT: Any = object()


def decide(
    policies: Iterable[Policy],
    request: EvaluationRequest,
    *,
    timeout_ms: float | None = None,
    now: datetime | None = None,
    max_regex_length: int = DEFAULT_MAX_REGEX_LENGTH,
) -> EvaluationResult:
    """
    Decide an access request against a policy set.

    Args:
        policies: Policy snapshot to evaluate (not modified)
        request: The access request
        timeout_ms: Wall-clock budget; None for no deadline
        now: Evaluation clock for environment defaults (default: now, UTC)
        max_regex_length: Upper bound on MATCHES pattern length

    Returns:
        EvaluationResult; never raises
    """
    started = time.perf_counter()
    deadline = started + timeout_ms / 1000.0 if timeout_ms is not None else None
    stats = EvaluationStats()

    try:
        return _decide(policies, request, started, deadline, now, max_regex_length, stats)
    except EvaluationTimeout:
        logger.warning(
            "policy_decision_timeout",
            action=request.action,
            resource=request.resource,
            timeout_ms=timeout_ms,
        )
        return _fail_closed(TIMEOUT_REASON, started, stats)
    except Exception:
        logger.error(
            "policy_decision_failed",
            action=request.action,
            resource=request.resource,
            exc_info=True,
        )
        return _fail_closed(INTERNAL_ERROR_REASON, started, stats)


def _decide(
    policies: Iterable[Policy],
    request: EvaluationRequest,
    started: float,
    deadline: float | None,
    now: datetime | None,
    max_regex_length: int,
    stats: EvaluationStats,
) -> EvaluationResult:
    context = EvaluationContext.from_request(request, now=now)
    matcher = PolicyMatcher(deadline=deadline, max_regex_length=max_regex_length, stats=stats)

    candidates = [p for p in policies if matcher.in_scope(p, request.tenant_id)]

    matched: list[Policy] = []
    errors: list[PolicyError] = []
    for policy in candidates:
        try:
            if matcher.matches(policy, request, context):
                matched.append(policy)
        except EvaluationTimeout:
            raise
        except EvaluationError as e:
            logger.warning(
                "policy_evaluation_error",
                policy_id=policy.id,
                policy_name=policy.name,
                error=e.message,
            )
            errors.append(PolicyError(policy_id=policy.id, policy_name=policy.name, error=e.message))

    # Stable: equal (priority, sequence) keep snapshot order
    matched.sort(key=lambda p: (p.priority, p.sequence))

    if matched:
        winner = matched[0]
        result = winner.effect
        reason = f"matched policy {winner.name} ({winner.effect.value})"
    else:
        result = PolicyEffect.DENY
        reason = NO_MATCH_REASON

    if errors:
        reason = "; ".join(
            [reason, *(f"policy {e.policy_name} evaluation error: {e.error}" for e in errors)]
        )

    elapsed_ms = (time.perf_counter() - started) * 1000.0

    return EvaluationResult(
        result=result,
        matched_policies=[p.summary() for p in matched],
        evaluation_time_ms=round(elapsed_ms, 3),
        details=EvaluationDetails(
            conditions_evaluated=stats.conditions_evaluated,
            conditions_passed=stats.conditions_passed,
            reason=reason,
            errors=errors,
        ),
    )


def _fail_closed(reason: str, started: float, stats: EvaluationStats) -> EvaluationResult:
    return EvaluationResult(
        result=PolicyEffect.DENY,
        evaluation_time_ms=round((time.perf_counter() - started) * 1000.0, 3),
        details=EvaluationDetails(
            conditions_evaluated=stats.conditions_evaluated,
            conditions_passed=stats.conditions_passed,
            reason=reason,
        ),
    )


class PolicyDecisionPoint:
    """Evaluates requests against a PolicyStore, one snapshot per decision."""

    def __init__(
        self,
        store: PolicyStore,
        *,
        settings: Settings | None = None,
        recorder: PolicyAuditRecorder | None = None,
        directory: AttributeDirectory | None = None,
    ) -> None:
        self.store = store
        self.settings = settings or get_settings()
        self.recorder = recorder
        self.directory = directory

    def evaluate(
        self,
        request: EvaluationRequest,
        *,
        timeout_ms: float | None = _DEFAULT_TIMEOUT,
        now: datetime | None = None,
    ) -> EvaluationResult:
        """Decide a request against the store's current snapshot."""
        snapshot = self.store.snapshot()
        return self.evaluate_policies(
            snapshot.policies,
            request,
            timeout_ms=timeout_ms,
            now=now,
            snapshot_version=snapshot.version,
        )

    def evaluate_policies(
        self,
        policies: Iterable[Policy],
        request: EvaluationRequest,
        *,
        timeout_ms: float | None = _DEFAULT_TIMEOUT,
        now: datetime | None = None,
        source: str = "evaluate",
        snapshot_version: int | None = None,
    ) -> EvaluationResult:
        """Decide a request against an explicit policy set, with enrichment and audit."""
        if timeout_ms is _DEFAULT_TIMEOUT:
            timeout_ms = self.settings.evaluation_timeout_ms
        moment = now or datetime.now(timezone.utc)

        if self.directory is not None:
            request = self.directory.enrich(request, now=moment)

        result = decide(
            policies,
            request,
            timeout_ms=timeout_ms,
            now=moment,
            max_regex_length=self.settings.max_regex_length,
        )

        log = bind_context(
            action=request.action,
            resource=request.resource,
            subject_id=request.subject.id,
            tenant_id=request.tenant_id,
            source=source,
        )
        log.info(
            "decision_made",
            result=result.result.value,
            matched=len(result.matched_policies),
            evaluation_time_ms=result.evaluation_time_ms,
            snapshot_version=snapshot_version,
        )

        if self.recorder is not None and self.settings.audit_enabled:
            self.recorder.record_decision(
                request,
                result,
                source=source,
                snapshot_version=snapshot_version,
            )
        return result
