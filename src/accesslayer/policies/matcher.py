"""
Policy matching.

Decides whether a policy applies to an evaluation request:

    scope       policy is active and global or owned by the request tenant
    resource    any pattern in policy.resources matches the request resource
    action      any pattern in policy.actions matches the request action
    subject     no subject matchers, or any matcher accepts the subject
    conditions  the condition tree evaluates to true

Resource patterns:
    *               anything
    project:*       any id under "project"
    project:42      exactly "project:42"
    project         any resource whose type (prefix before ":") is "project"

Action patterns are "*" or a literal. Namespaced actions ("payment:approve")
and simple actions ("approve") are compared literally and never bridged.
"""

from __future__ import annotations

from accesslayer.policies.attributes import EvaluationContext, resolve, split_resource
from accesslayer.policies.conditions import Condition, freeze_value
from accesslayer.policies.evaluator import ConditionEvaluator, EvaluationStats
from accesslayer.policies.models import EvaluationRequest, Policy, PolicySubject, SubjectType
from accesslayer.policies.operators import DEFAULT_MAX_REGEX_LENGTH, Operator, values_equal

WILDCARD = "*"

# Subject attribute listing memberships, per matcher type
MEMBERSHIP_ATTRIBUTES: dict[SubjectType, str] = {
    SubjectType.GROUP: "groups",
    SubjectType.ROLE: "roles",
}


def match_resource(pattern: str, resource: str) -> bool:
    """Match a single resource pattern against a request resource."""
    pattern = pattern.strip()
    if pattern == WILDCARD:
        return True

    pattern_type, sep, pattern_id = pattern.partition(":")
    resource_type, resource_id = split_resource(resource)

    if not sep:
        return pattern_type == resource_type
    if pattern_id == WILDCARD:
        return pattern_type == resource_type and resource_id is not None
    return pattern == resource


def match_action(pattern: str, action: str) -> bool:
    """Match a single action pattern (literal or "*")."""
    pattern = pattern.strip()
    return pattern == WILDCARD or pattern == action


class PolicyMatcher:
    """Applies scope, target and condition matching to policies."""

    def __init__(
        self,
        *,
        deadline: float | None = None,
        max_regex_length: int = DEFAULT_MAX_REGEX_LENGTH,
        stats: EvaluationStats | None = None,
    ):
        self.deadline = deadline
        self.max_regex_length = max_regex_length
        self.stats = stats if stats is not None else EvaluationStats()

    def in_scope(self, policy: Policy, tenant_id: str | None) -> bool:
        """Active, and global or owned by the request's tenant."""
        if not policy.is_active:
            return False
        return policy.tenant_id is None or policy.tenant_id == tenant_id

    def applies(
        self,
        policy: Policy,
        request: EvaluationRequest,
        context: EvaluationContext | None = None,
    ) -> bool:
        """Everything except the condition tree."""
        context = context or EvaluationContext.from_request(request)

        if not self.in_scope(policy, request.tenant_id):
            return False
        if not any(match_resource(p, request.resource) for p in policy.resources):
            return False
        if not any(match_action(p, request.action) for p in policy.actions):
            return False
        if policy.subjects and not any(self.match_subject(s, context) for s in policy.subjects):
            return False
        return True

    def matches(
        self,
        policy: Policy,
        request: EvaluationRequest,
        context: EvaluationContext | None = None,
    ) -> bool:
        """
        Check whether a policy matches a request.

        Raises:
            EvaluationError: If the policy's condition tree cannot be evaluated
        """
        context = context or EvaluationContext.from_request(request)
        if not self.applies(policy, request, context):
            return False

        evaluator = ConditionEvaluator(
            context,
            deadline=self.deadline,
            max_regex_length=self.max_regex_length,
            stats=self.stats,
        )
        return evaluator.evaluate(policy.conditions)

    def match_subject(self, matcher: PolicySubject, context: EvaluationContext) -> bool:
        """Check a subject matcher: identity first, then attribute predicates."""
        if not self._match_identity(matcher, context):
            return False
        if not matcher.attributes:
            return True

        # Attribute predicates do not count towards the decision's leaf stats
        evaluator = ConditionEvaluator(
            context,
            deadline=self.deadline,
            max_regex_length=self.max_regex_length,
        )
        for key, expected in matcher.attributes.items():
            predicate = Condition(f"subject.{key}", Operator.EQ, freeze_value(expected))
            if not evaluator.evaluate(predicate):
                return False
        return True

    def _match_identity(self, matcher: PolicySubject, context: EvaluationContext) -> bool:
        membership = MEMBERSHIP_ATTRIBUTES.get(matcher.type) if matcher.type else None
        if membership and matcher.id is not None:
            members = resolve(f"subject.{membership}", context)
            if isinstance(members, (list, tuple)):
                if any(values_equal(matcher.id, member) for member in members):
                    return True
            elif values_equal(matcher.id, members):
                return True

        if matcher.type is not None and matcher.type.value != context.subject_type:
            return False
        if matcher.id is not None and matcher.id != context.subject_id:
            return False
        return True
