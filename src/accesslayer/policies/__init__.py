"""
Attribute-based access control policies.

Provides the policy model, condition trees and their evaluation, the policy
decision point, the copy-on-write policy store, the administration service,
and audit logging for decisions and policy changes.
"""

from accesslayer.policies.attributes import UNDEFINED, EvaluationContext, resolve
from accesslayer.policies.audit import (
    AuditLogEntry,
    PolicyEvaluationRecord,
    PolicyStats,
    PolicyVersion,
)
from accesslayer.policies.conditions import (
    Condition,
    ConditionGroup,
    ConditionLimits,
    GroupOperator,
    parse_conditions,
)
from accesslayer.policies.decision import PolicyDecisionPoint, decide
from accesslayer.policies.directory import AttributeDirectory
from accesslayer.policies.evaluator import ConditionEvaluator, evaluate
from accesslayer.policies.matcher import PolicyMatcher
from accesslayer.policies.models import (
    EvaluationRequest,
    EvaluationResult,
    Policy,
    PolicyEffect,
    PolicyStatus,
    PolicySubject,
)
from accesslayer.policies.operators import Operator
from accesslayer.policies.recorder import PolicyAuditRecorder
from accesslayer.policies.repository import AuditRepository, InMemoryAuditRepository
from accesslayer.policies.service import PolicyAdministrationService
from accesslayer.policies.store import PolicySnapshot, PolicyStore

__all__ = [
    "AttributeDirectory",
    "AuditLogEntry",
    "AuditRepository",
    "Condition",
    "ConditionEvaluator",
    "ConditionGroup",
    "ConditionLimits",
    "EvaluationContext",
    "EvaluationRequest",
    "EvaluationResult",
    "GroupOperator",
    "InMemoryAuditRepository",
    "Operator",
    "Policy",
    "PolicyAdministrationService",
    "PolicyAuditRecorder",
    "PolicyDecisionPoint",
    "PolicyEffect",
    "PolicyEvaluationRecord",
    "PolicyMatcher",
    "PolicySnapshot",
    "PolicyStats",
    "PolicyStatus",
    "PolicyStore",
    "PolicySubject",
    "PolicyVersion",
    "UNDEFINED",
    "decide",
    "evaluate",
    "parse_conditions",
    "resolve",
]
