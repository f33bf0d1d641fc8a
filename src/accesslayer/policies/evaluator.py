"""
Policy condition evaluator.

Evaluates a parsed condition tree against an evaluation context.

Semantics:
    AND     true unless a child is false (short-circuits on first false)
    OR      false unless a child is true (short-circuits on first true)
    NOT     negation of its single child
    leaf    operator applied to the resolved attribute and the
            template-resolved value (see accesslayer.policies.operators)

    Empty AND is true, empty OR is false, and an absent tree is true.
"""

from __future__ import annotations

import time
from dataclasses import dataclass

from accesslayer.core.errors import EvaluationError, EvaluationTimeout
from accesslayer.policies.attributes import EvaluationContext, resolve
from accesslayer.policies.conditions import Condition, ConditionGroup, ConditionNode, GroupOperator
from accesslayer.policies.operators import DEFAULT_MAX_REGEX_LENGTH, apply_operator
from accesslayer.policies.templates import resolve_template


@dataclass
class EvaluationStats:
    """Leaf counters aggregated across one decision."""

    conditions_evaluated: int = 0
    conditions_passed: int = 0


class ConditionEvaluator:
    """
    Evaluates condition trees against a context.

    Leaves skipped by short-circuiting are not counted in the stats.
    """

    def __init__(
        self,
        context: EvaluationContext,
        *,
        deadline: float | None = None,
        max_regex_length: int = DEFAULT_MAX_REGEX_LENGTH,
        stats: EvaluationStats | None = None,
    ):
        """
        Initialize evaluator.

        Args:
            context: Context the attribute paths resolve against
            deadline: Absolute time.perf_counter() value after which
                evaluation aborts with EvaluationTimeout
            max_regex_length: Upper bound on MATCHES pattern length
            stats: Counters to accumulate into (shared across policies)
        """
        self.context = context
        self.deadline = deadline
        self.max_regex_length = max_regex_length
        self.stats = stats if stats is not None else EvaluationStats()

    def evaluate(self, node: ConditionNode | None) -> bool:
        """
        Evaluate a condition tree.

        Raises:
            EvaluationError: If a leaf cannot be evaluated (e.g. bad regex)
            EvaluationTimeout: If the deadline passes mid-evaluation
        """
        if node is None:
            return True

        self._check_deadline()

        if isinstance(node, Condition):
            return self._evaluate_condition(node)
        return self._evaluate_group(node)

    def _evaluate_group(self, group: ConditionGroup) -> bool:
        if group.operator is GroupOperator.NOT:
            return not self.evaluate(group.children[0])

        if group.operator is GroupOperator.AND:
            for child in group.children:
                if not self.evaluate(child):
                    return False
            return True

        for child in group.children:
            if self.evaluate(child):
                return True
        return False

    def _evaluate_condition(self, condition: Condition) -> bool:
        self.stats.conditions_evaluated += 1

        actual = resolve(condition.attribute, self.context)
        expected = resolve_template(condition.value, self.context)

        try:
            passed = apply_operator(
                condition.operator,
                actual,
                expected,
                max_regex_length=self.max_regex_length,
            )
        except EvaluationError as e:
            raise EvaluationError(
                f"{condition.attribute} {condition.operator.value}: {e.message}",
                details={
                    **e.details,
                    "attribute": condition.attribute,
                    "operator": condition.operator.value,
                },
            ) from e

        if passed:
            self.stats.conditions_passed += 1
        return passed

    def _check_deadline(self) -> None:
        if self.deadline is not None and time.perf_counter() > self.deadline:
            raise EvaluationTimeout("evaluation timeout")


def evaluate(node: ConditionNode | None, context: EvaluationContext) -> bool:
    """Evaluate a tree once, without a deadline."""
    return ConditionEvaluator(context).evaluate(node)
