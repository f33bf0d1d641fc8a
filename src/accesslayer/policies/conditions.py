"""
Condition tree model and wire-format parsing.

A policy's conditions are a tree of two node kinds:

    Condition       leaf: {"attribute": ..., "operator": ..., "value": ...}
    ConditionGroup  AND / OR over any number of children, NOT over exactly one

Wire format (produced by the visual condition builder):

    {"attribute": "user.department", "operator": "=", "value": "hr"}
    {"AND": [<node>, ...]}
    {"OR": [<node>, ...]}
    {"NOT": <node>}
    {}                                  no conditions (always satisfied)

The structured form {"operator": "AND", "conditions": [...], "groups": [...]}
is accepted as well, and so is a flat list whose entries are joined by
their optional "logical_operator" (AND when absent).

Group children keep the order they were written in; evaluation and
serialization both follow it.

Trees are parsed and validated once, at ingestion. The evaluator only ever
sees the frozen dataclasses defined here.
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any, Union

from accesslayer.core.errors import ValidationError
from accesslayer.policies.attributes import ATTRIBUTE_ROOTS
from accesslayer.policies.operators import (
    ARRAY_OPERATORS,
    DEFAULT_MAX_REGEX_LENGTH,
    Operator,
    normalize_operator,
)
from accesslayer.policies.templates import is_template, template_paths


class GroupOperator(StrEnum):
    """Boolean operators for condition groups."""

    AND = "AND"
    OR = "OR"
    NOT = "NOT"


@dataclass(frozen=True)
class ConditionLimits:
    """Bounds applied to condition trees at validation time."""

    max_depth: int = 10
    max_nodes: int = 200
    max_regex_length: int = DEFAULT_MAX_REGEX_LENGTH

    @classmethod
    def from_settings(cls) -> ConditionLimits:
        from accesslayer.config.settings import get_settings

        settings = get_settings()
        return cls(
            max_depth=settings.max_condition_depth,
            max_nodes=settings.max_condition_nodes,
            max_regex_length=settings.max_regex_length,
        )


@dataclass(frozen=True)
class Condition:
    """A single attribute comparison."""

    attribute: str
    operator: Operator
    value: Any = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "attribute": self.attribute,
            "operator": self.operator.value,
            "value": thaw_value(self.value),
        }


@dataclass(frozen=True)
class ConditionGroup:
    """A boolean combination of child nodes, kept in the order they were written."""

    operator: GroupOperator
    children: tuple[ConditionNode, ...] = ()

    def __post_init__(self) -> None:
        if self.operator is GroupOperator.NOT and len(self.children) != 1:
            raise ValidationError(
                "NOT group must have exactly one child",
                details={"children": len(self.children)},
            )

    @property
    def conditions(self) -> tuple[Condition, ...]:
        """Leaf children, in order."""
        return tuple(c for c in self.children if isinstance(c, Condition))

    @property
    def groups(self) -> tuple[ConditionGroup, ...]:
        """Nested group children, in order."""
        return tuple(g for g in self.children if isinstance(g, ConditionGroup))

    @classmethod
    def of(cls, operator: GroupOperator, children: Sequence[ConditionNode]) -> ConditionGroup:
        return cls(operator=operator, children=tuple(children))

    @classmethod
    def structured(
        cls,
        operator: GroupOperator,
        conditions: Sequence[Condition] = (),
        groups: Sequence[ConditionGroup] = (),
    ) -> ConditionGroup:
        """Build from separate leaf and group lists; leaves come first."""
        return cls(operator=operator, children=tuple(conditions) + tuple(groups))

    def to_dict(self) -> dict[str, Any]:
        if self.operator is GroupOperator.NOT:
            return {"NOT": self.children[0].to_dict()}
        return {self.operator.value: [child.to_dict() for child in self.children]}


ConditionNode = Union[Condition, ConditionGroup]


# -- Value freezing --


def freeze_value(value: Any) -> Any:
    """Convert lists to tuples and dicts to read-only mappings, recursively."""
    if isinstance(value, (list, tuple)):
        return tuple(freeze_value(item) for item in value)
    if isinstance(value, Mapping):
        return MappingProxyType({key: freeze_value(item) for key, item in value.items()})
    return value


def thaw_value(value: Any) -> Any:
    """Inverse of freeze_value, for serialization."""
    if isinstance(value, tuple):
        return [thaw_value(item) for item in value]
    if isinstance(value, Mapping):
        return {key: thaw_value(item) for key, item in value.items()}
    return value


# -- Parsing --

_LEAF_KEYS = frozenset({"attribute", "operator", "value"})
_STRUCTURED_KEYS = frozenset({"operator", "conditions", "groups"})


def parse_conditions(raw: Any, limits: ConditionLimits | None = None) -> ConditionNode | None:
    """
    Parse and validate a wire-format condition tree.

    Args:
        raw: Decoded JSON/YAML condition document
        limits: Depth/node bounds (defaults to ConditionLimits())

    Returns:
        The root node, or None for an absent/empty tree

    Raises:
        ValidationError: If the tree is malformed or exceeds the limits
    """
    if raw is None:
        return None
    if isinstance(raw, Mapping) and not raw:
        return None
    if isinstance(raw, list) and not raw:
        return None

    parser = _TreeParser(limits or ConditionLimits())
    if isinstance(raw, list):
        return parser.parse(_chain_to_tree(raw), "conditions", 1)
    return parser.parse(raw, "conditions", 1)


def _chain_to_tree(items: list[Any]) -> dict[str, Any]:
    """
    Fold a flat condition list into a group tree.

    Each entry may carry ``logical_operator`` (AND/OR, default AND) joining
    it to the entry before it; the first entry's is ignored. AND binds
    tighter than OR, so ``a AND b OR c`` reads as ``(a AND b) OR c``. A list
    without any ``logical_operator`` is a plain AND.
    """
    runs: list[list[Any]] = [[]]
    for index, item in enumerate(items):
        if isinstance(item, Mapping) and "logical_operator" in item:
            joiner = item["logical_operator"] or "AND"
            if not isinstance(joiner, str) or joiner.upper() not in ("AND", "OR"):
                raise ValidationError(
                    "logical_operator must be AND or OR",
                    details={"location": f"conditions[{index}]", "logical_operator": joiner},
                )
            item = {key: value for key, value in item.items() if key != "logical_operator"}
            if index and joiner.upper() == "OR":
                runs.append([])
        runs[-1].append(item)

    if len(runs) == 1:
        return {"AND": runs[0]}
    return {"OR": [run[0] if len(run) == 1 else {"AND": run} for run in runs]}


def conditions_to_dict(node: ConditionNode | None) -> dict[str, Any]:
    """Serialize a tree to the wire format; {} for no conditions."""
    if node is None:
        return {}
    return node.to_dict()


class _TreeParser:
    def __init__(self, limits: ConditionLimits) -> None:
        self.limits = limits
        self.nodes = 0

    def parse(self, raw: Any, location: str, depth: int) -> ConditionNode:
        if depth > self.limits.max_depth:
            raise ValidationError(
                "condition tree exceeds maximum depth",
                details={"location": location, "max_depth": self.limits.max_depth},
            )
        self.nodes += 1
        if self.nodes > self.limits.max_nodes:
            raise ValidationError(
                "condition tree exceeds maximum node count",
                details={"max_nodes": self.limits.max_nodes},
            )
        if not isinstance(raw, Mapping):
            raise ValidationError(
                "condition node must be an object",
                details={"location": location},
            )

        group_keys = [key for key in raw if key in GroupOperator.__members__]
        if group_keys:
            if len(raw) != 1:
                raise ValidationError(
                    "group node must contain exactly one of AND, OR, NOT",
                    details={"location": location, "keys": sorted(map(str, raw))},
                )
            operator = GroupOperator(group_keys[0])
            return self._parse_group(operator, raw[group_keys[0]], location, depth)

        if "attribute" in raw:
            return self._parse_leaf(raw, location)

        if set(raw) <= _STRUCTURED_KEYS and "operator" in raw:
            return self._parse_structured(raw, location, depth)

        raise ValidationError(
            "unrecognized condition node",
            details={"location": location, "keys": sorted(map(str, raw))},
        )

    def _parse_group(
        self,
        operator: GroupOperator,
        raw_children: Any,
        location: str,
        depth: int,
    ) -> ConditionGroup:
        child_location = f"{location}.{operator.value}"

        if operator is GroupOperator.NOT:
            if isinstance(raw_children, list):
                if len(raw_children) != 1:
                    raise ValidationError(
                        "NOT group must have exactly one child",
                        details={"location": location, "children": len(raw_children)},
                    )
                raw_children = raw_children[0]
            child = self.parse(raw_children, child_location, depth + 1)
            return ConditionGroup.of(operator, [child])

        if not isinstance(raw_children, list):
            raise ValidationError(
                f"{operator.value} group must contain a list",
                details={"location": location},
            )
        children = [
            self.parse(item, f"{child_location}[{index}]", depth + 1)
            for index, item in enumerate(raw_children)
        ]
        return ConditionGroup.of(operator, children)

    def _parse_structured(self, raw: Mapping[str, Any], location: str, depth: int) -> ConditionGroup:
        name = raw["operator"]
        if not isinstance(name, str) or name.upper() not in GroupOperator.__members__:
            raise ValidationError(
                "group operator must be AND, OR or NOT",
                details={"location": location, "operator": name},
            )
        operator = GroupOperator(name.upper())

        raw_conditions = raw.get("conditions") or []
        raw_groups = raw.get("groups") or []
        if not isinstance(raw_conditions, list) or not isinstance(raw_groups, list):
            raise ValidationError(
                "conditions and groups must be lists",
                details={"location": location},
            )

        conditions = []
        for index, item in enumerate(raw_conditions):
            node = self.parse(item, f"{location}.conditions[{index}]", depth + 1)
            if not isinstance(node, Condition):
                raise ValidationError(
                    "conditions may only contain leaf conditions",
                    details={"location": f"{location}.conditions[{index}]"},
                )
            conditions.append(node)

        groups = []
        for index, item in enumerate(raw_groups):
            node = self.parse(item, f"{location}.groups[{index}]", depth + 1)
            if not isinstance(node, ConditionGroup):
                raise ValidationError(
                    "groups may only contain condition groups",
                    details={"location": f"{location}.groups[{index}]"},
                )
            groups.append(node)

        return ConditionGroup.structured(operator, conditions, groups)

    def _parse_leaf(self, raw: Mapping[str, Any], location: str) -> Condition:
        extra = set(raw) - _LEAF_KEYS
        if extra:
            raise ValidationError(
                "unexpected keys in condition",
                details={"location": location, "keys": sorted(map(str, extra))},
            )

        attribute = raw.get("attribute")
        if not isinstance(attribute, str) or not attribute.strip():
            raise ValidationError(
                "condition attribute must be a non-empty string",
                details={"location": location},
            )
        attribute = attribute.strip()
        _check_attribute_path(attribute, location)

        operator = normalize_operator(raw.get("operator"))
        if operator is None:
            raise ValidationError(
                "unknown condition operator",
                details={"location": location, "operator": raw.get("operator")},
            )

        value = raw.get("value")
        self._check_value(operator, value, location)
        for path in template_paths(value):
            _check_attribute_path(path, location)

        return Condition(attribute=attribute, operator=operator, value=freeze_value(value))

    def _check_value(self, operator: Operator, value: Any, location: str) -> None:
        # Template strings are checked after resolution, at evaluation time
        if isinstance(value, str) and is_template(value):
            return

        if operator in ARRAY_OPERATORS and not isinstance(value, list):
            raise ValidationError(
                f"{operator.value} requires an array value",
                details={"location": location},
            )
        if operator is Operator.BETWEEN and len(value) != 2:
            raise ValidationError(
                "BETWEEN requires exactly two values [low, high]",
                details={"location": location, "values": len(value)},
            )
        if operator is Operator.MATCHES:
            if not isinstance(value, str):
                raise ValidationError(
                    "MATCHES requires a string pattern",
                    details={"location": location},
                )
            if len(value) > self.limits.max_regex_length:
                raise ValidationError(
                    "MATCHES pattern too long",
                    details={"location": location, "max_length": self.limits.max_regex_length},
                )


def _check_attribute_path(path: str, location: str) -> None:
    root, sep, rest = path.partition(".")
    if not sep or not rest or root not in ATTRIBUTE_ROOTS:
        raise ValidationError(
            "attribute must be a dotted path under user, subject, resource or environment",
            details={"location": location, "attribute": path},
        )


# -- Tree inspection --


def tree_depth(node: ConditionNode | None) -> int:
    """Depth of a tree (a single leaf has depth 1, no tree has depth 0)."""
    if node is None:
        return 0
    if isinstance(node, Condition):
        return 1
    return 1 + max((tree_depth(child) for child in node.children), default=0)


def count_nodes(node: ConditionNode | None) -> int:
    """Total number of leaves and groups in a tree."""
    if node is None:
        return 0
    if isinstance(node, Condition):
        return 1
    return 1 + sum(count_nodes(child) for child in node.children)


def iter_leaves(node: ConditionNode | None) -> Iterator[Condition]:
    """Yield every leaf condition in evaluation order."""
    if node is None:
        return
    if isinstance(node, Condition):
        yield node
        return
    for child in node.children:
        yield from iter_leaves(child)
