"""
Template variable substitution for condition values.

A value that is exactly "{{resource.owner_id}}" is replaced by the resolved
attribute (which may be UNDEFINED). Values mixing literal text and
placeholders, such as "team-{{user.department}}", are interpolated with
undefined fragments rendered as the empty string.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import Any

from accesslayer.policies.attributes import EvaluationContext, resolve, stringify

TEMPLATE_PATTERN = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")


def resolve_template(value: Any, ctx: EvaluationContext) -> Any:
    """Resolve template placeholders in a condition value."""
    if isinstance(value, str):
        return _resolve_string(value, ctx)
    if isinstance(value, (list, tuple)):
        return [resolve_template(item, ctx) for item in value]
    if isinstance(value, Mapping):
        return {key: resolve_template(item, ctx) for key, item in value.items()}
    return value


def _resolve_string(value: str, ctx: EvaluationContext) -> Any:
    if "{{" not in value:
        return value

    whole = TEMPLATE_PATTERN.fullmatch(value.strip())
    if whole:
        return resolve(whole.group(1), ctx)

    return TEMPLATE_PATTERN.sub(lambda m: stringify(resolve(m.group(1), ctx)), value)


def is_template(value: Any) -> bool:
    """Check whether a value contains at least one placeholder."""
    if isinstance(value, str):
        return TEMPLATE_PATTERN.search(value) is not None
    if isinstance(value, (list, tuple)):
        return any(is_template(item) for item in value)
    if isinstance(value, Mapping):
        return any(is_template(item) for item in value.values())
    return False


def template_paths(value: Any) -> list[str]:
    """List attribute paths referenced by placeholders, in order of appearance."""
    if isinstance(value, str):
        return [m.group(1) for m in TEMPLATE_PATTERN.finditer(value)]
    if isinstance(value, (list, tuple)):
        return [path for item in value for path in template_paths(item)]
    if isinstance(value, Mapping):
        return [path for item in value.values() for path in template_paths(item)]
    return []
