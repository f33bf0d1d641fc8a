"""
Catalog command.

Lists the attributes, operators and condition templates offered to policy
authors.
"""

from __future__ import annotations

import json

from accesslayer.catalog import (
    ATTRIBUTE_TYPES,
    COMMON_ATTRIBUTES,
    CONDITION_TEMPLATES,
    operators_for,
)
from accesslayer.cli.ux import console, header, print_table
from accesslayer.core.errors import ExitCode, ValidationError, main_with_error_handling


@main_with_error_handling()
def catalog_command(value_type: str | None = None, output_format: str = "text") -> int:
    """
    Print the condition builder catalog.

    Args:
        value_type: Restrict to one value type (string, number, boolean, date)
        output_format: Output format (text, json)

    Returns:
        Exit code (0 for success)
    """
    if value_type is not None and value_type not in ATTRIBUTE_TYPES:
        raise ValidationError(
            f"unknown value type: {value_type}",
            details={"valid": ", ".join(ATTRIBUTE_TYPES)},
        )

    types = [value_type] if value_type else list(ATTRIBUTE_TYPES)
    attributes = [a for a in COMMON_ATTRIBUTES if a.type in types]

    if output_format == "json":
        output = {
            "attributes": [{"value": a.value, "label": a.label, "type": a.type} for a in attributes],
            "operators": {
                t: [{"value": o.value, "label": o.label} for o in operators_for(t)] for t in types
            },
            "templates": [
                {"name": t.name, "description": t.description, "conditions": t.to_wire()}
                for t in CONDITION_TEMPLATES
            ],
        }
        print(json.dumps(output, indent=2))
        return ExitCode.SUCCESS

    header("Condition Catalog")
    console.print()
    print_table("Attributes", ["Attribute", "Label", "Type"], [[a.value, a.label, a.type] for a in attributes])
    console.print()
    print_table(
        "Operators",
        ["Type", "Operators"],
        [[t, ", ".join(o.value for o in operators_for(t))] for t in types],
    )
    console.print()
    print_table(
        "Templates",
        ["Name", "Description"],
        [[t.name, t.description] for t in CONDITION_TEMPLATES],
    )
    console.print()
    return ExitCode.SUCCESS
