"""
Validate command.
"""

from __future__ import annotations

from collections import Counter

from accesslayer.cli.ux import bullet, console, error, header, print_table, success
from accesslayer.config.loader import load_policy_bundle
from accesslayer.core.errors import ExitCode, ValidationError, format_error_message, main_with_error_handling
from accesslayer.policies.conditions import count_nodes, tree_depth


@main_with_error_handling()
def validate_command(bundle_file: str) -> int:
    """
    Validate a policy bundle.

    Args:
        bundle_file: Path to the policy bundle (YAML or JSON)

    Returns:
        Exit code (0 = valid, 12 = invalid policy, 10 = unreadable bundle)
    """
    header("Validate Policy Bundle")
    console.print()

    try:
        bundle = load_policy_bundle(bundle_file)
    except ValidationError as e:
        error("Invalid policy bundle")
        console.print()
        bullet(format_error_message(e), style="error")
        for item in e.details.get("errors", []):
            bullet(str(item), indent=4)
        console.print()
        return ExitCode.VALIDATION_ERROR

    success(f"Valid policy bundle: {bundle.path}")
    console.print()

    rows = [
        [
            p.name,
            p.effect.value,
            str(p.priority),
            p.status.value,
            p.tenant_id or "global",
            str(count_nodes(p.conditions)),
            str(tree_depth(p.conditions)),
        ]
        for p in sorted(bundle.policies, key=lambda p: (p.priority, p.sequence))
    ]
    if rows:
        print_table(
            "Policies",
            ["Name", "Effect", "Priority", "Status", "Tenant", "Nodes", "Depth"],
            rows,
        )
        console.print()

    by_status = Counter(p.status.value for p in bundle.policies)
    console.print(f"[bold]Policies:[/bold] {len(bundle.policies)}")
    for status, count in sorted(by_status.items()):
        console.print(f"  [muted]{status}:[/muted] {count}")
    if bundle.user_attributes or bundle.resource_attributes:
        console.print(
            f"[bold]Attribute assignments:[/bold] {len(bundle.user_attributes)} users, "
            f"{len(bundle.resource_attributes)} resources"
        )
    console.print()
    return ExitCode.SUCCESS
