"""
Evaluate command.

Runs one access decision against a policy bundle.
"""

from __future__ import annotations

import json

from accesslayer.cli.ux import (
    bullet,
    console,
    decision_badge,
    header,
    print_key_value,
    print_table,
    warning,
)
from accesslayer.config.loader import load_policy_bundle, load_request
from accesslayer.config.settings import get_settings
from accesslayer.core.errors import ExitCode, main_with_error_handling
from accesslayer.policies.decision import PolicyDecisionPoint
from accesslayer.policies.models import EvaluationRequest, EvaluationResult


def print_decision(request: EvaluationRequest, result: EvaluationResult) -> None:
    """Print a decision in text format."""
    header("Access Decision")
    console.print()

    print_key_value(
        {
            "Subject": f"{request.subject.type or '-'}:{request.subject.id or '-'}",
            "Action": request.action,
            "Resource": request.resource,
            "Tenant": request.tenant_id or "-",
        },
        title="Request",
    )
    console.print()

    console.print(f"[bold]Result:[/bold] {decision_badge(result.result.value)}")
    console.print(f"[bold]Reason:[/bold] {result.details.reason}")
    console.print(
        f"[muted]{result.details.conditions_passed}/{result.details.conditions_evaluated} "
        f"conditions passed in {result.evaluation_time_ms:.3f} ms[/muted]"
    )
    console.print()

    if result.matched_policies:
        print_table(
            "Matched Policies",
            ["#", "Name", "Effect", "Priority"],
            [
                [str(index), p.name, p.effect.value, str(p.priority)]
                for index, p in enumerate(result.matched_policies, start=1)
            ],
        )
        console.print()

    if result.details.errors:
        warning("Policies skipped after evaluation errors")
    for item in result.details.errors:
        bullet(f"{item.policy_name}: {item.error}", style="warning")


@main_with_error_handling()
def evaluate_command(
    bundle_file: str,
    request_file: str,
    output_format: str = "text",
    timeout_ms: float | None = None,
) -> int:
    """
    Evaluate an access request against a policy bundle.

    Args:
        bundle_file: Path to the policy bundle
        request_file: Path to the request (JSON or YAML)
        output_format: Output format (text, json)
        timeout_ms: Override the configured evaluation budget

    Returns:
        Exit code (0 = ALLOW, 2 = DENY)
    """
    settings = get_settings()
    bundle = load_policy_bundle(bundle_file)
    request = load_request(request_file)

    pdp = PolicyDecisionPoint(
        bundle.build_store(),
        settings=settings,
        directory=bundle.build_directory(),
    )
    result = pdp.evaluate(
        request,
        timeout_ms=timeout_ms if timeout_ms is not None else settings.evaluation_timeout_ms,
    )

    if output_format == "json":
        print(json.dumps(result.to_dict(), indent=2))
    else:
        print_decision(request, result)

    return ExitCode.SUCCESS if result.allowed else ExitCode.DENIED
