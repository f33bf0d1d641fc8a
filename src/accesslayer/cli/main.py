"""
AccessLayer command line entry point.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from accesslayer import __version__
from accesslayer.config.settings import get_settings
from accesslayer.logging import configure_logging


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="accesslayer", description="AccessLayer policy engine CLI")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--log-level", help="Log level (default: ACCESSLAYER_LOG_LEVEL or INFO)")
    subparsers = parser.add_subparsers(dest="command")

    validate_parser = subparsers.add_parser("validate", help="Validate a policy bundle")
    validate_parser.add_argument("bundle", nargs="?", help="Path to policy bundle (YAML or JSON)")

    evaluate_parser = subparsers.add_parser("evaluate", help="Evaluate an access request against a bundle")
    evaluate_parser.add_argument("bundle", nargs="?", help="Path to policy bundle (YAML or JSON)")
    evaluate_parser.add_argument("--request", "-r", required=True, help="Path to request file (JSON or YAML)")
    evaluate_parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")
    evaluate_parser.add_argument("--timeout-ms", type=float, help="Evaluation budget in milliseconds")

    catalog_parser = subparsers.add_parser("catalog", help="Show attributes, operators and templates")
    catalog_parser.add_argument("--type", dest="value_type", choices=["string", "number", "boolean", "date"])
    catalog_parser.add_argument("--output", choices=["text", "json"], default="text", help="Output format")

    return parser


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(
        level=(args.log_level or settings.log_level).upper(),
        fmt=settings.log_format,
    )

    if args.command == "validate":
        from accesslayer.cli.validate import validate_command

        sys.exit(validate_command(args.bundle or settings.policy_file))

    if args.command == "evaluate":
        from accesslayer.cli.evaluate import evaluate_command

        sys.exit(
            evaluate_command(
                args.bundle or settings.policy_file,
                args.request,
                output_format=args.output,
                timeout_ms=args.timeout_ms,
            )
        )

    if args.command == "catalog":
        from accesslayer.cli.catalog import catalog_command

        sys.exit(catalog_command(value_type=args.value_type, output_format=args.output))

    parser.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
