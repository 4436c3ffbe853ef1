"""
Unified CLI entry point for SchemaForge.

Usage:
    python -m schema_forge.cli <command> [options]

Available commands:
    validate   - Validate a candidate schema file
    compile    - Validate and compile a schema file to DDL
    diff       - Show table and column differences between two schema files
    resources  - Print the resource registry a schema file would publish
    migrate    - Apply or revert the bookkeeping table migrations

Examples:
    python -m schema_forge.cli validate crm.json
    python -m schema_forge.cli compile crm.yaml --output crm.sql
    python -m schema_forge.cli diff crm_v1.json crm_v2.json
    python -m schema_forge.cli migrate upgrade
"""

import argparse
import sys
from typing import List, Optional


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schema_forge.cli",
        description="SchemaForge CLI - validate, compile and inspect entity schemas",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(
        title="commands",
        description="Available commands",
        dest="command",
        required=True,
        help="Command to execute",
    )

    validate_parser = subparsers.add_parser("validate", help="Validate a candidate schema file")
    validate_parser.add_argument("file", help="Schema file (.json, .yaml or .yml)")

    compile_parser = subparsers.add_parser("compile", help="Validate and compile a schema file to DDL")
    compile_parser.add_argument("file", help="Schema file (.json, .yaml or .yml)")
    compile_parser.add_argument("--output", "-o", help="Write the DDL to this file instead of stdout")
    compile_parser.add_argument("--principal", help="SQL expression for the requesting principal")
    compile_parser.add_argument("--role", help="Role the isolation policies apply to")

    diff_parser = subparsers.add_parser("diff", help="Diff two schema files")
    diff_parser.add_argument("old", help="Older schema file")
    diff_parser.add_argument("new", help="Newer schema file")

    resources_parser = subparsers.add_parser("resources", help="Print the resources a schema would publish")
    resources_parser.add_argument("file", help="Schema file (.json, .yaml or .yml)")

    migrate_parser = subparsers.add_parser("migrate", help="Run bookkeeping table migrations")
    migrate_parser.add_argument("action", choices=["upgrade", "downgrade", "stamp"])
    migrate_parser.add_argument("--revision", help="Target revision (default: head, or -1 for downgrade)")
    migrate_parser.add_argument("--database-url", help="Override the configured database URL")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point with subcommand routing.

    Args:
        argv: Command line arguments (defaults to sys.argv[1:])

    Returns:
        Exit code (0 for success, 1 for validation failure, 2 for unreadable input)
    """
    args = _build_parser().parse_args(argv)

    if args.command in ("validate", "compile", "diff", "resources"):
        from schema_forge.cli import schema_commands

        if args.command == "validate":
            return schema_commands.validate_command(args.file)
        if args.command == "compile":
            options = None
            if args.principal or args.role:
                from dataclasses import replace

                from schema_forge.infrastructure.schema.ddl_generator import CompilerOptions

                base = CompilerOptions.from_settings()
                options = replace(
                    base,
                    principal_expression=args.principal or base.principal_expression,
                    policy_role=args.role or base.policy_role,
                )
            return schema_commands.compile_command(args.file, args.output, options)
        if args.command == "diff":
            return schema_commands.diff_command(args.old, args.new)
        return schema_commands.resources_command(args.file)

    if args.command == "migrate":
        from schema_forge.io.schema import migration_runner

        action = getattr(migration_runner, args.action)
        if args.revision:
            action(args.database_url, args.revision)
        else:
            action(args.database_url)
        return 0

    return 1


if __name__ == "__main__":
    sys.exit(main())
