#!/usr/bin/env python3
"""
SynthStake CLI

Command-line interface for configuration inspection and scenario runs.

Usage:
    synthstake <command> [subcommand] [options]

Commands:
    config      Configuration management
    scenario    Validate and run YAML staking scenarios

Copyright (c) 2026 Momentum. All rights reserved.
"""

from __future__ import annotations

import argparse
import json
import sys
from enum import Enum
from typing import Any, List, Optional

import yaml

from synthstake import __version__
from synthstake.hardening import StakeError


class OutputFormat(Enum):
    """Output format options."""
    JSON = "json"
    YAML = "yaml"
    TABLE = "table"
    TEXT = "text"


class CLIError(Exception):
    """CLI error with exit code."""
    def __init__(self, message: str, exit_code: int = 1):
        super().__init__(message)
        self.exit_code = exit_code


def format_output(data: Any, fmt: OutputFormat = OutputFormat.JSON) -> str:
    """Format data for output."""
    if fmt == OutputFormat.JSON:
        return json.dumps(data, indent=2, default=str)
    elif fmt == OutputFormat.YAML:
        return yaml.safe_dump(json.loads(json.dumps(data, default=str)), default_flow_style=False)
    elif fmt == OutputFormat.TABLE:
        return _format_table(data)
    else:
        return str(data)


def _format_table(data: Any) -> str:
    """Format data as ASCII table."""
    if isinstance(data, list) and data and isinstance(data[0], dict):
        headers = list(data[0].keys())
        rows = [[str(row.get(h, ""))[:40] for h in headers] for row in data]
        widths = [max(len(h), max(len(r[i]) for r in rows)) for i, h in enumerate(headers)]

        lines = []
        lines.append(" | ".join(h.ljust(widths[i]) for i, h in enumerate(headers)))
        lines.append("-+-".join("-" * w for w in widths))
        for row in rows:
            lines.append(" | ".join(c.ljust(widths[i]) for i, c in enumerate(row)))
        return "\n".join(lines)
    elif isinstance(data, dict):
        return "\n".join(f"{k}: {v}" for k, v in data.items())
    return str(data)


class SynthStakeCLI:
    """Main CLI application."""

    def __init__(self):
        self.parser = argparse.ArgumentParser(
            prog="synthstake",
            description="SynthStake pooled staking CLI",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )
        self.parser.add_argument(
            "--version", "-V",
            action="version",
            version=f"synthstake {__version__}",
        )
        self.parser.add_argument(
            "--format", "-f",
            choices=["json", "yaml", "table", "text"],
            default="json",
            help="Output format (default: json)",
        )
        self.parser.add_argument(
            "--config", "-c",
            help="Configuration file to load before running the command",
        )
        self.parser.add_argument(
            "--quiet", "-q",
            action="store_true",
            help="Suppress non-essential output",
        )

        self.subparsers = self.parser.add_subparsers(dest="command", help="Commands")
        self._register_commands()

    def _register_commands(self) -> None:
        """Register all command groups."""
        self._register_config_commands()
        self._register_scenario_commands()

    def _register_config_commands(self) -> None:
        """Register config subcommands."""
        config = self.subparsers.add_parser("config", help="Configuration management")
        config_sub = config.add_subparsers(dest="subcommand")

        # config get
        get = config_sub.add_parser("get", help="Get configuration value")
        get.add_argument("path", help="Config path (e.g., staking.unstake_delay_epochs)")

        # config show
        config_sub.add_parser("show", help="Show all configuration")

        # config validate
        config_sub.add_parser("validate", help="Validate configuration")

        # config schema
        config_sub.add_parser("schema", help="Export configuration schema")

    def _register_scenario_commands(self) -> None:
        """Register scenario subcommands."""
        scenario = self.subparsers.add_parser("scenario", help="Staking scenarios")
        scenario_sub = scenario.add_subparsers(dest="subcommand")

        # scenario run
        run = scenario_sub.add_parser("run", help="Run a scenario file")
        run.add_argument("path", help="Scenario YAML file")
        run.add_argument("--summary", action="store_true", help="Print the step table only")

        # scenario validate
        validate = scenario_sub.add_parser("validate", help="Validate a scenario file")
        validate.add_argument("path", help="Scenario YAML file")

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI."""
        parsed = self.parser.parse_args(args)

        if not parsed.command:
            self.parser.print_help()
            return 0

        try:
            from synthstake.config import get_config_manager
            manager = get_config_manager()
            manager.load_defaults()
            if parsed.config:
                manager.load_from_file(parsed.config)

            fmt = OutputFormat(parsed.format)
            result = self._dispatch(parsed)

            if result is not None:
                print(format_output(result, fmt))

            if isinstance(result, (dict, list)) and self._failed(result):
                return 2
            return 0

        except CLIError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return e.exit_code

        except StakeError as e:
            if not parsed.quiet:
                print(f"Error: {e}", file=sys.stderr)
            return 1

    @staticmethod
    def _failed(result: Any) -> bool:
        if isinstance(result, dict):
            return result.get("passed") is False or result.get("valid") is False
        return any(not step.get("ok", True) for step in result if isinstance(step, dict))

    def _dispatch(self, args: argparse.Namespace) -> Any:
        """Dispatch command to handler."""
        cmd = args.command
        subcmd = getattr(args, "subcommand", None)

        handler_name = f"_handle_{cmd}_{subcmd}" if subcmd else f"_handle_{cmd}"
        handler = getattr(self, handler_name, None)

        if handler is None:
            raise CLIError(f"Unknown command: {cmd} {subcmd or ''}")

        return handler(args)

    # Config handlers
    def _handle_config_get(self, args: argparse.Namespace) -> Any:
        from synthstake.config import get_config_manager
        mgr = get_config_manager()
        return {"path": args.path, "value": mgr.get(args.path)}

    def _handle_config_show(self, args: argparse.Namespace) -> Any:
        from synthstake.config import get_config_manager
        return get_config_manager().config.to_dict()

    def _handle_config_validate(self, args: argparse.Namespace) -> Any:
        from synthstake.config import get_config_manager
        errors = get_config_manager().validate()
        return {"valid": len(errors) == 0, "errors": errors}

    def _handle_config_schema(self, args: argparse.Namespace) -> Any:
        from synthstake.config import get_config_manager
        return get_config_manager().export_schema()

    # Scenario handlers
    def _handle_scenario_run(self, args: argparse.Namespace) -> Any:
        from synthstake.scenario import run_scenario
        report = run_scenario(args.path)
        if args.summary:
            return [
                {"index": s["index"], "op": s["op"], "ok": s["ok"], "error": s.get("error", "")}
                for s in report["steps"]
            ]
        return report

    def _handle_scenario_validate(self, args: argparse.Namespace) -> Any:
        from synthstake.scenario import validate_scenario
        try:
            with open(args.path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except OSError as e:
            raise CLIError(f"Cannot read {args.path}: {e}") from e
        except yaml.YAMLError as e:
            raise CLIError(f"Invalid YAML in {args.path}: {e}") from e
        errors = validate_scenario(data)
        return {"path": args.path, "valid": len(errors) == 0, "errors": errors}


def main() -> int:
    """CLI entry point."""
    cli = SynthStakeCLI()
    return cli.run()


if __name__ == "__main__":
    sys.exit(main())
