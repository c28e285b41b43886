"""Command line entry point for running scenarios."""

from __future__ import annotations

import argparse
import asyncio
import importlib
import json
import logging
from pathlib import Path
from typing import List, Optional, Sequence

from .config import SUPPORTED_BROWSERS, HarnessConfig, load_config
from .dsl import load_plan_file, register_plan_file
from .errors import PlanValidationError
from .runner import ScenarioRunner
from .scenario import ScenarioRegistry, ScenarioSpec
from .scenario import registry as default_registry

log = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="browser-harness",
        description="Run browser interaction scenarios and report pass/fail per scenario",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    def _add_sources(cmd: argparse.ArgumentParser) -> None:
        cmd.add_argument("--plan", action="append", default=[], help="Plan file (JSON or TOML); repeatable")
        cmd.add_argument(
            "--module",
            action="append",
            default=[],
            help="Python module defining @scenario functions; repeatable",
        )
        cmd.add_argument("--scenario", action="append", default=[], help="Scenario name to select; repeatable")
        cmd.add_argument("--tag", action="append", default=[], help="Select scenarios carrying this tag")
        cmd.add_argument("--json", action="store_true", help="Emit JSON instead of human readable text")

    run = sub.add_parser("run", help="Run scenarios")
    _add_sources(run)
    run.add_argument("--config", type=Path, default=None, help="TOML file with a [harness] table")
    run.add_argument("--browser", choices=SUPPORTED_BROWSERS, default=None, help="Browser engine")
    run.add_argument("--base-url", default=None, help="Base URL for relative navigation targets")
    run.add_argument("--workers", type=int, default=None, help="Scenarios to run concurrently")
    run.add_argument("--headed", action="store_true", help="Show the browser window")
    run.add_argument("--log-root", type=Path, default=None, help="Directory for run artifacts")
    run.add_argument("--run-id", default=None, help="Identifier for this run's artifact directory")

    listing = sub.add_parser("list", help="List available scenarios")
    _add_sources(listing)
    return parser


def collect_scenarios(
    plans: Sequence[str],
    modules: Sequence[str],
    *,
    source_registry: ScenarioRegistry = default_registry,
) -> ScenarioRegistry:
    """Build a registry from plan files and modules that register with ``@scenario``."""

    collected = ScenarioRegistry()
    for module_name in modules:
        importlib.import_module(module_name)
        for spec in source_registry:
            if spec.source == module_name or spec.source.startswith(module_name + "."):
                collected.add(spec)
    for plan in plans:
        path = Path(plan)
        plan_file = load_plan_file(path)
        register_plan_file(plan_file, collected, base_dir=path.resolve().parent, source=str(path))
    return collected


def _resolve_config(args: argparse.Namespace) -> HarnessConfig:
    config = load_config(args.config)
    return config.with_overrides(
        browser=args.browser,
        base_url=args.base_url,
        workers=args.workers,
        headless=False if args.headed else None,
        log_root=args.log_root,
    )


def _select(parser: argparse.ArgumentParser, args: argparse.Namespace) -> List[ScenarioSpec]:
    try:
        collected = collect_scenarios(args.plan, args.module)
    except PlanValidationError as exc:
        parser.error(str(exc))
    except (ImportError, ValueError) as exc:
        parser.error(f"Failed to load scenarios: {exc}")
    try:
        return collected.select(args.scenario, args.tag)
    except KeyError as exc:
        parser.error(str(exc.args[0]))


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if not args.plan and not args.module:
        parser.error("at least one --plan or --module is required")
    specs = _select(parser, args)

    if args.command == "list":
        if args.json:
            print(json.dumps([spec.to_metadata() for spec in specs], indent=2, ensure_ascii=False))
        else:
            for spec in specs:
                tags = f" [{', '.join(spec.tags)}]" if spec.tags else ""
                print(f"{spec.name}{tags}")
        return 0

    if not specs:
        parser.error("no scenarios matched the selection")
    try:
        config = _resolve_config(args)
    except (ValueError, FileNotFoundError, OSError) as exc:
        parser.error(f"Invalid configuration: {exc}")

    runner = ScenarioRunner(config, run_id=args.run_id)
    report = asyncio.run(runner.run(specs))
    if args.json:
        print(json.dumps(report.as_dict(), indent=2, ensure_ascii=False, default=str))
    else:
        print(report.format_text())
    return 0 if report.success else 1


if __name__ == "__main__":  # pragma: no cover - CLI entry point
    raise SystemExit(main())
