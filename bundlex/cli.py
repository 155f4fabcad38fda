"""Command line interface for inspecting targets and build plans."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable
import sys

from core.console import Console

from .errors import BundlexError
from .planner import BuildPlanner, serialize_plans
from .settings import Settings
from .target import classify, get_target


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="bundlex", description="Native build configuration resolver")
    subparsers = parser.add_subparsers(dest="command", required=True)

    target_parser = subparsers.add_parser("target", help="Show the target triplet and platform of this host")
    target_parser.add_argument("--config", help="Path to a bundlex-settings file (default: discovered in the workspace)")
    target_parser.add_argument("--log-level", choices=list(Console.LEVELS), help="Override the configured log level")

    plan_parser = subparsers.add_parser("plan", help="Resolve natives and libs of an application")
    plan_parser.add_argument("app", help="Application whose bundlex project should be planned")
    plan_parser.add_argument("--unit", help="Only plan the native or lib with this name")
    plan_parser.add_argument("--interface", choices=["nif", "cnode", "port"], help="Restrict --unit to one interface")
    plan_parser.add_argument("--config", help="Path to a bundlex-settings file (default: discovered in the workspace)")
    plan_parser.add_argument("--log-level", choices=list(Console.LEVELS), help="Override the configured log level")

    return parser.parse_args(list(argv))


def _load_settings(args: Namespace, workspace: Path) -> Settings:
    if args.config:
        settings = Settings.from_file(Path(args.config))
    else:
        settings = Settings.discover(workspace)
    if args.log_level:
        settings.log_level = args.log_level
    return settings


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    workspace = Path.cwd()

    try:
        settings = _load_settings(args, workspace)
    except (OSError, TypeError, ValueError) as exc:
        print(f"Error: {exc}")
        return 2

    try:
        if args.command == "target":
            return _handle_target(settings)
        if args.command == "plan":
            return _handle_plan(args, settings)
    except BundlexError as exc:
        print(f"Error: {exc}")
        return 2
    raise ValueError(f"Unknown command: {args.command}")


def _handle_target(settings: Settings) -> int:
    target = get_target(settings.target)
    platform = classify(target)
    print(f"triplet: {target.triplet}")
    print(f"architecture: {target.architecture}")
    print(f"vendor: {target.vendor}")
    print(f"os: {target.os}")
    print(f"abi: {target.abi or '-'}")
    print(f"platform: {platform.value}")
    print(f"family: {platform.os_family}")
    return 0


def _handle_plan(args: Namespace, settings: Settings) -> int:
    planner = BuildPlanner.from_settings(settings)
    if args.unit:
        plans = planner.plan_unit(args.app, args.unit, args.interface)
    else:
        plans = planner.plan_project(args.app)
    print(serialize_plans(plans))
    return 0


__all__ = ["main"]
