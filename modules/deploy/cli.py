"""Command line entry-point for ``python -m modules.deploy``."""
from __future__ import annotations

import argparse
import json
from pathlib import Path
from typing import Optional, Sequence

from .config import DEFAULT_CONFIG_FILE, TRANSFORM_CHOICES, DeployConfig
from .exceptions import ConfigurationError, ManifestError
from .manifest import read_extension_manifest


def _load_config(args: argparse.Namespace) -> DeployConfig:
    if args.config:
        config = DeployConfig.load(Path(args.config))
    elif DEFAULT_CONFIG_FILE.exists():
        config = DeployConfig.load(DEFAULT_CONFIG_FILE)
    else:
        config = DeployConfig.from_env()
    if args.mod_directory:
        config.mod_directory = Path(args.mod_directory).expanduser().resolve()
    if args.run_directory:
        config.run_directory = Path(args.run_directory).expanduser().resolve()
    if args.transform:
        config.transform = args.transform
    if args.mappings:
        config.mappings = Path(args.mappings).expanduser().resolve()
    return config


def _cli_deploy(args: argparse.Namespace) -> int:
    config = _load_config(args)
    quiet = (lambda _message: None) if args.json else None
    task = config.build_task(extra_sources=args.sources, logger=quiet)
    report = task.deploy()
    if args.json:
        print(json.dumps(report.as_dict(), indent=2))
    else:
        for item in report.deployed:
            print(f"Deployed '{item.name}' -> {item.target}")
        for failure in report.failures:
            print(f"Failed ({failure.stage}) {failure.path}: {failure.error}")
    return 0 if report.ok else 1


def _cli_inspect(args: argparse.Namespace) -> int:
    status = 0
    for archive in args.archives:
        try:
            manifest = read_extension_manifest(Path(archive))
        except ManifestError as exc:
            print(f"{archive}: invalid ({exc})")
            status = 1
            continue
        if manifest is None:
            print(f"{archive}: not a mod archive")
        else:
            print(f"{archive}: {manifest.name}")
    return status


def _cli(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Deploy mod archives into an extension directory.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    deploy_parser = subparsers.add_parser("deploy", help="Synchronise the extension directory with mod archives")
    deploy_parser.add_argument("sources", nargs="*", help="Mod archives to deploy")
    deploy_parser.add_argument("--config", type=str, default=None, help="JSON or YAML configuration file")
    deploy_parser.add_argument("--mod-directory", type=str, default=None, help="Target extension directory")
    deploy_parser.add_argument(
        "--run-directory", type=str, default=None, help="Runtime working directory; mods go to <run>/mods"
    )
    deploy_parser.add_argument("--transform", type=str, default=None, choices=TRANSFORM_CHOICES)
    deploy_parser.add_argument("--mappings", type=str, default=None, help="Tiny mappings for the remap transform")
    deploy_parser.add_argument("--json", action="store_true", help="Emit the deploy report as JSON")

    inspect_parser = subparsers.add_parser("inspect", help="Print the logical name of mod archives")
    inspect_parser.add_argument("archives", nargs="+", help="Archives to inspect")

    args = parser.parse_args(argv)
    try:
        if args.command == "deploy":
            return _cli_deploy(args)
        if args.command == "inspect":
            return _cli_inspect(args)
    except ConfigurationError as exc:
        print(f"Error: {exc}")
        return 2
    return 1


def main() -> None:
    """Entry-point for ``python -m modules.deploy``."""

    raise SystemExit(_cli())


__all__ = ["main"]
