from __future__ import annotations

import argparse
import logging
from pathlib import Path
from typing import List, Optional

from . import __version__
from .config import StoreConfig
from .diagnostics import DiagnosticLog, LogConfig
from .environment import AUTHORING, PACKAGED, HostEnvironment
from .errors import ManifestError
from .logging_config import configure_logging
from .packaging import add_data_argument, verify_bundle
from .store import ObjectStore


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="deploystore",
        description="Inspect and maintain deploystore save directories",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--config", type=Path, default=None, help="User config YAML to overlay on the defaults.")
    parser.add_argument("--mode", choices=[AUTHORING, PACKAGED], default=None, help="Force the environment mode.")
    parser.add_argument("--project-root", type=Path, default=None, help="Project (or bundle) root directory.")
    parser.add_argument("--data-dir", type=Path, default=None, help="Writable data root.")
    parser.add_argument("-v", "--verbose", action="count", default=0, help="Increase log verbosity (-v, -vv)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("paths", help="Show the resolved mode and directories")
    sub.add_parser("manifest", help="List names recorded in the persistent tracker")
    sub.add_parser("unpack", help="Copy bundled persistent saves into the data root")
    sub.add_parser("verify", help="Check every tracked save has its file before building")
    sub.add_parser("add-data", help="Print the PyInstaller --add-data value for the Resources dir")
    log_cmd = sub.add_parser("log", help="Show or clear the diagnostic log")
    log_cmd.add_argument("action", choices=["show", "clear"])
    return parser.parse_args(argv)


def _build_environment(args: argparse.Namespace) -> HostEnvironment:
    config = StoreConfig.load(user_path=args.config)
    return HostEnvironment(config, mode=args.mode, project_root=args.project_root, data_root=args.data_dir)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    level = logging.WARNING
    if args.verbose == 1:
        level = logging.INFO
    elif args.verbose >= 2:
        level = logging.DEBUG
    # Store operations already report their outcome on stdout; echo log entries only at -vv.
    configure_logging(level, echo_level=logging.DEBUG if args.verbose >= 2 else logging.WARNING)

    env = _build_environment(args)

    if args.command == "paths":
        for key, value in env.describe().items():
            print(f"{key}: {value}")
        return 0

    if args.command == "add-data":
        print(add_data_argument(env))
        return 0

    if args.command == "verify":
        try:
            check = verify_bundle(env)
        except ManifestError as exc:
            print(f"error: {exc}")
            return 1
        if not check.tracker_found:
            print("No tracker found; nothing will be bundled.")
            return 0
        for name in check.missing:
            print(f"missing: {name}")
        print(f"present={len(check.present)} missing={len(check.missing)}")
        return 0 if check.ok else 1

    if args.command == "log":
        # The CLI reads the log; it does not echo into it.
        log = DiagnosticLog(env.log_path(), LogConfig(console_enabled=False, file_enabled=False))
        if args.action == "clear":
            log.clear()
            print(f"Cleared {log.path}")
            return 0
        for entry in log.parse_records():
            print(f"[{entry.severity.value}] {entry.message}")
        return 0

    store = ObjectStore(env.config, environment=env)

    if args.command == "manifest":
        manifest_store = store.manifest_store()
        if not manifest_store.exists():
            print(f"No tracker at {manifest_store.path}")
            return 0
        try:
            manifest = manifest_store.load_or_create()
        except ManifestError as exc:
            print(f"error: {exc}")
            return 1
        for name in manifest:
            print(name)
        return 0

    if args.command == "unpack":
        ok = store.unpack_persistent_saves()
        report = store.unpacker.last_report
        if report is not None and report.tracker_found:
            print(
                f"copied={len(report.copied)} kept={len(report.kept)} "
                f"missing={len(report.missing)} failed={len(report.failed)}"
            )
        return 0 if ok else 1

    return 2  # pragma: no cover - argparse enforces a command
