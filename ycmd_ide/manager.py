#!/usr/bin/env python3
"""
ycmd-ide Manager

Command-line front end: starts a private ycmd server, runs one operation
against it, and tears it down again.

Usage:
    python -m ycmd_ide.manager check                  # Start server, report health
    python -m ycmd_ide.manager check --filetype go    # Also check the go subserver
    python -m ycmd_ide.manager complete FILE LINE COL # Print completions at a position
    python -m ycmd_ide.manager options                # Print the startup options (secret redacted)
"""

import argparse
import json
import logging
import sys

from .client import YcmdClient
from .config import Settings
from .filetypes import classify
from .options import default_options


def setup_logging(verbose: bool = False):
    root = logging.getLogger()
    if root.handlers:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    root.addHandler(handler)
    root.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logging.getLogger("ycmd_ide").setLevel(logging.DEBUG if verbose else logging.INFO)


def build_settings(args) -> Settings:
    settings = Settings.from_env()
    if args.ycmd:
        settings.ycmd_path = args.ycmd
    if args.python:
        settings.python_path = args.python
    if args.startup_delay is not None:
        settings.startup_delay = args.startup_delay
    return settings


def print_status(status: dict):
    """Print human-readable status."""
    if status["connected"]:
        print("✓ Server is running and healthy")
        print(f"  PID: {status['pid']}")
        print(f"  URL: {status['url']}")
    elif status["running"]:
        print("⚠ Server process exists but not responding")
        print(f"  PID: {status['pid']}")
    else:
        print("✗ Server is not running")
    if status.get("last_error"):
        print(f"  Last error: {status['last_error']}")


def cmd_check(client: YcmdClient, args) -> bool:
    client.initialize()
    status = client.status()
    if args.filetype and client.connected:
        status["ready"] = {args.filetype: client.is_server_ready(args.filetype)}

    if args.json:
        print(json.dumps(status, indent=2))
    else:
        print_status(status)
        for filetype, ready in status.get("ready", {}).items():
            print(f"  Subserver {filetype}: {'ready' if ready else 'not ready'}")
    return client.connected and all(status.get("ready", {}).values())


def cmd_complete(client: YcmdClient, args) -> bool:
    with open(args.file, encoding="utf-8", errors="surrogateescape") as f:
        contents = f.read()
    if not client.initialize():
        print_status(client.status())
        return False

    result = client.file_ready_to_parse(args.line, args.column, args.file, contents)
    if args.json:
        print(json.dumps({
            "ok": result.ok,
            "status_code": result.status_code,
            "filetype": classify(args.file, contents),
            "start_column": result.start_column,
            "completions": client.menu.items(),
            "integrity_failed": result.integrity_failed,
        }, indent=2))
    elif result.integrity_failed:
        print("ERROR: Server response failed HMAC verification; results discarded", file=sys.stderr)
    elif not result.ok:
        print(f"ERROR: Completion request failed (status {result.status_code})", file=sys.stderr)
    else:
        for letter, text in client.menu.items():
            print(f"  {letter}  {text}")
        print(f"\nStart column: {result.start_column}")
    return result.ok


def cmd_options(settings: Settings, args) -> bool:
    print(json.dumps(default_options("<redacted>", settings.tools), indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="ycmd server manager and client")
    parser.add_argument("--ycmd", type=str, default=None, help="Path to the ycmd server package")
    parser.add_argument("--python", type=str, default=None, help="Python interpreter that runs ycmd")
    parser.add_argument("--startup-delay", type=float, default=None, help="Seconds to wait before health checks")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    check = subparsers.add_parser("check", help="Start the server and check its health")
    check.add_argument("--filetype", type=str, default=None, help="Also check this subserver")

    complete = subparsers.add_parser("complete", help="Request completions at a position")
    complete.add_argument("file", help="Source file")
    complete.add_argument("line", type=int, help="Line number (1-indexed)")
    complete.add_argument("column", type=int, help="Column number (0-indexed)")

    subparsers.add_parser("options", help="Print the server options file (secret redacted)")

    args = parser.parse_args()
    setup_logging(args.verbose)
    settings = build_settings(args)

    if args.command == "options":
        sys.exit(0 if cmd_options(settings, args) else 1)

    with YcmdClient(settings) as client:
        if args.command == "check":
            success = cmd_check(client, args)
        else:
            success = cmd_complete(client, args)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
