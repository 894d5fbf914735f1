# Copyright 2026 Cisco Systems, Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#
# SPDX-License-Identifier: Apache-2.0

"""Command-line interface for the ClamAV REST service."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config.config import Config
from ..core.engine import ClamdScanEngine
from ..core.exceptions import ScanError
from ..core.models import ScanResult
from ..core.scanner import Scanner

logger = logging.getLogger("clamav_rest.cli")


# ---------------------------------------------------------------------------
# Shared helpers
# ---------------------------------------------------------------------------


def _load_config(args: argparse.Namespace) -> Config:
    """Load configuration from ``--env-file`` or the process environment."""
    env_file = getattr(args, "env_file", None)
    if env_file:
        return Config.from_file(Path(env_file))
    return Config.from_env()


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _generate_summary(result: ScanResult, file_path: Path) -> str:
    """Render a short human-readable summary of *result*."""
    lines = [
        f"File: {file_path}",
        f"Status: {result.status.value.upper()}",
        f"Scanned files: {result.scanned_files}",
    ]
    if result.threats:
        lines.append(f"Threats ({len(result.threats)}):")
        for threat in result.threats:
            lines.append(f"  - {threat.name} in {threat.file}")
            if threat.file_hash:
                lines.append(f"    sha256: {threat.file_hash}")
    return "\n".join(lines)


def _write_output(args: argparse.Namespace, output: str) -> None:
    """Write *output* to a file or stdout."""
    if getattr(args, "output", None):
        with open(args.output, "w", encoding="utf-8") as fh:
            fh.write(output + "\n")
        print(f"Output saved to: {args.output}", file=sys.stderr)
    else:
        print(output)


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def serve_command(args: argparse.Namespace) -> int:
    """Handle the ``serve`` command."""
    from ..api.api_server import run_server

    config = _load_config(args)
    _configure_logging(config.debug_mode)
    logger.info("ClamAV REST server starting...")
    config.log_config()
    run_server(config, host=args.host, port=args.port, reload=args.reload)
    return 0


def scan_command(args: argparse.Namespace) -> int:
    """Handle the ``scan`` command for a local file."""
    file_path = Path(args.file)
    if not file_path.is_file():
        print(f"Error: File does not exist: {file_path}", file=sys.stderr)
        return 1

    config = _load_config(args)
    _configure_logging(config.debug_mode)
    scanner = Scanner(config.scan_configuration(), engine=ClamdScanEngine(binary=config.clamdscan_binary))

    try:
        result = scanner.scan_file(file_path)
    except ScanError as e:
        logger.debug("Scan failed: %s", e.diagnostic)
        if args.format == "json":
            _write_output(args, json.dumps({"status": "error", "error": e.public_message, "kind": e.kind.value}))
        else:
            print(f"Error: {e.public_message} ({e})", file=sys.stderr)
        return 1

    if args.format == "json":
        output = json.dumps(result.to_dict(), indent=None if args.compact else 2)
    else:
        output = _generate_summary(result, file_path)
    _write_output(args, output)

    return 0 if result.is_clean else 1


def version_command(args: argparse.Namespace) -> int:
    """Handle the ``version`` command."""
    from .. import __version__

    config = _load_config(args)
    version = ClamdScanEngine(binary=config.clamdscan_binary).get_version()
    print(f"clamav-rest {__version__}")
    print(f"ClamAV {version.clamav_version}")
    print(f"Signature database {version.db_version}")
    return 0


def clamd_config_command(args: argparse.Namespace) -> int:
    """Handle the ``clamd-config`` command."""
    config = _load_config(args)
    _write_output(args, "\n".join(config.clamd_conf_directives()))
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main(argv: list[str] | None = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="ClamAV REST - upload staging and scanning with ClamAV",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  clamav-rest serve --port 9000
  clamav-rest scan upload.zip --format json
  clamav-rest clamd-config >> /etc/clamav/clamd.conf
  clamav-rest version
        """,
    )
    parser.add_argument("--env-file", metavar="PATH", help="Load settings from a .env file")
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    # -- serve -------------------------------------------------------------
    serve_p = subparsers.add_parser("serve", help="Run the REST API server")
    serve_p.add_argument("--host", help="Host to bind to (default: HOST or 0.0.0.0)")
    serve_p.add_argument("--port", type=int, help="Port to bind to (default: PORT or 9000)")
    serve_p.add_argument("--reload", action="store_true", help="Enable auto-reload for development")

    # -- scan --------------------------------------------------------------
    scan_p = subparsers.add_parser("scan", help="Scan a local file")
    scan_p.add_argument("file", help="Path to the file or archive to scan")
    scan_p.add_argument("--format", choices=["summary", "json"], default="summary", help="Output format")
    scan_p.add_argument("--output", "-o", help="Output file path")
    scan_p.add_argument("--compact", action="store_true", help="Compact JSON output")

    # -- version -----------------------------------------------------------
    subparsers.add_parser("version", help="Show ClamAV and signature database versions")

    # -- clamd-config ------------------------------------------------------
    cc_p = subparsers.add_parser("clamd-config", help="Print clamd.conf limit directives for this configuration")
    cc_p.add_argument("--output", "-o", help="Output file path")

    # -- dispatch ----------------------------------------------------------
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    dispatch = {
        "serve": serve_command,
        "scan": scan_command,
        "version": version_command,
        "clamd-config": clamd_config_command,
    }
    handler = dispatch.get(args.command)
    if handler:
        return handler(args)

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
