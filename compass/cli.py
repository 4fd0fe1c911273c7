"""
Compass CLI — run and inspect the service.

Commands:
- compass serve      — Start the lookup service under uvicorn
- compass decide     — Evaluate one task transition and print the decision
- compass validate   — Load and validate compass.yaml
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Optional

logger = logging.getLogger("compass.cli")


def main(argv: Optional[list] = None) -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="compass",
        description="Project Compass — task boards and member lookup",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # compass serve
    serve_parser = subparsers.add_parser("serve", help="Start the lookup service")
    serve_parser.add_argument("--host", default="0.0.0.0", help="Host to bind (default: 0.0.0.0)")
    serve_parser.add_argument("--port", type=int, default=9100, help="Port (default: 9100)")
    serve_parser.add_argument("--config", help="Path to compass.yaml (default: auto-discover)")

    # compass decide
    decide_parser = subparsers.add_parser("decide", help="Evaluate a task transition")
    decide_parser.add_argument("from_status", help="Current status (todo/in_progress/review/done)")
    decide_parser.add_argument("to_status", help="Target status")
    decide_parser.add_argument("role", help="Actor role (owner/member/worker)")

    # compass validate
    validate_parser = subparsers.add_parser("validate", help="Validate compass.yaml")
    validate_parser.add_argument("--config", help="Path to compass.yaml (default: auto-discover)")

    args = parser.parse_args(argv)

    if args.command == "serve":
        return cmd_serve(args)
    elif args.command == "decide":
        return cmd_decide(args)
    elif args.command == "validate":
        return cmd_validate(args)
    else:
        parser.print_help()
        return 0


def cmd_serve(args: argparse.Namespace) -> int:
    """Start the lookup service with the activity log running."""
    import uvicorn

    from compass.engine.config import load_settings
    from compass.engine.errors import CompassError
    from compass.engine.logging import init_logging, log, log_system_event, shutdown_logging
    from compass.lookup.app import create_app

    try:
        settings = load_settings(args.config)
    except CompassError as e:
        print(f"Configuration error: {e.message}", file=sys.stderr)
        return 1

    logging.basicConfig(level=settings.logging.level)
    init_logging(
        log_dir=settings.logging.directory,
        flush_interval_ms=settings.logging.flush_interval_ms,
        flush_batch_size=settings.logging.flush_batch_size,
        max_queue_size=settings.logging.max_queue_size,
    )
    log(log_system_event("service_started", details={"port": args.port, "env": settings.environment}))

    try:
        app = create_app(settings)
    except CompassError as e:
        print(f"Startup failed: {e.message}", file=sys.stderr)
        shutdown_logging()
        return 1

    print(f"Starting Compass lookup service on http://{args.host}:{args.port}")
    try:
        uvicorn.run(app, host=args.host, port=args.port)
    finally:
        log(log_system_event("service_stopped"))
        shutdown_logging()
    return 0


def cmd_decide(args: argparse.Namespace) -> int:
    """Print the transition decision as JSON. Exit code 2 when rejected."""
    from compass.board.transitions import decide
    from compass.engine.errors import CompassValidationError

    try:
        decision = decide(args.from_status, args.to_status, args.role)
    except CompassValidationError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(json.dumps(decision.to_dict(), indent=2))
    return 0 if decision.allowed else 2


def cmd_validate(args: argparse.Namespace) -> int:
    """Load compass.yaml and report the effective settings (secrets masked)."""
    from compass.engine.config import load_settings
    from compass.engine.errors import CompassConfigError

    try:
        settings = load_settings(args.config)
    except CompassConfigError as e:
        print(f"✗ {e.message}", file=sys.stderr)
        return 1

    data = settings.model_dump()
    for key in ("anon_key", "service_role_key"):
        if data["identity"].get(key):
            data["identity"][key] = "***"
    print("✓ Configuration is valid")
    print(json.dumps(data, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
