"""
Main CLI interface for procedure-app.

Provides commands to serve the demo program, check it end to end in a
browser, check a running server and show version information.
"""

import argparse
import asyncio
import json
import os
import sys
import traceback
from importlib import metadata
from typing import List, Optional

import aiohttp

from . import __version__
from .core.config import Config
from .core.exceptions import ProcedureAppError, ValidationError
from .core.logging_config import get_logger, setup_logging
from .program.session import generate_run_id


def _load_config(args: argparse.Namespace) -> Config:
    config = Config.from_env()
    if getattr(args, "host", None):
        config.host = args.host
    if getattr(args, "port", None):
        config.port = args.port
    if getattr(args, "headed", False):
        config.headless_mode = False
    config.validate()
    return config


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the demo program until interrupted."""
    from .web.server import serve

    try:
        config = _load_config(args)
        run_id = generate_run_id()
        setup_logging(config, run_id)
        logger = get_logger("procedure_app.cli")
        logger.info(
            "procedure-app starting up",
            extra={"metadata": {"run_id": run_id, "config": config.to_dict()}},
        )
        print(f"🚀 Serving procedures on {config.base_url} (Ctrl+C to stop)")
        asyncio.run(serve(config))
        return 0
    except KeyboardInterrupt:
        print("👋 Server stopped")
        return 0
    except ValidationError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        return 1
    except OSError as e:
        print(f"❌ Could not start server: {e}", file=sys.stderr)
        return 1


def cmd_check(args: argparse.Namespace) -> int:
    """Run the browser scenarios and print a summary."""
    from .e2e.runner import ScenarioRunner
    from .web.server import ServerThread

    server = None
    try:
        config = _load_config(args)
        setup_logging(config, generate_run_id())

        if args.serve:
            print(f"🔌 Starting server on {config.base_url}...")
            server = ServerThread(config).start_and_wait()

        runner = ScenarioRunner(config, base_url=args.base_url)
        print(f"🎭 Running scenarios against {runner.base_url} ({runner.mode.value})")
        summary = asyncio.run(runner.run(args.scenario))

        for result in summary.results:
            icon = "✅" if result.passed else "❌"
            print(f"   {icon} {result.name} ({result.duration:.2f}s)")
            if not result.passed and result.error_info:
                first_line = result.error_info["message"].splitlines()[0:1]
                if first_line:
                    print(f"      {first_line[0]}")
                if result.screenshot:
                    print(f"      📸 {result.screenshot}")

        print()
        print(f"📊 {summary.passed} passed, {summary.failed} failed")
        if args.json:
            print(json.dumps(summary.model_dump(mode="json"), indent=2))
        return 0 if summary.success else 1

    except ProcedureAppError as e:
        print(f"❌ {e.message}", file=sys.stderr)
        if args.verbose:
            traceback.print_exc()
        return 1
    finally:
        if server is not None:
            server.stop()


async def _fetch_health(base_url: str, timeout: float) -> dict:
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        async with session.get(f"{base_url.rstrip('/')}/health") as response:
            if response.status != 200:
                raise ProcedureAppError(
                    f"Health endpoint returned status {response.status}",
                    "HEALTH_CHECK_FAILED",
                )
            return await response.json()


def cmd_health(args: argparse.Namespace) -> int:
    """Probe a running server."""
    try:
        config = _load_config(args)
        base_url = args.base_url or config.base_url
        print(f"🏥 Checking {base_url}")
        body = asyncio.run(_fetch_health(base_url, args.timeout))
    except (aiohttp.ClientError, asyncio.TimeoutError) as e:
        print(f"❌ Server not reachable: {str(e) or e.__class__.__name__}")
        return 1
    except ProcedureAppError as e:
        print(f"❌ {e.message}")
        return 1

    print(f"✅ {body.get('status')} - version {body.get('version')}, {body.get('sessions')} live session(s)")
    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    try:
        version = metadata.version("procedure-app")
    except metadata.PackageNotFoundError:
        version = __version__

    print(f"procedure-app {version}")

    if args.verbose:
        print()
        print("System Information:")
        print(f"  Python: {sys.version}")
        print(f"  Platform: {sys.platform}")
        print(f"  Working Directory: {os.getcwd()}")
        try:
            config = Config.from_env()
            print(f"  Base URL: {config.base_url}")
            print(f"  Log Level: {config.log_level}")
        except ProcedureAppError:
            print("  Configuration: Not available")

    return 0


def create_main_parser() -> argparse.ArgumentParser:
    """Create main CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="procedure-app",
        description="procedure-app - procedures and ports for Elm-style web programs",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  procedure-app serve
  procedure-app check --serve
  procedure-app check --scenario shared-ports --headed
  procedure-app health --base-url http://localhost:9732
  procedure-app version --verbose
        """,
    )

    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Serve the demo program")
    serve_parser.add_argument("--host", help="Interface to bind (default: localhost)")
    serve_parser.add_argument("--port", type=int, help="Port to bind (default: 9732)")
    serve_parser.set_defaults(func=cmd_serve)

    check_parser = subparsers.add_parser(
        "check", help="Run the browser scenarios against a server"
    )
    check_parser.add_argument("--base-url", help="URL of the server under test")
    check_parser.add_argument("--host", help="Host for --serve")
    check_parser.add_argument("--port", type=int, help="Port for --serve")
    check_parser.add_argument(
        "--serve", action="store_true", help="Start a server in-process first"
    )
    check_parser.add_argument(
        "--headed", action="store_true", help="Show the browser window"
    )
    check_parser.add_argument(
        "--scenario",
        action="append",
        help="Scenario to run; repeat for several (default: all)",
    )
    check_parser.add_argument(
        "--json", action="store_true", help="Print the summary as JSON as well"
    )
    check_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    check_parser.set_defaults(func=cmd_check)

    health_parser = subparsers.add_parser("health", help="Probe a running server")
    health_parser.add_argument("--base-url", help="URL of the server to check")
    health_parser.add_argument(
        "--timeout", type=float, default=5.0, help="Request timeout in seconds"
    )
    health_parser.set_defaults(func=cmd_health)

    version_parser = subparsers.add_parser("version", help="Show version information")
    version_parser.add_argument(
        "--verbose", "-v", action="store_true", help="Show detailed version information"
    )
    version_parser.set_defaults(func=cmd_version)

    return parser


def main(args: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = create_main_parser()

    if args is None:
        args = sys.argv[1:]

    parsed_args = parser.parse_args(args)

    if not hasattr(parsed_args, "func"):
        parser.print_help()
        return 1

    return parsed_args.func(parsed_args)


if __name__ == "__main__":
    sys.exit(main())
