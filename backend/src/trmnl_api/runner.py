"""Command-line runner for the plugin execution core.

Runs a single plugin (or lists the available ones) the same way the API
layer does, printing the PluginResult as JSON. Useful for checking a plugin
against live upstreams without standing up the HTTP service.

Usage:
    trmnl-plugins list
    trmnl-plugins run ics_calendar --settings '{"ics_url": "https://..."}' --context context.json
    trmnl-plugins options tempest_weather_station tempest_weather_station_devices --context context.json
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from .core.config import get_settings_instance
from .core.exceptions import TrmnlException
from .core.http_client import close_http_client
from .core.logging import get_logger, setup_logging
from .plugins.executor import EXECUTOR, Executor
from .plugins.options import PluginOptionsService
from .plugins.registry import REGISTRY

logger = get_logger(__name__)


def load_json_argument(value: str | None) -> dict[str, Any]:
    """Parse an inline JSON object, or ``@path`` / a path to a JSON file."""
    if not value:
        return {}
    if value.startswith("@"):
        value = Path(value[1:]).read_text(encoding="utf-8")
    elif value.endswith(".json"):
        value = Path(value).read_text(encoding="utf-8")
    data = json.loads(value)
    if not isinstance(data, dict):
        raise ValueError("expected a JSON object")
    return data


async def run_plugin(
    plugin: str, settings: dict[str, Any], context: dict[str, Any], timeout: float | None = None
) -> dict[str, Any]:
    executor = EXECUTOR if timeout is None else Executor(timeout=timeout)
    try:
        result = await executor.execute(plugin, settings, context)
    finally:
        await close_http_client()
    return result.model_dump()


async def fetch_options(plugin: str, field_name: str, context: dict[str, Any]) -> dict[str, Any] | None:
    try:
        return await PluginOptionsService().fetch(
            plugin, field_name, context.get("oauth_tokens"), context.get("user")
        )
    finally:
        await close_http_client()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trmnl-plugins",
        description="Run TRMNL plugins from the command line",
        epilog=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("list", help="List plugins whose credentials are configured")

    run = commands.add_parser("run", help="Execute one plugin and print its result")
    run.add_argument("plugin", help="Plugin identifier, e.g. ics_calendar")
    run.add_argument("--settings", help="Settings as a JSON object or a .json file")
    run.add_argument("--context", help="Execution context (trmnl_data) as a JSON object or a .json file")
    run.add_argument(
        "--timeout",
        type=float,
        default=None,
        help=f"Execution timeout in seconds (default: {get_settings_instance().plugin_execution_timeout})",
    )

    options = commands.add_parser("options", help="Fetch the dynamic options of a form field")
    options.add_argument("plugin")
    options.add_argument("field_name")
    options.add_argument("--context", help="Execution context with user and oauth_tokens")
    return parser


def main(argv: list[str] | None = None) -> int:
    """Runner entrypoint."""
    args = build_parser().parse_args(argv)

    # stdout is reserved for the JSON result
    setup_logging(stream=sys.stderr)

    try:
        if args.command == "list":
            output: Any = REGISTRY.list_plugins()
        elif args.command == "run":
            output = asyncio.run(
                run_plugin(
                    args.plugin,
                    load_json_argument(args.settings),
                    load_json_argument(args.context),
                    timeout=args.timeout,
                )
            )
        else:
            output = asyncio.run(fetch_options(args.plugin, args.field_name, load_json_argument(args.context)))
    except (ValueError, OSError) as e:
        logger.error("Invalid argument: %s", e)
        return 2
    except TrmnlException as e:
        logger.error("%s", e.message, extra={"error_code": e.error_code})
        return 1

    json.dump(output, sys.stdout, indent=2, default=str)
    sys.stdout.write("\n")
    if isinstance(output, dict) and output.get("success") is False:
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
