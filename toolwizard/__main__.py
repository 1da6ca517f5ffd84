"""
ToolWizard CLI entry point.

Provides command-line access to the orchestration engine: inspect the
configuration, list the MCP servers and their tools, and run requests
either from a question on the command line or from a JSON request file.
"""

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from toolwizard import __version__
from toolwizard.config.logging import get_logger, setup_logging
from toolwizard.config.settings import Settings, load_settings
from toolwizard.llm.adapters import ADAPTERS
from toolwizard.llm.events import ProgressEvent
from toolwizard.service import ToolWizardService
from toolwizard.tools.registry import ProviderRegistry


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="toolwizard",
        description="LLM tool-use orchestration over MCP tool providers",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"ToolWizard {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Config command
    subparsers.add_parser(
        "config",
        help="Show current configuration",
    )

    # Servers command
    subparsers.add_parser(
        "servers",
        help="Start the configured MCP servers and list their tools",
    )

    # Ask command
    ask_parser = subparsers.add_parser(
        "ask",
        help="Send a natural-language request through the engine",
    )
    ask_parser.add_argument(
        "question",
        help='Request text, e.g. "List the files in /tmp"',
    )
    ask_parser.add_argument(
        "--client",
        choices=sorted(ADAPTERS),
        default="MCP_CLIENT_OPENAI",
        help="LLM backend selector (default: MCP_CLIENT_OPENAI)",
    )
    ask_parser.add_argument(
        "--server",
        dest="servers",
        action="append",
        required=True,
        help="MCP server to make available; repeat for several servers",
    )
    ask_parser.add_argument(
        "--prompt",
        default="",
        help="System prompt for the answering calls",
    )
    ask_parser.add_argument(
        "--model",
        default=None,
        help="Chat model (or Azure deployment) override",
    )
    ask_parser.add_argument(
        "--credentials",
        type=Path,
        default=None,
        help="JSON file mapping server name to its credential bundle",
    )
    ask_parser.add_argument(
        "--stream",
        action="store_true",
        help="Write progress events to stdout as newline-delimited JSON",
    )

    # Process command
    process_parser = subparsers.add_parser(
        "process",
        help="Run a full request payload from a JSON file",
    )
    process_parser.add_argument(
        "request_file",
        type=Path,
        help="JSON file with selected_client, selected_servers, "
             "selected_server_credentials and client_details",
    )
    process_parser.add_argument(
        "--stream",
        action="store_true",
        help="Write progress events to stdout as newline-delimited JSON",
    )

    return parser


def _read_json(path: Path) -> Any:
    with open(path, encoding="utf-8") as f:
        return json.load(f)


def _write_frame(event: ProgressEvent) -> None:
    sys.stdout.write(event.to_frame())
    sys.stdout.flush()


def build_ask_payload(args) -> dict[str, Any]:
    """Turn ``ask`` arguments into a request payload."""
    credentials = _read_json(args.credentials) if args.credentials else {}
    client_details: dict[str, Any] = {
        "input": args.question,
        "prompt": args.prompt,
    }
    if args.model:
        client_details["chat_model"] = args.model
    return {
        "selected_client": args.client,
        "selected_servers": list(args.servers),
        "selected_server_credentials": credentials,
        "client_details": client_details,
    }


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("Current Configuration:")
    logger.info("\n=== ToolWizard Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nOpenAI API Key: {'Set' if settings.llm.openai_api_key else 'Not set'}")
    logger.info(f"OpenAI Base URL: {settings.llm.openai_base_url}")
    logger.info(f"Azure API Key: {'Set' if settings.llm.azure_api_key else 'Not set'}")
    logger.info(f"Azure Endpoint: {settings.llm.azure_endpoint or 'Not set'}")
    logger.info(f"Azure API Version: {settings.llm.azure_api_version}")
    logger.info(f"Gemini API Key: {'Set' if settings.llm.gemini_api_key else 'Not set'}")
    logger.info(f"Chat Model Override: {settings.llm.chat_model or 'None (backend default)'}")
    logger.info(f"Temperature: {settings.llm.temperature}")
    logger.info(f"Max Tokens: {settings.llm.max_tokens}")
    logger.info(f"Request Timeout: {settings.llm.request_timeout}s")
    logger.info(f"\nMax Tool Rounds: {settings.engine.max_tool_rounds}")
    logger.info(f"\nMCP Servers ({len(settings.tools.servers)}):")
    for server in settings.tools.servers:
        logger.info(f"  {server.name}: {server.command} {' '.join(server.args)}")

    return 0


async def cmd_servers(settings: Settings) -> int:
    """Start every configured MCP server and print its tool catalog."""
    logger = get_logger(__name__)

    if not settings.tools.servers:
        logger.error("No MCP servers configured. Set TOOLS__SERVERS in your .env file.")
        return 1

    try:
        async with ProviderRegistry.open(
            settings.tools.servers, connect_timeout=settings.tools.connect_timeout
        ) as registry:
            if not registry:
                print("No MCP server could be started.")
                return 1

            catalog = await registry.catalog(list(registry))
            print(f"\n=== MCP Servers ({len(registry)}) ===")
            for name in registry:
                tools = [tool for tool in catalog if tool.server == name]
                description = registry.describe(name)
                print(f"\n{name}" + (f"  ({description})" if description else ""))
                for tool in tools:
                    print(f"  {tool.name}: {tool.description}")
            return 0

    except Exception as e:
        logger.error(f"Listing servers failed: {e}", exc_info=True)
        return 1


async def run_request(payload: Any, settings: Settings, stream: bool) -> int:
    """
    Run one request payload through the engine and print the outcome.

    With ``stream`` every progress event is written as one JSON line as it
    happens; otherwise only the final result envelope is printed.

    Returns:
        Exit code (0 when the result Status is true, 1 otherwise)
    """
    logger = get_logger(__name__)

    try:
        async with ProviderRegistry.open(
            settings.tools.servers, connect_timeout=settings.tools.connect_timeout
        ) as registry:
            service = ToolWizardService(registry, settings)
            result = await service.process_message(
                payload, on_event=_write_frame if stream else None
            )
    except Exception as e:
        logger.error(f"Request failed: {e}", exc_info=True)
        return 1

    if not stream:
        print(json.dumps(result.to_dict(), indent=2))
    return 0 if result.status else 1


async def cmd_ask(args, settings: Settings) -> int:
    """Build a request from command-line arguments and run it."""
    logger = get_logger(__name__)

    try:
        payload = build_ask_payload(args)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read credentials file: {e}")
        return 1

    return await run_request(payload, settings, stream=args.stream)


async def cmd_process(args, settings: Settings) -> int:
    """Run a request payload read from a JSON file."""
    logger = get_logger(__name__)

    try:
        payload = _read_json(args.request_file)
    except (OSError, ValueError) as e:
        logger.error(f"Could not read request file: {e}")
        return 1

    return await run_request(payload, settings, stream=args.stream)


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    # Progress frames own stdout when streaming
    setup_logging(settings, stream=sys.stderr if getattr(args, "stream", False) else None)

    # Execute command
    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "servers":
        return asyncio.run(cmd_servers(settings))
    elif args.command == "ask":
        return asyncio.run(cmd_ask(args, settings))
    elif args.command == "process":
        return asyncio.run(cmd_process(args, settings))
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
