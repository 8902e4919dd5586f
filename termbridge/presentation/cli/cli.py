"""
CLI Module

Architectural Intent:
- Command-line interface for termbridge
- Entry point for all user interactions
- Delegates to application use cases via composition root
- Supports --verbose/--debug flags for log level control
"""

import argparse
import sys
import asyncio
import logging
import traceback
from termbridge.infrastructure.logging import configure_logging, parse_level
from termbridge.infrastructure.config import load_config
from termbridge.domain.errors import BusConnectionError, PayloadParseError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="termbridge",
        description="termbridge: run shell commands received over a message bus",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Enable verbose output"
    )
    parser.add_argument(
        "--debug", action="store_true", help="Enable debug output with tracebacks"
    )
    parser.add_argument(
        "--json-logs", action="store_true", help="Emit structured JSON logs"
    )
    parser.add_argument(
        "--config", "-c", default=None, help="Path to termbridge.json"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser(
        "serve", help="Listen for commands on the bus and publish results"
    )

    exec_parser = subparsers.add_parser(
        "exec", help="Run commands locally through the execution engine"
    )
    exec_parser.add_argument(
        "--session", "-s", default="local", help="Session ID to run in"
    )
    exec_parser.add_argument(
        "--mode",
        choices=("persistent", "stateless"),
        default=None,
        help="Shell mode (overrides config)",
    )
    exec_parser.add_argument(
        "commands", nargs="+", help="Commands to run in order, one per argument"
    )

    send_parser = subparsers.add_parser(
        "send", help="Publish a command on the bus and print its result"
    )
    send_parser.add_argument("--session", "-s", default="", help="Session ID")
    send_parser.add_argument(
        "--timeout", "-t", type=float, default=None, help="Seconds to wait for a result"
    )
    send_parser.add_argument("script_cmd", help="Command to run")

    return parser


async def async_main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)

    # Configure logging based on flags
    if args.debug:
        level = logging.DEBUG
    elif args.verbose:
        level = logging.INFO
    else:
        level = parse_level(config.log_level)
    configure_logging(level=level, json_format=args.json_logs or config.log_json)

    verbose = args.verbose or args.debug

    if args.command == "serve":
        from termbridge.composition_root import create_container

        container = create_container(config)
        await container.telemetry.initialize()
        try:
            print(
                f"[*] Connecting to bus at {config.bus.host}:{config.bus.port}...",
                file=sys.stderr,
            )
            await container.bus.connect()
            print(
                f"[+] Listening on '{config.bus.command_channel}' "
                f"({config.shell.mode} mode, {config.server.workers} workers)",
                file=sys.stderr,
            )
            await container.server.serve()
        except BusConnectionError as e:
            print(f"[-] Bus connection failed: {e}", file=sys.stderr)
            if verbose:
                traceback.print_exc()
            sys.exit(1)
        finally:
            await container.shutdown()
        print("[*] Server stopped.", file=sys.stderr)
        return

    if args.command == "exec":
        from dataclasses import replace
        from termbridge.composition_root import create_container
        from termbridge.application.dtos.command_dtos import CommandRequest
        from termbridge.infrastructure.message_bus import InMemoryMessageBus

        if args.mode:
            config = replace(config, shell=replace(config.shell, mode=args.mode))
        container = create_container(config, bus=InMemoryMessageBus())

        failed = False
        try:
            for command in args.commands:
                try:
                    request = CommandRequest(command=command, session_id=args.session)
                except PayloadParseError as e:
                    print(f"[-] Skipping command: {e}", file=sys.stderr)
                    failed = True
                    continue
                result = await container.execute_command.execute(request)
                print(result.to_json())
                failed = failed or not result.is_success
        finally:
            await container.shutdown()
        if failed:
            sys.exit(1)
        return

    if args.command == "send":
        from termbridge.composition_root import create_container

        container = create_container(config)
        if args.timeout is not None:
            container.send_command.timeout = args.timeout
        try:
            await container.bus.connect()
            result = await container.send_command.execute(
                args.script_cmd, args.session
            )
        except BusConnectionError as e:
            print(f"[-] Bus connection failed: {e}", file=sys.stderr)
            if verbose:
                traceback.print_exc()
            sys.exit(1)
        except PayloadParseError as e:
            print(f"[-] Invalid command: {e}", file=sys.stderr)
            sys.exit(1)
        finally:
            await container.shutdown()

        print(result.to_json())
        if not result.is_success:
            sys.exit(1)
        return

    parser.print_help()


def main():
    try:
        asyncio.run(async_main())
    except KeyboardInterrupt:
        print("\n[*] Interrupted.", file=sys.stderr)


if __name__ == "__main__":
    main()
