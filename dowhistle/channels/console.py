"""Terminal channel: a line-based chat loop over the Assistant.

Usage:
    dowhistle-chat [--lat 12.97 --lon 77.59] [--json-logs] [--log-level DEBUG]

Plain lines go through Assistant.send(); slash commands run tools directly.
"""

from __future__ import annotations

import argparse
import asyncio
import shlex
import sys
from collections.abc import Sequence
from typing import Any

import structlog

from dowhistle.agent.context import Location, StaticLocation
from dowhistle.config.settings import get_settings
from dowhistle.gateway.assistant import Assistant, build_assistant
from dowhistle.infra.logging import setup_logging
from dowhistle.tools.catalog import ToolName

logger = structlog.get_logger()

HELP_TEXT = """\
Commands:
  /signin <phone>          start sign-in (sends an OTP)
  /otp <phone> <code>      verify the OTP
  /resend <phone>          resend the OTP
  /whistle <description>   post a Whistle
  /whistles                list your Whistles
  /visibility              toggle your visibility
  /profile                 show your profile
  /status                  connection and sign-in status
  /signout                 forget stored credentials
  /quit                    exit
Anything else is sent to the assistant, e.g.
  find burger near latitude 12.9 longitude 77.6"""


def parse_command(line: str) -> tuple[str, dict[str, Any]] | None:
    """Map a slash command to (tool_name, arguments). None if not a tool command."""
    parts = shlex.split(line)
    if not parts:
        return None
    name, args = parts[0].lower(), parts[1:]
    if name == "/signin" and len(args) == 1:
        return ToolName.sign_in, {"phone": args[0]}
    if name == "/otp" and len(args) == 2:
        return ToolName.verify_otp, {"phone": args[0], "otp": args[1]}
    if name == "/resend" and len(args) == 1:
        return ToolName.resend_otp, {"phone": args[0]}
    if name == "/whistle" and args:
        return ToolName.create_whistle, {"description": " ".join(args)}
    if name == "/whistles" and not args:
        return ToolName.list_whistles, {}
    if name == "/visibility" and not args:
        return ToolName.toggle_visibility, {}
    if name == "/profile" and not args:
        return ToolName.get_user_profile, {}
    return None


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="dowhistle-chat", description="DoWhistle Assistant")
    parser.add_argument("--lat", type=float, help="your latitude")
    parser.add_argument("--lon", type=float, help="your longitude")
    parser.add_argument("--json-logs", action="store_true", help="JSON log output")
    parser.add_argument("--log-level", default=None, help="DEBUG, INFO, WARNING, ERROR")
    return parser


async def _handle_line(assistant: Assistant, line: str) -> bool:
    """Handle one input line. Returns False when the user asked to quit."""
    stripped = line.strip()
    if stripped in ("/quit", "/exit"):
        return False
    if stripped == "/help":
        print(HELP_TEXT)
        return True
    if stripped == "/status":
        print(assistant.status().model_dump_json(indent=2))
        return True
    if stripped == "/signout":
        assistant.auth.sign_out()
        print("Signed out.")
        return True

    if stripped.startswith("/"):
        try:
            command = parse_command(stripped)
        except ValueError as e:
            print(f"Could not parse command: {e}")
            return True
        if command is None:
            print("Unknown command or wrong arguments. Type /help.")
            return True
        message = await assistant.execute(*command)
    else:
        message = await assistant.send(stripped)

    if message is not None:
        print(message.text)
    return True


async def run(argv: Sequence[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)
    if (args.lat is None) != (args.lon is None):
        print("--lat and --lon must be given together", file=sys.stderr)
        return 2

    settings = get_settings()
    setup_logging(
        json_output=args.json_logs or settings.log.json_output,
        log_level=args.log_level or settings.log.level,
    )

    location = Location(args.lat, args.lon) if args.lat is not None else None
    assistant = build_assistant(settings, location=StaticLocation(location))
    await assistant.start()
    logger.info("console_channel_started", has_location=location is not None)
    print("DoWhistle Assistant. Type /help for commands.")
    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            if not await _handle_line(assistant, line):
                break
    finally:
        await assistant.close()
    return 0


def main() -> None:
    try:
        sys.exit(asyncio.run(run()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
