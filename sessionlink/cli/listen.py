#!/usr/bin/env python3
"""
Realtime session listener CLI.

Connects to a realtime endpoint, subscribes to the channels of the given
identity and logs every notification until interrupted.

Usage:
    python -m sessionlink.cli.listen --url ws://localhost:8000/ws
    python -m sessionlink.cli.listen --token $JWT --user-id 42 --role admin

Examples:
    # Listen on the general channel only
    python -m sessionlink.cli.listen --url ws://localhost:8000/ws --user-id 1

    # Trace every frame and state transition
    python -m sessionlink.cli.listen --user-id 1 --debug
"""

import argparse
import asyncio
import logging
import signal
import sys

from sessionlink.configuration.config import get_settings
from sessionlink.configuration.factories import create_realtime_session
from sessionlink.domain.model.realtime.connection import ConnectionState
from sessionlink.domain.model.realtime.identity import SessionIdentity
from sessionlink.domain.model.realtime.message import InboundMessage

logger = logging.getLogger("sessionlink.cli.listen")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Listen to a realtime session and log notifications",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --url ws://localhost:8000/ws --user-id 1
  %(prog)s --token $JWT --user-id 42 --role admin --org enterprise
        """,
    )
    parser.add_argument("--url", help="WebSocket URL (defaults to SESSIONLINK_URL)")
    parser.add_argument("--token", help="Bearer token for the session")
    parser.add_argument("--user-id", help="User id; enables identity channels")
    parser.add_argument("--role", help="Role channel to join")
    parser.add_argument("--org", help="Organization type channel to join")
    parser.add_argument(
        "-c",
        "--channel",
        action="append",
        default=[],
        help="Extra channel to subscribe to (repeatable)",
    )
    parser.add_argument(
        "--all-messages",
        action="store_true",
        help="Log every inbound message, not only notifications",
    )
    parser.add_argument("--debug", action="store_true", help="Trace frames and state changes")
    return parser


def build_identity(args: argparse.Namespace) -> SessionIdentity | None:
    if args.user_id is None:
        return None
    return SessionIdentity(
        user_id=args.user_id,
        role=args.role,
        organization_type=args.org,
        token=args.token,
    )


async def run(args: argparse.Namespace) -> int:
    overrides = {"auto_connect": False}
    if args.url:
        overrides["url"] = args.url
    if args.debug:
        overrides["debug"] = True

    try:
        session = create_realtime_session(**overrides)
    except ValueError as e:
        logger.error(f"Invalid configuration: {e}")
        return 2

    stop = asyncio.Event()

    def on_status(state: ConnectionState) -> None:
        logger.info(f"Connection {state.value}")

    def on_message(message: InboundMessage) -> None:
        logger.info(f"<- {message.type} channel={message.channel} payload={message.payload}")

    session.on_status_change(on_status)
    if args.all_messages:
        session.dispatcher.on_any(on_message)
    session.on_notifications_change(
        lambda items: logger.info(f"{len(items)} notification(s), {session.unread_count} unread")
    )

    identity = build_identity(args)
    if identity is not None:
        session.set_identity(identity)
    elif args.token:
        session.manager.set_auth_token(args.token)
    for channel in args.channel:
        session.subscribe(channel)

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, stop.set)

    session.start()
    channels = ", ".join(session.channels) or "none"
    logger.info(f"Listening on {session.manager.config.url} (channels: {channels})")

    # The connection loop only ends on its own when reconnects are exhausted
    stopped = asyncio.create_task(stop.wait())
    finished = asyncio.create_task(session.manager.wait_closed())
    try:
        await asyncio.wait({stopped, finished}, return_when=asyncio.FIRST_COMPLETED)
        if finished.done():
            logger.error("Connection loop ended, giving up")
            return 1
    finally:
        logger.info("Shutting down...")
        stopped.cancel()
        await session.aclose()
        await finished
    return 0


def main() -> None:
    args = build_parser().parse_args()
    settings = get_settings()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else settings.log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
