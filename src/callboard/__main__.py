"""callboard — run the board, or poke a running one.

    python -m callboard serve
    python -m callboard next --url http://localhost:3000 --token s3cret
    python -m callboard featured-add "Menu" https://example.com/menu

Server settings come from CALLBOARD_* environment variables (see
config.py). Admin commands read the token from --token or
CALLBOARD_TOKEN.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import os
import sys

import httpx
import logfire

from .auth import TokenAuthenticator
from .board import Board
from .broadcast import Broadcaster
from .client import BoardClient
from .config import Config
from .errors import CallboardError
from .keys import Keys
from .observability import configure as configure_observability
from .server import BoardServer
from .store import connect, ping


async def serve(config: Config) -> None:
    """Run until cancelled (Ctrl-C)."""
    configure_observability("callboard", debug=config.debug)

    client = connect(config.redis_url)
    await ping(client)

    keys = Keys(config.key_prefix)
    broadcaster = Broadcaster(client, keys.events_channel)
    await broadcaster.start()

    board = Board(
        client,
        keys,
        broadcaster,
        timezone=config.timezone,
        featured_retries=config.featured_retries,
    )
    authenticator = TokenAuthenticator(config.admin_tokens)
    if not len(authenticator):
        logfire.warning("No admin tokens configured, the admin API will refuse every request")

    server = BoardServer(board, authenticator, host=config.host, port=config.port)
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()
        await broadcaster.close()
        await client.aclose()


def _on_off(value: str) -> bool:
    lowered = value.lower()
    if lowered in ("on", "true", "1", "yes"):
        return True
    if lowered in ("off", "false", "0", "no"):
        return False
    raise argparse.ArgumentTypeError(f"expected on/off, got {value!r}")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="callboard", description=__doc__.splitlines()[0])
    parser.add_argument("--url", default=os.environ.get("CALLBOARD_URL", "http://localhost:3000"))
    parser.add_argument("--token", default=os.environ.get("CALLBOARD_TOKEN", ""))
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="run the server")
    sub.add_parser("state", help="print the current board")
    sub.add_parser("logs", help="print the admin log")
    sub.add_parser("next", help="advance the number")
    sub.add_parser("prev", help="step the number back (never below 0)")
    sub.add_parser("set", help="set the number").add_argument("number", type=int)
    sub.add_parser("passed-add", help="add a passed number").add_argument("number", type=int)
    sub.add_parser("passed-remove", help="remove a passed number").add_argument("number", type=int)
    sub.add_parser("passed-clear", help="clear passed numbers")
    add = sub.add_parser("featured-add", help="add a featured link")
    add.add_argument("text")
    add.add_argument("url", nargs="?", default="")
    sub.add_parser("featured-remove", help="remove a featured link by index").add_argument("index", type=int)
    sub.add_parser("featured-clear", help="clear featured links")
    sub.add_parser("sound", help="display sound on/off").add_argument("value", type=_on_off)
    sub.add_parser("public", help="display open/maintenance").add_argument("value", type=_on_off)
    sub.add_parser("reset", help="reset the whole board")
    return parser


async def _run_admin(args: argparse.Namespace) -> object:
    commands = {
        "state": lambda b: b.state(),
        "logs": lambda b: b.logs(),
        "next": lambda b: b.next(),
        "prev": lambda b: b.previous(),
        "set": lambda b: b.set_exact(args.number),
        "passed-add": lambda b: b.add_passed(args.number),
        "passed-remove": lambda b: b.remove_passed(args.number),
        "passed-clear": lambda b: b.clear_passed(),
        "featured-add": lambda b: b.add_featured(args.text, args.url),
        "featured-remove": lambda b: b.remove_featured_at(args.index),
        "featured-clear": lambda b: b.clear_featured(),
        "sound": lambda b: b.set_sound_enabled(args.value),
        "public": lambda b: b.set_public(args.value),
        "reset": lambda b: b.reset_all(),
    }
    async with BoardClient(args.url, token=args.token) as board:
        return await commands[args.command](board)


def main(argv: list[str] | None = None) -> int:
    args = _build_parser().parse_args(argv)

    if args.command == "serve":
        try:
            asyncio.run(serve(Config.from_env()))
        except KeyboardInterrupt:
            pass
        except (ValueError, CallboardError) as e:
            print(f"callboard: {e}", file=sys.stderr)
            return 1
        return 0

    try:
        result = asyncio.run(_run_admin(args))
    except CallboardError as e:
        print(f"callboard: {e}", file=sys.stderr)
        return 1
    except httpx.ConnectError:
        print(f"callboard: cannot reach {args.url}", file=sys.stderr)
        return 1
    print(json.dumps(result, indent=2, ensure_ascii=False))
    return 0


if __name__ == "__main__":
    sys.exit(main())
