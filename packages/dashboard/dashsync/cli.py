"""Command line entry point for dashsync."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from typing import Optional, Sequence

from .api.client import BackendClient
from .events.bus import UpdateBus
from .events.models import UpdateEvent
from .events.types import UpdateKind
from .exceptions import RelayError, UnknownResourceError
from .log import setup_logging
from .relay.bridge import RelayBridge
from .services.resources import RESOURCES, ResourceService

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dashsync",
        description="Inspect dashboard resources and watch live update events.",
    )
    parser.add_argument("--api-url", help="Backend base URL (defaults to DASHSYNC_API_BASE_URL)")
    subparsers = parser.add_subparsers(dest="command", required=True)

    list_parser = subparsers.add_parser("list", help="Print the normalized records of a resource as JSON")
    list_parser.add_argument("resource", help=f"One of: {', '.join(sorted(RESOURCES))}")
    list_parser.add_argument("--username", help="Log in before listing")
    list_parser.add_argument("--password", help="Password for --username")
    list_parser.add_argument("--branch-id", type=int, help="Scope branch-level resources to this branch")

    watch_parser = subparsers.add_parser("watch", help="Print update events streamed from the relay")
    watch_parser.add_argument("--relay-url", help="Relay base URL (defaults to DASHSYNC_RELAY_URL)")
    watch_parser.add_argument(
        "--kinds",
        nargs="*",
        choices=[kind.value for kind in UpdateKind],
        help="Only print these update kinds",
    )
    watch_parser.add_argument("--max-events", type=int, help="Stop after this many events")
    return parser


async def _list(args: argparse.Namespace) -> int:
    async with BackendClient(args.api_url) as client:
        if args.username:
            login = await client.login(args.username, args.password or "")
            if not login.success:
                print(login.message("Login failed"), file=sys.stderr)
                return 1
        if args.branch_id is not None:
            client.session.branch_id = args.branch_id
        service = ResourceService(client, args.resource)
        listing = await service.list()

    if listing.error:
        print(listing.error, file=sys.stderr)
        return 1
    if listing.empty_warning:
        print(f"Backend reported success but returned no {args.resource}", file=sys.stderr)
    print(json.dumps(listing.items, indent=2, ensure_ascii=False, default=str))
    return 0


async def _watch(args: argparse.Namespace) -> int:
    bus = UpdateBus()

    def show(event: UpdateEvent) -> None:
        print(event.model_dump_json(by_alias=True), flush=True)

    bus.subscribe(show, args.kinds or None)
    async with RelayBridge(bus, args.relay_url, kinds=args.kinds or None) as bridge:
        await bridge.listen(max_events=args.max_events)
    bus.close()
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging()
    try:
        if args.command == "list":
            return asyncio.run(_list(args))
        return asyncio.run(_watch(args))
    except UnknownResourceError as exc:
        print(exc.args[0], file=sys.stderr)
        return 2
    except RelayError as exc:
        logger.info("relay_failed", exc_info=exc)
        print(exc.with_trace(), file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
