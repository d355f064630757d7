"""Command-line entrypoint."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from dataclasses import dataclass
from typing import Any, Sequence

import httpx

from npmx.config import NpmxSettings, get_settings
from npmx.domain.models import SAVED_LISTS
from npmx.logging import configure_logging, logger
from npmx.services.collections import CollectionStore
from npmx.services.exceptions import ServiceError
from npmx.services.recent_searches import RecentSearchStore
from npmx.services.registry import PackageLookup, RegistryClient
from npmx.services.saved import SavedItemsStore
from npmx.services.storage import KeyValueStore, build_storage
from npmx.services.suggestions import SuggestionEngine


@dataclass(slots=True)
class Services:
    storage: KeyValueStore
    recent_searches: RecentSearchStore
    saved: SavedItemsStore
    collections: CollectionStore


def build_services(settings: NpmxSettings, storage: KeyValueStore | None = None) -> Services:
    storage = storage if storage is not None else build_storage(settings.storage)
    return Services(
        storage=storage,
        recent_searches=RecentSearchStore(storage, capacity=settings.recent_searches.capacity),
        saved=SavedItemsStore(storage),
        collections=CollectionStore(storage),
    )


def build_engine(
    settings: NpmxSettings, services: Services, lookup: PackageLookup
) -> SuggestionEngine:
    return SuggestionEngine(
        lookup,
        services.recent_searches,
        settings.popular_packages,
        settings.suggestions,
    )


def print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


async def cmd_suggest(args: argparse.Namespace, settings: NpmxSettings, services: Services) -> None:
    """Feed the query (optionally one keystroke at a time) and print the settled result."""

    keystrokes = [args.query]
    if args.typing and args.query:
        keystrokes = [args.query[:i] for i in range(1, len(args.query) + 1)]
    async with httpx.AsyncClient() as client:
        engine = build_engine(settings, services, RegistryClient(client, settings.registry))
        for keystroke in keystrokes:
            engine.update(keystroke)
        snapshot = await engine.settle()
    print_json(snapshot.model_dump(mode="json"))
    if args.remember:
        services.recent_searches.add_recent_search(args.query)


async def cmd_recent(args: argparse.Namespace, settings: NpmxSettings, services: Services) -> None:
    store = services.recent_searches
    if args.action == "add":
        print_json(store.add_recent_search(args.term or ""))
    elif args.action == "clear":
        store.clear_recent_searches()
        print_json([])
    else:
        print_json(store.get_recent_searches())


async def cmd_saved(args: argparse.Namespace, settings: NpmxSettings, services: Services) -> None:
    store = services.saved
    store.subscribe(
        lambda state: logger.debug(
            "saved_state_changed",
            favorites=len(state.favorites),
            watchlist=len(state.watchlist),
        )
    )
    if args.action == "toggle":
        state = store.toggle_saved(args.list, args.name)
    elif args.action == "remove":
        state = store.remove_saved(args.list, args.name)
    elif args.action == "clear":
        state = store.clear_saved(args.list)
    else:
        state = store.get_saved_state()
    print_json(state.model_dump())


async def cmd_collections(
    args: argparse.Namespace, settings: NpmxSettings, services: Services
) -> None:
    store = services.collections
    if args.action == "create":
        result: Any = store.create_collection(args.name or "", args.description or "")
    elif args.action == "add":
        result = store.add_package(args.id or "", args.package or "")
    elif args.action == "remove":
        result = store.remove_package(args.id or "", args.package or "")
    elif args.action == "delete":
        store.delete_collection(args.id or "")
        result = store.list_collections()
    else:
        result = store.list_collections()
    if isinstance(result, list):
        print_json([c.model_dump(mode="json") for c in result])
    else:
        print_json(result.model_dump(mode="json"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="npmx",
        description="Package search suggestions with local history and saved lists.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p_suggest = subparsers.add_parser("suggest", help="Show suggestions for a query")
    p_suggest.add_argument("query", help="Raw query as typed")
    p_suggest.add_argument(
        "--typing",
        action="store_true",
        help="Feed every prefix of the query as a separate keystroke",
    )
    p_suggest.add_argument(
        "--remember", action="store_true", help="Add the query to recent searches"
    )
    p_suggest.set_defaults(func=cmd_suggest)

    p_recent = subparsers.add_parser("recent", help="Inspect or edit recent searches")
    p_recent.add_argument("action", choices=["list", "add", "clear"])
    p_recent.add_argument("term", nargs="?")
    p_recent.set_defaults(func=cmd_recent)

    p_saved = subparsers.add_parser("saved", help="Inspect or edit favorites and watchlist")
    p_saved.set_defaults(func=cmd_saved)
    saved_actions = p_saved.add_subparsers(dest="action", required=True)
    saved_actions.add_parser("list", help="Show both saved lists")
    for action, help_text in (
        ("toggle", "Add a package to a list, or remove it if present"),
        ("remove", "Remove a package from a list"),
    ):
        p_action = saved_actions.add_parser(action, help=help_text)
        p_action.add_argument("name", help="Package name")
        p_action.add_argument("--list", choices=SAVED_LISTS, default="favorites")
    p_clear = saved_actions.add_parser("clear", help="Empty one list")
    p_clear.add_argument("--list", choices=SAVED_LISTS, default="favorites")

    p_coll = subparsers.add_parser("collections", help="Manage package collections")
    p_coll.add_argument("action", choices=["list", "create", "add", "remove", "delete"])
    p_coll.add_argument("--id", help="Collection id")
    p_coll.add_argument("--name", help="Name for a new collection")
    p_coll.add_argument("--description", help="Description for a new collection")
    p_coll.add_argument("--package", help="Package name to add or remove")
    p_coll.set_defaults(func=cmd_collections)

    return parser


async def main(argv: Sequence[str] | None = None) -> int:
    settings = get_settings()
    configure_logging(settings.log_level)
    args = build_parser().parse_args(argv)
    services = build_services(settings)
    logger.debug("command_starting", command=args.command, environment=settings.environment)
    try:
        await args.func(args, settings, services)
    except (ValueError, ServiceError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    finally:
        services.storage.close()
    return 0


def run() -> None:
    raise SystemExit(asyncio.run(main()))


if __name__ == "__main__":
    run()
