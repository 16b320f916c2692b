"""
MuseumQuest - Operator CLI
==========================

Commands
--------
- delete-account EMAIL           Delete an account and cascade leaderboards
- leaderboard QUEST_ID [--csv]   Show (or export) a quest leaderboard
- artefact-usage ARTEFACT_ID     List quests that reference an artefact

Exit codes: 0 success, 1 unexpected error, 2 not found or invalid input,
3 account deleted but some leaderboard updates failed.
"""

import argparse
import asyncio
import json
import sys
from typing import Any, List, Optional

from museumquest.core.infra.application_context import ApplicationContext
from museumquest.core.logging.logger import get_logger
from museumquest.modules.shared.exceptions import QuestDomainException

logger = get_logger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INVALID = 2
EXIT_PARTIAL = 3


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="museumquest",
        description="MuseumQuest operator tools",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    delete = sub.add_parser("delete-account", help="Delete an account by email")
    delete.add_argument("email")

    board = sub.add_parser("leaderboard", help="Show a quest leaderboard")
    board.add_argument("quest_id")
    board.add_argument("--csv", action="store_true", help="Export the full board as CSV")
    board.add_argument("--limit", type=int, default=None, help="Rows to show (default: top_n)")

    usage = sub.add_parser("artefact-usage", help="List quests that use an artefact")
    usage.add_argument("artefact_id")

    return parser


def _print_json(payload: Any) -> None:
    print(json.dumps(payload, indent=2, default=str))


async def run_command(context: ApplicationContext, args: argparse.Namespace) -> int:
    """Execute one parsed command against an initialized context."""
    if args.command == "delete-account":
        result = await context.accounts.delete_account(args.email)
        _print_json(result.to_dict())
        return EXIT_PARTIAL if result.leaderboard_updates.failed else EXIT_OK

    if args.command == "leaderboard":
        if args.csv:
            sys.stdout.write(await context.leaderboard.export_csv(args.quest_id))
        else:
            _print_json(await context.leaderboard.fastest(args.quest_id, limit=args.limit))
        return EXIT_OK

    if args.command == "artefact-usage":
        _print_json(await context.catalog.quests_using_artefact(args.artefact_id))
        return EXIT_OK

    raise ValueError(f"Unknown command: {args.command}")


async def _main(args: argparse.Namespace) -> int:
    context = ApplicationContext()
    await context.initialize()
    try:
        return await run_command(context, args)
    except QuestDomainException as exc:
        logger.info("Command rejected", extra={"command": args.command, "error": exc.to_dict()})
        print(f"error: {exc.message}", file=sys.stderr)
        return EXIT_INVALID
    finally:
        await context.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        return asyncio.run(_main(args))
    except KeyboardInterrupt:
        return EXIT_ERROR
    except Exception as exc:
        print(f"fatal: {exc}", file=sys.stderr)
        return EXIT_ERROR


if __name__ == "__main__":
    sys.exit(main())
