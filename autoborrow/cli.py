"""Command-line interface for the margin auto-borrow controller."""
from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config
from .logging_setup import configure_logging
from .models import AccountSnapshot
from .services import Controller


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse CLI parser."""
    parser = argparse.ArgumentParser(
        prog="margin-autoborrow",
        description="Automated margin borrow/repay controller",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Log borrow/repay requests instead of sending them",
    )

    sub = parser.add_subparsers(dest="command")

    sub.add_parser("check", help="Run a single borrow evaluation pass")
    sub.add_parser("account", help="Show the margin account snapshot")
    sub.add_parser("run", help="Run the borrow loop and repay-on-deposit trigger")

    return parser


def format_account(snapshot: AccountSnapshot) -> str:
    lines = [
        f"Margin level: {snapshot.margin_level}",
        f"Margin ratio: {snapshot.margin_ratio}",
        f"Margin tolerance: {snapshot.margin_tolerance}",
    ]
    for asset, b in sorted(snapshot.balances.items()):
        if b.total == 0 and b.borrowed == 0:
            continue
        lines.append(
            f"  {asset}: available {b.available}  locked {b.locked}  "
            f"borrowed {b.borrowed}  interest {b.interest}  net {b.net_asset}"
        )
    return "\n".join(lines)


async def _run(args: argparse.Namespace) -> None:
    """Execute the selected command."""
    configure_logging(args.log_level)
    config = load_config(args.config)
    controller = Controller(config, dry_run=args.dry_run)

    if args.command == "check":
        decisions = await controller.check()
        if not decisions:
            print("No borrow needed")
        for d in decisions:
            print(f"{d.action.value} {d.amount} {d.asset}")
    elif args.command == "account":
        print(format_account(await controller.account()))
    elif args.command == "run":
        await controller.run()
    else:
        build_parser().print_help()
        sys.exit(1)


def main() -> None:
    """Entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    asyncio.run(_run(args))
