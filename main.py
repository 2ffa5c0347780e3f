"""
TradeFlow Journal - Main Entry Point

Usage:
    python main.py sync                      # Fetch ledger, show first page
    python main.py sync --page 2             # Show another page
    python main.py enrich --page 1           # Reconstruct order history for a page
    python main.py export backup.json        # Write a backup bundle
    python main.py import backup.json        # Merge a backup bundle
    python main.py tags                      # List all annotation tags
    python main.py verify                    # Check token / account / environment
"""

from __future__ import annotations
import asyncio
import argparse
import sys
from pathlib import Path
from typing import List

from rich.console import Console
from rich.table import Table

from config.config_manager import ConfigManager
from tradeflow.application import JournalSession
from tradeflow.domain.exceptions import FatalError, MalformedBackup, TradeflowError
from tradeflow.models import Trade, TradeStatus
from tradeflow.utils import flush_all_loggers, setup_category_logging, shutdown_logging


console = Console()

STATUS_STYLES = {
    TradeStatus.WIN: "green",
    TradeStatus.LOSS: "red",
    TradeStatus.BREAK_EVEN: "yellow",
    TradeStatus.OPEN: "cyan",
}


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="TradeFlow trade journal",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --env practice sync
  python main.py enrich --page 1
  python main.py export ~/Dropbox/tradeflow_backup.json
        """
    )

    parser.add_argument(
        "--env",
        type=str,
        default="practice",
        help="Config overlay to load (default: practice)"
    )
    parser.add_argument(
        "--config-dir",
        type=str,
        default="config",
        help="Directory containing base.yaml (default: config)"
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override logging.level from config"
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Log DEBUG output to the console"
    )

    commands = parser.add_subparsers(dest="command", required=True)

    sync_cmd = commands.add_parser("sync", help="Fetch the ledger and show a page of trades")
    sync_cmd.add_argument("--page", type=int, default=1)

    enrich_cmd = commands.add_parser("enrich", help="Reconstruct order history for a page of trades")
    enrich_cmd.add_argument("--page", type=int, default=1)

    export_cmd = commands.add_parser("export", help="Write a backup bundle")
    export_cmd.add_argument("path", type=Path)

    import_cmd = commands.add_parser("import", help="Merge a backup bundle into local data")
    import_cmd.add_argument("path", type=Path)

    commands.add_parser("tags", help="List annotation tags")
    commands.add_parser("verify", help="Check OANDA credentials and account")

    return parser.parse_args(argv)


def _fmt(value: float | None, digits: int = 5) -> str:
    if value is None:
        return "-"
    return f"{value:.{digits}f}"


def render_trades(trades: List[Trade], title: str) -> Table:
    table = Table(title=title, show_header=True)
    table.add_column("Id", style="dim")
    table.add_column("Symbol", style="cyan")
    table.add_column("Side")
    table.add_column("Status", style="bold")
    table.add_column("Entry", justify="right")
    table.add_column("Exit", justify="right")
    table.add_column("Initial SL", justify="right")
    table.add_column("P&L", justify="right")
    table.add_column("R", justify="right")
    table.add_column("Tags")

    for trade in trades:
        style = STATUS_STYLES.get(trade.status, "")
        r_multiple = trade.risk_multiple
        table.add_row(
            trade.id,
            trade.symbol,
            trade.direction.value,
            f"[{style}]{trade.status.value}[/{style}]" if style else trade.status.value,
            _fmt(trade.entry_price),
            _fmt(trade.exit_price),
            _fmt(trade.initial_stop_loss) if trade.initial_stop_loss else "-",
            f"{trade.pnl:.2f}",
            f"{r_multiple:.2f}" if r_multiple is not None else "-",
            ", ".join(trade.tags),
        )
    return table


async def run_command(args: argparse.Namespace, session: JournalSession) -> int:
    """Dispatch one CLI command. Returns the process exit code."""
    if args.command == "verify":
        check = await session.ledger.verify_connection()
        style = "green" if check.success else "red"
        console.print(f"[{style}]{check.message}[/{style}]")
        return 0 if check.success else 1

    if args.command == "tags":
        for tag in session.annotations.get_all_tags():
            console.print(tag)
        return 0

    if args.command == "export":
        args.path.write_text(session.backup.export_json(), encoding="utf-8")
        console.print(f"Backup written to {args.path}")
        return 0

    if args.command == "import":
        summary = session.sync_coordinator.import_bundle(args.path.read_text(encoding="utf-8"))
        console.print(
            f"[green]{summary.message}[/green] "
            f"({summary.strategies} strategies, {summary.annotations} journal entries)"
        )
        await session.sync_coordinator.flush()
        return 0

    await session.sync()

    if args.command == "sync":
        console.print(render_trades(
            session.page(args.page),
            f"Trades - page {args.page}/{session.page_count}",
        ))
        return 0

    if args.command == "enrich":
        visible = session.show_page(args.page)
        await session.scheduler.drain()
        console.print(render_trades(
            [session.get_trade(t.id) or t for t in visible],
            f"Enriched trades - page {args.page}/{session.page_count}",
        ))
        for trade in visible:
            result = session.scheduler.result_for(trade.id)
            if result is None:
                continue
            console.print(
                f"{trade.id}: stop={result.initial_stop.resolution.value} "
                f"order={result.entry_order_type.value if result.entry_order_type else '-'} "
                f"exit={result.exit_reason.value if result.exit_reason else '-'}"
            )
        return 0

    console.print(f"[red]Unknown command: {args.command}[/red]")
    return 2


async def main_async(args: argparse.Namespace) -> int:
    """Main async entry point."""
    config = ConfigManager(config_dir=args.config_dir, env=args.env).load()

    setup_category_logging(
        env=config.broker.environment,
        log_dir=config.logging.log_dir,
        level=args.log_level or config.logging.level,
        console=config.logging.console or args.verbose,
        verbose=args.verbose,
        json_format=config.logging.json,
    )

    async with JournalSession(config) as session:
        if config.sync.file:
            session.workspace.remember_sync_handle(config.sync.file)
        session.sync_coordinator.restore()
        return await run_command(args, session)


def main() -> None:
    """Main entry point."""
    args = parse_args()

    try:
        exit_code = asyncio.run(main_async(args))
    except KeyboardInterrupt:
        console.print("Shutdown requested")
        exit_code = 0
    except MalformedBackup as e:
        console.print(f"[red]Import failed: {e}[/red]")
        exit_code = 1
    except FatalError as e:
        console.print(f"[red]Fatal error: {e}[/red]")
        exit_code = 1
    except TradeflowError as e:
        console.print(f"[red]Error: {e}[/red]")
        exit_code = 1
    finally:
        flush_all_loggers()
        shutdown_logging()

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
