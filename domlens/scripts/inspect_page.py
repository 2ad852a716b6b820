#!/usr/bin/env python3
"""
domlens/scripts/inspect_page.py

Inspect a page of a running Chrome (started with --remote-debugging-port) from the terminal.
Only tools that do not need accessibility-snapshot UIDs are exposed.

Usage:
    domlens-inspect pages
    domlens-inspect tree --depth 4
    domlens-inspect query "nav a" --all --limit 10
    domlens-inspect search "Sign in"
    domlens-inspect snapshot --styles display,color
    domlens-inspect at 120 340
    domlens-inspect cookies --domain example.com
"""

import argparse
import asyncio
import logging
import sys

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from domlens.cdp.async_cdp_connection import AsyncCDPConnection
from domlens.config import Config
from domlens.data_models.page import AXNodeRef, PageTarget
from domlens.tools.inspection_tools import InspectionTools
from domlens.tools.storage_tools import StorageTools
from domlens.tools.tool_context import ToolContext
from domlens.utils.chrome_utils import check_chrome_running
from domlens.utils.exceptions import BrowserConnectionError, InspectionError, NoPageSelectedError
from domlens.utils.logger import PACKAGE_LOGGER_NAME, get_logger


logger = get_logger(name=__name__)
console = Console()


def setup_rich_logging(verbose: bool) -> None:
    """Route domlens logs through rich."""
    package_logger = logging.getLogger(PACKAGE_LOGGER_NAME)
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
    package_logger.addHandler(RichHandler(console=console, show_path=False, rich_tracebacks=True))
    package_logger.setLevel(logging.DEBUG if verbose else Config.LOG_LEVEL)


def no_snapshot_lookup(uid: str) -> AXNodeRef | None:
    """The CLI takes no accessibility snapshot, so no UID is ever known."""
    return None


def print_pages(pages: list[PageTarget]) -> None:
    table = Table(title="Pages", box=box.ROUNDED)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Title", style="white")
    table.add_column("URL", style="dim")
    table.add_column("Target ID", style="dim")
    for index, page in enumerate(pages):
        table.add_row(str(index), page.title or "[dim](untitled)[/dim]", page.url, page.target_id)
    console.print(table)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Inspect a page of a running Chrome over CDP.")
    parser.add_argument(
        "--address",
        type=str,
        default=Config.REMOTE_DEBUGGING_ADDRESS,
        help=f"Chrome remote debugging address (default: {Config.REMOTE_DEBUGGING_ADDRESS}).",
    )
    parser.add_argument("--page", type=int, default=0, help="Index of the page to inspect (see the 'pages' command).")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("pages", help="List open pages.")

    tree_parser = subparsers.add_parser("tree", help="Print the DOM tree from the document root.")
    tree_parser.add_argument("--depth", type=int, default=3, help="How deep to traverse the tree (1-10).")

    query_parser = subparsers.add_parser("query", help="Find elements with a CSS selector.")
    query_parser.add_argument("selector", type=str)
    query_parser.add_argument("--all", action="store_true", help="Return all matches instead of the first one.")
    query_parser.add_argument("--limit", type=int, default=20, help="Maximum number of matches (1-50).")

    search_parser = subparsers.add_parser("search", help="Search the DOM by text, selector or XPath.")
    search_parser.add_argument("query", type=str)
    search_parser.add_argument("--limit", type=int, default=20, help="Maximum number of results (1-50).")

    snapshot_parser = subparsers.add_parser("snapshot", help="Capture a bounded DOM snapshot.")
    snapshot_parser.add_argument("--styles", type=str, default=None, help="Comma-separated computed styles to capture.")

    at_parser = subparsers.add_parser("at", help="Describe the element at a viewport position.")
    at_parser.add_argument("x", type=int)
    at_parser.add_argument("y", type=int)

    cookies_parser = subparsers.add_parser("cookies", help="List cookies of the page.")
    cookies_parser.add_argument("--domain", type=str, default=None, help="Only cookies whose domain contains this.")

    return parser


async def run(args: argparse.Namespace) -> str | None:
    """
    Run one command against the selected page.
    Returns:
        The tool's JSON output, or None for commands that print themselves.
    """
    async with AsyncCDPConnection.from_remote_debugging_address(args.address) as connection:
        pages = await connection.get_page_targets()
        if args.command == "pages":
            print_pages(pages)
            return None

        if not 0 <= args.page < len(pages):
            raise NoPageSelectedError(f"No page at index {args.page} ({len(pages)} open)")
        page = pages[args.page]
        logger.info("🎯 Inspecting %s", page.url)

        context = ToolContext(
            session_factory=connection.attach,
            get_selected_page=lambda: page,
            get_ax_node_by_uid=no_snapshot_lookup,
        )
        inspection = InspectionTools(context)
        storage = StorageTools(context)

        if args.command == "tree":
            return await inspection.get_dom_tree(depth=args.depth)
        if args.command == "query":
            return await inspection.query_selector(args.selector, all=args.all, limit=args.limit)
        if args.command == "search":
            return await inspection.search_dom(args.query, limit=args.limit)
        if args.command == "snapshot":
            styles = [s.strip() for s in args.styles.split(",") if s.strip()] if args.styles else None
            return await inspection.capture_dom_snapshot(computed_styles=styles)
        if args.command == "at":
            return await inspection.get_element_at_position(args.x, args.y)
        if args.command == "cookies":
            if args.domain:
                return await storage.get_cookies_for_domain(args.domain)
            return await storage.get_cookies()
        raise ValueError(f"Unknown command: {args.command}")


def main() -> None:
    args = build_parser().parse_args()
    setup_rich_logging(args.verbose)

    if not check_chrome_running(args.address):
        console.print(f"[bold red]❌ Chrome is not reachable at {args.address}[/bold red]")
        console.print("[dim]Start it with --remote-debugging-port=9222[/dim]")
        sys.exit(1)

    try:
        output = asyncio.run(run(args))
    except InspectionError as e:
        console.print(f"[bold red]❌ {e.kind}:[/bold red] {e.message}")
        sys.exit(1)
    except (BrowserConnectionError, NoPageSelectedError) as e:
        console.print(f"[bold red]❌ {e}[/bold red]")
        sys.exit(1)

    if output is not None:
        console.print_json(output)


if __name__ == "__main__":
    main()
