"""Helpers shared by the console entry points."""

import asyncio
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Tuple

from rich.console import Console
from rich.panel import Panel

from open_finance.config.logging import setup_logging, get_logger
from open_finance.config.settings import settings
from open_finance.client.http_client import HTTPClient
from open_finance.client.exceptions import OpenFinanceError
from open_finance.auth.token_manager import TokenManager

logger = get_logger(__name__)

console = Console()


def print_banner(title: str) -> None:
    console.print(Panel.fit(f"[bold]{title}[/bold]", border_style="cyan"))


@asynccontextmanager
async def open_clients() -> AsyncIterator[Tuple[HTTPClient, TokenManager]]:
    """HTTP client and token manager configured from settings."""
    async with HTTPClient() as http_client:
        yield http_client, TokenManager(http_client)


def run(
    main: Callable[[], Awaitable[None]],
    name: str,
    exit_on_interrupt: int = 1,
) -> None:
    """Run an async entry point and exit with 0 on success, 1 on failure."""
    setup_logging(settings.log_level, settings.log_file)

    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        console.print("\nShutting down...")
        sys.exit(exit_on_interrupt)
    except OpenFinanceError as e:
        console.print(f"\n💥 {name} failed: {e}", style="red", markup=False)
        sys.exit(1)
    except Exception as e:
        logger.exception(f"Unexpected error in {name}")
        console.print(f"\n💥 {name} failed: {e}", style="red", markup=False)
        sys.exit(1)

    sys.exit(0)
