"""Authenticate with client credentials, make one call and keep the token fresh."""

from open_finance.auth.token_refresher import TokenRefresher
from open_finance.scripts.common import console, open_clients, print_banner, run


async def main() -> None:
    print_banner("Open Finance Authentication")

    async with open_clients() as (http_client, token_manager):
        token = await token_manager.get_access_token()
        console.print("[green]✅ Authentication successful![/green]")
        console.print(f"   Token Type: {token.token_type}")
        console.print(f"   Scope: {token.scope}")
        console.print(f"   Expires In: {token.expires_in} seconds")
        console.print(f"   Token: {token.access_token[:20]}...")

        count = await token_manager.verify_access()
        console.print(f"[green]✅ Authenticated call successful, found {count} accounts[/green]")

        async with TokenRefresher(token_manager) as refresher:
            refresher.start(token.expires_in)
            console.print("\n[bold]✨ Authentication flow complete![/bold]")
            console.print("Token refresh is running, press Ctrl+C to exit.")
            await refresher.wait()


def cli() -> None:
    run(main, "Authentication example", exit_on_interrupt=0)


if __name__ == "__main__":
    cli()
