"""Fetch accounts, balances and transactions and build a snapshot."""

from rich.table import Table

from open_finance.models.requests import TransactionFilter
from open_finance.operations.account_operations import AccountOperations
from open_finance.scripts.common import console, open_clients, print_banner, run


async def main() -> None:
    print_banner("Open Finance Account Information")

    async with open_clients() as (http_client, token_manager):
        operations = AccountOperations(http_client, token_manager)

        accounts = await operations.get_accounts()
        if not accounts:
            console.print("[yellow]⚠️  No accounts found for this user.[/yellow]")
            return

        table = Table(title="Accounts")
        table.add_column("ID", style="cyan", no_wrap=True)
        table.add_column("Type")
        table.add_column("Currency")
        table.add_column("Status")
        for account in accounts:
            table.add_row(account.account_id, account.account_type, account.currency, account.status)
        console.print(table)

        first = accounts[0]
        balance = await operations.get_account_balance(first.account_id)
        console.print(f"\n💰 Balance of {first.account_id}:")
        console.print(f"   - Available: {balance.amount} {balance.currency}")
        console.print(f"   - Current: {balance.current_balance} {balance.currency}")
        console.print(f"   - Pending: {balance.pending_balance} {balance.currency}")

        transactions = await operations.get_account_transactions(
            first.account_id, TransactionFilter(limit=5)
        )
        table = Table(title=f"Recent transactions of {first.account_id}")
        for column in ("ID", "Date", "Amount", "Type", "Description", "Balance After"):
            table.add_column(column)
        for txn in transactions:
            table.add_row(
                txn.transaction_id,
                txn.date.isoformat() if txn.date else "",
                f"{txn.amount} {txn.currency}",
                txn.type,
                txn.description,
                str(txn.balance_after),
            )
        console.print(table)

        snapshot = await operations.get_financial_snapshot()
        console.print("\n[green]✅ Financial snapshot complete![/green]")
        console.print(f"   - Accounts: {snapshot.account_count}")
        console.print(f"   - Total Balance: {snapshot.total_balance:.2f} AED")

        matches = await operations.search_transactions("grocery")
        console.print(f"\n🔍 {len(matches)} transaction(s) matching 'grocery'")

        console.print("\n[bold]✨ Account information example complete![/bold]")


def cli() -> None:
    run(main, "Account example")


if __name__ == "__main__":
    cli()
