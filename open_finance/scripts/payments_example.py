"""Run a sandbox payment end to end and list completed payments."""

from rich.table import Table

from open_finance.models.requests import PaymentData, PaymentHistoryFilter
from open_finance.operations.payment_operations import PaymentOperations
from open_finance.scripts.common import console, open_clients, print_banner, run

SAMPLE_PAYMENT = {
    "amount": "100.50",
    "currency": "AED",
    "from": {"account_id": "ACC_001_SANDBOX", "account_type": "CURRENT"},
    "to": {
        "account_number": "1234567890",
        "name": "John Doe",
        "bank_code": "ADCB",
        "bank_name": "Abu Dhabi Commercial Bank",
    },
    "reference": "HACKATHON_TEST_001",
    "description": "Test payment for hackathon",
    "type": "IMMEDIATE",
    "metadata": {"category": "test", "project": "hackathon_demo"},
}


async def main() -> None:
    print_banner("Open Finance Payment Initiation")

    async with open_clients() as (http_client, token_manager):
        operations = PaymentOperations(http_client, token_manager)

        payment = await operations.execute_payment_flow(PaymentData(**SAMPLE_PAYMENT))
        style = "green" if payment.status == "COMPLETED" else "yellow"
        console.print(f"\n[{style}]Final status of {payment.payment_id}: {payment.status}[/{style}]")
        if payment.failure_reason:
            console.print(f"   Reason: {payment.failure_reason}")

        history = await operations.get_payment_history(
            PaymentHistoryFilter(limit=5, status="COMPLETED")
        )
        table = Table(title="Completed payments")
        for column in ("ID", "Amount", "Status", "Date", "Reference"):
            table.add_column(column)
        for item in history:
            amount = f"{item.amount.value} {item.amount.currency}" if item.amount else ""
            table.add_row(
                item.payment_id,
                amount,
                item.status,
                item.created_at.isoformat() if item.created_at else "",
                item.reference,
            )
        console.print(table)

        console.print("\n[bold]✨ Payment example complete![/bold]")


def cli() -> None:
    run(main, "Payment example")


if __name__ == "__main__":
    cli()
