import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import AsyncMock

from open_finance.operations.account_operations import AccountOperations
from open_finance.models.requests import TransactionFilter
from open_finance.models.responses import Account, Balance, FinancialSnapshot, Transaction
from open_finance.client.exceptions import NotFoundError


ACCOUNTS = [
    {"account_id": "ACC_001", "account_type": "CURRENT", "currency": "AED", "status": "ACTIVE"},
    {"account_id": "ACC_002", "account_type": "SAVINGS", "currency": "AED", "status": "ACTIVE",
     "nickname": "Rainy day"},
]

BALANCES = {
    "ACC_001": {"amount": 1500.25, "current_balance": 1600.25, "pending_balance": 100, "currency": "AED"},
    "ACC_002": {"amount": "2499.75", "current_balance": "2499.75", "pending_balance": "0", "currency": "AED"},
}

TRANSACTIONS = {
    "ACC_001": [
        {"transaction_id": "T1", "date": "2024-03-01T10:00:00Z", "amount": -45.5, "currency": "AED",
         "type": "DEBIT", "description": "Grocery store", "merchant": "Carrefour", "balance_after": 1500.25},
        {"transaction_id": "T2", "date": "2024-02-20T09:00:00Z", "amount": -12, "currency": "AED",
         "type": "DEBIT", "description": "Coffee", "merchant": "Starbucks", "balance_after": 1545.75},
    ],
    "ACC_002": [
        {"transaction_id": "T3", "date": "2024-03-05T08:30:00Z", "amount": -200, "currency": "AED",
         "type": "DEBIT", "description": "Weekly shopping", "merchant": "Lulu GROCERY", "balance_after": 2499.75},
    ],
}


def route(endpoint, headers=None, params=None):
    """Answer GET requests the way the sandbox does."""
    if endpoint == "/accounts":
        return {"data": ACCOUNTS}
    account_id = endpoint.split("/")[2]
    if endpoint.endswith("/balances"):
        return {"data": BALANCES[account_id]}
    return {"data": TRANSACTIONS[account_id]}


@pytest.fixture
def mock_http_client():
    """Mock HTTP client."""
    client = AsyncMock()
    client.get.side_effect = route
    return client


@pytest.fixture
def mock_token_manager():
    """Mock token manager."""
    manager = AsyncMock()
    manager.get_authorization_header.return_value = {"Authorization": "Bearer test_token"}
    return manager


@pytest.fixture
def account_operations(mock_http_client, mock_token_manager):
    """Create AccountOperations instance."""
    return AccountOperations(http_client=mock_http_client, token_manager=mock_token_manager)


class TestAccountOperations:

    @pytest.mark.asyncio
    async def test_get_accounts(self, account_operations, mock_http_client):
        """Test listing returns one model per record with fields preserved."""
        accounts = await account_operations.get_accounts()

        assert len(accounts) == len(ACCOUNTS)
        assert all(isinstance(account, Account) for account in accounts)
        assert [a.account_id for a in accounts] == ["ACC_001", "ACC_002"]
        assert accounts[0].account_type == "CURRENT"
        assert accounts[0].currency == "AED"
        assert accounts[0].status == "ACTIVE"
        assert accounts[1].model_dump()["nickname"] == "Rainy day"

        mock_http_client.get.assert_called_once_with(
            "/accounts", headers={"Authorization": "Bearer test_token"}
        )

    @pytest.mark.asyncio
    async def test_get_accounts_without_data(self, account_operations, mock_http_client):
        """Test that a response without data yields no accounts."""
        mock_http_client.get.side_effect = None
        mock_http_client.get.return_value = {}

        assert await account_operations.get_accounts() == []

    @pytest.mark.asyncio
    async def test_get_account_balance(self, account_operations, mock_http_client):
        """Test getting an account balance."""
        balance = await account_operations.get_account_balance("ACC_001")

        assert isinstance(balance, Balance)
        assert balance.account_id == "ACC_001"
        assert balance.amount == Decimal("1500.25")
        assert balance.pending_balance == Decimal("100")
        mock_http_client.get.assert_called_once_with(
            "/accounts/ACC_001/balances", headers={"Authorization": "Bearer test_token"}
        )

    @pytest.mark.asyncio
    async def test_get_account_transactions(self, account_operations, mock_http_client):
        """Test getting transactions with filters."""
        filters = TransactionFilter(limit=5, from_date=date(2024, 1, 1), sort="ASC")

        transactions = await account_operations.get_account_transactions("ACC_001", filters)

        assert [t.transaction_id for t in transactions] == ["T1", "T2"]
        assert transactions[0].amount == Decimal("-45.5")
        mock_http_client.get.assert_called_once_with(
            "/accounts/ACC_001/transactions",
            params={"limit": 5, "offset": 0, "from_date": "2024-01-01", "to_date": None, "sort": "asc"},
            headers={"Authorization": "Bearer test_token"},
        )

    def test_transaction_filter_rejects_inverted_range(self):
        """Test that to_date before from_date is rejected."""
        with pytest.raises(ValueError):
            TransactionFilter(from_date=date(2024, 2, 1), to_date=date(2024, 1, 1))

    @pytest.mark.asyncio
    async def test_get_financial_snapshot(self, account_operations, mock_http_client):
        """Test snapshot aggregates every account."""
        snapshot = await account_operations.get_financial_snapshot()

        assert isinstance(snapshot, FinancialSnapshot)
        assert snapshot.account_count == 2
        assert snapshot.total_balance == Decimal("4000.00")
        assert [a.account_id for a in snapshot.accounts] == ["ACC_001", "ACC_002"]
        assert snapshot.accounts[0].balance.amount == Decimal("1500.25")
        assert len(snapshot.accounts[1].recent_transactions) == 1

        # one listing plus a balance and a transactions call per account
        assert mock_http_client.get.call_count == 5
        transaction_calls = [
            call for call in mock_http_client.get.call_args_list
            if call.args[0].endswith("/transactions")
        ]
        assert all(call.kwargs["params"]["limit"] == 5 for call in transaction_calls)

    @pytest.mark.asyncio
    async def test_snapshot_treats_missing_amount_as_zero(self, account_operations, mock_http_client):
        """Test that an account without an available amount adds nothing."""
        def without_amount(endpoint, headers=None, params=None):
            if endpoint == "/accounts/ACC_002/balances":
                return {"data": {"currency": "AED"}}
            return route(endpoint, headers, params)

        mock_http_client.get.side_effect = without_amount

        snapshot = await account_operations.get_financial_snapshot()

        assert snapshot.total_balance == Decimal("1500.25")

    @pytest.mark.asyncio
    async def test_search_transactions(self, account_operations):
        """Test search matches description or merchant, newest first."""
        matches = await account_operations.search_transactions("grocery")

        assert [t.transaction_id for t in matches] == ["T3", "T1"]
        assert all(isinstance(t, Transaction) for t in matches)
        assert matches[0].account_id == "ACC_002"
        assert matches[0].account_type == "SAVINGS"
        assert matches[1].account_id == "ACC_001"

    @pytest.mark.asyncio
    async def test_errors_propagate(self, account_operations, mock_http_client):
        """Test that API errors are re-raised."""
        mock_http_client.get.side_effect = NotFoundError("Unknown account", status_code=404)

        with pytest.raises(NotFoundError):
            await account_operations.get_account_balance("ACC_404")
