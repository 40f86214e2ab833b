"""Account information operations for the Open Finance API."""

import asyncio
from decimal import Decimal
from typing import Optional, List

from open_finance.config.logging import get_logger
from open_finance.client.http_client import HTTPClient
from open_finance.auth.token_manager import TokenManager
from open_finance.models.requests import TransactionFilter
from open_finance.models.responses import (
    Account,
    AccountDetails,
    Balance,
    FinancialSnapshot,
    Transaction,
)

logger = get_logger(__name__)


class AccountOperations:
    """Handle account data operations with the Open Finance API."""

    def __init__(self, http_client: HTTPClient, token_manager: TokenManager):
        """Initialize account operations.

        Args:
            http_client: HTTP client for API requests
            token_manager: Token manager for bearer authentication
        """
        self.http_client = http_client
        self.token_manager = token_manager

        logger.debug("Account operations initialized")

    async def get_accounts(self) -> List[Account]:
        """Get all accounts visible to the access token.

        Returns:
            Accounts in the order the server returned them

        Raises:
            HTTPClientError: For API errors
        """
        try:
            headers = await self.token_manager.get_authorization_header()
            response = await self.http_client.get("/accounts", headers=headers)

            accounts = [Account(**item) for item in response.get("data") or []]
            logger.info(f"Found {len(accounts)} account(s)")
            for account in accounts:
                logger.debug(
                    f"Account {account.account_id}: {account.account_type} "
                    f"{account.currency} ({account.status})"
                )
            return accounts

        except Exception as e:
            logger.error(f"Failed to fetch accounts: {e}")
            raise

    async def get_account_balance(self, account_id: str) -> Balance:
        """Get the balance of one account.

        Args:
            account_id: Account identifier

        Returns:
            Account balance

        Raises:
            HTTPClientError: For API errors
        """
        try:
            headers = await self.token_manager.get_authorization_header()
            response = await self.http_client.get(
                f"/accounts/{account_id}/balances", headers=headers
            )

            balance = Balance(**(response.get("data") or {}))
            if balance.account_id is None:
                balance.account_id = account_id

            logger.info(
                f"Balance for account {account_id}: available {balance.amount}, "
                f"current {balance.current_balance}, pending {balance.pending_balance} "
                f"{balance.currency}"
            )
            return balance

        except Exception as e:
            logger.error(f"Failed to fetch balance for account {account_id}: {e}")
            raise

    async def get_account_transactions(
        self,
        account_id: str,
        filters: Optional[TransactionFilter] = None,
    ) -> List[Transaction]:
        """Get transactions of one account.

        Args:
            account_id: Account identifier
            filters: Paging, date range and sort order (defaults: 10 newest)

        Returns:
            Transactions in the order the server returned them

        Raises:
            HTTPClientError: For API errors
        """
        filters = filters or TransactionFilter()
        try:
            headers = await self.token_manager.get_authorization_header()
            response = await self.http_client.get(
                f"/accounts/{account_id}/transactions",
                params=filters.to_query_params(),
                headers=headers,
            )

            transactions = [Transaction(**item) for item in response.get("data") or []]
            logger.info(
                f"Found {len(transactions)} transaction(s) for account {account_id} "
                f"(limit: {filters.limit}, offset: {filters.offset})"
            )
            return transactions

        except Exception as e:
            logger.error(f"Failed to fetch transactions for account {account_id}: {e}")
            raise

    async def _get_account_details(self, account: Account, recent_limit: int) -> AccountDetails:
        balance, transactions = await asyncio.gather(
            self.get_account_balance(account.account_id),
            self.get_account_transactions(
                account.account_id, TransactionFilter(limit=recent_limit)
            ),
        )
        return AccountDetails(
            **account.model_dump(),
            balance=balance,
            recent_transactions=transactions,
        )

    async def get_financial_snapshot(self, recent_limit: int = 5) -> FinancialSnapshot:
        """Collect every account with its balance and recent transactions.

        Balances and transactions of all accounts are fetched concurrently.

        Args:
            recent_limit: Number of recent transactions per account

        Returns:
            Snapshot with the total available balance
        """
        try:
            accounts = await self.get_accounts()

            details = await asyncio.gather(
                *(self._get_account_details(account, recent_limit) for account in accounts)
            )

            total_balance = sum(
                (detail.balance.amount or Decimal("0") for detail in details),
                Decimal("0"),
            )

            snapshot = FinancialSnapshot(
                account_count=len(accounts),
                total_balance=total_balance,
                accounts=list(details),
            )

            logger.info(
                f"Financial snapshot complete: {snapshot.account_count} accounts, "
                f"total balance {snapshot.total_balance:.2f}"
            )
            return snapshot

        except Exception as e:
            logger.error(f"Failed to create snapshot: {e}")
            raise

    async def search_transactions(self, term: str, limit: int = 100) -> List[Transaction]:
        """Search transactions of every account by description or merchant.

        Args:
            term: Case-insensitive search term
            limit: Transactions to scan per account

        Returns:
            Matching transactions tagged with their account, newest first
        """
        async def search_account(account: Account) -> List[Transaction]:
            transactions = await self.get_account_transactions(
                account.account_id, TransactionFilter(limit=limit)
            )
            return [
                txn.model_copy(update={
                    "account_id": account.account_id,
                    "account_type": account.account_type,
                })
                for txn in transactions
                if txn.matches(term)
            ]

        try:
            logger.info(f"Searching for transactions matching '{term}'")
            accounts = await self.get_accounts()
            per_account = await asyncio.gather(
                *(search_account(account) for account in accounts)
            )

            matches = [txn for account_matches in per_account for txn in account_matches]
            # Undated transactions sort last
            matches.sort(
                key=lambda txn: (txn.date is not None, txn.date.timestamp() if txn.date else 0),
                reverse=True,
            )

            logger.info(f"Found {len(matches)} matching transaction(s)")
            return matches

        except Exception as e:
            logger.error(f"Search failed: {e}")
            raise
