"""Data models for the Open Finance API."""

from open_finance.models.requests import (
    TransactionFilter,
    PaymentHistoryFilter,
    PayeeDetails,
    PaymentSource,
    PaymentData,
    PaymentAuthorizationRequest,
    PollingPolicy,
)
from open_finance.models.responses import (
    PaymentStatus,
    TERMINAL_PAYMENT_STATUSES,
    AccessToken,
    Account,
    Balance,
    Transaction,
    AccountDetails,
    FinancialSnapshot,
    PaymentAmount,
    Payment,
    PayeeVerification,
)

__all__ = [
    "TransactionFilter",
    "PaymentHistoryFilter",
    "PayeeDetails",
    "PaymentSource",
    "PaymentData",
    "PaymentAuthorizationRequest",
    "PollingPolicy",
    "PaymentStatus",
    "TERMINAL_PAYMENT_STATUSES",
    "AccessToken",
    "Account",
    "Balance",
    "Transaction",
    "AccountDetails",
    "FinancialSnapshot",
    "PaymentAmount",
    "Payment",
    "PayeeVerification",
]
