"""Response models for the Open Finance API.

The sandbox wraps most payloads in a ``{"data": ...}`` envelope; these models
describe what sits inside it. Unknown fields are kept as extras so nothing the
server returns is lost.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Optional, List
from pydantic import BaseModel, ConfigDict, Field


class PaymentStatus:
    """Payment status strings as returned by the server."""

    PENDING = "PENDING"
    PENDING_AUTHORIZATION = "PENDING_AUTHORIZATION"
    AUTHORIZED = "AUTHORIZED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


TERMINAL_PAYMENT_STATUSES = frozenset(
    {PaymentStatus.COMPLETED, PaymentStatus.FAILED, PaymentStatus.REJECTED}
)


class APIModel(BaseModel):
    """Base for DTOs mirroring remote JSON."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)


class AccessToken(APIModel):
    """OAuth2 client-credentials token response."""

    access_token: str = Field(..., description="Bearer token")
    expires_in: int = Field(..., description="Token lifetime in seconds")
    token_type: str = Field("Bearer", description="Token type")
    scope: Optional[str] = Field(None, description="Granted scopes")
    obtained_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the token was received",
    )

    @property
    def expires_at(self) -> datetime:
        return self.obtained_at + timedelta(seconds=self.expires_in)

    def effective_margin(self, margin_seconds: int) -> int:
        """Refresh margin capped at half the token lifetime."""
        return min(margin_seconds, self.expires_in // 2)

    def is_valid(self, margin_seconds: int = 0) -> bool:
        """Whether the token is still usable ``margin_seconds`` before expiry.

        Short-lived tokens use at most half their lifetime as margin so a
        fresh token is never treated as expired.
        """
        now = datetime.now(timezone.utc)
        return now < self.expires_at - timedelta(seconds=self.effective_margin(margin_seconds))


class Account(APIModel):
    """Account record."""

    account_id: str = Field(..., description="Account identifier")
    account_type: Optional[str] = Field(None, description="Account type, e.g. CURRENT")
    currency: Optional[str] = Field(None, description="Currency code (ISO 4217)")
    status: Optional[str] = Field(None, description="Account status")


class Balance(APIModel):
    """Account balance."""

    account_id: Optional[str] = Field(None, description="Account identifier")
    amount: Optional[Decimal] = Field(None, description="Available balance")
    current_balance: Optional[Decimal] = Field(None, description="Current balance")
    pending_balance: Optional[Decimal] = Field(None, description="Pending balance")
    currency: Optional[str] = Field(None, description="Currency code (ISO 4217)")


class Transaction(APIModel):
    """Account transaction."""

    transaction_id: str = Field(..., description="Transaction identifier")
    date: Optional[datetime] = Field(None, description="Transaction timestamp")
    amount: Optional[Decimal] = Field(None, description="Transaction amount")
    currency: Optional[str] = Field(None, description="Currency code (ISO 4217)")
    type: Optional[str] = Field(None, description="Transaction type, e.g. DEBIT")
    description: Optional[str] = Field(None, description="Transaction description")
    merchant: Optional[str] = Field(None, description="Merchant name")
    balance_after: Optional[Decimal] = Field(None, description="Balance after transaction")
    account_id: Optional[str] = Field(None, description="Owning account, set by search")
    account_type: Optional[str] = Field(None, description="Owning account type, set by search")

    def matches(self, term: str) -> bool:
        """Case-insensitive match on description or merchant."""
        term = term.lower()
        return any(
            value and term in value.lower()
            for value in (self.description, self.merchant)
        )


class AccountDetails(Account):
    """Account with its balance and most recent transactions."""

    balance: Balance = Field(..., description="Account balance")
    recent_transactions: List[Transaction] = Field(
        default_factory=list, description="Most recent transactions"
    )


class FinancialSnapshot(BaseModel):
    """Aggregated view of every account at a point in time."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    account_count: int = Field(..., description="Number of accounts")
    total_balance: Decimal = Field(..., description="Sum of available balances")
    accounts: List[AccountDetails] = Field(default_factory=list)


class PaymentAmount(APIModel):
    """Payment amount."""

    value: Decimal = Field(..., description="Amount value")
    currency: str = Field(..., description="Currency code (ISO 4217)")


class Payment(APIModel):
    """Payment record."""

    payment_id: str = Field(..., description="Payment identifier")
    status: str = Field(..., description="Payment status")
    amount: Optional[PaymentAmount] = Field(None, description="Payment amount")
    reference: Optional[str] = Field(None, description="Payment reference")
    processing_stage: Optional[str] = Field(None, description="Processing stage")
    failure_reason: Optional[str] = Field(None, description="Reason for FAILED/REJECTED")
    created_at: Optional[datetime] = Field(None, description="Creation timestamp")
    updated_at: Optional[datetime] = Field(None, description="Last update timestamp")
    authorized_at: Optional[datetime] = Field(None, description="Authorization timestamp")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_PAYMENT_STATUSES


class PayeeVerification(APIModel):
    """Payee verification result."""

    name_match: bool = Field(False, description="Whether the payee name matches")
    confidence: Optional[float] = Field(None, description="Match confidence in percent")
    status: Optional[str] = Field(None, description="Verification status")
