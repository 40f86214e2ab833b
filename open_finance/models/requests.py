"""Request models for the Open Finance API."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator

from open_finance.config.settings import settings


class TransactionFilter(BaseModel):
    """Query parameters for account transactions."""

    limit: int = Field(10, description="Maximum number of transactions", ge=1)
    offset: int = Field(0, description="Offset for pagination", ge=0)
    from_date: Optional[date] = Field(None, description="Start date")
    to_date: Optional[date] = Field(None, description="End date")
    sort: str = Field("desc", description="Sort order by date")

    @field_validator("to_date")
    @classmethod
    def validate_date_range(cls, v, info):
        """Validate that to_date is not before from_date."""
        from_date = info.data.get("from_date")
        if from_date and v and v < from_date:
            raise ValueError("to_date must be after from_date")
        return v

    @field_validator("sort")
    @classmethod
    def validate_sort(cls, v):
        if v.lower() not in ("asc", "desc"):
            raise ValueError("sort must be 'asc' or 'desc'")
        return v.lower()

    def to_query_params(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "offset": self.offset,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
            "sort": self.sort,
        }


class PaymentHistoryFilter(BaseModel):
    """Query parameters for payment history."""

    limit: int = Field(20, ge=1)
    offset: int = Field(0, ge=0)
    status: Optional[str] = Field(None, description="Only payments in this status")
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    account_id: Optional[str] = Field(None, description="Only payments from this account")

    def to_query_params(self) -> Dict[str, Any]:
        return {
            "limit": self.limit,
            "offset": self.offset,
            "status": self.status,
            "from_date": self.from_date.isoformat() if self.from_date else None,
            "to_date": self.to_date.isoformat() if self.to_date else None,
            "account_id": self.account_id,
        }


class PayeeDetails(BaseModel):
    """Beneficiary of a payment."""

    account_number: str = Field(..., description="Payee account number")
    name: str = Field(..., description="Payee account holder name")
    bank_code: str = Field("ADCB", description="Payee bank code")
    bank_name: Optional[str] = Field(None, description="Payee bank name")

    def to_verification_body(self) -> Dict[str, Any]:
        return {
            "account_number": self.account_number,
            "account_name": self.name,
            "bank_code": self.bank_code,
        }


class PaymentSource(BaseModel):
    """Debtor account of a payment."""

    account_id: str = Field(..., description="Debtor account identifier")
    account_type: str = Field("CURRENT", description="Debtor account type")


class PaymentData(BaseModel):
    """Everything needed to initiate a payment.

    ``from`` is a Python keyword, so the debtor is stored as ``source`` and
    accepted under either name.
    """

    model_config = ConfigDict(populate_by_name=True)

    amount: Decimal = Field(..., gt=0, description="Amount to pay")
    currency: str = Field("AED", description="Currency code (ISO 4217)")
    source: PaymentSource = Field(..., alias="from")
    to: PayeeDetails
    reference: str = Field(..., description="Payment reference")
    description: Optional[str] = None
    type: str = Field("IMMEDIATE", description="Payment type")
    execution_date: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v):
        """Validate currency code."""
        if len(v) != 3:
            raise ValueError("Currency code must be 3 characters")
        return v.upper()

    def to_request_body(self, payment_id: str) -> Dict[str, Any]:
        """Build the ``POST /payments`` body."""
        execution_date = self.execution_date or datetime.now(timezone.utc)
        return {
            "payment_id": payment_id,
            "amount": {
                "value": float(self.amount),
                "currency": self.currency,
            },
            "from": {
                "account_id": self.source.account_id,
                "account_type": self.source.account_type,
            },
            "to": {
                "account_number": self.to.account_number,
                "account_name": self.to.name,
                "bank_code": self.to.bank_code,
                "bank_name": self.to.bank_name,
            },
            "reference": self.reference,
            "description": self.description,
            "payment_type": self.type,
            "execution_date": execution_date.isoformat(),
            "metadata": {
                "source": "hackathon_app",
                "user_agent": "Open Finance Hackathon Starter",
                **self.metadata,
            },
        }


class PaymentAuthorizationRequest(BaseModel):
    """Body of ``PUT /payments/{id}/authorize``."""

    authorization_code: str = Field(..., min_length=1, description="One-time password")
    authorization_method: str = Field("OTP")


class PollingPolicy(BaseModel):
    """How often and how long to poll a payment for a terminal status.

    The delay before attempt ``n`` (zero-based) is
    ``interval_seconds * backoff_factor ** n`` capped at
    ``max_interval_seconds``; a factor of 1 gives a fixed delay.
    """

    max_attempts: int = Field(10, ge=1)
    interval_seconds: float = Field(2.0, ge=0)
    backoff_factor: float = Field(1.0, ge=1.0)
    max_interval_seconds: float = Field(30.0, ge=0)

    @classmethod
    def from_settings(cls) -> "PollingPolicy":
        return cls(
            max_attempts=settings.payment_poll_max_attempts,
            interval_seconds=settings.payment_poll_interval_seconds,
            backoff_factor=settings.payment_poll_backoff_factor,
        )

    def delay(self, attempt: int) -> float:
        return min(
            self.interval_seconds * self.backoff_factor ** attempt,
            self.max_interval_seconds,
        )
