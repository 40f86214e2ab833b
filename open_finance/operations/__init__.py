"""Operations modules for the Open Finance API."""

from open_finance.operations.account_operations import AccountOperations
from open_finance.operations.payment_operations import PaymentOperations

__all__ = ["AccountOperations", "PaymentOperations"]
