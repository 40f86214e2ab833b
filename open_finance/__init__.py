"""Open Finance Python Client

An async client for the Open Finance sandbox API that provides:
- OAuth2 client-credentials authentication over mutual TLS (TPP certificates)
- Account information: accounts, balances, transactions, snapshots
- Payment initiation: payee verification, OTP authorization, status polling
- A connection check for validating a local setup
"""

__version__ = "0.1.0"

from open_finance.config.logging import setup_logging, get_logger

__all__ = ["setup_logging", "get_logger", "__version__"]
