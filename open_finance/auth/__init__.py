"""Authentication module for the Open Finance client."""

from open_finance.auth.token_manager import TokenManager
from open_finance.auth.token_refresher import TokenRefresher

__all__ = ["TokenManager", "TokenRefresher"]
