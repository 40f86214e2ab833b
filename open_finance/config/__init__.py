"""Configuration for the Open Finance client."""

from open_finance.config.settings import Settings, settings
from open_finance.config.logging import setup_logging, get_logger, mask_sensitive_data

__all__ = ["Settings", "settings", "setup_logging", "get_logger", "mask_sensitive_data"]
