"""
Core module - Contains configuration, logging, errors and the auth and crypto components.
"""

from s3explorer.core.config import ExplorerConfig
from s3explorer.core.logging import SecureLogFilter, configure_root_logger

__all__ = ["ExplorerConfig", "configure_root_logger", "SecureLogFilter"]
