"""
S3 Explorer - Browser-Based File Manager for S3-Compatible Storage
==================================================================

This package provides the access-control and credential-protection core
of the explorer: password login with per-IP rate limiting, cookie-bound
sessions, and encrypted storage of connection credentials.

Security Notice:
- No secrets are logged
- Fail-closed design pattern
- Storage credentials are encrypted at rest
"""

from s3explorer.core.config import ExplorerConfig
from s3explorer.core.logging import configure_root_logger

__version__ = "1.0.0"

__all__ = ["ExplorerConfig", "configure_root_logger", "__version__"]
