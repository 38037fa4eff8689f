"""
SiteGate Shared Library
=======================

Common utilities, configurations, and abstractions shared across SiteGate services.

Modules:
    - config: Configuration management with Pydantic Settings
    - logging: Structured logging with structlog
    - auth: JWT tokens and the host / reception / site_admin role ladder
    - database: PostgreSQL and Redis client wrappers
    - models: Shared Pydantic response models

Version: 0.1.0
"""

__version__ = "0.1.0"
__author__ = "SiteGate Team"

from shared.config import settings
from shared.logging import get_logger, setup_logging

__all__ = [
    "settings",
    "get_logger",
    "setup_logging",
    "__version__",
]
