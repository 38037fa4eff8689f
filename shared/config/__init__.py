"""
Configuration Module
====================

Centralized configuration management using Pydantic Settings.
Loads from environment variables with type validation and defaults.

Usage:
    from shared.config import settings

    print(settings.environment)
    print(settings.workflow.escalation_poll_seconds)
"""

from shared.config.settings import (
    ChangeFeedBackend,
    Environment,
    LogLevel,
    Settings,
    StoreBackend,
    WorkflowSettings,
    get_settings,
)


# Global settings instance (singleton)
settings = get_settings()

__all__ = [
    "Settings",
    "WorkflowSettings",
    "get_settings",
    "settings",
    "Environment",
    "LogLevel",
    "StoreBackend",
    "ChangeFeedBackend",
]
