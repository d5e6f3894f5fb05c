"""Config module: loading and managing configuration."""

from src.core.config.loader import (
    get_config,
    get_provider_config,
    get_scheduler_config,
    reload_config,
)

__all__ = [
    "get_config",
    "get_provider_config",
    "get_scheduler_config",
    "reload_config",
]
