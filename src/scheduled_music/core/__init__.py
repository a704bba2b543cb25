"""Core infrastructure layer - no business logic dependencies.

This module provides foundation-level services:
- Configuration management (TOML)
- Logging setup (Loguru)
- Console management (Rich)
- Notification primitive (Signal)
"""

from .config import (
    Config,
    FallbackConfig,
    LoggingConfig,
    PlaybackConfig,
    ScheduleConfig,
    TimeSyncConfig,
    config_from_dict,
    create_default_config,
    ensure_directories,
    get_cache_dir,
    get_config_dir,
    get_config_path,
    get_data_dir,
    load_config,
)
from .console import get_console, safe_print
from .output import get_log_file_path, setup_loguru
from .signals import Signal

__all__ = [
    # Config
    "Config",
    "ScheduleConfig",
    "TimeSyncConfig",
    "PlaybackConfig",
    "FallbackConfig",
    "LoggingConfig",
    "config_from_dict",
    "load_config",
    "get_config_dir",
    "get_config_path",
    "get_data_dir",
    "get_cache_dir",
    "create_default_config",
    "ensure_directories",
    # Logging
    "setup_loguru",
    "get_log_file_path",
    # Console
    "get_console",
    "safe_print",
    # Notifications
    "Signal",
]
