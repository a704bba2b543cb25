"""
Configuration management for scheduled-music
"""

import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from loguru import logger

DEFAULT_TIME_SERVICE_URL = "https://aisenseapi.com/services/v1/datetime"


@dataclass
class ScheduleConfig:
    """Where the event schedule comes from."""

    path: Optional[str] = None  # Local JSON file (takes precedence over url)
    url: Optional[str] = None
    cache_last_response: bool = True
    request_timeout_seconds: float = 10.0


@dataclass
class TimeSyncConfig:
    """Configuration for the UTC time sync service."""

    time_service_url: str = DEFAULT_TIME_SERVICE_URL
    response_field: str = "datetime"  # JSON field holding the ISO-8601 string
    resync_interval_seconds: float = 60.0  # <= 0 disables periodic resync
    initial_timeout_seconds: float = 5.0
    use_mock_utc_time: bool = False
    mock_utc_time: Optional[str] = None  # e.g. "2025-03-01T18:05:00+00:00"


@dataclass
class PlaybackConfig:
    """Configuration for audio output and resource fetching."""

    player: str = "mpv"  # 'mpv' | 'null'
    mpv_socket_path: Optional[str] = None
    volume: int = 80
    cache_dir: Optional[str] = None  # default: <data_dir>/audio-cache
    request_timeout_seconds: float = 30.0
    retry_backoff_seconds: float = 5.0

    def validate(self) -> None:
        """Validate playback configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        valid_players = {"mpv", "null"}
        if self.player not in valid_players:
            raise ValueError(
                f"Invalid player: {self.player!r}. Valid players are: {valid_players}"
            )
        if not 0 <= self.volume <= 100:
            raise ValueError(f"Volume must be between 0 and 100, got {self.volume}")
        if self.retry_backoff_seconds < 0:
            raise ValueError("retry_backoff_seconds must not be negative")


@dataclass
class FallbackConfig:
    """Configuration for the default (filler) event."""

    enabled: bool = True
    default_event_path: Optional[str] = None  # Standalone JSON payload, preferred
    default_event_id: Optional[str] = None
    check_interval_seconds: float = 60.0

    def validate(self) -> None:
        """Validate fallback configuration values.

        Raises:
            ValueError: If configuration values are invalid
        """
        if self.check_interval_seconds <= 0:
            raise ValueError(
                f"check_interval_seconds must be positive, got {self.check_interval_seconds}"
            )


@dataclass
class LoggingConfig:
    """Configuration for logging."""

    level: str = "INFO"  # DEBUG, INFO, WARNING, ERROR, CRITICAL
    log_file: Optional[str] = (
        None  # Custom log file path (default: ~/.local/share/scheduled-music/scheduled-music.log)
    )
    console_output: bool = False  # Also output to stderr


@dataclass
class Config:
    """Main configuration object."""

    schedule: ScheduleConfig = field(default_factory=ScheduleConfig)
    time_sync: TimeSyncConfig = field(default_factory=TimeSyncConfig)
    playback: PlaybackConfig = field(default_factory=PlaybackConfig)
    fallback: FallbackConfig = field(default_factory=FallbackConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def get_config_dir() -> Path:
    """Get the configuration directory path."""
    config_home = os.environ.get("XDG_CONFIG_HOME")
    if config_home:
        return Path(config_home) / "scheduled-music"
    return Path.home() / ".config" / "scheduled-music"


def _find_project_config() -> Optional[Path]:
    """Find config.toml in project root by looking for pyproject.toml.

    Returns:
        Path to config.toml in project root, or None if not found
    """
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            config_path = parent / "config.toml"
            if config_path.exists():
                return config_path
            # Found project root but no config.toml there
            return None
    return None


def get_config_path() -> Path:
    """Get the main configuration file path.

    Checks for config.toml in the following order:
    1. Project root (detected via pyproject.toml) - for development
    2. Current working directory
    3. XDG_CONFIG_HOME/scheduled-music (or ~/.config/scheduled-music)
    """
    project_config = _find_project_config()
    if project_config:
        return project_config

    local_config = Path.cwd() / "config.toml"
    if local_config.exists():
        return local_config

    return get_config_dir() / "config.toml"


def get_data_dir() -> Path:
    """Get the data directory path."""
    data_home = os.environ.get("XDG_DATA_HOME")
    if data_home:
        return Path(data_home) / "scheduled-music"
    return Path.home() / ".local" / "share" / "scheduled-music"


def get_cache_dir(config: Config) -> Path:
    """Directory where downloaded audio is cached."""
    if config.playback.cache_dir:
        return Path(config.playback.cache_dir).expanduser()
    return get_data_dir() / "audio-cache"


def create_default_config() -> str:
    """Create a default configuration TOML content."""
    return f"""
# scheduled-music configuration

[schedule]
# Local JSON schedule (array of events). Takes precedence over url.
# path = "~/schedule.json"

# Remote schedule URL
# url = "https://example.com/scheduled-event.json"

# Reuse the last successfully loaded schedule instead of re-fetching
cache_last_response = true

request_timeout_seconds = 10.0

[time_sync]
# HTTP endpoint returning {{"datetime": "<ISO-8601>"}}. Empty = local clock.
time_service_url = "{DEFAULT_TIME_SERVICE_URL}"
response_field = "datetime"

# Re-anchor to the time service every N seconds (0 disables)
resync_interval_seconds = 60.0

# Upper bound for the initial fetch
initial_timeout_seconds = 5.0

# Pin the clock to a fixed instant (testing)
use_mock_utc_time = false
# mock_utc_time = "2025-03-01T18:05:00+00:00"

[playback]
# Audio output: "mpv" or "null" (log only)
player = "mpv"

# Path for mpv socket (auto-generated if not specified)
# mpv_socket_path = "/tmp/scheduled-music-mpv"

# Volume (0-100)
volume = 80

# Downloaded audio cache (default: ~/.local/share/scheduled-music/audio-cache)
# cache_dir = "~/.cache/scheduled-music"

request_timeout_seconds = 30.0

# Pause before retrying an event whose audio failed to load
retry_backoff_seconds = 5.0

[fallback]
# Play a default event on loop while nothing is scheduled
enabled = true

# Standalone default event JSON (preferred over scanning the schedule)
# default_event_path = "~/default-event.json"

# Event id to use as default when scanning the schedule
# default_event_id = "evt-default"

# How often to check for a scheduled event while the default plays
check_interval_seconds = 60.0

[logging]
# Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
level = "INFO"

# Custom log file path (default: ~/.local/share/scheduled-music/scheduled-music.log)
# log_file = "/path/to/scheduled-music.log"

# Also output logs to stderr
console_output = false
""".strip()


def _expand(path: Optional[str]) -> Optional[str]:
    return str(Path(path).expanduser()) if path else None


def config_from_dict(toml_data: dict[str, Any]) -> Config:
    """Build a Config from parsed TOML data, falling back to defaults per key."""
    config = Config()

    if "schedule" in toml_data:
        schedule_data = toml_data["schedule"]
        config.schedule = ScheduleConfig(
            path=_expand(schedule_data.get("path")),
            url=schedule_data.get("url") or None,
            cache_last_response=schedule_data.get(
                "cache_last_response", config.schedule.cache_last_response
            ),
            request_timeout_seconds=float(
                schedule_data.get(
                    "request_timeout_seconds", config.schedule.request_timeout_seconds
                )
            ),
        )

    if "time_sync" in toml_data:
        time_data = toml_data["time_sync"]
        config.time_sync = TimeSyncConfig(
            time_service_url=time_data.get(
                "time_service_url", config.time_sync.time_service_url
            ),
            response_field=time_data.get(
                "response_field", config.time_sync.response_field
            ),
            resync_interval_seconds=float(
                time_data.get(
                    "resync_interval_seconds", config.time_sync.resync_interval_seconds
                )
            ),
            initial_timeout_seconds=float(
                time_data.get(
                    "initial_timeout_seconds", config.time_sync.initial_timeout_seconds
                )
            ),
            use_mock_utc_time=time_data.get(
                "use_mock_utc_time", config.time_sync.use_mock_utc_time
            ),
            mock_utc_time=time_data.get("mock_utc_time"),
        )

    if "playback" in toml_data:
        playback_data = toml_data["playback"]
        config.playback = PlaybackConfig(
            player=playback_data.get("player", config.playback.player),
            mpv_socket_path=playback_data.get("mpv_socket_path"),
            volume=playback_data.get("volume", config.playback.volume),
            cache_dir=_expand(playback_data.get("cache_dir")),
            request_timeout_seconds=float(
                playback_data.get(
                    "request_timeout_seconds", config.playback.request_timeout_seconds
                )
            ),
            retry_backoff_seconds=float(
                playback_data.get(
                    "retry_backoff_seconds", config.playback.retry_backoff_seconds
                )
            ),
        )
        try:
            config.playback.validate()
        except ValueError as e:
            logger.warning(f"Invalid playback configuration: {e}. Using defaults.")
            config.playback = PlaybackConfig()

    if "fallback" in toml_data:
        fallback_data = toml_data["fallback"]
        config.fallback = FallbackConfig(
            enabled=fallback_data.get("enabled", config.fallback.enabled),
            default_event_path=_expand(fallback_data.get("default_event_path")),
            default_event_id=fallback_data.get("default_event_id") or None,
            check_interval_seconds=float(
                fallback_data.get(
                    "check_interval_seconds", config.fallback.check_interval_seconds
                )
            ),
        )
        try:
            config.fallback.validate()
        except ValueError as e:
            logger.warning(f"Invalid fallback configuration: {e}. Using defaults.")
            config.fallback = FallbackConfig()

    if "logging" in toml_data:
        logging_data = toml_data["logging"]
        config.logging = LoggingConfig(
            level=logging_data.get("level", config.logging.level).upper(),
            log_file=_expand(logging_data.get("log_file")),
            console_output=logging_data.get(
                "console_output", config.logging.console_output
            ),
        )

    _apply_env_overrides(config)
    return config


def _apply_env_overrides(config: Config) -> None:
    """Environment variables override TOML values."""
    schedule_url = os.environ.get("SCHEDULED_MUSIC_SCHEDULE_URL")
    time_url = os.environ.get("SCHEDULED_MUSIC_TIME_URL")

    if schedule_url:
        config.schedule.url = schedule_url
    if time_url:
        config.time_sync.time_service_url = time_url


def load_config(config_path: Optional[Path] = None) -> Config:
    """Load configuration from file or create default.

    Environment variables override TOML values:
    - SCHEDULED_MUSIC_SCHEDULE_URL
    - SCHEDULED_MUSIC_TIME_URL
    """
    # Load .env file from config directory if it exists
    from dotenv import load_dotenv

    env_path = get_config_dir() / ".env"
    if env_path.exists():
        load_dotenv(env_path)

    config_path = config_path or get_config_path()

    if not config_path.exists():
        config_path.parent.mkdir(parents=True, exist_ok=True)
        with open(config_path, "w", encoding="utf-8") as f:
            f.write(create_default_config())
        logger.info(f"Created default configuration at: {config_path}")
        config = Config()
        _apply_env_overrides(config)
        return config

    try:
        with open(config_path, "rb") as f:
            toml_data = tomllib.load(f)
    except (OSError, tomllib.TOMLDecodeError) as e:
        logger.error(f"Error loading configuration from {config_path}: {e}")
        logger.warning("Using default configuration.")
        config = Config()
        _apply_env_overrides(config)
        return config

    return config_from_dict(toml_data)


def ensure_directories() -> None:
    """Ensure all necessary directories exist."""
    get_config_dir().mkdir(parents=True, exist_ok=True)
    get_data_dir().mkdir(parents=True, exist_ok=True)
