"""
Scheduled Music CLI - Entry point

Subcommands:
    run       Play the schedule (default event fills the gaps)
    status    Show what is active or upcoming now, or at --at TIMESTAMP
    validate  Report data errors in the schedule
    export    Write the normalized schedule as a JSON array
"""

import argparse
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

from loguru import logger
from rich.markup import escape
from rich.panel import Panel
from rich.text import Text

from scheduled_music.core import (
    Config,
    ensure_directories,
    get_cache_dir,
    get_console,
    get_data_dir,
    get_log_file_path,
    load_config,
    safe_print,
    setup_loguru,
)
from scheduled_music.domain.playback import (
    AudioResourceFetcher,
    FallbackPolicy,
    PlaybackLoop,
    create_player,
)
from scheduled_music.domain.schedule import (
    Event,
    ScheduleLoader,
    SelectionResult,
    Track,
    dump_events,
    is_event_active_at,
    validate_events,
)
from scheduled_music.domain.timesync import HttpTimeSource, TimeSync
from scheduled_music.exceptions import ConfigurationError
from scheduled_music.utils import format_duration, format_utc, parse_utc_timestamp


def build_loader(config: Config) -> ScheduleLoader:
    return ScheduleLoader(
        path=config.schedule.path,
        url=config.schedule.url,
        cache_last_response=config.schedule.cache_last_response,
        request_timeout_seconds=config.schedule.request_timeout_seconds,
    )


def build_time_sync(config: Config) -> TimeSync:
    """Build the clock; an empty time service URL means the local clock."""
    settings = config.time_sync
    source = None
    if settings.time_service_url and settings.time_service_url.strip():
        source = HttpTimeSource(settings.time_service_url, settings.response_field)
    else:
        logger.warning("No time service URL configured, using local UTC time")

    return TimeSync(
        source,
        resync_interval_seconds=settings.resync_interval_seconds,
        initial_timeout_seconds=settings.initial_timeout_seconds,
        use_mock_utc_time=settings.use_mock_utc_time,
        mock_utc_time=settings.mock_utc_time,
    )


def build_loop(config: Config, loader: ScheduleLoader, time_sync: TimeSync) -> PlaybackLoop:
    fetcher = AudioResourceFetcher(
        get_cache_dir(config),
        request_timeout_seconds=config.playback.request_timeout_seconds,
    )
    player = create_player(
        config.playback.player,
        socket_path=config.playback.mpv_socket_path,
        volume=config.playback.volume,
    )
    return PlaybackLoop(
        loader.load_schedule,
        time_sync,
        fetcher,
        player,
        fallback=FallbackPolicy.from_config(config.fallback),
        retry_backoff_seconds=config.playback.retry_backoff_seconds,
    )


def render_selection(result: SelectionResult, at: datetime) -> Panel:
    """Format a selection result for the console."""
    text = Text()
    text.append(f"Time: {format_utc(at)}\n", style="dim")

    if result.is_active:
        event = result.event
        remaining = result.window.seconds_until_end(at)
        text.append("ACTIVE  ", style="bold green")
        text.append(f"{event.name}", style="bold")
        text.append(f" by {event.artist}\n" if event.artist else "\n")
        text.append(f"Ends {format_utc(result.window.effective_end)}")
        text.append(f" ({format_duration(remaining)} left)")
    elif result.is_upcoming:
        event = result.event
        text.append("UPCOMING  ", style="bold yellow")
        text.append(f"{event.name}", style="bold")
        text.append(f" by {event.artist}\n" if event.artist else "\n")
        text.append(
            f"Starts {format_utc(result.window.start)} "
            f"(in {format_duration(result.wait_seconds)})"
        )
    else:
        text.append("Nothing scheduled", style="bold red")

    return Panel(text, title="Schedule status", expand=False)


def cmd_status(config: Config, at: Optional[str]) -> int:
    loader = build_loader(config)
    events = loader.load_schedule()

    if at:
        timestamp = parse_utc_timestamp(at)
        if timestamp is None:
            safe_print(f"Invalid timestamp: {at}", style="red")
            return 1
    else:
        time_sync = build_time_sync(config)
        time_sync.initialize()
        timestamp = time_sync.now()

    result = is_event_active_at(events, timestamp)
    get_console().print(render_selection(result, timestamp))
    return 0


def cmd_validate(config: Config) -> int:
    loader = build_loader(config)
    events = loader.load_schedule()
    report = validate_events(events)

    for issue in report.issues:
        style = "red" if issue.excludes_event else "yellow"
        safe_print(escape(f"[{issue.kind}] {issue.message}"), style=style)

    summary = (
        f"{report.valid_event_count}/{report.total_events} events selectable, "
        f"{len(report.issues)} issue(s)"
    )
    safe_print(summary, style="green" if report.is_clean else "bold")
    return 0 if report.valid_event_count > 0 else 1


def cmd_export(config: Config, output: str) -> int:
    loader = build_loader(config)
    events = loader.load_schedule()

    output_path = Path(output).expanduser()
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(dump_events(events) + "\n", encoding="utf-8")

    safe_print(f"Wrote {len(events)} event(s) to {output_path}", style="green")
    return 0


def cmd_run(config: Config) -> int:
    loader = build_loader(config)
    # Surface configuration problems before anything starts playing
    loader.load_schedule()

    time_sync = build_time_sync(config)
    loop = build_loop(config, loader, time_sync)

    def on_event(event: Optional[Event]) -> None:
        safe_print(f"Event: {escape(event.name)}" if event else "No active event", style="bold cyan")

    def on_track(track: Optional[Track]) -> None:
        if track is not None:
            safe_print(f"  ♪ {escape(track.name)}", style="cyan")

    loop.subscribe_active_event_changed(on_event)
    loop.subscribe_track_changed(on_track)

    time_sync.start()
    loop.start()

    try:
        while loop.is_running:
            loop.join(0.5)
    except KeyboardInterrupt:
        safe_print("\nStopping playback...", style="yellow")
    finally:
        loop.close()
        time_sync.stop()

    return 0


def main(argv: Optional[list[str]] = None) -> None:
    """Main entry point for the scheduled-music command."""
    parser = argparse.ArgumentParser(
        description="Scheduled Music - play a time-boxed event schedule",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--config", type=Path, help="Path to config.toml (default: auto-detected)"
    )

    subparsers = parser.add_subparsers(dest="subcommand", help="Commands")
    subparsers.add_parser("run", help="Play the schedule")

    status_parser = subparsers.add_parser("status", help="Show active/upcoming event")
    status_parser.add_argument(
        "--at", help="ISO-8601 timestamp to evaluate instead of now"
    )

    subparsers.add_parser("validate", help="Report schedule data errors")

    export_parser = subparsers.add_parser("export", help="Write normalized schedule JSON")
    export_parser.add_argument("output", help="Output file path")

    args = parser.parse_args(argv)

    ensure_directories()
    config = load_config(args.config)
    setup_loguru(
        get_log_file_path(get_data_dir(), config.logging.log_file),
        level=config.logging.level,
        console_output=config.logging.console_output,
    )

    subcommand = args.subcommand or "run"
    try:
        if subcommand == "status":
            code = cmd_status(config, args.at)
        elif subcommand == "validate":
            code = cmd_validate(config)
        elif subcommand == "export":
            code = cmd_export(config, args.output)
        else:
            code = cmd_run(config)
    except ConfigurationError as e:
        logger.error(f"Configuration error: {e}")
        print(f"Error: {e}", file=sys.stderr)
        code = 1

    sys.exit(code)


if __name__ == "__main__":
    main()
