"""Business domains: schedule, time sync and playback."""
