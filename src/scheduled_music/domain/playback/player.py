"""
Audio output backends.

MpvPlayer drives an mpv subprocess over its JSON IPC socket. NullPlayer
only logs, for headless hosts and tests.
"""

import json
import os
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, NamedTuple, Optional, Protocol

from loguru import logger

from .resources import AudioResource


class AudioPlayer(Protocol):
    def play(self, resource: AudioResource, offset_seconds: float = 0.0) -> bool:
        """Start playing resource from offset, replacing whatever plays."""
        ...

    def stop(self) -> None: ...

    def close(self) -> None: ...


class MpvProcess(NamedTuple):
    """Handle to a running mpv instance."""

    socket_path: str
    process: subprocess.Popen


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def _ipc_request(socket_path: Optional[str], command: dict[str, Any]) -> Optional[dict]:
    """Send one JSON IPC command and return the decoded reply (None on failure)."""
    if not socket_path or not os.path.exists(socket_path):
        return None

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(2.0)
            sock.connect(socket_path)

            sock.send((json.dumps(command) + "\n").encode("utf-8"))
            response = sock.recv(4096).decode("utf-8").strip()
    except OSError:
        return None

    # mpv may interleave event lines; the reply is the one carrying "error"
    for line in response.splitlines():
        try:
            data = json.loads(line)
        except json.JSONDecodeError:
            continue
        if isinstance(data, dict) and "error" in data:
            return data
    return None


def send_mpv_command(socket_path: Optional[str], command: dict[str, Any]) -> bool:
    """Send JSON IPC command to MPV."""
    reply = _ipc_request(socket_path, command)
    return reply is not None and reply.get("error") == "success"


def get_mpv_property(socket_path: Optional[str], property_name: str) -> Any:
    """Get a property value from MPV."""
    reply = _ipc_request(socket_path, {"command": ["get_property", property_name]})
    if reply and reply.get("error") == "success":
        return reply.get("data")
    return None


def start_mpv(socket_path: Optional[str] = None, volume: int = 80) -> Optional[MpvProcess]:
    """Start MPV idle with JSON IPC enabled."""
    if not socket_path:
        socket_path = str(Path(tempfile.gettempdir()) / f"scheduled-music-mpv-{os.getpid()}")

    logger.info(f"Starting MPV player with socket: {socket_path}")

    try:
        if os.path.exists(socket_path):
            logger.debug(f"Removing existing socket: {socket_path}")
            os.unlink(socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={socket_path}",
            f"--volume={volume}",
            "--keep-open=yes",
            "--load-scripts=no",
        ]

        process = subprocess.Popen(
            cmd,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
            stdin=subprocess.DEVNULL,
        )

        timeout = 5.0
        start_time = time.time()
        while not os.path.exists(socket_path):
            if time.time() - start_time > timeout:
                logger.error(f"MPV socket creation timeout after {timeout}s")
                process.kill()
                return None
            time.sleep(0.1)

        if send_mpv_command(socket_path, {"command": ["get_property", "idle-active"]}):
            logger.info("MPV started successfully")
            return MpvProcess(socket_path=socket_path, process=process)

        logger.error("MPV socket connection test failed")
        process.kill()
        return None

    except (subprocess.SubprocessError, OSError) as e:
        logger.error(f"Failed to start MPV: {e}")
        return None


def stop_mpv(handle: MpvProcess) -> None:
    """Kill the MPV process and remove its socket."""
    try:
        handle.process.kill()
        handle.process.wait(timeout=2.0)
    except (OSError, subprocess.TimeoutExpired):
        pass  # Already gone

    if os.path.exists(handle.socket_path):
        try:
            os.unlink(handle.socket_path)
        except OSError:
            pass


def wait_for_duration(socket_path: str, max_wait: float = 2.0) -> Optional[float]:
    """Poll mpv until the loaded file reports a stable duration."""
    poll_interval = 0.05
    elapsed = 0.0
    last_duration = None
    stable_reads = 0

    while elapsed < max_wait:
        duration = get_mpv_property(socket_path, "duration")

        if duration and duration > 0:
            if last_duration is not None and abs(duration - last_duration) < 0.1:
                stable_reads += 1
                if stable_reads >= 2:
                    return float(duration)
            else:
                stable_reads = 0
            last_duration = duration

        time.sleep(poll_interval)
        elapsed += poll_interval

    logger.warning(f"Metadata load incomplete after {max_wait}s: duration={last_duration}")
    return last_duration


class MpvPlayer:
    """AudioPlayer backed by a lazily started mpv process."""

    def __init__(self, socket_path: Optional[str] = None, volume: int = 80):
        self.socket_path = socket_path
        self.volume = volume
        self._handle: Optional[MpvProcess] = None

    def _ensure_running(self) -> Optional[MpvProcess]:
        if self._handle and self._handle.process.poll() is None:
            return self._handle

        if self._handle:
            logger.warning("MPV exited unexpectedly, restarting")
        self._handle = start_mpv(self.socket_path, self.volume)
        return self._handle

    def play(self, resource: AudioResource, offset_seconds: float = 0.0) -> bool:
        handle = self._ensure_running()
        if handle is None:
            return False

        if not send_mpv_command(
            handle.socket_path, {"command": ["loadfile", resource.path, "replace"]}
        ):
            logger.error(f"MPV refused to load {resource.path}")
            return False

        wait_for_duration(handle.socket_path)

        if offset_seconds > 0:
            send_mpv_command(
                handle.socket_path,
                {"command": ["seek", offset_seconds, "absolute"]},
            )

        send_mpv_command(handle.socket_path, {"command": ["set_property", "pause", False]})
        logger.debug(f"Playing {resource.path} from {offset_seconds:.2f}s")
        return True

    def stop(self) -> None:
        if self._handle:
            send_mpv_command(self._handle.socket_path, {"command": ["stop"]})

    def close(self) -> None:
        if self._handle:
            stop_mpv(self._handle)
            self._handle = None


class NullPlayer:
    """AudioPlayer that only logs what it would play."""

    def __init__(self) -> None:
        self.current: Optional[AudioResource] = None

    def play(self, resource: AudioResource, offset_seconds: float = 0.0) -> bool:
        logger.info(f"[null player] play {resource.locator} at {offset_seconds:.2f}s")
        self.current = resource
        return True

    def stop(self) -> None:
        if self.current is not None:
            logger.info(f"[null player] stop {self.current.locator}")
        self.current = None

    def close(self) -> None:
        self.stop()


def create_player(kind: str, socket_path: Optional[str] = None, volume: int = 80) -> AudioPlayer:
    """Build the configured player ('mpv' falls back to 'null' if mpv is missing)."""
    if kind == "mpv":
        if check_mpv_available():
            return MpvPlayer(socket_path=socket_path, volume=volume)
        logger.warning("mpv not found on PATH, using null player")
    return NullPlayer()
