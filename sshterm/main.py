import os
import codecs
import sys
import json
import time
import select
import signal
import argparse
import threading
from typing import Callable, Optional

from sshterm.api import ApiClient, RecordingClient, TicketClient
from sshterm.config import CONNECT_TIMEOUT, config
from sshterm.errors import ApiError
from sshterm.playback import PlaybackSession
from sshterm.session import STATE_CLOSED, STATE_OPEN, LiveSession
from sshterm.sink import StreamSink
from sshterm.utils import log_error, make_log_dirs

STDIN_CHUNK = 1024
STDIN_POLL = 0.2


def _watch_window_size(flag: threading.Event) -> Callable[[], None]:
    if not hasattr(signal, "SIGWINCH"):
        return lambda: None
    previous = signal.signal(signal.SIGWINCH, lambda signum, frame: flag.set())
    return lambda: signal.signal(signal.SIGWINCH, previous)


def _pump_stdin(
    session: LiveSession,
    resize_pending: threading.Event,
    fd: Optional[int] = None,
    read: Callable[[int, int], bytes] = os.read,
) -> None:
    if fd is None:
        fd = sys.stdin.fileno()
    # Multi-byte characters may straddle two reads
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    while session.is_open():
        if resize_pending.is_set():
            resize_pending.clear()
            session.handle_resize()
        ready, _, _ = select.select([fd], [], [], STDIN_POLL)
        if not ready:
            continue
        data = read(fd, STDIN_CHUNK)
        text = decoder.decode(data, final=not data)
        if text:
            session.send_input(text)
        if not data:
            break


def run_connect(api: ApiClient, host_id: str, sessions_dir: Optional[str]) -> int:
    session = LiveSession(StreamSink(), TicketClient(api), config, sessions_dir=sessions_dir)
    result = session.connect(host_id)
    if not result.get("success"):
        session.close()
        return 1

    state = session.wait_for_state({STATE_OPEN, STATE_CLOSED}, timeout=CONNECT_TIMEOUT + 1)
    if state != STATE_OPEN:
        log_error(f"host {host_id}: connection not established ({state})")
        session.close()
        return 1

    resize_pending = threading.Event()
    session.add_watcher(_watch_window_size(resize_pending))

    saved_mode = None
    if sys.stdin.isatty():
        import termios
        import tty
        fd = sys.stdin.fileno()
        saved_mode = termios.tcgetattr(fd)
        tty.setraw(fd)
    try:
        _pump_stdin(session, resize_pending)
    finally:
        if saved_mode is not None:
            import termios
            termios.tcsetattr(sys.stdin.fileno(), termios.TCSADRAIN, saved_mode)
        info = session.info()
        session.close()
        log_error(
            f"session to host {host_id} ended: sent={info['frames_sent']} "
            f"received={info['frames_received']} error={info['last_error'] or '-'}"
        )
    return 0


def _handle_play_key(player: PlaybackSession, key: str) -> bool:
    """Apply one playback key; returns False when the user asked to quit."""
    if key in (" ", "p"):
        paused = player.pause()
        log_error("playback paused" if paused else "playback resumed")
    elif key == "c":
        player.resume()
    elif key == "r":
        player.restart()
    elif key in ("q", "\x03"):
        return False
    return True


def _drive_playback(player: PlaybackSession, fd: Optional[int] = None) -> None:
    while not player.finished():
        if fd is None:
            time.sleep(STDIN_POLL)
            continue
        ready, _, _ = select.select([fd], [], [], STDIN_POLL)
        if not ready:
            continue
        key = os.read(fd, 1).decode("utf-8", errors="replace")
        if not key or not _handle_play_key(player, key):
            player.stop()
            break


def run_play(api: ApiClient, recording_id: Optional[str], path: Optional[str]) -> int:
    player = PlaybackSession(StreamSink(), RecordingClient(api))
    if path:
        try:
            with open(path, "r", encoding="utf-8") as handle:
                text = handle.read()
        except OSError as exc:
            log_error(f"cannot read recording {path}: {exc}")
            return 1
        result = player.load_text(text, recording_id=path)
    else:
        result = player.load(recording_id)
    if not result.get("success"):
        player.close()
        return 1

    fd = None
    saved_mode = None
    if sys.stdin.isatty():
        import termios
        import tty
        fd = sys.stdin.fileno()
        saved_mode = termios.tcgetattr(fd)
        tty.setcbreak(fd)
        log_error("keys: space pause/resume, c resume, r restart, q quit")
    try:
        _drive_playback(player, fd)
    except KeyboardInterrupt:
        player.stop()
    finally:
        if saved_mode is not None:
            import termios
            termios.tcsetattr(fd, termios.TCSADRAIN, saved_mode)
        player.close()
    return 0


def run_recordings(api: ApiClient) -> int:
    try:
        rows = RecordingClient(api).list()
    except ApiError as exc:
        log_error(f"listing recordings failed: {exc}")
        return 1
    for row in rows:
        print(json.dumps(row, ensure_ascii=False))
    return 0


def main() -> int:
    # Pre-load from environment
    config.load_from_env()

    parser = argparse.ArgumentParser(
        description="Terminal client for the SSH management backend (live sessions and recording playback)"
    )
    parser.add_argument("--server", help="Server origin, e.g. https://ops.example.com (overrides SSHTERM_SERVER_URL env)")
    parser.add_argument("--token", help="Bearer credential (overrides SSHTERM_TOKEN env)")
    parser.add_argument("--log-dir", help="Directory for JSON-line session logs (overrides SSHTERM_LOG_DIR env)")
    parser.add_argument("--no-verify-tls", action="store_true", help="Disable TLS certificate verification")

    commands = parser.add_subparsers(dest="command", required=True)
    connect_cmd = commands.add_parser("connect", help="Open an interactive terminal to a host")
    connect_cmd.add_argument("host_id", help="Host id on the server")
    play_cmd = commands.add_parser("play", help="Replay a session recording (space pause, r restart, q quit)")
    play_cmd.add_argument("recording_id", nargs="?", help="Recording id on the server")
    play_cmd.add_argument("--file", help="Replay a local NDJSON recording instead")
    commands.add_parser("recordings", help="List recordings on the server")

    args = parser.parse_args()

    # Apply args over env vars
    if args.server: config.SERVER_ORIGIN = args.server
    if args.token: config.TOKEN = args.token
    if args.log_dir: config.LOG_DIR = args.log_dir
    if args.no_verify_tls: config.VERIFY_TLS = False

    # Validation
    remote = args.command != "play" or not args.file
    if args.command == "play" and not args.file and not args.recording_id:
        parser.error("play needs a recording id or --file")
    if remote and not config.TOKEN:
        parser.error("a credential is required (via --token or SSHTERM_TOKEN env)")

    sessions_dir = None
    if config.LOG_DIR:
        sessions_dir = make_log_dirs(config.LOG_DIR)["sessions_dir"]

    api = ApiClient(config, on_session_expired=lambda: log_error("session expired, please login again"))

    if args.command == "connect":
        return run_connect(api, args.host_id, sessions_dir)
    if args.command == "play":
        return run_play(api, args.recording_id, args.file)
    return run_recordings(api)


if __name__ == "__main__":
    sys.exit(main())
