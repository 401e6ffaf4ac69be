import threading
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple, Union

from sshterm.api import TicketClient
from sshterm.codec import (
    KIND_CONNECTED, KIND_ERROR, KIND_INPUT, KIND_OUTPUT, KIND_RAW, KIND_RESIZE,
    SessionFrame, decode_frame, encode_frame, encode_resize, input_frame,
)
from sshterm.config import (
    ANSI_GREEN, ANSI_RED, ANSI_RESET, DEFAULT_COLS, DEFAULT_ROWS, MAX_GEOMETRY,
    MIN_GEOMETRY, SPECIAL_KEYS, ClientConfig,
)
from sshterm.errors import AuthError, TransportError
from sshterm.sink import DisplaySink
from sshterm.transport import WebSocketTransport
from sshterm.utils import build_ws_url, clamp_int, iso_now, json_line, log_error, session_log_path

STATE_IDLE = "idle"
STATE_AUTHORIZING = "authorizing"
STATE_CONNECTING = "connecting"
STATE_OPEN = "open"
STATE_CLOSED = "closed"

TransportFactory = Callable[..., Any]


def styled_line(color: str, text: str) -> str:
    return f"\r\n{color}{text}{ANSI_RESET}\r\n"


class LiveSession:
    """Interactive terminal session against one remote host.

    ``connect`` fetches a single-use ticket and opens the websocket; the
    session only reaches ``open`` once the transport reports its open event.
    Transport callbacks run on the reader thread and carry the generation
    of the attempt that created them, so results of a superseded attempt
    are dropped.
    """

    def __init__(
        self,
        sink: DisplaySink,
        tickets: TicketClient,
        client_config: ClientConfig,
        transport_factory: TransportFactory = WebSocketTransport,
        sessions_dir: Optional[str] = None,
    ):
        self.sink = sink
        self.tickets = tickets
        self.config = client_config
        self.transport_factory = transport_factory
        self.sessions_dir = sessions_dir

        self.host_id: Optional[Any] = None
        self.state = STATE_IDLE
        self.generation = 0
        self.transport: Optional[Any] = None
        self.last_geometry: Optional[Tuple[int, int]] = None
        self.last_error = ""
        self.frames_sent = 0
        self.frames_received = 0
        self.watchers: List[Callable[[], None]] = []
        self.log_path: Optional[str] = None

        self.lock = threading.Lock()
        self.state_changed = threading.Condition(self.lock)

    def _log(self, direction: str, payload: Dict[str, Any]) -> None:
        if not self.log_path:
            return
        data = {"ts": iso_now(), "dir": direction, "host_id": self.host_id}
        data.update(payload)
        json_line(self.log_path, data)

    def _set_state_locked(self, state: str) -> None:
        self.state = state
        self.state_changed.notify_all()

    def connect(self, host_id: Any) -> Dict[str, Any]:
        self.disconnect()

        with self.lock:
            self.generation += 1
            generation = self.generation
            self.host_id = host_id
            self.last_error = ""
            self.last_geometry = None
            self.frames_sent = 0
            self.frames_received = 0
            self.log_path = session_log_path(self.sessions_dir, host_id)
            self._set_state_locked(STATE_AUTHORIZING)
        self._log("SYS", {"event": "connect_start"})

        try:
            ticket = self.tickets.fetch()
        except AuthError as exc:
            return self._fail_connect(generation, exc)
        except Exception as exc:
            return self._fail_connect(generation, AuthError(str(exc)))

        url = build_ws_url(self.config.origin(), host_id, ticket)
        with self.lock:
            if generation != self.generation:
                return {"success": False, "host_id": host_id, "state": self.state, "error": "connect superseded"}
            transport = self.transport_factory(
                url,
                on_open=lambda: self._on_open(generation),
                on_message=lambda message: self._on_message(generation, message),
                on_error=lambda error: self._on_error(generation, error),
                on_close=lambda: self._on_close(generation),
                verify_tls=self.config.VERIFY_TLS,
            )
            self.transport = transport
            self._set_state_locked(STATE_CONNECTING)
        self._log("SYS", {"event": "ticket_ok"})

        try:
            transport.start()
        except Exception as exc:
            self._on_error(generation, TransportError(f"failed to start transport: {exc}"))
            return {"success": False, "host_id": host_id, "state": self.state, "error": str(exc)}

        return {"success": True, "host_id": host_id, "state": self.state}

    def _fail_connect(self, generation: int, exc: AuthError) -> Dict[str, Any]:
        log_error(f"ticket for host {self.host_id} failed: {exc}")
        with self.lock:
            if generation != self.generation:
                return {"success": False, "host_id": self.host_id, "state": self.state, "error": "connect superseded"}
            self.last_error = str(exc)
            self._set_state_locked(STATE_CLOSED)
            self.sink.write(styled_line(ANSI_RED, "Failed to authenticate SSH WebSocket"))
        self._log("SYS", {"event": "ticket_failed", "error": str(exc)})
        return {"success": False, "host_id": self.host_id, "state": STATE_CLOSED, "error": str(exc)}

    def _on_open(self, generation: int) -> None:
        with self.lock:
            if generation != self.generation or self.state != STATE_CONNECTING:
                return
            self._set_state_locked(STATE_OPEN)
            self.sink.write(styled_line(ANSI_GREEN, "SSH Connection Established"))
            self._send_resize_locked(self.sink.cols, self.sink.rows)
            self.sink.focus()
        self._log("SYS", {"event": "open"})

    def _on_message(self, generation: int, message: Union[str, bytes]) -> None:
        with self.lock:
            if generation != self.generation:
                return
            self.frames_received += 1
            try:
                self.on_frame(decode_frame(message))
            except Exception as exc:
                # A frame the sink cannot render must not end the session.
                log_error(f"host {self.host_id}: render failed: {exc}")

    def _on_error(self, generation: int, error: TransportError) -> None:
        with self.lock:
            if generation != self.generation:
                return
            self.last_error = str(error)
            self._set_state_locked(STATE_CLOSED)
            self.sink.write(styled_line(ANSI_RED, "WebSocket Error"))
        log_error(f"host {self.host_id}: {error}")
        self._log("SYS", {"event": "transport_error", "error": str(error)})

    def _on_close(self, generation: int) -> None:
        with self.lock:
            if generation != self.generation:
                return
            self.transport = None
            self._set_state_locked(STATE_CLOSED)
        self._log("SYS", {"event": "closed"})

    def on_frame(self, frame: SessionFrame) -> None:
        # Caller holds self.lock.
        if frame.kind == KIND_CONNECTED:
            self.sink.write(styled_line(ANSI_GREEN, frame.data))
        elif frame.kind == KIND_ERROR:
            self.sink.write(styled_line(ANSI_RED, f"Error: {frame.data}"))
        elif frame.kind in (KIND_OUTPUT, KIND_INPUT, KIND_RAW):
            self.sink.write(frame.data)
        elif frame.kind == KIND_RESIZE:
            log_error(f"host {self.host_id}: ignoring resize frame from server")
            return
        self._log("OUT", {"kind": frame.kind, "chunk": frame.data})

    def _send_locked(self, payload: str, event: Dict[str, Any]) -> bool:
        transport = self.transport
        if self.state != STATE_OPEN or transport is None:
            return False
        try:
            transport.send(payload)
        except TransportError as exc:
            log_error(f"host {self.host_id}: send dropped: {exc}")
            return False
        self.frames_sent += 1
        self._log("IN", event)
        return True

    def _send_resize_locked(self, cols: Any, rows: Any) -> bool:
        cols = clamp_int(cols, DEFAULT_COLS, MIN_GEOMETRY, MAX_GEOMETRY)
        rows = clamp_int(rows, DEFAULT_ROWS, MIN_GEOMETRY, MAX_GEOMETRY)
        sent = self._send_locked(encode_resize(cols, rows), {"event": "resize", "cols": cols, "rows": rows})
        if sent:
            self.last_geometry = (cols, rows)
        return sent

    def send_input(self, text: Union[str, bytes]) -> bool:
        if not text:
            return False
        frame = input_frame(text)
        with self.lock:
            return self._send_locked(encode_frame(frame), {"event": "input", "chunk": frame.data})

    def send_key(self, key: str) -> bool:
        sequence = SPECIAL_KEYS.get(key.lower(), key)
        sent = self.send_input(sequence)
        if sent:
            self.sink.focus()
        return sent

    def resize(self, cols: int, rows: int) -> bool:
        with self.lock:
            return self._send_resize_locked(cols, rows)

    def handle_resize(self) -> bool:
        try:
            self.sink.fit()
        except Exception as exc:
            log_error(f"sink fit failed: {exc}")
            return False
        return self.resize(self.sink.cols, self.sink.rows)

    def add_watcher(self, release: Callable[[], None]) -> None:
        with self.lock:
            self.watchers.append(release)

    def disconnect(self) -> None:
        with self.lock:
            self.generation += 1
            transport = self.transport
            self.transport = None
            watchers = self.watchers
            self.watchers = []
            previous = self.state
            if previous != STATE_IDLE:
                self._set_state_locked(STATE_CLOSED)

        for release in watchers:
            try:
                release()
            except Exception as exc:
                log_error(f"watcher release failed: {exc}")
        if transport is not None:
            transport.close()
        if previous not in (STATE_IDLE, STATE_CLOSED):
            self._log("SYS", {"event": "disconnected", "previous_state": previous})

    def close(self) -> None:
        self.disconnect()
        self.sink.dispose()

    def is_open(self) -> bool:
        with self.lock:
            return self.state == STATE_OPEN

    def wait_for_state(self, states: Iterable[str], timeout: Optional[float] = None) -> str:
        wanted = set(states)
        with self.lock:
            self.state_changed.wait_for(lambda: self.state in wanted, timeout=timeout)
            return self.state

    def info(self) -> Dict[str, Any]:
        with self.lock:
            return {
                "host_id": self.host_id,
                "state": self.state,
                "connected": self.state == STATE_OPEN,
                "geometry": list(self.last_geometry) if self.last_geometry else None,
                "frames_sent": self.frames_sent,
                "frames_received": self.frames_received,
                "last_error": self.last_error,
                "log_path": self.log_path,
            }
