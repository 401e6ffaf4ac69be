import ssl
import threading
from typing import Any, Callable, Dict, Optional, Union

from websockets.exceptions import ConnectionClosed, ConnectionClosedOK
from websockets.sync.client import ClientConnection, connect as ws_connect

from sshterm.config import CLOSE_TIMEOUT, CONNECT_TIMEOUT, READER_JOIN_TIMEOUT
from sshterm.errors import TransportError
from sshterm.utils import log_error

MessageCallback = Callable[[Union[str, bytes]], None]
ErrorCallback = Callable[[TransportError], None]


class WebSocketTransport:
    """One websocket connection driven by a daemon reader thread.

    Callbacks fire on the reader thread: ``on_open`` once the handshake
    completes, ``on_message`` for every received message in delivery order,
    ``on_error`` for abnormal failures, and ``on_close`` exactly once when
    the reader exits.
    """

    def __init__(
        self,
        url: str,
        on_open: Callable[[], None],
        on_message: MessageCallback,
        on_error: ErrorCallback,
        on_close: Callable[[], None],
        verify_tls: bool = True,
    ):
        self.url = url
        self.on_open = on_open
        self.on_message = on_message
        self.on_error = on_error
        self.on_close = on_close
        self.verify_tls = verify_tls

        self.ws: Optional[ClientConnection] = None
        self.closed = False
        self.lock = threading.Lock()
        self.thread: Optional[threading.Thread] = None

    def _ssl_context(self) -> Optional[ssl.SSLContext]:
        if not self.url.startswith("wss://") or self.verify_tls:
            return None
        context = ssl.create_default_context()
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        return context

    def start(self) -> None:
        self.thread = threading.Thread(target=self._reader_loop, daemon=True)
        self.thread.start()

    def _reader_loop(self) -> None:
        try:
            kwargs: Dict[str, Any] = {"open_timeout": CONNECT_TIMEOUT, "close_timeout": CLOSE_TIMEOUT}
            context = self._ssl_context()
            if context is not None:
                kwargs["ssl"] = context
            # Leaving the block closes the socket, also when a callback raises.
            with ws_connect(self.url, **kwargs) as ws:
                with self.lock:
                    if self.closed:
                        return
                    self.ws = ws

                self.on_open()
                for message in ws:
                    self.on_message(message)
        except ConnectionClosedOK:
            pass
        except ConnectionClosed as exc:
            self.on_error(TransportError(f"connection closed unexpectedly: {exc}"))
        except Exception as exc:
            with self.lock:
                superseded = self.closed
            if not superseded:
                self.on_error(TransportError(f"websocket failed: {exc}"))
        finally:
            with self.lock:
                self.closed = True
                self.ws = None
            self.on_close()

    def send(self, text: str) -> None:
        with self.lock:
            ws = self.ws
        if ws is None:
            raise TransportError("websocket is not open")
        try:
            ws.send(text)
        except ConnectionClosed as exc:
            raise TransportError(f"send on closed websocket: {exc}") from exc

    def close(self) -> None:
        with self.lock:
            self.closed = True
            ws = self.ws
        if ws is not None:
            try:
                ws.close()
            except Exception as exc:
                log_error(f"websocket close failed: {exc}")
        thread = self.thread
        if thread and thread is not threading.current_thread():
            thread.join(READER_JOIN_TIMEOUT)
