import os
from typing import Optional

# ========= Static config =========
CONNECT_TIMEOUT = 10
HTTP_TIMEOUT = 10
CLOSE_TIMEOUT = 2.0
READER_JOIN_TIMEOUT = 2.0

PAUSE_POLL_INTERVAL = 0.1
RESTART_GRACE = 0.1

DEFAULT_COLS = 80
DEFAULT_ROWS = 24
MIN_GEOMETRY = 1
MAX_GEOMETRY = 1000

DEFAULT_PAGE_ORIGIN = "http://localhost:8080"
API_PREFIX = "/api"
TICKET_PATH = "/auth/ws-ticket"
LOGIN_PATH = "/auth/login"
WS_SSH_PATH = "/api/ws/ssh/{host_id}"

LOG_PREFIX = "[SSHTERM]"

# ========= Terminal styling =========
ANSI_GREEN = "\x1b[32m"
ANSI_RED = "\x1b[31m"
ANSI_RESET = "\x1b[0m"

SPECIAL_KEYS = {
    "ctrl-c": "\x03",
    "ctrl-d": "\x04",
    "ctrl-z": "\x1a",
    "ctrl-l": "\x0c",
    "tab": "\t",
    "esc": "\x1b",
    "enter": "\r",
    "up": "\x1b[A",
    "down": "\x1b[B",
    "right": "\x1b[C",
    "left": "\x1b[D",
    "home": "\x1b[H",
    "end": "\x1b[F",
}

# ========= Runtime Configuration =========
class ClientConfig:
    def __init__(self):
        self.SERVER_ORIGIN: Optional[str] = None
        self.TOKEN: Optional[str] = None
        self.PAGE_ORIGIN: str = DEFAULT_PAGE_ORIGIN
        self.LOG_DIR: Optional[str] = None
        self.VERIFY_TLS: bool = True

    def load_from_env(self):
        self.SERVER_ORIGIN = os.environ.get("SSHTERM_SERVER_URL", self.SERVER_ORIGIN)
        self.TOKEN = os.environ.get("SSHTERM_TOKEN", self.TOKEN)
        self.PAGE_ORIGIN = os.environ.get("SSHTERM_PAGE_ORIGIN", self.PAGE_ORIGIN)
        self.LOG_DIR = os.environ.get("SSHTERM_LOG_DIR", self.LOG_DIR)

        verify_env = os.environ.get("SSHTERM_VERIFY_TLS")
        if verify_env is not None:
            self.VERIFY_TLS = verify_env.lower() in ("true", "1", "yes")

    def origin(self) -> str:
        return (self.SERVER_ORIGIN or self.PAGE_ORIGIN or DEFAULT_PAGE_ORIGIN).rstrip("/")

# Global instance
config = ClientConfig()
