import os
import re
import sys
import json
from datetime import datetime
from typing import Any, Dict, Optional
from urllib.parse import quote, urlsplit

from sshterm.config import LOG_PREFIX, WS_SSH_PATH

def log_error(message: str) -> None:
    print(f"{LOG_PREFIX} {message}", file=sys.stderr, flush=True)

def clamp_int(value: Any, default: int, min_value: int, max_value: int) -> int:
    try:
        numeric = int(value)
    except Exception:
        numeric = default
    if numeric < min_value:
        return min_value
    if numeric > max_value:
        return max_value
    return numeric

def iso_now() -> str:
    return datetime.now().isoformat(timespec="milliseconds")

def safe_name(text: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9._-]+", "_", text.strip())
    return cleaned[:80] if cleaned else "unnamed"

def json_line(path: str, payload: Dict[str, Any]) -> None:
    try:
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
    except Exception as exc:
        log_error(f"log write failed ({path}): {exc}")

def make_log_dirs(log_root: str) -> Dict[str, str]:
    log_root = os.path.abspath(os.path.expanduser(log_root))
    sessions_dir = os.path.join(log_root, "sessions")
    os.makedirs(sessions_dir, exist_ok=True)
    return {
        "log_root": log_root,
        "sessions_dir": sessions_dir,
    }

def build_ws_url(origin: str, host_id: Any, ticket: str) -> str:
    parts = urlsplit(origin if "://" in origin else f"http://{origin}")
    scheme = "wss" if parts.scheme in ("https", "wss") else "ws"
    host = parts.netloc or "localhost:8080"
    path = WS_SSH_PATH.format(host_id=quote(str(host_id), safe=""))
    return f"{scheme}://{host}{path}?ticket={quote(ticket, safe='')}"

def session_log_path(sessions_dir: Optional[str], host_id: Any) -> Optional[str]:
    if not sessions_dir:
        return None
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    filename = f"h{safe_name(str(host_id))}__{stamp}.log"
    return os.path.join(sessions_dir, filename)
