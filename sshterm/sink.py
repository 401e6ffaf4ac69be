import io
import shutil
import sys
import threading
from typing import List, Optional, TextIO

from sshterm.config import DEFAULT_COLS, DEFAULT_ROWS


class DisplaySink:
    """Rendering surface shared by live sessions and playback.

    Implementations receive raw terminal bytes (control sequences included)
    through ``write`` and report their current geometry via ``cols``/``rows``.
    """

    cols: int = DEFAULT_COLS
    rows: int = DEFAULT_ROWS

    def write(self, text: str) -> None:
        raise NotImplementedError

    def reset(self) -> None:
        raise NotImplementedError

    def fit(self) -> None:
        pass

    def focus(self) -> None:
        pass

    def dispose(self) -> None:
        pass


_stdout: Optional[TextIO] = None


def utf8_stdout() -> TextIO:
    # Force UTF-8 so remote output never hits charmap encoding errors
    global _stdout
    if _stdout is None:
        buffer = getattr(sys.stdout, "buffer", None)
        if buffer is None:
            return sys.stdout
        sys.stdout.flush()
        _stdout = io.TextIOWrapper(buffer, encoding="utf-8", errors="replace", write_through=True)
    return _stdout


class StreamSink(DisplaySink):
    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream or utf8_stdout()
        self.disposed = False
        self.lock = threading.Lock()
        self.fit()

    def write(self, text: str) -> None:
        with self.lock:
            if self.disposed:
                return
            self.stream.write(text)
            self.stream.flush()

    def reset(self) -> None:
        # RIS: full terminal reset
        self.write("\x1bc")

    def fit(self) -> None:
        size = shutil.get_terminal_size((DEFAULT_COLS, DEFAULT_ROWS))
        self.cols = size.columns
        self.rows = size.lines

    def dispose(self) -> None:
        with self.lock:
            self.disposed = True


class MemorySink(DisplaySink):
    def __init__(self, cols: int = DEFAULT_COLS, rows: int = DEFAULT_ROWS):
        self.cols = cols
        self.rows = rows
        self.writes: List[str] = []
        self.resets = 0
        self.focused = 0
        self.disposed = False
        self.lock = threading.Lock()

    def write(self, text: str) -> None:
        with self.lock:
            self.writes.append(text)

    def reset(self) -> None:
        with self.lock:
            self.writes.clear()
            self.resets += 1

    def focus(self) -> None:
        self.focused += 1

    def dispose(self) -> None:
        self.disposed = True

    def text(self) -> str:
        with self.lock:
            return "".join(self.writes)

    def snapshot(self) -> List[str]:
        with self.lock:
            return list(self.writes)
