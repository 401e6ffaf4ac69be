import json
import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from sshterm.api import RecordingClient
from sshterm.config import PAUSE_POLL_INTERVAL, RESTART_GRACE
from sshterm.errors import PlaybackParseError
from sshterm.sink import DisplaySink
from sshterm.utils import log_error

EVENT_OUTPUT = "o"


@dataclass(frozen=True)
class RecordingEvent:
    time: float
    kind: str
    data: str


def parse_event(line: str, line_no: Optional[int] = None) -> RecordingEvent:
    try:
        item = json.loads(line)
    except ValueError as exc:
        raise PlaybackParseError(f"line is not json: {exc}", line_no) from exc
    if not isinstance(item, list) or len(item) < 3:
        raise PlaybackParseError("event must be a [time, type, payload] array", line_no)

    at, kind, data = item[0], item[1], item[2]
    if isinstance(at, bool) or not isinstance(at, (int, float)) or not math.isfinite(at):
        raise PlaybackParseError(f"invalid event time {at!r}", line_no)
    if not isinstance(kind, str):
        raise PlaybackParseError(f"invalid event type {kind!r}", line_no)
    if not isinstance(data, str):
        raise PlaybackParseError("event payload must be a string", line_no)
    return RecordingEvent(float(at), kind, data)


def parse_recording(text: str) -> Tuple[List[RecordingEvent], int]:
    events: List[RecordingEvent] = []
    skipped = 0
    for line_no, line in enumerate(text.split("\n"), start=1):
        if not line.strip():
            continue
        try:
            events.append(parse_event(line, line_no))
        except PlaybackParseError as exc:
            skipped += 1
            log_error(f"recording line {line_no} skipped: {exc}")
    return events, skipped


class PlaybackSession:
    """Replays a recorded event log onto a display sink.

    The replay runs as a plain loop on a daemon thread so that pause resumes
    at exactly the paused index and events are written in file order. Each
    ``play()`` starts a new generation; an older loop notices at its next
    check point and exits without writing again.
    """

    def __init__(
        self,
        sink: DisplaySink,
        recordings: Optional[RecordingClient] = None,
        notify: Optional[Callable[[str], None]] = None,
        poll_interval: float = PAUSE_POLL_INTERVAL,
        restart_grace: float = RESTART_GRACE,
    ):
        self.sink = sink
        self.recordings = recordings
        self.notify = notify
        self.poll_interval = poll_interval
        self.restart_grace = restart_grace

        self.recording_id: Optional[Any] = None
        self.events: List[RecordingEvent] = []
        self.skipped = 0
        self.playing = False
        self.paused = False
        self.cursor = 0

        self.generation = 0
        self.stop_event: Optional[threading.Event] = None
        self.thread: Optional[threading.Thread] = None
        self.restart_timer: Optional[threading.Timer] = None
        self.lock = threading.Lock()

    def _notify(self, message: str) -> None:
        log_error(message)
        if self.notify:
            try:
                self.notify(message)
            except Exception as exc:
                log_error(f"notify failed: {exc}")

    def load(self, recording_id: Any) -> Dict[str, Any]:
        self.stop()
        if self.recordings is None:
            self._notify("Failed to load recording: no recording source configured")
            return {"success": False, "recording_id": recording_id, "error": "no recording source"}
        try:
            text = self.recordings.get_stream(recording_id)
        except Exception as exc:
            self._notify(f"Failed to load recording {recording_id}: {exc}")
            return {"success": False, "recording_id": recording_id, "error": str(exc)}
        return self.load_text(text, recording_id)

    def load_text(self, text: str, recording_id: Any = None) -> Dict[str, Any]:
        self.stop()
        events, skipped = parse_recording(text or "")
        with self.lock:
            self.recording_id = recording_id
            self.events = events
            self.skipped = skipped
            self.cursor = 0
        self.play()
        return {
            "success": True,
            "recording_id": recording_id,
            "events": len(events),
            "skipped": skipped,
        }

    def _cancel_restart_locked(self) -> None:
        if self.restart_timer is not None:
            self.restart_timer.cancel()
            self.restart_timer = None

    def play(self) -> None:
        with self.lock:
            self._cancel_restart_locked()
            if self.stop_event is not None:
                self.stop_event.set()
            self.generation += 1
            generation = self.generation
            stop_event = threading.Event()
            self.stop_event = stop_event
            self.playing = True
            self.paused = False
            self.cursor = 0
            self.sink.reset()
            thread = threading.Thread(
                target=self._replay_loop,
                args=(generation, stop_event, list(self.events)),
                daemon=True,
            )
            self.thread = thread
        thread.start()

    def _active_locked(self, generation: int) -> bool:
        return generation == self.generation and self.playing

    def _replay_loop(self, generation: int, stop_event: threading.Event, events: List[RecordingEvent]) -> None:
        try:
            for index, event in enumerate(events):
                while True:
                    with self.lock:
                        if not self._active_locked(generation):
                            return
                        paused = self.paused
                    if not paused:
                        break
                    stop_event.wait(self.poll_interval)

                with self.lock:
                    if not self._active_locked(generation):
                        return
                    if event.kind == EVENT_OUTPUT:
                        self.sink.write(event.data)
                    self.cursor = index + 1

                if index + 1 < len(events):
                    delay = max(0.0, events[index + 1].time - event.time)
                    if delay > 0 and stop_event.wait(delay):
                        return
        except Exception as exc:
            log_error(f"replay of recording {self.recording_id} failed: {exc}")
        finally:
            with self.lock:
                if generation == self.generation:
                    self.playing = False

    def pause(self) -> bool:
        with self.lock:
            self.paused = not self.paused
            return self.paused

    def resume(self) -> None:
        with self.lock:
            self.paused = False

    def stop(self) -> None:
        with self.lock:
            self._cancel_restart_locked()
            self.playing = False
            if self.stop_event is not None:
                self.stop_event.set()

    def restart(self) -> None:
        self.stop()
        timer = threading.Timer(self.restart_grace, self.play)
        timer.daemon = True
        with self.lock:
            self.restart_timer = timer
        timer.start()

    def finished(self) -> bool:
        # A scheduled restart counts as still playing
        with self.lock:
            return not self.playing and self.restart_timer is None

    def wait(self, timeout: Optional[float] = None) -> bool:
        thread = self.thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
            return not thread.is_alive()
        return True

    def close(self) -> None:
        self.stop()
        self.wait(self.poll_interval * 2)
        self.sink.dispose()

    def info(self) -> Dict[str, Any]:
        with self.lock:
            total = len(self.events)
            return {
                "recording_id": self.recording_id,
                "playing": self.playing,
                "paused": self.paused,
                "cursor": self.cursor,
                "total_events": total,
                "skipped": self.skipped,
                "progress": round(100.0 * self.cursor / total, 1) if total else 0.0,
            }
