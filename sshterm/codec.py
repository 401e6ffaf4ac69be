import json
from dataclasses import dataclass
from typing import Any, Union

from sshterm.errors import ProtocolError

KIND_INPUT = "input"
KIND_RESIZE = "resize"
KIND_CONNECTED = "connected"
KIND_OUTPUT = "output"
KIND_ERROR = "error"
# Decoder-only: a payload that is not a conforming frame, kept verbatim.
KIND_RAW = "raw"

TEXT_KINDS = {KIND_INPUT, KIND_CONNECTED, KIND_OUTPUT, KIND_ERROR}
WIRE_KINDS = TEXT_KINDS | {KIND_RESIZE}


@dataclass(frozen=True)
class SessionFrame:
    kind: str
    data: Any = ""

    @property
    def cols(self) -> int:
        return self.data["cols"] if self.kind == KIND_RESIZE else 0

    @property
    def rows(self) -> int:
        return self.data["rows"] if self.kind == KIND_RESIZE else 0


def _as_text(payload: Union[str, bytes]) -> str:
    if isinstance(payload, (bytes, bytearray)):
        return bytes(payload).decode("utf-8", errors="replace")
    return payload


def input_frame(data: Union[str, bytes]) -> SessionFrame:
    return SessionFrame(KIND_INPUT, _as_text(data))


def resize_frame(cols: int, rows: int) -> SessionFrame:
    return SessionFrame(KIND_RESIZE, {"cols": int(cols), "rows": int(rows)})


def encode_frame(frame: SessionFrame) -> str:
    if frame.kind not in WIRE_KINDS:
        raise ProtocolError(f"cannot encode frame kind {frame.kind!r}")
    if frame.kind == KIND_RESIZE:
        data = {"cols": int(frame.data["cols"]), "rows": int(frame.data["rows"])}
    else:
        data = _as_text(frame.data)
    return json.dumps({"type": frame.kind, "data": data}, ensure_ascii=False, separators=(",", ":"))


def encode_input(data: Union[str, bytes]) -> str:
    return encode_frame(input_frame(data))


def encode_resize(cols: int, rows: int) -> str:
    return encode_frame(resize_frame(cols, rows))


def _is_dimension(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


def parse_frame(payload: Union[str, bytes]) -> SessionFrame:
    text = _as_text(payload)
    try:
        message = json.loads(text)
    except ValueError as exc:
        raise ProtocolError(f"frame is not json: {exc}") from exc
    if not isinstance(message, dict):
        raise ProtocolError("frame is not a json object")

    kind = message.get("type")
    if kind not in WIRE_KINDS:
        raise ProtocolError(f"unknown frame type {kind!r}")
    if "data" not in message:
        raise ProtocolError(f"{kind} frame has no data")

    data = message["data"]
    if kind == KIND_RESIZE:
        if not isinstance(data, dict) or not _is_dimension(data.get("cols")) or not _is_dimension(data.get("rows")):
            raise ProtocolError("resize frame needs integer cols and rows")
        return resize_frame(data["cols"], data["rows"])
    if not isinstance(data, str):
        raise ProtocolError(f"{kind} frame data must be a string")
    return SessionFrame(kind, data)


def decode_frame(payload: Union[str, bytes]) -> SessionFrame:
    try:
        return parse_frame(payload)
    except ProtocolError:
        return SessionFrame(KIND_RAW, _as_text(payload))
