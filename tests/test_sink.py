"""Tests for the terminal stream sink."""
from __future__ import annotations

import io
import sys

from sshterm import sink as sink_module
from sshterm.sink import StreamSink


def test_default_stream_writes_utf8_on_narrow_locale(monkeypatch):
    raw = io.BytesIO()
    monkeypatch.setattr(sys, "stdout", io.TextIOWrapper(raw, encoding="cp1252"))
    monkeypatch.setattr(sink_module, "_stdout", None)

    sink = StreamSink()
    sink.write("café ✔\r\n")

    assert raw.getvalue() == "café ✔\r\n".encode("utf-8")


def test_write_after_dispose_is_dropped():
    stream = io.StringIO()
    sink = StreamSink(stream)
    sink.write("a")
    sink.dispose()
    sink.write("b")
    assert stream.getvalue() == "a"


def test_reset_sends_full_terminal_reset():
    stream = io.StringIO()
    StreamSink(stream).reset()
    assert stream.getvalue() == "\x1bc"
