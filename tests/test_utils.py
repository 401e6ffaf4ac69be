"""Tests for config loading and helper utilities."""
from __future__ import annotations

import json

import pytest

from sshterm.config import ClientConfig
from sshterm.utils import build_ws_url, clamp_int, json_line, make_log_dirs, session_log_path


class TestBuildWsUrl:
    @pytest.mark.parametrize("origin, expected", [
        ("http://localhost:8080", "ws://localhost:8080/api/ws/ssh/5?ticket=T1"),
        ("https://ops.example.com", "wss://ops.example.com/api/ws/ssh/5?ticket=T1"),
        ("https://ops.example.com/", "wss://ops.example.com/api/ws/ssh/5?ticket=T1"),
        ("ops.example.com:9000", "ws://ops.example.com:9000/api/ws/ssh/5?ticket=T1"),
    ])
    def test_scheme_follows_origin(self, origin, expected):
        assert build_ws_url(origin, 5, "T1") == expected

    def test_ticket_is_quoted(self):
        assert build_ws_url("http://h", "7", "a+b/c=") == "ws://h/api/ws/ssh/7?ticket=a%2Bb%2Fc%3D"


class TestClientConfig:
    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("SSHTERM_SERVER_URL", "https://ops.example.com")
        monkeypatch.setenv("SSHTERM_TOKEN", "tok")
        monkeypatch.setenv("SSHTERM_VERIFY_TLS", "no")
        cfg = ClientConfig()
        cfg.load_from_env()
        assert cfg.origin() == "https://ops.example.com"
        assert cfg.TOKEN == "tok"
        assert cfg.VERIFY_TLS is False

    def test_origin_falls_back_to_page_origin(self, monkeypatch):
        monkeypatch.delenv("SSHTERM_SERVER_URL", raising=False)
        monkeypatch.setenv("SSHTERM_PAGE_ORIGIN", "http://10.0.0.2:8080")
        cfg = ClientConfig()
        cfg.load_from_env()
        assert cfg.origin() == "http://10.0.0.2:8080"


def test_clamp_int():
    assert clamp_int("x", 80, 1, 1000) == 80
    assert clamp_int(-5, 80, 1, 1000) == 1
    assert clamp_int(132.7, 80, 1, 1000) == 132


def test_json_line_appends(tmp_path):
    dirs = make_log_dirs(str(tmp_path / "logs"))
    path = session_log_path(dirs["sessions_dir"], "web 01")
    assert "hweb_01__" in path
    json_line(path, {"dir": "SYS", "event": "a"})
    json_line(path, {"dir": "SYS", "event": "b"})
    with open(path, encoding="utf-8") as handle:
        assert [json.loads(line)["event"] for line in handle] == ["a", "b"]
    assert session_log_path(None, 1) is None
