from __future__ import annotations

import json
import os
from pathlib import Path

import pytest

from threadline.core.global_paths import GlobalPath
from threadline.util.log import MAX_LOG_FILES, Log, LogFormat, LogLevel


def test_log_writes_console_and_file(monkeypatch, tmp_path: Path, capsys) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(GlobalPath, "log", classmethod(lambda cls: str(tmp_path)))
    Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=True, file=True, dev=True)

    log = Log.create({"service": "test.log"})
    log.info("hello", {"value": 7})
    log.debug("hidden")
    Log.close()

    stderr = capsys.readouterr().err
    text = (tmp_path / "dev.log").read_text(encoding="utf-8")

    assert "msg=hello" in stderr
    assert "service=test.log" in stderr
    assert "hidden" not in stderr
    assert "value=7" in text


def test_log_supports_json_format(monkeypatch, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(GlobalPath, "log", classmethod(lambda cls: str(tmp_path)))
    Log.configure(level=LogLevel.INFO, format=LogFormat.JSON, console=False, file=True, dev=True)

    log = Log.create({"service": "test.json"})
    log.warn("repaired history", {"dropped_calls": 2, "error": ValueError("bad")})
    Log.close()

    payload = json.loads((tmp_path / "dev.log").read_text(encoding="utf-8").strip())

    assert payload["level"] == "warn"
    assert payload["msg"] == "repaired history"
    assert payload["service"] == "test.json"
    assert payload["dropped_calls"] == 2
    assert payload["error"] == "bad"


def test_timer_logs_start_and_completion(capsys) -> None:  # type: ignore[no-untyped-def]
    Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=True, file=False)

    timer = Log.create({"service": "test.timer"}).time("request", {"session": "ses_1"})
    timer.stop(status="completed")

    lines = capsys.readouterr().err.strip().splitlines()
    assert "status=started" in lines[0]
    assert "duration=" in lines[1]
    assert "session=ses_1" in lines[1]


def test_create_caches_by_service() -> None:
    assert Log.create({"service": "same"}) is Log.create({"service": "same"})
    assert Log.create() is not Log.create()


def test_level_and_format_parsing() -> None:
    assert LogLevel.parse("warning") == LogLevel.WARN
    assert LogLevel.parse(None) == LogLevel.INFO
    assert LogFormat.parse("JSON") == LogFormat.JSON
    with pytest.raises(ValueError):
        LogLevel.parse("loud")


def test_configure_keeps_newest_log_files(monkeypatch, tmp_path: Path) -> None:  # type: ignore[no-untyped-def]
    monkeypatch.setattr(GlobalPath, "log", classmethod(lambda cls: str(tmp_path)))
    for day in range(1, 13):
        path = tmp_path / f"2026-01-{day:02d}T000000.log"
        path.write_text("", encoding="utf-8")
        os.utime(path, (day, day))

    Log.configure(level=LogLevel.INFO, format=LogFormat.KV, console=False, file=True, dev=True)
    Log.close()

    remaining = sorted(p.name for p in tmp_path.glob("????-??-??T??????.log"))
    assert len(remaining) == MAX_LOG_FILES
    assert remaining[0] == "2026-01-03T000000.log"
    assert (tmp_path / "dev.log").exists()
