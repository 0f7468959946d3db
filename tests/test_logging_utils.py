import json
from pathlib import Path

from disktable.enumeration import enumerate_devices
from disktable.logging_utils import log_event

from tests.fakes import block_node, create_disk, make_env


def test_log_event_emits_json_to_stderr(capsys, monkeypatch) -> None:
    monkeypatch.setenv("DISKTABLE_LOG_EVENTS", "1")
    monkeypatch.delenv("DISKTABLE_LOG_FILE", raising=False)

    log_event("disktable.test", path=Path("/tmp/demo"), value=5, items=(1, 2))

    captured = capsys.readouterr()
    assert captured.out == ""
    lines = [line for line in captured.err.splitlines() if line.strip()]
    assert len(lines) == 1
    record = json.loads(lines[0])
    assert record["event"] == "disktable.test"
    assert record["path"] == "/tmp/demo"
    assert record["value"] == 5
    assert record["items"] == [1, 2]
    assert "timestamp" in record


def test_log_event_disabled_by_default(capsys, monkeypatch) -> None:
    monkeypatch.delenv("DISKTABLE_LOG_EVENTS", raising=False)
    log_event("disktable.test")
    assert capsys.readouterr().err == ""

    monkeypatch.setenv("DISKTABLE_LOG_EVENTS", "false")
    log_event("disktable.test")
    assert capsys.readouterr().err == ""


def test_log_event_appends_to_file(tmp_path, capsys, monkeypatch) -> None:
    monkeypatch.setenv("DISKTABLE_LOG_EVENTS", "1")
    log_path = tmp_path / "logs" / "events.log"
    monkeypatch.setenv("DISKTABLE_LOG_FILE", str(log_path))

    log_event("disktable.test.file", payload={"key": "value"})

    captured = capsys.readouterr()
    stderr_lines = [line for line in captured.err.splitlines() if line.strip()]
    assert len(stderr_lines) == 1
    stderr_record = json.loads(stderr_lines[0])

    file_lines = log_path.read_text(encoding="utf-8").splitlines()
    assert len(file_lines) == 1
    file_record = json.loads(file_lines[0])

    assert file_record == stderr_record
    assert file_record["payload"] == {"key": "value"}


def test_enumeration_logs_resolved_devices(tmp_path, capsys, monkeypatch) -> None:
    monkeypatch.setenv("DISKTABLE_LOG_EVENTS", "1")
    monkeypatch.delenv("DISKTABLE_LOG_FILE", raising=False)
    create_disk(tmp_path, "sda", 8, 0, rotational="1", partitions=(1,))
    env = make_env(
        tmp_path, {"/dev/sda1": block_node(8, 1)}, listing="/dev/gone\n/dev/sda1\n"
    )

    enumerate_devices(env)

    records = [json.loads(line) for line in capsys.readouterr().err.splitlines() if line.strip()]
    events = {record["event"]: record for record in records}
    assert events["disktable.enumerate.stat_failed"]["device"] == "/dev/gone"
    device = events["disktable.enumerate.device"]
    assert device["devno"] == "8:1"
    assert device["disk"] == "8:0"
    assert device["disk_name"] == "sda"
    assert events["disktable.probe.rotational"]["result"] == "rotational"


def test_undecodable_device_names_are_logged_escaped(capsys, monkeypatch) -> None:
    monkeypatch.setenv("DISKTABLE_LOG_EVENTS", "1")
    monkeypatch.delenv("DISKTABLE_LOG_FILE", raising=False)

    log_event("disktable.enumerate.stat_failed", device="/dev/sd\udcffa")

    record = json.loads(capsys.readouterr().err)
    assert record["device"] == "/dev/sd\udcffa"
