"""JSON event log for device enumeration and table builds.

Events are named ``disktable.<stage>.<what>`` (``disktable.enumerate.device``,
``disktable.probe.rotational``, ``disktable.table.built``) and are silent unless
``DISKTABLE_LOG_EVENTS`` is set.
"""

from __future__ import annotations

import datetime as _dt
import json
import os
import sys
from pathlib import Path
from typing import Any, Mapping, Optional, Sequence


def _serialise(value: Any) -> Any:
    """Convert *value* into something ``json.dumps`` accepts."""

    if isinstance(value, (str, int, float, bool)) or value is None:
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, Mapping):
        return {str(key): _serialise(item) for key, item in value.items()}
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        return [_serialise(item) for item in value]
    return repr(value)


def _logs_enabled() -> bool:
    """Return ``True`` unless ``DISKTABLE_LOG_EVENTS`` is unset or falsy."""

    value = os.environ.get("DISKTABLE_LOG_EVENTS")
    if value is None:
        return False
    return value.strip().lower() not in {"", "0", "false", "no"}


def log_event(event: str, **fields: Any) -> None:
    """Write one JSON line describing *event* to ``stderr`` if logging is on.

    *fields* carry the event details, such as device paths and ``major:minor``
    numbers; paths become strings and unknown objects their ``repr``. The
    line is also appended to ``DISKTABLE_LOG_FILE`` when that is set.
    """

    if not _logs_enabled():
        return

    record = {
        "timestamp": _dt.datetime.now(_dt.timezone.utc).isoformat(),
        "event": event,
    }
    for key, value in fields.items():
        record[str(key)] = _serialise(value)

    message = json.dumps(record, sort_keys=True)

    sys.stderr.write(message + "\n")
    sys.stderr.flush()

    log_file = _log_file_path()
    if log_file is not None:
        _append_to_log_file(log_file, message)


def _log_file_path() -> Optional[Path]:
    """Return the configured log file, or ``None`` when file logging is off."""

    value = os.environ.get("DISKTABLE_LOG_FILE")
    if value is None or value.strip() == "":
        return None
    return Path(value)


def _append_to_log_file(log_file: Path, message: str) -> None:
    """Append the JSON *message* to *log_file*."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        with log_file.open("a", encoding="utf-8") as handle:
            handle.write(message + "\n")
    except OSError as exc:  # pragma: no cover - unwritable log location
        sys.stderr.write(f"disktable: failed to write log to {log_file}: {exc}\n")
        sys.stderr.flush()
