"""Rotational flag probing via ``/sys/block``."""

from __future__ import annotations

import enum
import os
from pathlib import Path
from typing import Optional

from .logging_utils import log_event

__all__ = ["Rotational", "ProbeUnavailable", "default_sys_block", "probe_rotational"]


class Rotational(enum.Enum):
    """Seek behaviour of a whole disk as reported by the kernel."""

    ROTATIONAL = "rotational"
    NON_ROTATIONAL = "non_rotational"
    UNKNOWN = "unknown"


class ProbeUnavailable(OSError):
    """The rotational attribute of a device could not be read."""


_FLAG_VALUES = {
    b"0": Rotational.NON_ROTATIONAL,
    b"1": Rotational.ROTATIONAL,
}


def default_sys_block() -> Path:
    """Return ``/sys/block``, honouring ``DISKTABLE_SYSFS_ROOT``."""

    root = os.environ.get("DISKTABLE_SYSFS_ROOT") or "/sys"
    return Path(root) / "block"


def _read_flag(path: Path) -> bytes:
    try:
        with path.open("rb") as handle:
            return handle.read(1)
    except OSError as exc:
        raise ProbeUnavailable(exc.errno, exc.strerror, str(path)) from exc


def probe_rotational(name: str, *, sys_block: Optional[Path] = None) -> Rotational:
    """Return the rotational state of the disk called *name*.

    Args:
        name: Kernel name of the whole disk (``sda``); a device path such as
            ``/dev/sda`` is reduced to its base name.
        sys_block: Path to ``/sys/block`` (overridable for tests).

    Returns:
        :attr:`Rotational.UNKNOWN` when the attribute is missing, unreadable or
        holds anything other than a single ``0`` or ``1``.
    """

    base = sys_block if sys_block is not None else default_sys_block()
    device = os.path.basename(name.rstrip("/"))
    path = base / device / "queue" / "rotational"
    try:
        flag = _read_flag(path)
    except ProbeUnavailable:
        result = Rotational.UNKNOWN
    else:
        result = _FLAG_VALUES.get(flag, Rotational.UNKNOWN)
    log_event("disktable.probe.rotational", device=device, path=path, result=result.value)
    return result
