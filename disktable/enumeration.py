"""Enumerate block devices and map partitions to their whole disks."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from pathlib import Path
import stat as _stat
import subprocess
from typing import Any, Callable, Dict, Iterable, Optional, Sequence

from .logging_utils import log_event
from .rotational import Rotational, probe_rotational

__all__ = [
    "CommandOutput",
    "DeviceSnapshot",
    "EnumerationEnvironment",
    "EnumerationUnavailable",
    "WholeDisk",
    "enumerate_devices",
    "format_devno",
    "resolve_whole_disk",
]


@dataclass
class CommandOutput:
    """Minimal command result container for dependency injection."""

    stdout: str
    returncode: int = 0


class EnumerationUnavailable(RuntimeError):
    """The device enumeration service is missing or not functional."""


# ``blkid`` exits with 2 when it knows no devices at all.
_BLKID_OK_RETURN_CODES = {0, 2}


def _default_sysfs_root() -> Path:
    return Path(os.environ.get("DISKTABLE_SYSFS_ROOT") or "/sys")


def _default_blkid() -> str:
    return os.environ.get("DISKTABLE_BLKID") or "blkid"


class EnumerationEnvironment:
    """Encapsulate external interactions for device enumeration."""

    def __init__(
        self,
        *,
        run: Callable[[Sequence[str]], CommandOutput] | None = None,
        stat: Callable[[str], Any] | None = None,
        sysfs_root: Path | None = None,
        blkid: str | None = None,
        probe: Callable[[str], Rotational] | None = None,
    ) -> None:
        self.run = run or self._default_run
        self.stat = stat or os.stat
        self.sysfs_root = sysfs_root if sysfs_root is not None else _default_sysfs_root()
        self.blkid = blkid or _default_blkid()
        self.probe = probe or self._default_probe

    @staticmethod
    def _default_run(cmd: Sequence[str]) -> CommandOutput:
        completed = subprocess.run(
            cmd,
            capture_output=True,
            check=False,
        )
        # Device node names are bytes; keep undecodable ones intact.
        return CommandOutput(
            stdout=os.fsdecode(completed.stdout), returncode=completed.returncode
        )

    def _default_probe(self, name: str) -> Rotational:
        return probe_rotational(name, sys_block=self.sysfs_root / "block")


@dataclass(frozen=True)
class WholeDisk:
    """The whole disk that contains a device."""

    devno: int
    name: str


@dataclass(frozen=True)
class DeviceSnapshot:
    """Point-in-time result of a device enumeration."""

    partition_to_disk: Dict[int, int] = field(default_factory=dict)
    disk_to_nonrotational: Dict[int, bool] = field(default_factory=dict)
    available: bool = True


def format_devno(devno: int) -> str:
    """Return ``major:minor`` for the device number *devno*."""

    return f"{os.major(devno)}:{os.minor(devno)}"


def _parse_devno(text: str) -> Optional[int]:
    major, sep, minor = text.strip().partition(":")
    if not sep:
        return None
    try:
        return os.makedev(int(major), int(minor))
    except ValueError:
        return None


def resolve_whole_disk(devno: int, *, sysfs_root: Path) -> Optional[WholeDisk]:
    """Return the whole disk containing the block device *devno*.

    A partition's sysfs directory sits inside the directory of its disk and
    carries a ``partition`` attribute; any other block device is its own whole
    disk. Returns ``None`` when sysfs has no usable entry for *devno*.
    """

    entry = sysfs_root / "dev" / "block" / format_devno(devno)
    try:
        device_dir = Path(os.path.realpath(entry, strict=True))
    except OSError:
        return None
    disk_dir = device_dir.parent if (device_dir / "partition").exists() else device_dir
    try:
        dev_text = (disk_dir / "dev").read_text(encoding="ascii")
    except (OSError, UnicodeDecodeError):
        return None
    disk_devno = _parse_devno(dev_text)
    if disk_devno is None:
        return None
    return WholeDisk(devno=disk_devno, name=disk_dir.name)


def _list_devices(env: EnumerationEnvironment) -> list[str]:
    cmd = [env.blkid, "-o", "device"]
    try:
        result = env.run(cmd)
    except (OSError, ValueError) as exc:
        raise EnumerationUnavailable(f"cannot run {' '.join(cmd)}: {exc}") from exc
    if result.returncode not in _BLKID_OK_RETURN_CODES:
        raise EnumerationUnavailable(
            f"command {' '.join(cmd)} exited with status {result.returncode}"
        )
    return list(_unique_lines(result.stdout))


def _unique_lines(output: str) -> Iterable[str]:
    seen: set[str] = set()
    for line in output.splitlines():
        device = line.strip()
        if not device or device in seen:
            continue
        seen.add(device)
        yield device


def enumerate_devices(env: EnumerationEnvironment | None = None) -> DeviceSnapshot:
    """Map every known device to its whole disk and probe each disk once.

    Raises:
        EnumerationUnavailable: ``blkid`` is missing or failed outright.
    """

    env = env or EnumerationEnvironment()
    devices = _list_devices(env)

    partition_to_disk: Dict[int, int] = {}
    disk_to_nonrotational: Dict[int, bool] = {}
    probed: set[int] = set()

    for device in devices:
        try:
            info = env.stat(device)
        except (OSError, ValueError) as exc:
            log_event("disktable.enumerate.stat_failed", device=device, error=str(exc))
            continue
        if not (_stat.S_ISBLK(info.st_mode) or _stat.S_ISCHR(info.st_mode)):
            continue

        rdev = info.st_rdev
        disk = resolve_whole_disk(rdev, sysfs_root=env.sysfs_root)
        if disk is None:
            log_event(
                "disktable.enumerate.wholedisk_failed",
                device=device,
                devno=format_devno(rdev),
            )
            continue

        log_event(
            "disktable.enumerate.device",
            device=device,
            devno=format_devno(rdev),
            disk=format_devno(disk.devno),
            disk_name=disk.name,
        )
        partition_to_disk[rdev] = disk.devno
        # Whole disks may be queried directly as well.
        partition_to_disk[disk.devno] = disk.devno

        if disk.devno in probed:
            continue
        probed.add(disk.devno)
        rotational = env.probe(disk.name)
        if rotational is not Rotational.UNKNOWN:
            disk_to_nonrotational[disk.devno] = rotational is Rotational.NON_ROTATIONAL

    return DeviceSnapshot(
        partition_to_disk=partition_to_disk,
        disk_to_nonrotational=disk_to_nonrotational,
        available=True,
    )
