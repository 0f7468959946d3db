"""Partition to whole-disk lookups and rotational classification."""

from __future__ import annotations

import errno
import os
from types import MappingProxyType
from typing import Any, Callable, Dict, Mapping, Optional, Union

from .enumeration import (
    DeviceSnapshot,
    EnumerationEnvironment,
    EnumerationUnavailable,
    enumerate_devices,
)
from .logging_utils import log_event

__all__ = ["NO_DISK", "MountTable", "PathNotFound"]

# Disk id returned for devices the enumeration did not report.
NO_DISK = 0

PathLike = Union[str, "os.PathLike[str]"]


class PathNotFound(OSError):
    """A queried path could not be resolved to a device."""


class MountTable:
    """Immutable snapshot of partition-to-disk and rotational information.

    Both maps are filled once by :meth:`build` and only read afterwards, so a
    table may be queried from several threads without locking.
    """

    def __init__(
        self,
        partition_to_disk: Mapping[int, int],
        disk_to_nonrotational: Mapping[int, bool],
        *,
        enumeration_available: bool = True,
        stat: Callable[[str], Any] | None = None,
    ) -> None:
        self._partition_to_disk: Optional[Dict[int, int]] = dict(partition_to_disk)
        self._disk_to_nonrotational: Optional[Dict[int, bool]] = dict(
            disk_to_nonrotational
        )
        self._enumeration_available = enumeration_available
        self._stat = stat or os.stat

    @classmethod
    def from_snapshot(
        cls, snapshot: DeviceSnapshot, *, stat: Callable[[str], Any] | None = None
    ) -> "MountTable":
        """Return a table over the maps of an enumeration *snapshot*."""

        return cls(
            snapshot.partition_to_disk,
            snapshot.disk_to_nonrotational,
            enumeration_available=snapshot.available,
            stat=stat,
        )

    @classmethod
    def build(cls, env: EnumerationEnvironment | None = None) -> "MountTable":
        """Enumerate the system's devices and return a populated table.

        Never raises: when the enumeration service is unavailable the table is
        empty and :meth:`disk_id_of` maps every device number to itself.
        """

        env = env or EnumerationEnvironment()
        try:
            snapshot = enumerate_devices(env)
        except EnumerationUnavailable as exc:
            log_event("disktable.enumerate.unavailable", error=str(exc))
            snapshot = DeviceSnapshot(available=False)
        log_event(
            "disktable.table.built",
            available=snapshot.available,
            devices=len(snapshot.partition_to_disk),
            classified_disks=len(snapshot.disk_to_nonrotational),
        )
        return cls.from_snapshot(snapshot, stat=env.stat)

    def __enter__(self) -> "MountTable":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.destroy()

    def __repr__(self) -> str:
        if self.destroyed:
            return f"<{type(self).__name__} destroyed>"
        return (
            f"<{type(self).__name__} devices={len(self._partition_to_disk)} "
            f"classified_disks={len(self._disk_to_nonrotational)} "
            f"enumeration_available={self._enumeration_available}>"
        )

    @property
    def destroyed(self) -> bool:
        return self._partition_to_disk is None

    @property
    def enumeration_available(self) -> bool:
        return self._enumeration_available

    @property
    def partition_to_disk(self) -> Mapping[int, int]:
        return MappingProxyType(self._maps()[0])

    @property
    def disk_to_nonrotational(self) -> Mapping[int, bool]:
        return MappingProxyType(self._maps()[1])

    def _maps(self) -> tuple[Dict[int, int], Dict[int, bool]]:
        if self._partition_to_disk is None or self._disk_to_nonrotational is None:
            raise RuntimeError("mount table has been destroyed")
        return self._partition_to_disk, self._disk_to_nonrotational

    def _devno_of_path(self, path: PathLike) -> int:
        try:
            return self._stat(os.fspath(path)).st_dev
        except OSError as exc:
            raise PathNotFound(exc.errno, exc.strerror, os.fspath(path)) from exc
        except ValueError as exc:
            raise PathNotFound(errno.EINVAL, str(exc), os.fspath(path)) from exc

    def disk_id_of(self, devno: int) -> int:
        """Return the whole-disk device number for *devno*.

        Unknown devices map to :data:`NO_DISK`, or to themselves when the
        enumeration service was unavailable at build time.
        """

        partition_to_disk, _ = self._maps()
        disk = partition_to_disk.get(devno)
        if disk is not None:
            return disk
        if not self._enumeration_available:
            return devno
        return NO_DISK

    def disk_id_of_path(self, path: PathLike) -> int:
        """Return the whole-disk device number backing *path*.

        Raises:
            PathNotFound: *path* cannot be statted.
        """

        self._maps()
        return self.disk_id_of(self._devno_of_path(path))

    def is_nonrotational(self, devno: int) -> bool:
        """Return ``True`` only for disks known to be non-rotational."""

        _, disk_to_nonrotational = self._maps()
        return disk_to_nonrotational.get(self.disk_id_of(devno), False)

    def is_nonrotational_by_path(self, path: PathLike) -> bool:
        """Like :meth:`is_nonrotational` for the device backing *path*."""

        self._maps()
        return self.is_nonrotational(self._devno_of_path(path))

    def destroy(self) -> None:
        """Release both maps; the table cannot be queried afterwards."""

        self._partition_to_disk = None
        self._disk_to_nonrotational = None
