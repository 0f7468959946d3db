"""Map paths and device numbers to whole disks and their rotational state."""

from __future__ import annotations

from importlib.metadata import PackageNotFoundError, version as pkg_version

from .mounttable import NO_DISK, MountTable, PathNotFound
from .rotational import Rotational, probe_rotational

__all__ = [
    "NO_DISK",
    "MountTable",
    "PathNotFound",
    "Rotational",
    "probe_rotational",
    "__version__",
]


def _discover_version() -> str:
    try:
        return pkg_version("disktable")
    except PackageNotFoundError:
        return "unknown"


__version__ = _discover_version()
