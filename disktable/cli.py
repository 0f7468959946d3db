"""CLI entry point for disktable."""

from __future__ import annotations

import argparse
import json
import sys
from typing import Optional, Sequence

from .enumeration import format_devno
from .mounttable import MountTable, PathNotFound


def _describe(path: str, nonrotational: bool, disk: int) -> str:
    prefix = "non-" if nonrotational else ""
    return f"{path} is on {prefix}rotational device and on disk {format_devno(disk)}"


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Print the backing disk and its rotational state for each path."""

    parser = argparse.ArgumentParser(
        prog="disktable",
        description="Show which disk backs each path and whether it is rotational.",
    )
    parser.add_argument("paths", nargs="+", metavar="PATH", help="Paths to classify")
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the results as a JSON document",
    )
    args = parser.parse_args(argv)

    status = 0
    entries: list[dict[str, object]] = []
    with MountTable.build() as table:
        for path in args.paths:
            try:
                disk = table.disk_id_of_path(path)
                nonrotational = table.is_nonrotational_by_path(path)
            except PathNotFound as exc:
                print(f"disktable: {path}: {exc.strerror or 'not found'}", file=sys.stderr)
                status = 1
                continue
            if args.json:
                entries.append(
                    {
                        "path": path,
                        "disk": format_devno(disk),
                        "nonrotational": nonrotational,
                    }
                )
            else:
                print(_describe(path, nonrotational, disk))

    if args.json:
        print(json.dumps(entries, indent=2))
    return status


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
