# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Readers for the static (/etc/fstab) and live (/proc/mounts) mount tables."""

import logging
import re
from pathlib import Path
from typing import (
    Callable,
    Dict,
    Generator,
    Iterable,
    Optional,
    Pattern,
    Tuple,
    TypeVar,
)

from check_mount.schemas.mount.status import FstabEntry, LiveMountEntry

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_MOUNTPOINTS = "^/(dev|proc|sys|var/lib/docker/.+)($|/)"
DEFAULT_EXCLUDE_FS_TYPES = "^(proc|procfs|sysfs|swap)$"

_OCTAL_ESCAPE = re.compile(r"\\([0-7]{3})")

_T = TypeVar("_T")


class MountTableError(Exception):
    def __init__(self, path: Path, msg: str):
        super().__init__(f"{path}: {msg}")
        self.path = path


class TableUnavailable(MountTableError):
    """The table file is missing, is not a regular file, or cannot be opened."""


class TableParseError(MountTableError):
    """A line of the table could not be parsed."""

    def __init__(self, path: Path, line_number: int, msg: str):
        super().__init__(path, f"line {line_number}: {msg}")
        self.line_number = line_number


def unescape_octal(field: str) -> str:
    r"""Decode the octal escapes used by fstab(5) and /proc/mounts.

    >>> unescape_octal(r"/mnt/my\040disk")
    '/mnt/my disk'
    """
    return _OCTAL_ESCAPE.sub(lambda m: chr(int(m.group(1), 8)), field)


def strip_rootfs_prefix(path: str, rootfs: str) -> str:
    """Turn a path seen under `rootfs` into the logical path it represents.

    >>> strip_rootfs_prefix("/host/var", "/host")
    '/var'
    >>> strip_rootfs_prefix("/host", "/host/")
    '/'
    >>> strip_rootfs_prefix("/hostname", "/host")
    '/hostname'
    """
    prefix = rootfs.rstrip("/")
    if not prefix:
        return path
    if path == prefix:
        return "/"
    if path.startswith(prefix + "/"):
        return path[len(prefix) :]
    return path


def as_fstab_entry(line: str) -> Optional[FstabEntry]:
    """Parse one fstab line. Returns `None` for comments and blank lines.
    Raises `ValueError` if the line is malformed.
    """
    line = line.strip()
    if not line or line.startswith("#"):
        return None
    fields = line.split()
    if len(fields) < 3:
        raise ValueError(f"expected at least 3 fields, got {len(fields)}")
    return FstabEntry(
        source=unescape_octal(fields[0]),
        mount_point=unescape_octal(fields[1]),
        fs_type=fields[2],
        options=tuple(fields[3].split(",")) if len(fields) > 3 else ("defaults",),
        dump=int(fields[4]) if len(fields) > 4 else 0,
        pass_number=int(fields[5]) if len(fields) > 5 else 0,
    )


def as_live_mount_entry(line: str, rootfs: str = "/") -> LiveMountEntry:
    """Parse one /proc/mounts line. Raises `ValueError` if the line is malformed."""
    fields = line.split()
    if len(fields) < 4:
        raise ValueError(f"expected at least 4 fields, got {len(fields)}")
    options = frozenset(fields[3].split(","))
    if "rw" in options and "ro" in options:
        raise ValueError(f"options are both read-write and read-only: {fields[3]}")
    return LiveMountEntry(
        source=unescape_octal(fields[0]),
        mount_point=strip_rootfs_prefix(unescape_octal(fields[1]), rootfs),
        fs_type=fields[2],
        options=options,
    )


def _parse_table(
    path: Path, parse_line: Callable[[str], Optional[_T]]
) -> Generator[_T, None, None]:
    if not path.exists():
        raise TableUnavailable(path, "does not exist")
    if not path.is_file():
        raise TableUnavailable(path, "is not a regular file")
    # undecodable bytes survive as lone surrogates, the same way argv does
    try:
        with path.open("r", errors="surrogateescape") as f:
            lines = f.readlines()
    except OSError as e:
        raise TableUnavailable(path, str(e)) from e
    for line_number, line in enumerate(lines, start=1):
        try:
            parsed = parse_line(line)
        except ValueError as e:
            raise TableParseError(path, line_number, str(e)) from e
        if parsed is not None:
            yield parsed


def read_fstab(path: Path) -> Generator[FstabEntry, None, None]:
    return _parse_table(path, as_fstab_entry)


def read_live_mounts(
    path: Path, rootfs: str = "/"
) -> Generator[LiveMountEntry, None, None]:
    return _parse_table(
        path, lambda line: as_live_mount_entry(line, rootfs) if line.strip() else None
    )


def derive_watch_list(
    entries: Iterable[FstabEntry],
    exclude_mountpoints: Pattern[str],
    exclude_fs_types: Pattern[str],
) -> Tuple[str, ...]:
    mountpoints = []
    for entry in entries:
        if exclude_mountpoints.search(entry.mount_point) or exclude_fs_types.search(
            entry.fs_type
        ):
            logger.debug("Ignoring mount point %s", entry.mount_point)
            continue
        mountpoints.append(entry.mount_point)
    return tuple(mountpoints)


def index_live_mounts(entries: Iterable[LiveMountEntry]) -> Dict[str, LiveMountEntry]:
    # later lines shadow earlier ones mounted at the same path
    index = {}
    for entry in entries:
        logger.debug("Found mount %s", entry.mount_point)
        index[entry.mount_point] = entry
    return index
