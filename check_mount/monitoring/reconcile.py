# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Join the watched mount points against the live mount table."""

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional, Pattern, Sequence, Tuple

from check_mount.monitoring.mounts import (
    DEFAULT_EXCLUDE_FS_TYPES,
    DEFAULT_EXCLUDE_MOUNTPOINTS,
    derive_watch_list,
    index_live_mounts,
    MountTableError,
    read_fstab,
    read_live_mounts,
)
from check_mount.schemas.mount.status import (
    CollectionOutcome,
    LiveMountEntry,
    StatusRecord,
)

logger = logging.getLogger(__name__)


def parse_mountpoints(value: str) -> Optional[Tuple[str, ...]]:
    """Split a comma separated list of mount points. An empty string means
    the list should be derived from fstab.

    >>> parse_mountpoints("/var,/home,/var")
    ('/var', '/home', '/var')
    >>> parse_mountpoints("") is None
    True
    """
    if value == "":
        return None
    return tuple(value.split(","))


@dataclass(frozen=True)
class MountCheckConfig:
    mountpoints: Optional[Tuple[str, ...]] = None
    exclude_mountpoints: Pattern[str] = field(
        default_factory=lambda: re.compile(DEFAULT_EXCLUDE_MOUNTPOINTS)
    )
    exclude_fs_types: Pattern[str] = field(
        default_factory=lambda: re.compile(DEFAULT_EXCLUDE_FS_TYPES)
    )
    rootfs: str = "/"


@dataclass(frozen=True)
class TablePaths:
    fstab: Path = Path("/etc/fstab")
    mounts: Path = Path("/proc/mounts")

    @classmethod
    def from_rootfs(cls, rootfs: str) -> "TablePaths":
        root = Path(rootfs)
        return cls(fstab=root / "etc/fstab", mounts=root / "proc/mounts")


def reconcile(
    mountpoints: Sequence[str], live: Mapping[str, LiveMountEntry]
) -> Tuple[StatusRecord, ...]:
    records = []
    for mountpoint in mountpoints:
        entry = live.get(mountpoint)
        if entry is None:
            records.append(StatusRecord(mount_point=mountpoint, mounted=False))
        else:
            records.append(
                StatusRecord(
                    mount_point=mountpoint, mounted=True, write_mode=entry.write_mode
                )
            )
    return tuple(records)


def collect(config: MountCheckConfig, paths: TablePaths) -> CollectionOutcome:
    """Run one collection cycle.

    Any error reading either table fails the whole cycle. Nothing is cached, so
    the next call reads both tables again.
    """
    try:
        if config.mountpoints is not None:
            mountpoints: Sequence[str] = config.mountpoints
        else:
            logger.debug("Parsing fstab from %s", paths.fstab)
            mountpoints = derive_watch_list(
                read_fstab(paths.fstab),
                config.exclude_mountpoints,
                config.exclude_fs_types,
            )
        logger.debug("Collecting mountpoints: %s", list(mountpoints))
        logger.debug("Parsing /proc/mounts from %s", paths.mounts)
        live = index_live_mounts(read_live_mounts(paths.mounts, config.rootfs))
    except MountTableError as e:
        logger.error("Unable to collect mount status: %s", e)
        return CollectionOutcome.failed(str(e))
    return CollectionOutcome(records=reconcile(mountpoints, live), succeeded=True)
