# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass, field
from typing import FrozenSet, Literal, Optional, Tuple

WriteMode = Literal["rw", "ro", ""]


@dataclass(frozen=True)
class FstabEntry:
    """https://man7.org/linux/man-pages/man5/fstab.5.html"""

    source: str
    mount_point: str
    fs_type: str
    options: Tuple[str, ...] = ("defaults",)
    dump: int = 0
    pass_number: int = 0


@dataclass(frozen=True)
class LiveMountEntry:
    """A single line of /proc/mounts, with the mount point already made logical."""

    source: str
    mount_point: str
    fs_type: str
    options: FrozenSet[str]

    @property
    def write_mode(self) -> WriteMode:
        if "rw" in self.options:
            return "rw"
        if "ro" in self.options:
            return "ro"
        return ""


@dataclass(frozen=True)
class StatusRecord:
    mount_point: str
    mounted: bool
    write_mode: WriteMode = ""


@dataclass(frozen=True)
class CollectionOutcome:
    """Result of one collection cycle.

    Invariant: a failed cycle carries no records.
    """

    records: Tuple[StatusRecord, ...] = ()
    succeeded: bool = True
    error: Optional[str] = field(default=None, compare=False)

    def __post_init__(self) -> None:
        if not self.succeeded and self.records:
            raise ValueError("a failed collection cannot carry status records")

    @classmethod
    def failed(cls, error: str) -> "CollectionOutcome":
        return cls(records=(), succeeded=False, error=error)
