# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

import pytest

from check_mount.monitoring.reconcile import (
    collect,
    MountCheckConfig,
    parse_mountpoints,
    TablePaths,
)
from check_mount.schemas.mount.status import CollectionOutcome, StatusRecord
from typeguard import typechecked


def _write_contents(path: Path, contents: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w") as f:
        f.write(contents)
    return path


@pytest.mark.parametrize(
    "value, expected",
    [
        ("", None),
        ("/var", ("/var",)),
        ("/var,/home,/dne", ("/var", "/home", "/dne")),
        ("/var,/var", ("/var", "/var")),
    ],
)
@typechecked
def test_parse_mountpoints(value: str, expected: Optional[Tuple[str, ...]]) -> None:
    assert parse_mountpoints(value) == expected


def test_table_paths_from_rootfs() -> None:
    assert TablePaths.from_rootfs("/") == TablePaths()
    assert TablePaths.from_rootfs("/host") == TablePaths(
        fstab=Path("/host/etc/fstab"), mounts=Path("/host/proc/mounts")
    )


def test_collect_explicit_mountpoints(rootfs: Path) -> None:
    config = MountCheckConfig(mountpoints=("/var", "/home", "/dne"))

    outcome = collect(config, TablePaths.from_rootfs(str(rootfs)))

    assert outcome == CollectionOutcome(
        records=(
            StatusRecord(mount_point="/var", mounted=True, write_mode="rw"),
            StatusRecord(mount_point="/home", mounted=True, write_mode="ro"),
            StatusRecord(mount_point="/dne", mounted=False, write_mode=""),
        ),
        succeeded=True,
    )


def test_collect_from_fstab(rootfs: Path) -> None:
    outcome = collect(MountCheckConfig(), TablePaths.from_rootfs(str(rootfs)))

    assert outcome.succeeded
    assert [(r.mount_point, r.mounted, r.write_mode) for r in outcome.records] == [
        ("/boot", False, ""),
        ("/", True, "rw"),
        ("/var", True, "rw"),
        ("/etc/puppet", False, ""),
        ("/home", True, "ro"),
        ("/tmp", True, "rw"),
    ]


def test_collect_custom_exclusions(rootfs: Path) -> None:
    config = MountCheckConfig(
        exclude_mountpoints=re.compile("^/(boot|etc)"),
        exclude_fs_types=re.compile("^(proc|swap)$"),
    )

    outcome = collect(config, TablePaths.from_rootfs(str(rootfs)))

    assert [r.mount_point for r in outcome.records] == ["/", "/var", "/home", "/tmp"]


def test_collect_explicit_mountpoints_never_read_fstab(tmp_path: Path) -> None:
    # fstab is a directory, so reading it would fail the collection
    fstab = tmp_path / "etc" / "fstab"
    fstab.mkdir(parents=True)
    mounts = _write_contents(tmp_path / "proc" / "mounts", "/dev/root / ext4 rw 0 0\n")
    config = MountCheckConfig(mountpoints=("/",))

    outcome = collect(config, TablePaths(fstab=fstab, mounts=mounts))

    assert outcome.succeeded
    assert outcome.records == (StatusRecord(mount_point="/", mounted=True, write_mode="rw"),)


@pytest.mark.parametrize(
    "mountpoints", [None, ("/var",), ("/var", "/home", "/dne")]
)
def test_collect_missing_live_table(
    rootfs: Path, mountpoints: Optional[Tuple[str, ...]]
) -> None:
    (rootfs / "proc" / "mounts").unlink()

    outcome = collect(
        MountCheckConfig(mountpoints=mountpoints), TablePaths.from_rootfs(str(rootfs))
    )

    assert not outcome.succeeded
    assert outcome.records == ()


def test_collect_missing_fstab_fails(
    rootfs: Path, caplog: pytest.LogCaptureFixture
) -> None:
    (rootfs / "etc" / "fstab").unlink()

    with caplog.at_level(logging.ERROR):
        outcome = collect(MountCheckConfig(), TablePaths.from_rootfs(str(rootfs)))

    assert outcome == CollectionOutcome(records=(), succeeded=False)
    assert outcome.error is not None and "fstab" in outcome.error
    assert "Unable to collect mount status" in caplog.text


def test_collect_malformed_fstab_fails(rootfs: Path) -> None:
    _write_contents(rootfs / "etc" / "fstab", "/dev/sda1 /\n")

    outcome = collect(MountCheckConfig(), TablePaths.from_rootfs(str(rootfs)))

    assert not outcome.succeeded
    assert outcome.records == ()


@pytest.mark.parametrize(
    "mounts",
    [
        "/dev/root / ext4 rw 0 0\n/dev/sda1 /var\n",
        "/dev/root / ext4 rw,ro 0 0\n",
    ],
)
def test_collect_malformed_live_table_fails(rootfs: Path, mounts: str) -> None:
    _write_contents(rootfs / "proc" / "mounts", mounts)

    outcome = collect(
        MountCheckConfig(mountpoints=("/",)), TablePaths.from_rootfs(str(rootfs))
    )

    assert not outcome.succeeded
    assert outcome.records == ()


def test_collect_duplicate_mountpoints_are_kept(rootfs: Path) -> None:
    config = MountCheckConfig(mountpoints=("/var", "/dne", "/var"))

    outcome = collect(config, TablePaths.from_rootfs(str(rootfs)))

    assert [r.mount_point for r in outcome.records] == ["/var", "/dne", "/var"]
    assert outcome.records[0] == outcome.records[2]


def test_collect_unclassified_write_mode(tmp_path: Path) -> None:
    mounts = _write_contents(
        tmp_path / "mounts", "none /mnt/weird fuse nosuid,nodev 0 0\n"
    )

    outcome = collect(
        MountCheckConfig(mountpoints=("/mnt/weird",)),
        TablePaths(fstab=tmp_path / "fstab", mounts=mounts),
    )

    assert outcome.records == (
        StatusRecord(mount_point="/mnt/weird", mounted=True, write_mode=""),
    )


def test_collect_strips_rootfs_prefix(tmp_path: Path) -> None:
    host = tmp_path / "host"
    _write_contents(
        host / "etc" / "fstab",
        "/dev/sda1 / ext4 defaults 0 1\n/dev/sda2 /data xfs defaults 0 2\n",
    )
    _write_contents(
        host / "proc" / "mounts",
        f"/dev/sda1 {host} ext4 rw 0 0\n"
        f"/dev/sda2 {host}/data xfs ro 0 0\n"
        "/dev/sda3 /other xfs rw 0 0\n",
    )
    config = MountCheckConfig(rootfs=str(host))

    outcome = collect(config, TablePaths.from_rootfs(str(host)))

    assert outcome.records == (
        StatusRecord(mount_point="/", mounted=True, write_mode="rw"),
        StatusRecord(mount_point="/data", mounted=True, write_mode="ro"),
    )


def test_collect_reads_tables_every_time(rootfs: Path) -> None:
    config = MountCheckConfig(mountpoints=("/var",))
    paths = TablePaths.from_rootfs(str(rootfs))

    first = collect(config, paths)
    _write_contents(paths.mounts, "/dev/root / ext4 rw 0 0\n")
    second = collect(config, paths)

    assert first.records[0].mounted
    assert not second.records[0].mounted


def test_failed_outcome_cannot_carry_records() -> None:
    with pytest.raises(ValueError):
        CollectionOutcome(
            records=(StatusRecord(mount_point="/", mounted=True),), succeeded=False
        )


def test_collect_non_utf8_live_table(rootfs: Path) -> None:
    (rootfs / "proc" / "mounts").write_bytes(
        b"/dev/sdb1 /mnt/caf\xe9 ext4 rw 0 0\n/dev/root / ext4 rw 0 0\n"
    )

    outcome = collect(
        MountCheckConfig(mountpoints=("/", "/mnt/caf\udce9")),
        TablePaths.from_rootfs(str(rootfs)),
    )

    assert outcome == CollectionOutcome(
        records=(
            StatusRecord(mount_point="/", mounted=True, write_mode="rw"),
            StatusRecord(mount_point="/mnt/caf\udce9", mounted=True, write_mode="rw"),
        ),
        succeeded=True,
    )


def test_collect_non_utf8_fstab(rootfs: Path) -> None:
    (rootfs / "etc" / "fstab").write_bytes(
        b"# caf\xe9\n/dev/root / ext4 defaults 0 1\n"
    )

    outcome = collect(MountCheckConfig(), TablePaths.from_rootfs(str(rootfs)))

    assert outcome == CollectionOutcome(
        records=(StatusRecord(mount_point="/", mounted=True, write_mode="rw"),),
        succeeded=True,
    )


class _FailingReads:
    def __enter__(self) -> "_FailingReads":
        return self

    def __exit__(self, *args: object) -> None:
        pass

    def readlines(self) -> List[str]:
        raise OSError(5, "Input/output error")


def test_collect_read_error_fails(
    rootfs: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(Path, "open", lambda self, *args, **kwargs: _FailingReads())

    outcome = collect(
        MountCheckConfig(mountpoints=("/",)), TablePaths.from_rootfs(str(rootfs))
    )

    assert not outcome.succeeded
    assert outcome.records == ()
    assert outcome.error is not None and "Input/output error" in outcome.error
