# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import shutil
from pathlib import Path

import pytest

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def rootfs(tmp_path: Path) -> Path:
    """A root filesystem holding the sample etc/fstab and proc/mounts."""
    root = tmp_path / "rootfs"
    (root / "etc").mkdir(parents=True)
    (root / "proc").mkdir()
    shutil.copy(DATA_DIR / "sample-fstab.txt", root / "etc" / "fstab")
    shutil.copy(DATA_DIR / "sample-proc-mounts.txt", root / "proc" / "mounts")
    return root
