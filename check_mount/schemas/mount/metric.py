# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass


@dataclass
class CheckMountStatus:
    """check_mount_status: 1=mounted 0=not mounted"""

    mountpoint: str
    rw: str
    status: int


@dataclass
class CheckMountSuccess:
    """check_mount_success: 1=successful 0=errors"""

    success: int
