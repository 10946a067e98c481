# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import os
from importlib import metadata

logger = logging.getLogger(__name__)


def get_version() -> str:
    env_version = os.environ.get("CHECK_MOUNT_VERSION")
    if env_version is not None:
        return env_version

    try:
        return metadata.version("check_mount")
    except metadata.PackageNotFoundError:
        logger.info("check_mount is not installed", exc_info=True)

    # do not fail due to not able to find version
    return "unknown"


__version__ = get_version()
