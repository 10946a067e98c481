# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""The check_mount entrypoint.

This file is intentionally lightweight and should not include any complex logic.
"""

import click

from check_mount._version import __version__
from check_mount.monitoring.cli import collect, serve
from check_mount.monitoring.click import DaemonGroup, detach_option, toml_config_option


@click.group(cls=DaemonGroup, epilog=f"check_mount Version: {__version__}")
@toml_config_option("check_mount")
@detach_option
@click.version_option(__version__)
def main(detach: bool) -> None:
    """Report whether the expected filesystems are mounted, and whether they are
    read-write or read-only.
    """


main.add_command(serve.main, name="serve")
main.add_command(collect.main, name="collect")

if __name__ == "__main__":
    main()
