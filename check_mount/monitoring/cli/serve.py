# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from dataclasses import dataclass
from typing import Literal, Optional, Pattern, Protocol, runtime_checkable, Tuple

import click
from check_mount.monitoring import exposition
from check_mount.monitoring.click import (
    exclude_fs_types_option,
    exclude_mountpoints_option,
    log_folder_option,
    log_level_option,
    mountpoints_option,
    rootfs_path_option,
    stdout_option,
)
from check_mount.monitoring.exposition import (
    build_registry,
    CheckMountCollector,
    DEFAULT_LISTEN_ADDRESS,
    make_app,
    parse_listen_address,
    WSGIApp,
)
from check_mount.monitoring.reconcile import MountCheckConfig, TablePaths
from check_mount.monitoring.utils.monitor import setup_logging
from typeguard import typechecked

LOGGER_NAME = "check_mount"


@runtime_checkable
class CliObject(Protocol):
    def serve(self, app: WSGIApp, host: str, port: int) -> None: ...


@dataclass
class CliObjectImpl:
    def serve(self, app: WSGIApp, host: str, port: int) -> None:
        exposition.serve(app, host, port)


@click.command(context_settings={"obj": CliObjectImpl()})
@mountpoints_option
@exclude_mountpoints_option
@exclude_fs_types_option
@rootfs_path_option
@click.option(
    "--web-listen-address",
    default=DEFAULT_LISTEN_ADDRESS,
    show_default=True,
    help="Address to listen on for web interface and telemetry.",
)
@click.option(
    "--web-disable-exporter-metrics",
    is_flag=True,
    default=False,
    help="Exclude metrics about the exporter itself (process_*, python_*).",
)
@log_level_option
@log_folder_option
@stdout_option
@click.pass_obj
@typechecked
def main(
    obj: CliObject,
    mountpoints: Optional[Tuple[str, ...]],
    exclude_mountpoints: Pattern[str],
    exclude_fs_types: Pattern[str],
    rootfs_path: str,
    web_listen_address: str,
    web_disable_exporter_metrics: bool,
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    log_folder: str,
    stdout: bool,
) -> None:
    """
    Serve mount point status as Prometheus metrics. Every scrape re-reads fstab
    (unless --mountpoints is given) and /proc/mounts.
    """
    logger = setup_logging(LOGGER_NAME, log_folder, stdout, log_level)
    try:
        host, port = parse_listen_address(web_listen_address)
    except ValueError as e:
        raise click.BadParameter(
            str(e), param_hint="'--web-listen-address'"
        ) from e

    config = MountCheckConfig(
        mountpoints=mountpoints,
        exclude_mountpoints=exclude_mountpoints,
        exclude_fs_types=exclude_fs_types,
        rootfs=rootfs_path,
    )
    registry = build_registry(
        CheckMountCollector(config, TablePaths.from_rootfs(rootfs_path)),
        disable_exporter_metrics=web_disable_exporter_metrics,
    )
    logger.info("Starting check_mount_exporter on %s", web_listen_address)
    obj.serve(make_app(registry), host, port)
