# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from __future__ import annotations

from dataclasses import dataclass, field
from typing import (
    Collection,
    List,
    Literal,
    Mapping,
    Optional,
    Pattern,
    Protocol,
    runtime_checkable,
    Tuple,
    TYPE_CHECKING,
)

import click
from check_mount.exporters import registry
from check_mount.monitoring.click import (
    dry_run_option,
    exclude_fs_types_option,
    exclude_mountpoints_option,
    get_docs_for_registry,
    interval_option,
    log_folder_option,
    log_level_option,
    mountpoints_option,
    once_option,
    rootfs_path_option,
    sink_option,
    sink_opts_option,
    stdout_option,
)
from check_mount.monitoring.clock import Clock, ClockImpl
from check_mount.monitoring.exposition import as_metric_messages
from check_mount.monitoring.reconcile import collect, MountCheckConfig, TablePaths
from check_mount.monitoring.sink.protocol import (
    DataType,
    SinkAdditionalParams,
    SinkImpl,
)
from check_mount.monitoring.sink.utils import Factory, HasRegistry
from check_mount.monitoring.utils.monitor import (
    make_sink,
    run_data_collection_loop,
    setup_logging,
)
from typeguard import typechecked

if TYPE_CHECKING:
    from _typeshed import DataclassInstance

LOGGER_NAME = "check_mount"


@runtime_checkable
class CliObject(HasRegistry[SinkImpl], Protocol):
    @property
    def clock(self) -> Clock: ...


@dataclass
class CliObjectImpl:
    clock: Clock = field(default_factory=ClockImpl)
    registry: Mapping[str, Factory[SinkImpl]] = field(default_factory=lambda: registry)


def get_mount_metrics(
    config: MountCheckConfig, paths: TablePaths
) -> List[DataclassInstance]:
    """One collection cycle as check_mount_success followed by one
    check_mount_status per watched mount point.
    """
    statuses, success = as_metric_messages(collect(config, paths))
    return [success, *statuses]


@click.command(
    context_settings={"obj": CliObjectImpl()},
    epilog=get_docs_for_registry(registry),
)
@mountpoints_option
@exclude_mountpoints_option
@exclude_fs_types_option
@rootfs_path_option
@sink_option
@sink_opts_option
@log_level_option
@log_folder_option
@stdout_option
@interval_option(default=60)
@once_option
@dry_run_option
@click.pass_obj
@typechecked
def main(
    obj: CliObject,
    mountpoints: Optional[Tuple[str, ...]],
    exclude_mountpoints: Pattern[str],
    exclude_fs_types: Pattern[str],
    rootfs_path: str,
    sink: str,
    sink_opts: Collection[str],
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
    log_folder: str,
    stdout: bool,
    interval: int,
    once: bool,
    dry_run: bool,
) -> None:
    """
    Collect mount point status and publish it to a sink.
    """
    logger = setup_logging(LOGGER_NAME, log_folder, stdout, log_level)
    if dry_run:
        logger.debug("this is a `--dry-run`, will print data to stdout")
        sink = "stdout"
    sink_impl = make_sink(sink, sink_opts, obj.registry)
    logger.debug("will write data to %s", sink)

    config = MountCheckConfig(
        mountpoints=mountpoints,
        exclude_mountpoints=exclude_mountpoints,
        exclude_fs_types=exclude_fs_types,
        rootfs=rootfs_path,
    )
    paths = TablePaths.from_rootfs(rootfs_path)

    run_data_collection_loop(
        logger=logger,
        clock=obj.clock,
        once=once,
        interval=interval,
        get_data=lambda: get_mount_metrics(config, paths),
        sink_impl=sink_impl,
        additional_params=SinkAdditionalParams(data_type=DataType.METRIC),
    )
