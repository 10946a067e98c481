# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import logging
import re
import textwrap
from pathlib import Path
from typing import Any, Callable, Mapping, Pattern, TypeVar, Union

import click

import daemon
import tomli
from check_mount.monitoring.mounts import (
    DEFAULT_EXCLUDE_FS_TYPES,
    DEFAULT_EXCLUDE_MOUNTPOINTS,
)
from check_mount.monitoring.reconcile import parse_mountpoints
from check_mount.monitoring.sink.utils import Factory, format_registry_docs
from typeguard import typechecked
from typing_extensions import ParamSpec

logger = logging.getLogger(__name__)

FC = TypeVar("FC", bound=Union[Callable[..., Any], click.Command])


class DaemonGroup(click.Group):
    def invoke(self, ctx: click.Context) -> Any:
        if ctx.params.get("detach", False):
            with daemon.DaemonContext():
                return super().invoke(ctx)
        return super().invoke(ctx)


detach_option = click.option(
    "--detach",
    "-d",
    is_flag=True,
    default=False,
    help="Run in the background as a daemon.",
)


def _compile_pattern(
    ctx: click.Context, param: click.Parameter, value: str
) -> Pattern[str]:
    try:
        return re.compile(value)
    except re.error as e:
        raise click.BadParameter(f"{value!r} is not a valid regex: {e}") from e


mountpoints_option = click.option(
    "--mountpoints",
    default="",
    callback=lambda ctx, param, value: parse_mountpoints(value),
    help="Comma separated list of mountpoints to check. If empty, they are read from fstab.",
)

exclude_mountpoints_option = click.option(
    "--exclude-mountpoints",
    default=DEFAULT_EXCLUDE_MOUNTPOINTS,
    show_default=True,
    callback=_compile_pattern,
    help="Regex of fstab mountpoints to exclude.",
)

exclude_fs_types_option = click.option(
    "--exclude-fs-types",
    default=DEFAULT_EXCLUDE_FS_TYPES,
    show_default=True,
    callback=_compile_pattern,
    help="Regex of fstab filesystem types to exclude.",
)

rootfs_path_option = click.option(
    "--rootfs-path",
    type=click.Path(file_okay=False),
    default="/",
    show_default=True,
    help="Path to root filesystem. fstab and /proc/mounts are read below it.",
)

log_level_option = click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]),
    default="INFO",
    show_default=True,
    help="Logging verbosity level.",
)

log_folder_option = click.option(
    "--log-folder",
    type=click.Path(file_okay=False),
    default="check_mount_logs",
    help="The directory where logs will be stored.",
)

stdout_option = click.option(
    "--stdout",
    is_flag=True,
    default=False,
    help="Whether to display logs to stdout.",
)

sink_option = click.option(
    "--sink",
    default="stdout",
    help="The sink where data should be published.",
)

sink_opts_option = click.option(
    "-o",
    "--sink-opt",
    "sink_opts",
    multiple=True,
    help="Sink instantiation customization using OmegaConf dot-list syntax. See [1]",
)

once_option = click.option(
    "--once",
    is_flag=True,
    default=False,
    help="Do only one round of data collection and publishing",
)

dry_run_option = click.option(
    "--dry-run",
    "-n",
    is_flag=True,
    help="Print data to STDOUT as JSON instead of writing to the sink.",
)


def interval_option(default: int) -> Callable[[FC], FC]:
    return click.option(
        "--interval",
        type=click.IntRange(min=0),
        default=default,
        show_default=True,
        help="The interval in seconds for collecting data.",
    )


def get_docs_for_registry(registry: Mapping[str, Factory]) -> str:
    """Get click-formatted documentation for a sink registry."""
    return (
        "\b\nSink documentation:\n\n\b\n"
        + textwrap.indent(
            format_registry_docs(registry), prefix=" " * 2, predicate=lambda _: True
        )
        + "\n\b\nReferences:\n"
        + "  [1]: https://omegaconf.readthedocs.io/en/2.3_branch/usage.html#from-a-dot-list"
    )


_P = ParamSpec("_P")
_R = TypeVar("_R")
_ClickCallback = Callable[[click.Context, click.Parameter, Path], None]


def _set_default_map(name: str) -> _ClickCallback:
    @typechecked
    def cb(ctx: click.Context, param: click.Parameter, path: Path) -> None:
        if not path.exists() or path == Path("/dev/null"):
            return

        logger.info(f"Reading config from {path}...")
        with path.open("rb") as f:
            try:
                conf = tomli.load(f)
            except tomli.TOMLDecodeError as e:
                raise click.BadParameter(
                    f"{path} does not contain valid TOML.",
                    ctx=ctx,
                    param=param,
                ) from e
        try:
            default_map = conf[name]
        except KeyError as e:
            raise click.BadParameter(
                f"'{name}' is not a top-level table name in {path}. Valid names: {list(conf.keys())}",
                ctx=ctx,
                param=param,
            ) from e
        if not isinstance(default_map, dict):
            raise click.BadParameter(
                f"'{name}' in {path} must be a table.", ctx=ctx, param=param
            )

        ctx.default_map = {**(ctx.default_map or {}), **default_map}

    return cb


def toml_config_option(
    name: str,
    *,
    default_config_path: Union[str, Path] = "/etc/check_mount/config.toml",
) -> Callable[[Callable[_P, _R]], Callable[_P, _R]]:
    """Adds a `--config` option which loads default option values from the table
    `name` of a TOML file. A non-existent path or `/dev/null` is treated as an
    empty table.

    Precedence (lowest to highest):
    * `default` argument to `click.option`
    * the value in the config file
    * value passed at the command line

    On a group, subtables configure the subcommands, e.g. `[check_mount.serve]`.
    """

    def decorator(f: Callable[_P, _R]) -> Callable[_P, _R]:
        return click.option(
            "--config",
            type=click.Path(dir_okay=False, path_type=Path),
            callback=_set_default_map(name),
            default=default_config_path,
            show_default=True,
            is_eager=True,
            expose_value=False,
            help=(
                f"Load option values from table '{name}' in the given TOML config file. "
                "A non-existent path or '/dev/null' are ignored and treated as empty tables."
            ),
        )(f)

    return decorator

