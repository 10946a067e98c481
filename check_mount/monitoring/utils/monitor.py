#!/usr/bin/env python3
# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Logging, sink and loop helpers shared by the check_mount commands."""
from __future__ import annotations

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import (
    Callable,
    Collection,
    Iterable,
    Literal,
    Mapping,
    Optional,
    Tuple,
    TYPE_CHECKING,
)

import click
from check_mount.monitoring.clock import Clock
from check_mount.monitoring.sink.protocol import Log, SinkAdditionalParams, SinkImpl
from check_mount.monitoring.sink.utils import describe_sink_init_error, Factory
from check_mount.monitoring.utils.error import log_error
from omegaconf import OmegaConf as oc

if TYPE_CHECKING:
    from _typeshed import DataclassInstance

LogLevel = Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def init_logger(
    logger_name: str,
    log_dir: str,
    log_name: str,
    log_formatter: Optional[logging.Formatter] = logging.Formatter(
        "[%(asctime)s] - [%(levelname)s] - [%(name)s] - %(message)s"
    ),
    log_level: int = logging.INFO,
    max_bytes: int = 1024 * 1024,
    backup_count: int = 2,
    log_stdout: bool = False,
) -> Tuple[logging.Logger, logging.Handler]:
    """Set up logging for a collector.

    Logs are stored at: {log_dir}/{log_name}
    """
    logger = logging.getLogger(logger_name)
    logger.setLevel(log_level)

    handler: logging.Handler
    if log_stdout:
        handler = logging.StreamHandler(sys.stdout)
    else:
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        handler = RotatingFileHandler(
            os.path.join(log_dir, log_name),
            mode="a",
            maxBytes=max_bytes,
            backupCount=backup_count,
        )

    if log_formatter:
        handler.setFormatter(log_formatter)
    logger.addHandler(handler)

    return logger, handler


def setup_logging(
    logger_name: str, log_folder: str, stdout: bool, log_level: LogLevel
) -> logging.Logger:
    logger, _ = init_logger(
        logger_name=logger_name,
        log_dir=os.path.join(log_folder, logger_name + "_logs"),
        log_name=logger_name + ".log",
        log_stdout=stdout,
        log_level=getattr(logging, log_level),
    )
    return logger


def make_sink(
    sink: str, sink_opts: Collection[str], registry: Mapping[str, Factory[SinkImpl]]
) -> SinkImpl:
    """Instantiate the sink registered under `sink`, passing `sink_opts` (OmegaConf
    dot-list syntax) as keyword arguments.
    """
    try:
        sink_factory = registry[sink]
    except KeyError:
        raise click.UsageError(
            f"Sink '{sink}' could not be found. Here are the sinks that are registered:\n\t{list(registry.keys())}"
        )
    sink_kwargs = oc.to_container(oc.from_dotlist(list(sink_opts)))
    assert isinstance(sink_kwargs, dict)
    try:
        sink_impl = sink_factory(**sink_kwargs)
    except TypeError as e:
        msg = describe_sink_init_error(e, sink, sink_factory)
        if msg is None:
            raise
        raise click.UsageError(msg) from e

    if not isinstance(sink_impl, expected_proto := SinkImpl):
        raise click.ClickException(
            f"Sink '{sink}' defined in\n"
            f"\t{type(sink_impl).__module__}\n"
            f"does not appear to implement {expected_proto.__name__}"
        )
    return sink_impl


def run_data_collection_loop(
    logger: logging.Logger,
    clock: Clock,
    once: bool,
    interval: int,
    get_data: Callable[[], Iterable[DataclassInstance]],
    sink_impl: SinkImpl,
    additional_params: SinkAdditionalParams,
) -> None:
    """Collect and write to the sink every `interval` seconds, or once if `once`.

    Errors writing to the sink are logged and do not stop the loop.
    """
    _write = log_error(logger.name)(sink_impl.write)

    while True:
        logger.debug("starting new data collection")
        run_st_time = clock.monotonic()
        log_time = clock.unixtime()

        data = list(get_data())
        logger.debug("will write %d records to sink", len(data))
        _write(Log(ts=log_time, message=data), additional_params)

        if once:
            logger.debug("stopping data collection due to `--once`")
            break

        time_running_last_collection = clock.monotonic() - run_st_time
        sleep_time = max(0, interval - time_running_last_collection)
        logger.debug(
            "will sleep %d seconds before starting next collection", sleep_time
        )
        clock.sleep(sleep_time)
