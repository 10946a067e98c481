# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from __future__ import annotations

from dataclasses import dataclass
from enum import auto, Enum
from typing import Iterable, Optional, Protocol, runtime_checkable, TYPE_CHECKING

if TYPE_CHECKING:
    from _typeshed import DataclassInstance


class DataType(Enum):
    LOG = auto()
    METRIC = auto()


@dataclass
class Log:
    """A batch of records collected at unixtime `ts`."""

    ts: int
    message: Iterable[DataclassInstance]


@dataclass
class SinkAdditionalParams:
    """Sinks may use this information as needed, useful to send collection specific data."""

    data_type: Optional[DataType] = None


@runtime_checkable
class SinkImpl(Protocol):
    """A destination for data."""

    def write(
        self,
        data: Log,
        additional_params: SinkAdditionalParams,
    ) -> None:
        """Writes data to the specified sink, see available sinks in /exporters."""
