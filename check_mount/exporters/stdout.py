# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import json
import logging
from dataclasses import asdict

from check_mount.exporters import register
from check_mount.monitoring.dataclass_utils import remove_none_dict_factory
from check_mount.monitoring.sink.protocol import DataType, Log, SinkAdditionalParams

logger = logging.getLogger(__name__)


@register("stdout")
class Stdout:
    """Print each batch of records to stdout as a JSON list."""

    def write(
        self,
        data: Log,
        additional_params: SinkAdditionalParams,
    ) -> None:
        if additional_params.data_type is None:
            logger.error(
                f"Stdout writes requires data_type to be specified: {additional_params}"
            )
            return
        messages = [
            asdict(message, dict_factory=remove_none_dict_factory)
            for message in data.message
        ]
        if additional_params.data_type is DataType.LOG:
            for message in messages:
                message["time"] = data.ts
        print(json.dumps(messages))
