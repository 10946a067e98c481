# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import json
import os
from dataclasses import asdict

from check_mount.exporters import register
from check_mount.monitoring.dataclass_utils import remove_none_dict_factory
from check_mount.monitoring.sink.protocol import Log, SinkAdditionalParams
from check_mount.monitoring.utils.monitor import init_logger


@register("file")
class File:
    """Append each record as a line of JSON to `file_path`.

    The file is rotated the same way as the collector's own logs.
    """

    def __init__(self, *, file_path: str):
        self.logger, _ = init_logger(
            logger_name=__name__ + file_path,
            log_dir=os.path.dirname(file_path),
            log_name=os.path.basename(file_path),
            log_formatter=None,
        )
        # keep records out of the root logger's handlers
        self.logger.propagate = False

    def write(
        self,
        data: Log,
        additional_params: SinkAdditionalParams,
    ) -> None:
        for message in data.message:
            record = asdict(message, dict_factory=remove_none_dict_factory)
            record["time"] = data.ts
            self.logger.info(json.dumps(record))
