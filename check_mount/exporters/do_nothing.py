# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from check_mount.exporters import register
from check_mount.monitoring.sink.protocol import Log, SinkAdditionalParams


@register("do_nothing")
class DoNothing:
    """Discard everything. Useful for testing."""

    def write(
        self,
        data: Log,
        additional_params: SinkAdditionalParams,
    ) -> None:
        pass
