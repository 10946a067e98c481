# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
import sys
from types import ModuleType
from typing import Dict

from check_mount.monitoring.sink.protocol import SinkImpl
from check_mount.monitoring.sink.utils import discover, Factory, make_register, Register

registry: Dict[str, Factory[SinkImpl]] = {}
register: Register[SinkImpl] = make_register(registry)

# sink modules register themselves on import
discovered_plugins: Dict[str, ModuleType] = discover(sys.modules[__name__])
