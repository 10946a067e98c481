# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Miscellaneous error-handling helpers."""

import logging
from functools import wraps
from typing import Callable, Optional, TypeVar

from typing_extensions import ParamSpec

_R = TypeVar("_R")
_P = ParamSpec("_P")


def log_error(
    logger_name: str,
) -> Callable[[Callable[_P, _R]], Callable[_P, Optional[_R]]]:
    """Decorator which writes any exception raised by the wrapped function to the
    given logger and returns `None` instead.
    """

    def decorator(f: Callable[_P, _R]) -> Callable[_P, Optional[_R]]:
        @wraps(f)
        def wrapper(*args: _P.args, **kwargs: _P.kwargs) -> Optional[_R]:
            try:
                return f(*args, **kwargs)
            except Exception:
                logging.getLogger(logger_name).exception("An exception occurred")
                return None

        return wrapper

    return decorator
