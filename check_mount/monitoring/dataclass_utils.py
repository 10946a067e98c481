# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
from typing import Iterable, Tuple


def remove_none_dict_factory(pairs: Iterable[Tuple[str, object]]) -> dict[str, object]:
    """`dict_factory` for `dataclasses.asdict` which drops fields set to `None`.

    >>> remove_none_dict_factory([("a", 1), ("b", None)])
    {'a': 1}
    """
    return {key: value for key, value in pairs if value is not None}
