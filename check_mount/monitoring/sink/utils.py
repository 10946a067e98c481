# Copyright (c) Meta Platforms, Inc. and affiliates.
# All rights reserved.
"""Plugin discovery and registration for sinks."""

from __future__ import annotations

import importlib
import inspect
import logging
import pkgutil
import textwrap
from dataclasses import dataclass
from types import ModuleType
from typing import (
    Any,
    Callable,
    Dict,
    Mapping,
    MutableMapping,
    Optional,
    Protocol,
    Type,
    TypeVar,
)

from check_mount.monitoring.sink.protocol import SinkImpl

logger = logging.getLogger(__name__)


def discover(module: ModuleType) -> Dict[str, ModuleType]:
    """Import every module of a namespace package so that its plugins register
    themselves.
    """
    try:
        path = module.__path__
    except AttributeError as e:
        raise RuntimeError(f"{module.__name__} is not a package") from e

    modules = {}
    for _, name, _ in pkgutil.iter_modules(path, module.__name__ + "."):
        logger.debug(f"Discovered {name}")
        modules[name] = importlib.import_module(name)
    return modules


T = TypeVar("T")
Factory = Callable[..., T]
ClassDecorator = Callable[[Type[T]], Type[T]]
Register = Callable[[str], ClassDecorator[T]]

T_co = TypeVar("T_co", covariant=True)


def make_register(registry: MutableMapping[str, Factory[T_co]]) -> Register[T_co]:
    """Build a `register(name)` class decorator which stores the decorated class
    in `registry` under `name`.

    >>> registry: Dict[str, Factory[object]] = {}
    >>> register = make_register(registry)
    >>> @register("impl")
    ... class Impl:
    ...   ...
    ...
    >>> registry["impl"] is Impl
    True
    """

    def register(name: str) -> ClassDecorator[T_co]:
        def decorator(cls: Type[T_co]) -> Type[T_co]:
            if (factory := registry.get(name)) is not None:
                raise RuntimeError(f"'{name}' is already registered to {factory}")
            registry[name] = cls
            return cls

        return decorator

    return register


_TSink = TypeVar("_TSink", bound=SinkImpl, covariant=True)


class HasRegistry(Protocol[_TSink]):
    @property
    def registry(self) -> Mapping[str, Factory[_TSink]]: ...


@dataclass
class FactoryMetadata:
    module: str
    signature: inspect.Signature
    docstring: Optional[str] = None

    @classmethod
    def from_factory(cls, factory: Factory) -> "FactoryMetadata":
        if isinstance(factory, type) and "__init__" not in vars(factory):
            sig = inspect.Signature()
        else:
            sig = inspect.signature(factory)
        return cls(
            module=factory.__module__,
            signature=sig,
            docstring=getattr(factory, "__doc__", None),
        )


def format_registry_docs(
    registry: Mapping[str, Factory[Any]],
    *,
    default_docstring: str = "No documentation found.",
) -> str:
    """Describe each registered factory, sorted by name: its name, module,
    signature and docstring.
    """
    indent = " " * 2
    parts = []
    for name in sorted(registry):
        meta = FactoryMetadata.from_factory(registry[name])
        parts.append(f"{name} - (from module: '{meta.module}')")
        parts.append(f"{indent}Signature: {meta.signature}")
        parts.append(
            textwrap.indent(
                textwrap.dedent(meta.docstring or default_docstring).strip(),
                prefix=indent,
            )
        )
        parts.append("")
    return "\n".join(parts)


def describe_sink_init_error(
    exc: TypeError, sink_name: str, sink_factory: Factory
) -> Optional[str]:
    """Explain a `TypeError` raised while instantiating a sink, if it was caused
    by unknown or missing keyword options. Returns `None` otherwise.
    """
    str_exc = str(exc)
    if not any(
        marker in str_exc
        for marker in (
            "unexpected keyword argument",
            "required keyword-only argument",
            "takes no arguments",
        )
    ):
        return None
    params = FactoryMetadata.from_factory(sink_factory).signature.parameters
    accepted = sorted(
        name for name, p in params.items() if p.kind == p.KEYWORD_ONLY
    )
    return "\n".join(
        [
            f"Sink '{sink_name}' could not be created: {exc}",
            "Its signature accepts the following keyword-only parameters:",
            *(f"\t{name}" for name in accepted),
        ]
    )
