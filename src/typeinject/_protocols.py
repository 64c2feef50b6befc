from __future__ import annotations

from collections.abc import Callable
from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class TypeMapper(Protocol):
    def map(self, value: object) -> TypeMapper: ...
    def map_to(self, value: object, interface: Any) -> TypeMapper: ...
    def set(self, token: Any, value: object) -> TypeMapper: ...
    def get(self, token: Any) -> Any: ...


@runtime_checkable
class Applicator(Protocol):
    def apply(self, obj: object) -> None: ...


@runtime_checkable
class Invoker(Protocol):
    def invoke(self, func: Callable[..., Any]) -> list[Any]: ...


@runtime_checkable
class InjectorProtocol(Applicator, Invoker, TypeMapper, Protocol):
    """Everything an injector offers: mapping, lookup, field injection and invocation."""

    def set_parent(self, parent: InjectorProtocol | None) -> None: ...
