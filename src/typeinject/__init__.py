"""Type-keyed dependency injection.

This package provides a small runtime registry that resolves dependencies by
their declared type rather than by name. Values are registered under their own
type or under an interface (a Protocol or ABC); consumers are object fields
marked for injection and the parameters of arbitrary callables.

Exports:
- `Injector`: the registry. Lookup goes exact type, then interface
  satisfaction, then the parent injector.
- `Ambiguity`: policy for interfaces implemented by several registered types.
- `Inject` / `inject_field`: markers for fields filled by `Injector.apply`.
- `MISSING`: sentinel returned by `Injector.get` when nothing matches.
- `interface_of`, `is_function`, `check_error`: helpers.
- `TypeMapper`, `Applicator`, `Invoker`, `InjectorProtocol`: the injector's roles as protocols.
"""

from ._injector import (
    MISSING,
    Ambiguity,
    AmbiguousResolutionError,
    Injector,
    ResolutionError,
    check_error,
    interface_of,
    is_function,
)
from ._markers import Inject, inject_field
from ._protocols import Applicator, InjectorProtocol, Invoker, TypeMapper


__all__ = [
    "MISSING",
    "Ambiguity",
    "AmbiguousResolutionError",
    "Applicator",
    "Inject",
    "Injector",
    "InjectorProtocol",
    "Invoker",
    "ResolutionError",
    "TypeMapper",
    "check_error",
    "inject_field",
    "interface_of",
    "is_function",
]
