from __future__ import annotations

import functools
import inspect
import logging
from enum import Enum
from typing import TYPE_CHECKING, Annotated, Any, Final, get_args, get_origin, get_type_hints

from ._conformance import implements, is_interface
from ._errors import AmbiguousResolutionError, ResolutionError
from ._markers import injection_points, is_struct, unwrap_optional


logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable


class _Missing:
    """Sentinel returned by ``Injector.get`` when no value matches. Falsy, distinct from None."""

    _instance: _Missing | None = None

    def __new__(cls) -> _Missing:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "MISSING"


MISSING: Final = _Missing()


class Ambiguity(Enum):
    """What to do when several registered types satisfy a requested interface."""

    FIRST_REGISTERED = "first_registered"
    ERROR = "error"


def interface_of(hint: Any) -> type:
    """Return the interface type denoted by 'hint'.

    ``Annotated[...]`` and ``type[...]`` layers are unwrapped, so ``type[Greeter]``
    and ``Annotated[Greeter, ...]`` both give ``Greeter``.
    Raise TypeError when the result is not a Protocol or ABC.
    """
    tp = hint
    while get_origin(tp) in (Annotated, type):
        tp = get_args(tp)[0]

    if not is_interface(tp):
        msg = f"Called interface_of with {hint!r}, which is not an interface (a Protocol or ABC class)"
        raise TypeError(msg)
    return tp


def is_function(obj: object) -> bool:
    return callable(obj)


def check_error(results: Iterable[Any]) -> BaseException | None:
    """Return the first exception found in an ``Injector.invoke`` result list, or None."""
    for value in results:
        if isinstance(value, BaseException):
            return value
    return None


def type_name(tp: Any) -> str:
    if inspect.isclass(tp):
        return tp.__qualname__
    return repr(tp)


class Injector:
    """Type-keyed value registry.

    - ``set`` / ``map`` / ``map_to`` register values by type
    - ``get`` looks up: exact type, then interface satisfaction, then the parent injector
    - ``apply`` fills marked fields of an object
    - ``invoke`` calls a function with its parameters resolved by type

    Not thread-safe: finish registering before sharing an injector between threads.
    """

    def __init__(
        self,
        parent: Injector | None = None,
        *,
        ambiguity: Ambiguity = Ambiguity.FIRST_REGISTERED,
    ) -> None:
        self._values: dict[Any, object] = {}
        self._parent = parent
        self._ambiguity = ambiguity

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self._values)} values, ambiguity={self._ambiguity.name})"

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, token: object) -> bool:
        """True when ``get`` would find a value.

        Several implementers of an interface under ``Ambiguity.ERROR`` still count as present.
        """
        try:
            return self.get(token) is not MISSING
        except AmbiguousResolutionError:
            return True

    @property
    def parent(self) -> Injector | None:
        return self._parent

    @property
    def ambiguity(self) -> Ambiguity:
        return self._ambiguity

    def set_parent(self, parent: Injector | None) -> None:
        """Look up in 'parent' whenever this injector has no match of its own."""
        self._parent = parent

    def create_child(self, *, ambiguity: Ambiguity | None = None) -> Injector:
        """Create an empty injector that prefers its own values and falls back to this one."""
        return type(self)(self, ambiguity=self._ambiguity if ambiguity is None else ambiguity)

    def set(self, token: Any, value: object) -> Injector:
        """Store 'value' under 'token' verbatim, replacing any previous value."""
        self._values[token] = value
        return self

    def map(self, value: object) -> Injector:
        """Register 'value' under its own runtime type."""
        return self.set(type(value), value)

    def map_to(self, value: object, interface: Any) -> Injector:
        """Register 'value' under an interface type.

        Example:
          injector.map_to(response, ResponseWriter)

        """
        return self.set(interface_of(interface), value)

    def get(self, token: Any) -> Any:
        """Return the value for 'token', or ``MISSING``.

        Resolution order:
        1. exact registration
        2. for interfaces: a registered type implementing it (see ``Ambiguity``)
        3. the parent injector, recursively.
        """
        if token in self._values:
            return self._values[token]

        if is_interface(token):
            value = self._match_interface(token)
            if value is not MISSING:
                return value

        if self._parent is not None:
            logger.debug("No value for %s, delegating to parent injector", type_name(token))
            return self._parent.get(token)

        return MISSING

    def resolve(self, token: Any) -> Any:
        """Like ``get``, but raise ResolutionError instead of returning ``MISSING``."""
        value = self.get(token)
        if value is MISSING:
            msg = f"Value not found for type {type_name(token)}"
            raise ResolutionError(msg)
        return value

    def _match_interface(self, iface: type) -> Any:
        candidates = (key for key, value in self._values.items() if implements(key, iface, value))

        if self._ambiguity is Ambiguity.ERROR:
            found = list(candidates)
            if len(found) > 1:
                msg = (
                    f"Ambiguous value for interface {type_name(iface)}: "
                    f"{', '.join(type_name(key) for key in found)} all implement it"
                )
                raise AmbiguousResolutionError(msg)
            key = found[0] if found else MISSING
        else:
            key = next(candidates, MISSING)

        if key is MISSING:
            return MISSING

        logger.debug("Resolved interface %s with registered %s", type_name(iface), type_name(key))
        return self._values[key]

    def _lookup_hint(self, hint: Any) -> Any:
        value = self.get(hint)
        if value is MISSING:
            inner = unwrap_optional(hint)
            if inner is not None:
                value = self.get(inner)
        return value

    def apply(self, obj: object) -> None:
        """Assign resolved values to every marked, settable field of 'obj'.

        Raise TypeError if 'obj' is not an instance of a user-defined class, and
        ResolutionError on the first required field whose type cannot be resolved.
        Fields assigned before the failure keep their new values.
        """
        if not is_struct(obj):
            msg = f"apply() expects an instance of a user-defined class, got {obj!r}"
            raise TypeError(msg)

        for point in injection_points(obj):
            value = self._lookup_hint(point.type)

            if value is MISSING:
                if point.optional:
                    logger.debug("Leaving optional field '%s' unset: no value for %s", point.name, type_name(point.type))
                    continue
                msg = (
                    f"Value not found for type {type_name(point.type)} "
                    f"(field '{point.name}' of {type(obj).__qualname__})"
                )
                raise ResolutionError(msg)

            setattr(obj, point.name, value)

    def invoke(self, func: Callable[..., Any]) -> list[Any]:
        """Call 'func' with every parameter resolved by its annotated type.

        Nothing is called unless all parameters resolve. Returns the results as a list:
        the items of a returned tuple, otherwise a single-item list.
        """
        if not is_function(func):
            msg = f"invoke() expects a callable, got {func!r}"
            raise TypeError(msg)

        args, kwargs = Invocation(self).arguments(func)
        result = func(*args, **kwargs)

        if isinstance(result, tuple):
            return list(result)
        return [result]


class Invocation:
    def __init__(self, injector: Injector) -> None:
        self._injector = injector

    def arguments(self, func: Callable[..., Any]) -> tuple[list[Any], dict[str, Any]]:
        try:
            sig = inspect.signature(func)
        except ValueError as e:
            msg = f"Cannot inspect parameters of {func!r}: {e}"
            raise TypeError(msg) from e

        hints = _get_callable_type_hints(func)
        args, kwargs = [], {}

        for name, p in sig.parameters.items():
            # never filled: there is no type to resolve a variable number of values from
            if p.kind in (p.VAR_POSITIONAL, p.VAR_KEYWORD):
                continue

            value = self._resolve_param(func, name, p, hints)

            if p.kind is p.KEYWORD_ONLY:
                kwargs[name] = value
            else:
                args.append(value)

        return args, kwargs

    def _resolve_param(
        self,
        func: Callable[..., Any],
        name: str,
        p: inspect.Parameter,
        hints: dict[str, Any],
    ) -> Any:
        """Resolving param.

        Resolution precedence:
        1. type-based lookup of the annotation
        2. default
        3. error.
        """
        ann = hints.get(name, inspect.Parameter.empty)

        if ann is not inspect.Parameter.empty:
            value = self._injector._lookup_hint(ann)  # noqa: SLF001
            if value is not MISSING:
                return value

        if p.default is not inspect.Parameter.empty:
            return p.default

        func_name = getattr(func, "__qualname__", repr(func))
        if ann is inspect.Parameter.empty:
            msg = f"Cannot satisfy parameter '{name}' of {func_name}: no type annotation and no default"
        else:
            msg = f"Value not found for type {type_name(ann)} (parameter '{name}' of {func_name})"
        raise ResolutionError(msg)


def _get_callable_type_hints(func: Callable[..., Any]) -> dict[str, Any]:
    target: Any = func
    if isinstance(func, functools.partial):
        target = func.func
    elif inspect.isclass(func):
        target = inspect.getattr_static(func, "__init__")
    elif not inspect.isroutine(func):
        target = type(func).__call__

    try:
        hints = get_type_hints(target)
    except TypeError:
        hints = {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %r type hints", exc.name, func)
        hints = {}

    return hints
