from __future__ import annotations

import dataclasses
import inspect
import logging
import sys
import types
from dataclasses import dataclass
from typing import Annotated, Any, ClassVar, Union, get_args, get_origin, get_type_hints

from ._errors import ResolutionError


logger = logging.getLogger(__name__)

# dataclasses.field(metadata=...) key and values, mirroring `inject:"required"` / `inject:"-"` tags
METADATA_KEY = "inject"
REQUIRED = "required"
OPTIONAL = "-"


class Inject:
    """Field marker requesting injection by the field's declared type.

    Use it inside ``typing.Annotated``::

        @dataclass
        class Handler:
            db: Annotated[Database, Inject()] = None
            cache: Annotated[Cache, Inject(optional=True)] = None

    The bare class (``Annotated[Database, Inject]``) is accepted as a required marker.
    An optional field is filled when its type resolves and left untouched otherwise.
    """

    __slots__ = ("optional",)

    def __init__(self, *, optional: bool = False) -> None:
        self.optional = optional

    def __repr__(self) -> str:
        return f"Inject(optional={self.optional!r})"


def inject_field(*, optional: bool = False, **kwargs: Any) -> Any:
    """``dataclasses.field`` carrying injection metadata.

    Defaults to ``None`` so the dataclass can be constructed before ``Injector.apply``.
    """
    metadata = dict(kwargs.pop("metadata", None) or {})
    metadata[METADATA_KEY] = OPTIONAL if optional else REQUIRED
    if "default" not in kwargs and "default_factory" not in kwargs:
        kwargs["default"] = None
    return dataclasses.field(metadata=metadata, **kwargs)


@dataclass(frozen=True)
class InjectionPoint:
    name: str
    type: Any
    optional: bool


def injection_points(obj: object) -> list[InjectionPoint]:
    """Collect the settable, marked fields of 'obj' in declaration order (base classes first)."""
    cls = type(obj)
    hints = _get_class_type_hints(cls)
    tagged = _dataclass_tags(cls)

    points = []
    for name, hint in hints.items():
        marker = _marker_of(hint)
        if marker is None and tagged.get(name) is not None:
            marker = Inject(optional=tagged[name] == OPTIONAL)
        if marker is None:
            continue

        if not _can_set(cls, name, hint):
            logger.debug("Skipping field '%s' of %s: not settable", name, cls.__qualname__)
            continue

        points.append(InjectionPoint(name=name, type=strip_annotated(hint), optional=marker.optional))

    return points


def is_struct(obj: object) -> bool:
    """True for instances of user-defined classes; classes, routines, modules and builtins are rejected."""
    if inspect.isclass(obj) or inspect.isroutine(obj) or inspect.ismodule(obj):
        return False
    return type(obj).__module__ != "builtins"


def strip_annotated(hint: Any) -> Any:
    while get_origin(hint) is Annotated:
        hint = get_args(hint)[0]
    return hint


def unwrap_optional(hint: Any) -> Any:
    """Return T for ``Optional[T]`` / ``T | None``, or None when 'hint' is not such a union."""
    if get_origin(hint) not in (Union, types.UnionType):
        return None
    args = [arg for arg in get_args(hint) if arg is not type(None)]
    if len(args) != 1 or len(args) == len(get_args(hint)):
        return None
    return args[0]


def _marker_of(hint: Any) -> Inject | None:
    if get_origin(hint) is not Annotated:
        return None
    for arg in hint.__metadata__:
        if arg is Inject:
            return Inject()
        if isinstance(arg, Inject):
            return arg
    return None


def _can_set(cls: type, name: str, hint: Any) -> bool:
    if name.startswith("_"):
        return False
    if get_origin(strip_annotated(hint)) is ClassVar:
        return False
    if dataclasses.is_dataclass(cls) and cls.__dataclass_params__.frozen:  # type: ignore[attr-defined]
        return False
    attr = inspect.getattr_static(cls, name, None)
    if isinstance(attr, property) and attr.fset is None:  # noqa: SIM103
        return False
    return True


def _dataclass_tags(cls: type) -> dict[str, Any]:
    if not dataclasses.is_dataclass(cls):
        return {}
    return {f.name: f.metadata.get(METADATA_KEY) for f in dataclasses.fields(cls)}


def _get_class_type_hints(cls: type) -> dict[str, Any]:
    try:
        return get_type_hints(cls, include_extras=True)
    except TypeError:
        return {}
    except NameError as exc:
        logger.warning("'%s' name error retrieving %s (%s) type hints", exc.name, cls.__name__, cls.__qualname__)

    return _get_field_type_hints(cls)


def _get_field_type_hints(cls: type) -> dict[str, Any]:
    """Evaluate annotations one field at a time.

    Unmarked fields that cannot be evaluated are dropped; a marked one raises ResolutionError,
    since its type can never be resolved.
    """
    tagged = _dataclass_tags(cls)
    hints: dict[str, Any] = {}

    for klass in reversed(cls.__mro__):
        module = sys.modules.get(klass.__module__)
        globalns = getattr(module, "__dict__", {})
        localns = dict(vars(klass))

        for name, ann in inspect.get_annotations(klass).items():
            if not isinstance(ann, str):
                hints[name] = ann
                continue
            try:
                hints[name] = eval(ann, globalns, localns)  # noqa: S307
            except NameError as exc:
                if "Inject" in ann or tagged.get(name) is not None:
                    msg = (
                        f"Cannot resolve type of field '{name}' of {cls.__qualname__}: "
                        f"name '{exc.name}' in {ann!r} is not defined at runtime"
                    )
                    raise ResolutionError(msg) from exc
                logger.debug("Dropping field '%s' of %s: %s", name, cls.__qualname__, exc)

    return hints
