from __future__ import annotations

import abc
import dataclasses
import inspect
import types
import typing
from typing import Any, Protocol, Union, get_args, get_origin


_PROTOCOL_BASES = (object, Protocol, typing.Generic)

# stored values are only an extra source of attributes; None is a valid stored value
_NO_INSTANCE = object()


def is_interface(tp: object) -> bool:
    """Return True when 'tp' denotes a capability set rather than a single concrete type.

    Protocols, ``abc.ABC`` subclasses and the ``collections.abc`` / ``numbers`` ABCs
    all qualify: their metaclass is ``ABCMeta``.
    """
    return inspect.isclass(tp) and isinstance(tp, abc.ABCMeta)


if hasattr(typing, "is_protocol"):
    # https://docs.python.org/3/library/typing.html#typing.is_protocol
    def is_protocol(tp: object) -> bool:
        return inspect.isclass(tp) and typing.is_protocol(tp)

else:

    def is_protocol(tp: object) -> bool:
        """Detect whether 'tp' is a typing.Protocol class itself, not an implementation of one."""
        return inspect.isclass(tp) and bool(tp.__dict__.get("_is_protocol", False))


def implements(impl: object, iface: type, instance: object = _NO_INSTANCE) -> bool:
    """Check whether the stored key 'impl' (holding 'instance') satisfies the interface 'iface'.

    - For ABCs: ``issubclass`` (honours ``register()`` and ``__subclasshook__``).
    - For Protocols: nominal via MRO, otherwise best-effort structural conformance.
    """
    if not inspect.isclass(impl):
        return False

    if not is_protocol(iface):
        try:
            return issubclass(impl, iface)
        except TypeError:
            return False

    if iface in getattr(impl, "__mro__", ()):
        return True

    return not structural_mismatches(iface, impl, instance)


def structural_mismatches(proto_cls: type, impl: type, instance: object = _NO_INSTANCE) -> list[str]:  # noqa: C901
    """Best-effort structural conformance: presence + basic callable arity + return type checks.

    Data members count as present when declared on 'impl' (annotations, dataclass fields)
    or set on 'instance', so attributes assigned in __init__ are found.

    Returns a list of human readable problems, empty when 'impl' conforms.
    """
    missing: list[str] = []
    signature_mismatches: list[str] = []

    # Attributes required by annotations; names only, so unevaluable forward references still count
    proto_attributes = {
        name for klass in proto_cls.__mro__ if klass not in _PROTOCOL_BASES for name in inspect.get_annotations(klass)
    }
    declared = _declared_attributes(impl)
    for name in sorted(proto_attributes):
        if name.startswith("_"):
            continue
        if hasattr(impl, name) or name in declared:
            continue
        if instance is not _NO_INSTANCE and hasattr(instance, name):
            continue
        missing.append(name)

    for name, proto_attr in _protocol_members(proto_cls).items():
        if not hasattr(impl, name):
            missing.append(name)
            continue

        impl_attr = getattr(impl, name)
        if not callable(impl_attr):
            signature_mismatches.append(f"{name}: not Callable on {impl.__name__}")
            continue

        try:
            proto_sig = _signature(proto_attr)
            impl_sig = _signature(impl_attr)
        except (TypeError, ValueError) as e:
            signature_mismatches.append(f"{name}: unable to compare signatures ({e})")
            continue

        proto_params = [p for p in proto_sig.parameters.values() if p.name != "self"]
        impl_params = [p for p in impl_sig.parameters.values() if p.name != "self"]

        if _positional_arity(impl_params) < _positional_arity(proto_params):
            signature_mismatches.append(
                f"{name}: impl has fewer required positional params "
                f"({_positional_arity(impl_params)}) than protocol "
                f"({_positional_arity(proto_params)})"
            )

        proto_ret = proto_sig.return_annotation
        impl_ret = impl_sig.return_annotation

        if (
            proto_ret is not inspect.Signature.empty
            and impl_ret is not inspect.Signature.empty
            and proto_ret is not Any
            and impl_ret is not Any
        ):
            if not _is_return_type_compatible(impl_ret, proto_ret):
                signature_mismatches.append(
                    f"{name}: return type {impl_ret!r} is not compatible with protocol return type {proto_ret!r}"
                )

    return [
        *(f"missing member: {name}" for name in missing),
        *signature_mismatches,
    ]


def _protocol_members(proto_cls: type) -> dict[str, Any]:
    # Walk base protocols too, so composed protocols require the union of their methods.
    members: dict[str, Any] = {}
    for klass in reversed(proto_cls.__mro__):
        if klass in _PROTOCOL_BASES:
            continue
        for name, attr in klass.__dict__.items():
            if name.startswith("_") or not inspect.isfunction(attr):
                continue
            members[name] = attr
    return members


def _signature(obj: Any) -> inspect.Signature:
    try:
        return inspect.signature(obj, eval_str=True)
    except NameError:
        return inspect.signature(obj)


def _positional_arity(params: list[inspect.Parameter]) -> int:
    return sum(
        1
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_ONLY, inspect.Parameter.POSITIONAL_OR_KEYWORD)
        and p.default is inspect.Parameter.empty
    )


def _declared_attributes(impl: type) -> set[str]:
    names: set[str] = set()
    for klass in impl.__mro__:
        names.update(inspect.get_annotations(klass))
    if dataclasses.is_dataclass(impl):
        names.update(f.name for f in dataclasses.fields(impl))
    return names


def _is_return_type_compatible(impl_ret: object, proto_ret: object) -> bool:  # noqa: PLR0911
    impl_ret = type(None) if impl_ret is None else impl_ret
    proto_ret = type(None) if proto_ret is None else proto_ret

    # Exact match
    if impl_ret == proto_ret:
        return True

    # Unevaluated forward reference on either side: nothing to compare against
    if isinstance(impl_ret, str) or isinstance(proto_ret, str):
        return True

    # Narrowing a union is fine: `str` satisfies `str | None`
    if get_origin(proto_ret) in (Union, types.UnionType):
        return any(_is_return_type_compatible(impl_ret, arg) for arg in get_args(proto_ret))
    if get_origin(impl_ret) in (Union, types.UnionType):
        return all(_is_return_type_compatible(arg, proto_ret) for arg in get_args(impl_ret))

    # Handle class-based covariance, comparing generic aliases by origin (list[str] -> Iterable[str])
    impl_cls = get_origin(impl_ret) or impl_ret
    proto_cls = get_origin(proto_ret) or proto_ret
    if isinstance(impl_cls, type) and isinstance(proto_cls, type):
        try:
            return issubclass(impl_cls, proto_cls)
        except TypeError:
            # non runtime-checkable protocol return type
            return is_protocol(proto_cls)

    # Everything else (TypeVar, Literal, Callable, etc.) cannot be compared here
    return True
