"""Type helpers for contract parsing.

Resolves TypeVars against a contract's generic bindings and answers the
questions the parser asks about parameter types (is it void, a mapping,
a URL, per-call Options).
"""

from __future__ import annotations

import types
from collections.abc import Mapping
from typing import Annotated, Any, Generic, Protocol, TypeVar, Union, get_args, get_origin

import httpx

from callforge.models.http import Options


def strip_annotated(hint: Any) -> tuple[Any, tuple[Any, ...]]:
    """Split ``Annotated[T, *meta]`` into ``(T, meta)``."""
    if get_origin(hint) is Annotated:
        base, *metadata = get_args(hint)
        return base, tuple(metadata)
    return hint, ()


def type_name(tp: Any) -> str:
    """Short, stable name of a type used in config keys.

    Example:
        >>> type_name(dict[str, list[int]])
        'dict[str,list[int]]'
        >>> type_name(type(None))
        'None'
    """
    if tp is None or tp is type(None):
        return "None"
    if tp is Any:
        return "Any"
    if isinstance(tp, TypeVar):
        return tp.__name__
    origin = get_origin(tp)
    if origin is not None:
        args = get_args(tp)
        if origin is Union or origin is types.UnionType:
            return "|".join(type_name(a) for a in args)
        name = getattr(origin, "__name__", repr(origin))
        return f"{name}[{','.join(type_name(a) for a in args)}]"
    return getattr(tp, "__name__", repr(tp))


def generic_bindings(cls: type) -> dict[Any, Any]:
    """Map each TypeVar of ``cls``'s generic parents to its bound argument.

    Example:
        >>> T = TypeVar("T")
        >>> class Base(Generic[T]): ...
        >>> class Users(Base[int]): ...
        >>> generic_bindings(Users) == {T: int}
        True
    """
    bindings: dict[Any, Any] = {}
    for base in getattr(cls, "__orig_bases__", ()):
        origin = get_origin(base)
        if origin is None or origin is Generic or origin is Protocol:
            continue
        parameters = getattr(origin, "__parameters__", ())
        bindings.update(zip(parameters, get_args(base)))
    return bindings


def resolve_type(tp: Any, bindings: Mapping[Any, Any]) -> Any:
    """Substitute TypeVars in ``tp`` using ``bindings``."""
    if not bindings:
        return tp
    if isinstance(tp, TypeVar):
        return bindings.get(tp, tp)
    origin = get_origin(tp)
    if origin is None:
        return tp
    args = get_args(tp)
    resolved = tuple(resolve_type(a, bindings) for a in args)
    if resolved == args:
        return tp
    if origin is Union or origin is types.UnionType:
        return Union[resolved]
    if origin is Annotated:
        return Annotated[(resolved[0], *tp.__metadata__)]
    if hasattr(tp, "copy_with"):
        return tp.copy_with(resolved)
    return types.GenericAlias(origin, resolved)


def is_void(tp: Any) -> bool:
    return tp is None or tp is type(None)


def is_mapping_type(tp: Any) -> bool:
    origin = get_origin(tp) or tp
    return isinstance(origin, type) and issubclass(origin, Mapping)


def mapping_key_type(tp: Any) -> Any:
    """Return the declared key type of a mapping annotation (None if unparameterized)."""
    args = get_args(tp)
    return args[0] if args else None


def is_url_type(tp: Any) -> bool:
    return tp is httpx.URL


def is_options_type(tp: Any) -> bool:
    return isinstance(tp, type) and issubclass(tp, Options)


def is_known(tp: Any) -> bool:
    """False for annotations that carry no type information."""
    return tp is not Any and tp is not None
