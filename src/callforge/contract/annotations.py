"""Declarative markers for contract classes.

Method and class decorators record binding markers on the decorated
object; parameter markers are placed inside ``typing.Annotated``.

Example:
    >>> from typing import Annotated
    >>> @headers("Accept: application/json")
    ... class GitHub:
    ...     @request_line("GET /repos/{owner}/{repo}/contributors")
    ...     def contributors(
    ...         self,
    ...         owner: Annotated[str, Param("owner")],
    ...         repo: Annotated[str, Param("repo")],
    ...     ) -> list[dict]: ...
    >>> [type(a).__name__ for a in declared_annotations(GitHub.contributors)]
    ['RequestLine']
"""

from __future__ import annotations

from typing import Any, Callable, TypeVar

from callforge.models.base import CallforgeBaseModel
from callforge.models.enums import CollectionFormat

ANNOTATIONS_ATTR = "__callforge_annotations__"

T = TypeVar("T")


class RequestLine(CallforgeBaseModel):
    """HTTP verb and URI template, e.g. ``"GET /users/{id}?fields={fields}"``."""

    value: str
    decode_slash: bool = True
    collection_format: CollectionFormat = CollectionFormat.MULTI


class Headers(CallforgeBaseModel):
    """Header templates of the form ``"Name: value"``."""

    values: tuple[str, ...]


class Body(CallforgeBaseModel):
    """Literal body, or a body template when it contains ``{``."""

    value: str


class Param(CallforgeBaseModel):
    """Binds a parameter to a template variable.

    Attributes:
        name: Variable name (defaults to the Python parameter name)
        expander: Expander instance or class formatting the value
        encoded: The argument is already percent-encoded
    """

    name: str = ""
    expander: Any = None
    encoded: bool = False

    def __init__(self, name: str = "", **data: Any) -> None:
        super().__init__(name=name, **data)


class QueryMap(CallforgeBaseModel):
    """The parameter's entries become query parameters."""

    encoded: bool = False


class HeaderMap(CallforgeBaseModel):
    """The parameter's entries become headers."""


PARAMETER_MARKERS = (Param, QueryMap, HeaderMap)


def _record(target: Any, annotation: CallforgeBaseModel) -> None:
    # vars() so a subclass never appends to its parent's list
    existing = list(vars(target).get(ANNOTATIONS_ATTR, ()))
    # decorators run bottom-up; keep declaration order
    existing.insert(0, annotation)
    setattr(target, ANNOTATIONS_ATTR, tuple(existing))


def declared_annotations(target: Any) -> tuple[Any, ...]:
    """Return the markers recorded directly on ``target``."""
    if isinstance(target, (staticmethod, classmethod)):
        target = target.__func__
    try:
        return tuple(vars(target).get(ANNOTATIONS_ATTR, ()))
    except TypeError:
        return ()


def request_line(
    value: str,
    decode_slash: bool = True,
    collection_format: CollectionFormat = CollectionFormat.MULTI,
) -> Callable[[T], T]:
    """Declare the HTTP verb and URI template of an operation."""

    def decorator(func: T) -> T:
        _record(
            func,
            RequestLine(
                value=value, decode_slash=decode_slash, collection_format=collection_format
            ),
        )
        return func

    return decorator


def headers(*values: str) -> Callable[[T], T]:
    """Declare header templates on a contract class or an operation."""

    def decorator(target: T) -> T:
        _record(target, Headers(values=values))
        return target

    return decorator


def body(value: str) -> Callable[[T], T]:
    """Declare a literal body or body template on an operation."""

    def decorator(func: T) -> T:
        _record(func, Body(value=value))
        return func

    return decorator
