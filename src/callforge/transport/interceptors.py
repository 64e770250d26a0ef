"""Request interceptors.

Interceptors run in registration order on every attempt, after the
template is built from the arguments and before the target turns it into
a Request. They may add or replace headers, queries or the body.
"""

from __future__ import annotations

import base64
from typing import Protocol, runtime_checkable

from callforge.models.constants import DEFAULT_CHARSET
from callforge.template import RequestTemplate


@runtime_checkable
class RequestInterceptor(Protocol):
    def apply(self, template: RequestTemplate) -> None: ...


class HeaderInterceptor:
    """Sets a fixed header on every request.

    Example:
        >>> template = RequestTemplate()
        >>> HeaderInterceptor("User-Agent", "callforge").apply(template)
        >>> template.headers
        {'User-Agent': ('callforge',)}
    """

    def __init__(self, name: str, *values: str) -> None:
        if not values:
            raise ValueError(f"HeaderInterceptor for {name!r} needs at least one value")
        self.name = name
        self.values = values

    def apply(self, template: RequestTemplate) -> None:
        template.header(self.name, *self.values)


class BasicAuthInterceptor:
    """Adds an ``Authorization: Basic ...`` header."""

    def __init__(self, username: str, password: str, charset: str = DEFAULT_CHARSET) -> None:
        token = base64.b64encode(f"{username}:{password}".encode(charset)).decode("ascii")
        self._header = f"Basic {token}"

    def apply(self, template: RequestTemplate) -> None:
        template.header("Authorization", self._header)


__all__ = ["BasicAuthInterceptor", "HeaderInterceptor", "RequestInterceptor"]
