"""Encoders, decoders and error decoders.

The engine core has no opinion on serialization: it hands the body
argument to an Encoder and the response to a Decoder. This module ships
the defaults plus pydantic-backed JSON codecs.

Example:
    >>> from callforge.codec import JsonDecoder
    >>> from callforge.models.http import BytesBody, Response
    >>> JsonDecoder().decode(Response(200, body=BytesBody(b'[1, 2]')), list[int])
    [1, 2]
"""

from __future__ import annotations

import dataclasses
import time
from collections.abc import Mapping
from email.utils import parsedate_to_datetime
from functools import lru_cache
from typing import Any, Protocol, runtime_checkable
from urllib.parse import urlencode

from pydantic import BaseModel, TypeAdapter

from callforge.errors import (
    MAX_BODY_PREVIEW_CHARS,
    DecodeError,
    EncodeError,
    HttpError,
    RetryableError,
)
from callforge.models.constants import DEFAULT_CHARSET, FORM_CONTENT_TYPE
from callforge.models.http import Response
from callforge.template import RequestTemplate, to_string

# body_type handed to an Encoder for form parameters
FORM_TYPE = Mapping[str, Any]

JSON_CONTENT_TYPE = "application/json"


@runtime_checkable
class Encoder(Protocol):
    """Writes a body argument into a template."""

    def encode(self, obj: Any, body_type: Any, template: RequestTemplate) -> None: ...


@runtime_checkable
class Decoder(Protocol):
    """Converts a response into the operation's return type."""

    def decode(self, response: Response, return_type: Any) -> Any: ...


@runtime_checkable
class ErrorDecoder(Protocol):
    """Maps a non-success response to the exception the call raises."""

    def decode(self, config_key: str, response: Response) -> Exception: ...


@runtime_checkable
class QueryMapEncoder(Protocol):
    """Turns a query-map argument into name/value pairs."""

    def encode(self, obj: Any) -> Mapping[str, Any]: ...


@lru_cache(maxsize=256)
def _adapter(tp: Any) -> TypeAdapter[Any]:
    return TypeAdapter(tp)


def _is_form(body_type: Any) -> bool:
    return body_type is FORM_TYPE


def _encode_form(obj: Mapping[str, Any], template: RequestTemplate) -> None:
    pairs: list[tuple[str, str]] = []
    for name, value in obj.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple, set, frozenset)):
            pairs.extend((name, to_string(v)) for v in value if v is not None)
        else:
            pairs.append((name, to_string(value)))
    template.body = urlencode(pairs, encoding=template.charset)
    if not _has_header(template, "Content-Type"):
        template.header("Content-Type", f"{FORM_CONTENT_TYPE}; charset={template.charset}")


def _has_header(template: RequestTemplate, name: str) -> bool:
    lower = name.lower()
    return any(key.lower() == lower for key in template.headers)


def _read(response: Response) -> bytes | None:
    if response.body is None:
        return None
    return response.body.read()


class DefaultEncoder:
    """Encodes ``str`` and ``bytes`` bodies and form mappings.

    Raises:
        EncodeError: For any other body type
    """

    def encode(self, obj: Any, body_type: Any, template: RequestTemplate) -> None:
        if _is_form(body_type):
            _encode_form(obj, template)
        elif isinstance(obj, str):
            template.body = obj
        elif isinstance(obj, (bytes, bytearray)):
            template.body = bytes(obj)
        elif obj is not None:
            raise EncodeError(
                f"{type(obj).__name__} is not a type supported by this encoder.",
                details={"body_type": repr(body_type)},
            )


class JsonEncoder:
    """Serializes bodies to JSON with pydantic; forms are URL-encoded."""

    def encode(self, obj: Any, body_type: Any, template: RequestTemplate) -> None:
        if _is_form(body_type):
            _encode_form(obj, template)
            return
        if body_type is None or body_type is Any:
            body_type = type(obj)
        template.body = _adapter(body_type).dump_json(obj)
        if not _has_header(template, "Content-Type"):
            template.header("Content-Type", JSON_CONTENT_TYPE)


class DefaultDecoder:
    """Decodes to ``Response``, ``bytes`` or ``str``.

    204 and 404 responses, and responses without a body, decode to None.
    """

    def decode(self, response: Response, return_type: Any) -> Any:
        if return_type is Response:
            return response
        if response.status in (204, 404) or response.body is None:
            return None
        data = _read(response) or b""
        if return_type is bytes:
            return data
        if return_type in (str, Any, object):
            return data.decode(DEFAULT_CHARSET)
        raise DecodeError(
            response.status,
            f"{return_type!r} is not a type supported by this decoder.",
            request=response.request,
        )


class StringDecoder:
    """Decodes the body as text; None when there is no body."""

    def decode(self, response: Response, return_type: Any) -> Any:
        if response.status in (204, 404) or response.body is None:
            return None
        data = _read(response)
        return data.decode(DEFAULT_CHARSET) if data is not None else None


class JsonDecoder:
    """Validates JSON bodies into the return type with a pydantic TypeAdapter.

    ``Response``, ``bytes`` and ``str`` return types are passed to
    DefaultDecoder. 204/404 and empty bodies decode to None.
    """

    def __init__(self) -> None:
        self._fallback = DefaultDecoder()

    def decode(self, response: Response, return_type: Any) -> Any:
        if return_type in (Response, bytes, str):
            return self._fallback.decode(response, return_type)
        if response.status in (204, 404) or response.body is None:
            return None
        data = _read(response)
        if not data or not data.strip():
            return None
        return _adapter(return_type).validate_json(data)


def parse_retry_after(value: str | None, now: float | None = None) -> float | None:
    """Return the epoch seconds a Retry-After header points at, or None.

    Accepts delta-seconds (``"120"``) and HTTP dates.

    Example:
        >>> parse_retry_after("2", now=100.0)
        102.0
        >>> parse_retry_after("soon") is None
        True
    """
    if not value:
        return None
    now = time.time() if now is None else now
    value = value.strip()
    try:
        return now + float(value)
    except ValueError:
        pass
    try:
        return parsedate_to_datetime(value).timestamp()
    except (TypeError, ValueError):
        return None


class DefaultErrorDecoder:
    """Builds the HttpError subclass for the status.

    A parseable Retry-After header makes the error a RetryableError whose
    cause is the status-specific error.
    """

    def decode(self, config_key: str, response: Response) -> Exception:
        try:
            data = _read(response)
        except OSError:
            data = None
        request = response.request
        preview = ""
        if data:
            preview = data.decode(DEFAULT_CHARSET, errors="replace")[:MAX_BODY_PREVIEW_CHARS]
        where = f"{request.method.value} {request.url}" if request is not None else config_key
        status_text = f"{response.status} {response.reason}".strip()
        message = f"[{status_text}] during [{where}]"
        if preview:
            message = f"{message}: [{preview}]"
        error = HttpError.from_status(
            response.status, message, request=request, body=data, headers=response.headers
        )
        retry_after = parse_retry_after(response.header("Retry-After"))
        if retry_after is None:
            return error
        return RetryableError(
            response.status,
            message,
            method=request.method if request is not None else None,
            retry_after=retry_after,
            request=request,
            body=data,
            headers=response.headers,
            cause=error,
        )


class DefaultQueryMapEncoder:
    """Turns a mapping, pydantic model, dataclass or plain object into query pairs.

    None values are skipped.
    """

    def encode(self, obj: Any) -> Mapping[str, Any]:
        if obj is None:
            return {}
        if isinstance(obj, Mapping):
            values: Mapping[str, Any] = obj
        elif isinstance(obj, BaseModel):
            values = obj.model_dump(by_alias=True)
        elif dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            values = dataclasses.asdict(obj)
        else:
            values = {k: v for k, v in vars(obj).items() if not k.startswith("_")}
        return {str(k): v for k, v in values.items() if v is not None}
