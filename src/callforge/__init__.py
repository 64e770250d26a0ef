"""Callforge - declarative remote-call engine.

Describe remote operations once on a contract class; callforge parses
the contract into per-operation metadata and builds call handlers that
expand request templates, dispatch through a pluggable transport,
decode responses and retry transient failures.

Example:
    >>> from typing import Annotated
    >>> from callforge import Callforge, Param, request_line
    >>> class GitHub:
    ...     @request_line("GET /repos/{owner}/{repo}/contributors")
    ...     def contributors(
    ...         self, owner: Annotated[str, Param()], repo: Annotated[str, Param()]
    ...     ) -> str: ...
    >>> api = Callforge.builder().target(GitHub, "https://api.github.com")
    >>> sorted(api)
    ['GitHub#contributors(str,str)']
"""

__version__ = "0.4.0"

from callforge.builder import ApiClient, AsyncApiClient, Callforge, CallforgeBuilder
from callforge.codec import (
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    DefaultQueryMapEncoder,
    JsonDecoder,
    JsonEncoder,
    StringDecoder,
)
from callforge.contract import (
    Body,
    DefaultContract,
    HeaderMap,
    Headers,
    Param,
    QueryMap,
    RequestLine,
    body,
    headers,
    request_line,
)
from callforge.errors import (
    CallforgeError,
    ContractError,
    DecodeError,
    EncodeError,
    ExceptionPropagationPolicy,
    HttpError,
    RetryableError,
    TemplateError,
    TransportError,
)
from callforge.metadata import MethodMetadata
from callforge.models import CollectionFormat, HttpMethod, LogLevel, Options, Request, Response
from callforge.template import RequestTemplate
from callforge.transport import (
    DefaultRetryer,
    HardCodedTarget,
    HttpxClient,
    AsyncHttpxClient,
    NEVER_RETRY,
    Retryer,
)

__all__ = [
    "ApiClient",
    "AsyncApiClient",
    "AsyncHttpxClient",
    "Body",
    "Callforge",
    "CallforgeBuilder",
    "CallforgeError",
    "CollectionFormat",
    "ContractError",
    "DecodeError",
    "DefaultContract",
    "DefaultDecoder",
    "DefaultEncoder",
    "DefaultErrorDecoder",
    "DefaultQueryMapEncoder",
    "DefaultRetryer",
    "EncodeError",
    "ExceptionPropagationPolicy",
    "HardCodedTarget",
    "HeaderMap",
    "Headers",
    "HttpError",
    "HttpMethod",
    "HttpxClient",
    "JsonDecoder",
    "JsonEncoder",
    "LogLevel",
    "MethodMetadata",
    "NEVER_RETRY",
    "Options",
    "Param",
    "QueryMap",
    "Request",
    "RequestLine",
    "RequestTemplate",
    "Response",
    "Retryer",
    "RetryableError",
    "StringDecoder",
    "TemplateError",
    "TransportError",
    "__version__",
    "body",
    "headers",
    "request_line",
]
