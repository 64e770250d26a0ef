"""Transport layer: template factories, retry, interceptors, clients and handlers.

Example:
    >>> from callforge.transport import HttpxClient, MethodHandlerFactory
    >>> factory = MethodHandlerFactory(client=HttpxClient())
"""

from callforge.transport.client import AsyncClient, AsyncHttpxClient, Client, HttpxClient
from callforge.transport.factory import (
    ArgumentTemplateFactory,
    BodyTemplateFactory,
    FormTemplateFactory,
    TemplateFactory,
    build_template_factory,
)
from callforge.transport.handlers import (
    AsyncMethodHandler,
    EmptyTarget,
    HardCodedTarget,
    MethodHandlerFactory,
    SynchronousMethodHandler,
    Target,
)
from callforge.transport.interceptors import (
    BasicAuthInterceptor,
    HeaderInterceptor,
    RequestInterceptor,
)
from callforge.transport.response import ResponseHandler
from callforge.transport.retry import NEVER_RETRY, DefaultRetryer, NeverRetry, RetryConfig, Retryer

__all__ = [
    "ArgumentTemplateFactory",
    "AsyncClient",
    "AsyncHttpxClient",
    "AsyncMethodHandler",
    "BasicAuthInterceptor",
    "BodyTemplateFactory",
    "Client",
    "DefaultRetryer",
    "EmptyTarget",
    "FormTemplateFactory",
    "HardCodedTarget",
    "HeaderInterceptor",
    "HttpxClient",
    "MethodHandlerFactory",
    "NEVER_RETRY",
    "NeverRetry",
    "RequestInterceptor",
    "ResponseHandler",
    "RetryConfig",
    "Retryer",
    "SynchronousMethodHandler",
    "Target",
    "TemplateFactory",
    "build_template_factory",
]
