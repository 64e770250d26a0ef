"""Dispatch handlers: one per remote operation.

A handler owns everything needed to run its operation: the template
factory, the target, the transport, the retry prototype, interceptors,
codecs and logger. Each call runs

    BUILD -> [INTERCEPT -> TARGET -> SEND -> DECODE] -> result

where the bracketed part repeats while the cloned retryer allows it. A
RetryableError (I/O failure, or an error decoder's verdict) triggers a
retry with a freshly built template; any other error ends the call.

Example:
    >>> factory = MethodHandlerFactory(client=HttpxClient())
    >>> handler = factory.create(
    ...     HardCodedTarget(GitHub, "https://api.github.com"),
    ...     metadata,
    ...     build_template_factory(metadata, DefaultEncoder()),
    ...     Options(),
    ...     JsonDecoder(),
    ...     DefaultErrorDecoder(),
    ... )
    >>> contributors = handler.invoke("OpenFeign", "feign")  # doctest: +SKIP
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Any, Protocol, runtime_checkable

from callforge.codec import Decoder, ErrorDecoder
from callforge.errors import (
    CallforgeError,
    ExceptionPropagationPolicy,
    RetryableError,
    TemplateError,
    annotate,
    error_executing,
)
from callforge.metadata import MethodMetadata
from callforge.models.enums import LogLevel
from callforge.models.http import Options, Request, Response, ensure_closed
from callforge.observability.call_logger import CallLogger
from callforge.observability.logging import get_logger
from callforge.observability.metrics import get_metrics
from callforge.template import RequestTemplate
from callforge.transport.client import AsyncClient, Client
from callforge.transport.factory import TemplateFactory
from callforge.transport.interceptors import RequestInterceptor
from callforge.transport.response import ResponseHandler, decode_response
from callforge.transport.retry import DefaultRetryer, Retryer

logger = get_logger(__name__)


@runtime_checkable
class Target(Protocol):
    """Binds a contract type to a base URL and turns templates into requests."""

    @property
    def name(self) -> str: ...

    @property
    def url(self) -> str: ...

    def apply(self, template: RequestTemplate) -> Request: ...


class HardCodedTarget:
    """Target with a fixed base URL.

    Templates that already carry an absolute target (from a url argument)
    keep it.
    """

    def __init__(self, type_: type | None, url: str, name: str | None = None) -> None:
        if not url:
            raise ValueError("target url is required")
        self.type = type_
        self.url = url
        self.name = name or (type_.__name__ if type_ is not None else url)

    def apply(self, template: RequestTemplate) -> Request:
        if not template.target.lower().startswith("http"):
            template.target = self.url
        return template.request()

    def __repr__(self) -> str:
        return f"HardCodedTarget(name={self.name!r}, url={self.url!r})"


class EmptyTarget:
    """Target without a base URL: every call must supply one via a url argument."""

    def __init__(self, type_: type | None = None, name: str = "empty") -> None:
        self.type = type_
        self.name = name
        self.url = ""

    def apply(self, template: RequestTemplate) -> Request:
        if not template.url().lower().startswith("http"):
            raise TemplateError(
                "Request with non-absolute URL not supported with empty target",
                details={"url": template.url()},
            )
        return template.request()


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


class _MethodHandler:
    """State shared by the synchronous and asynchronous handlers."""

    def __init__(
        self,
        target: Target,
        metadata: MethodMetadata,
        template_factory: TemplateFactory,
        options: Options,
        retryer: Retryer,
        interceptors: Sequence[RequestInterceptor],
        call_logger: CallLogger,
        response_handler: ResponseHandler,
        decoder: Decoder,
        propagation_policy: ExceptionPropagationPolicy,
        force_decoding: bool,
    ) -> None:
        self.target = target
        self.metadata = metadata
        self.template_factory = template_factory
        self.options = options
        self.retryer = retryer
        self.interceptors = tuple(interceptors)
        self.call_logger = call_logger
        self.response_handler = response_handler
        self.decoder = decoder
        self.propagation_policy = propagation_policy
        self.force_decoding = force_decoding

    @property
    def config_key(self) -> str:
        return self.metadata.config_key

    def find_options(self, args: Sequence[Any]) -> Options:
        for arg in args:
            if isinstance(arg, Options):
                return arg
        return self.options

    def target_request(self, template: RequestTemplate) -> Request:
        for interceptor in self.interceptors:
            interceptor.apply(template)
        return self.target.apply(template)

    def _unwrapped(self, error: RetryableError) -> BaseException | None:
        """Return the cause to raise instead of ``error`` under the UNWRAP policy."""
        if self.propagation_policy is ExceptionPropagationPolicy.UNWRAP:
            return error.__cause__
        return None

    def _record_response(self, response: Response, elapsed_ms: float) -> None:
        metrics = get_metrics()
        labels = {"status": str(response.status)}
        metrics.increment_counter("callforge_calls_total", labels)
        metrics.observe_histogram("callforge_call_duration_seconds", elapsed_ms / 1000, labels)

    def _record_retry(self, attempt: int, error: RetryableError) -> None:
        get_metrics().increment_counter("callforge_retries_total")
        logger.debug(
            "callforge.call.retrying",
            config_key=self.config_key,
            attempt=attempt,
            status=error.status,
        )
        if self.call_logger.level is not LogLevel.NONE:
            self.call_logger.log_retry(self.config_key, attempt=attempt)

    def _record_failure(self, error: BaseException, start: float) -> None:
        annotate(error, self.config_key, _elapsed_ms(start))
        get_metrics().increment_counter(
            "callforge_call_errors_total", {"reason": type(error).__name__}
        )
        logger.debug(
            "callforge.call.failed",
            config_key=self.config_key,
            error=type(error).__name__,
            code=error.code if isinstance(error, CallforgeError) else None,
        )

    def _io_error(self, request: Request, exc: OSError, start: float) -> RetryableError:
        elapsed = _elapsed_ms(start)
        if self.call_logger.level is not LogLevel.NONE:
            self.call_logger.log_io_exception(self.config_key, exc, elapsed)
        return error_executing(request, exc)

    def _forced(self, response: Response) -> Any:
        try:
            return decode_response(self.decoder, response, self.metadata.return_type)
        finally:
            if self.response_handler.close_after_decode:
                ensure_closed(response)


class SynchronousMethodHandler(_MethodHandler):
    """Runs an operation on the calling thread, blocking until it completes."""

    def __init__(self, *args: Any, client: Client, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.client = client

    def invoke(self, *args: Any) -> Any:
        """Run the operation with positional ``args``.

        Raises:
            CallforgeError: Setup, HTTP, decode or exhausted retry failures
            OSError: The transport cause, when unwrapped by the propagation policy
        """
        start = time.perf_counter()
        try:
            return self._invoke(args)
        except Exception as error:
            self._record_failure(error, start)
            raise

    def _invoke(self, args: Sequence[Any]) -> Any:
        template = self.template_factory.create(args)
        options = self.find_options(args)
        retryer = self.retryer.clone()
        attempt = 1
        while True:
            try:
                return self.execute_and_decode(template, options)
            except RetryableError as error:
                try:
                    retryer.continue_or_propagate(error)
                except RetryableError as exhausted:
                    cause = self._unwrapped(exhausted)
                    if cause is None:
                        raise
                    raise cause from None
                attempt += 1
                self._record_retry(attempt, error)
                template = self.template_factory.create(args)

    def execute_and_decode(self, template: RequestTemplate, options: Options) -> Any:
        request = self.target_request(template)
        if self.call_logger.level is not LogLevel.NONE:
            self.call_logger.log_request(self.config_key, request)

        start = time.perf_counter()
        try:
            response = self.client.execute(request, options)
        except OSError as exc:
            raise self._io_error(request, exc, start) from exc
        if response.request is None:
            response.request = request
        elapsed = _elapsed_ms(start)
        self._record_response(response, elapsed)

        if self.force_decoding:
            return self._forced(response)
        return self.response_handler.handle(
            self.config_key, response, self.metadata.return_type, elapsed
        )


class AsyncMethodHandler(_MethodHandler):
    """Runs an operation over an AsyncClient.

    Each attempt settles exactly one future, with the decoded result or
    the attempt's exception; retry waits use ``asyncio.sleep``.
    """

    def __init__(self, *args: Any, client: AsyncClient, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.client = client

    async def invoke(self, *args: Any) -> Any:
        start = time.perf_counter()
        try:
            return await self._invoke(args)
        except Exception as error:
            self._record_failure(error, start)
            raise

    async def _invoke(self, args: Sequence[Any]) -> Any:
        template = self.template_factory.create(args)
        options = self.find_options(args)
        retryer = self.retryer.clone()
        loop = asyncio.get_running_loop()
        attempt = 1
        while True:
            future: asyncio.Future[Any] = loop.create_future()
            await self.execute_and_decode(template, options, future)
            try:
                return await future
            except RetryableError as error:
                try:
                    interval = retryer.next_backoff(error)
                except RetryableError as exhausted:
                    cause = self._unwrapped(exhausted)
                    if cause is None:
                        raise
                    raise cause from None
                attempt += 1
                self._record_retry(attempt, error)
                if interval > 0:
                    await asyncio.sleep(interval)
                template = self.template_factory.create(args)

    async def execute_and_decode(
        self, template: RequestTemplate, options: Options, future: asyncio.Future[Any]
    ) -> None:
        """Run one attempt and settle ``future`` with its outcome."""
        try:
            request = self.target_request(template)
            if self.call_logger.level is not LogLevel.NONE:
                self.call_logger.log_request(self.config_key, request)
        except Exception as exc:
            future.set_exception(exc)
            return

        start = time.perf_counter()
        try:
            response = await self.client.execute(request, options)
        except OSError as exc:
            future.set_exception(self._io_error(request, exc, start))
            return
        except Exception as exc:
            future.set_exception(exc)
            return
        if response.request is None:
            response.request = request
        elapsed = _elapsed_ms(start)
        self._record_response(response, elapsed)

        try:
            if self.force_decoding:
                result = self._forced(response)
            else:
                result = self.response_handler.handle(
                    self.config_key, response, self.metadata.return_type, elapsed
                )
        except Exception as exc:
            future.set_exception(exc)
        else:
            future.set_result(result)


class MethodHandlerFactory:
    """Creates handlers that share transport, retry, interceptor and logging settings.

    Args:
        client: Transport for synchronous handlers
        async_client: Transport for asynchronous handlers
        retryer: Retry prototype, cloned per call
        interceptors: Applied in order on every attempt
        call_logger: Per-call logger
        propagation_policy: Whether an exhausted retry raises its cause
        decode_404: Decode 404 responses instead of raising
        close_after_decode: Close bodies once decoded
        force_decoding: Pass every response straight to the decoder
    """

    def __init__(
        self,
        client: Client | None = None,
        async_client: AsyncClient | None = None,
        retryer: Retryer | None = None,
        interceptors: Sequence[RequestInterceptor] = (),
        call_logger: CallLogger | None = None,
        propagation_policy: ExceptionPropagationPolicy = ExceptionPropagationPolicy.NONE,
        decode_404: bool = False,
        close_after_decode: bool = True,
        force_decoding: bool = False,
    ) -> None:
        self.client = client
        self.async_client = async_client
        self.retryer = retryer or DefaultRetryer()
        self.interceptors = tuple(interceptors)
        self.call_logger = call_logger or CallLogger()
        self.propagation_policy = propagation_policy
        self.decode_404 = decode_404
        self.close_after_decode = close_after_decode
        self.force_decoding = force_decoding

    def _shared(
        self,
        target: Target,
        metadata: MethodMetadata,
        template_factory: TemplateFactory,
        options: Options,
        decoder: Decoder,
        error_decoder: ErrorDecoder,
    ) -> dict[str, Any]:
        return {
            "target": target,
            "metadata": metadata,
            "template_factory": template_factory,
            "options": options,
            "retryer": self.retryer,
            "interceptors": self.interceptors,
            "call_logger": self.call_logger,
            "response_handler": ResponseHandler(
                self.call_logger,
                decoder,
                error_decoder,
                decode_404=self.decode_404,
                close_after_decode=self.close_after_decode,
            ),
            "decoder": decoder,
            "propagation_policy": self.propagation_policy,
            "force_decoding": self.force_decoding,
        }

    def create(
        self,
        target: Target,
        metadata: MethodMetadata,
        template_factory: TemplateFactory,
        options: Options,
        decoder: Decoder,
        error_decoder: ErrorDecoder,
    ) -> SynchronousMethodHandler:
        if self.client is None:
            raise ValueError("MethodHandlerFactory has no client for synchronous handlers")
        return SynchronousMethodHandler(
            client=self.client,
            **self._shared(target, metadata, template_factory, options, decoder, error_decoder),
        )

    def create_async(
        self,
        target: Target,
        metadata: MethodMetadata,
        template_factory: TemplateFactory,
        options: Options,
        decoder: Decoder,
        error_decoder: ErrorDecoder,
    ) -> AsyncMethodHandler:
        if self.async_client is None:
            raise ValueError("MethodHandlerFactory has no async_client for asynchronous handlers")
        return AsyncMethodHandler(
            client=self.async_client,
            **self._shared(target, metadata, template_factory, options, decoder, error_decoder),
        )


__all__ = [
    "AsyncMethodHandler",
    "EmptyTarget",
    "HardCodedTarget",
    "MethodHandlerFactory",
    "SynchronousMethodHandler",
    "Target",
]
