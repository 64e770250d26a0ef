"""Builder and registration table.

``Callforge.builder()`` collects collaborators; ``target(...)`` parses the
contract once and returns an ApiClient, a read-only table of handlers
keyed by config key and addressable by method name.

Example:
    >>> from callforge import Callforge, JsonDecoder
    >>> api = (
    ...     Callforge.builder()
    ...     .decoder(JsonDecoder())
    ...     .target(GitHub, "https://api.github.com")
    ... )  # doctest: +SKIP
    >>> api.invoke("contributors", "OpenFeign", "feign")  # doctest: +SKIP
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from typing import Any, Generic, TypeVar

from callforge.codec import (
    Decoder,
    DefaultDecoder,
    DefaultEncoder,
    DefaultErrorDecoder,
    DefaultQueryMapEncoder,
    Encoder,
    ErrorDecoder,
    QueryMapEncoder,
)
from callforge.contract.descriptors import ContractDescriptor
from callforge.contract.parser import Contract, DefaultContract
from callforge.errors import ExceptionPropagationPolicy
from callforge.metadata import MethodMetadata
from callforge.models.enums import LogLevel
from callforge.models.http import Options
from callforge.observability.call_logger import CallLogger
from callforge.observability.logging import get_logger
from callforge.transport.client import AsyncClient, AsyncHttpxClient, Client, HttpxClient
from callforge.transport.factory import build_template_factory
from callforge.transport.handlers import (
    AsyncMethodHandler,
    HardCodedTarget,
    MethodHandlerFactory,
    SynchronousMethodHandler,
    Target,
)
from callforge.transport.interceptors import RequestInterceptor
from callforge.transport.retry import DefaultRetryer, Retryer

logger = get_logger(__name__)

H = TypeVar("H", SynchronousMethodHandler, AsyncMethodHandler)


class _HandlerTable(Mapping[str, H], Generic[H]):
    def __init__(self, target: Target, handlers: Mapping[str, H]) -> None:
        self.target = target
        self._handlers = dict(handlers)
        self._by_name = {h.metadata.method_name: h for h in self._handlers.values()}

    def __getitem__(self, key: str) -> H:
        handler = self._handlers.get(key) or self._by_name.get(key)
        if handler is None:
            raise KeyError(f"{self.target.name} has no operation {key!r}")
        return handler

    def __iter__(self) -> Iterator[str]:
        return iter(self._handlers)

    def __len__(self) -> int:
        return len(self._handlers)

    def __contains__(self, key: object) -> bool:
        return key in self._handlers or key in self._by_name

    @property
    def metadata(self) -> list[MethodMetadata]:
        return [h.metadata for h in self._handlers.values()]

    def __repr__(self) -> str:
        return f"{type(self).__name__}(target={self.target!r}, operations={list(self._handlers)})"


class ApiClient(_HandlerTable[SynchronousMethodHandler]):
    """Synchronous operations of one targeted contract."""

    def invoke(self, name: str, *args: Any) -> Any:
        """Call operation ``name`` (config key or method name) with ``args``."""
        return self[name].invoke(*args)


class AsyncApiClient(_HandlerTable[AsyncMethodHandler]):
    """Asynchronous operations of one targeted contract."""

    async def invoke(self, name: str, *args: Any) -> Any:
        return await self[name].invoke(*args)


class CallforgeBuilder:
    """Fluent configuration; every setter returns the builder."""

    def __init__(self) -> None:
        self._contract: Contract = DefaultContract()
        self._client: Client | None = None
        self._async_client: AsyncClient | None = None
        self._encoder: Encoder = DefaultEncoder()
        self._decoder: Decoder = DefaultDecoder()
        self._error_decoder: ErrorDecoder = DefaultErrorDecoder()
        self._query_map_encoder: QueryMapEncoder = DefaultQueryMapEncoder()
        self._retryer: Retryer = DefaultRetryer()
        self._options = Options()
        self._interceptors: list[RequestInterceptor] = []
        self._log_level = LogLevel.NONE
        self._call_logger: CallLogger | None = None
        self._propagation_policy = ExceptionPropagationPolicy.NONE
        self._decode_404 = False
        self._close_after_decode = True
        self._force_decoding = False

    def contract(self, contract: Contract) -> CallforgeBuilder:
        self._contract = contract
        return self

    def client(self, client: Client) -> CallforgeBuilder:
        self._client = client
        return self

    def async_client(self, client: AsyncClient) -> CallforgeBuilder:
        self._async_client = client
        return self

    def encoder(self, encoder: Encoder) -> CallforgeBuilder:
        self._encoder = encoder
        return self

    def decoder(self, decoder: Decoder) -> CallforgeBuilder:
        self._decoder = decoder
        return self

    def error_decoder(self, error_decoder: ErrorDecoder) -> CallforgeBuilder:
        self._error_decoder = error_decoder
        return self

    def query_map_encoder(self, encoder: QueryMapEncoder) -> CallforgeBuilder:
        self._query_map_encoder = encoder
        return self

    def retryer(self, retryer: Retryer) -> CallforgeBuilder:
        self._retryer = retryer
        return self

    def options(self, options: Options) -> CallforgeBuilder:
        self._options = options
        return self

    def request_interceptor(self, interceptor: RequestInterceptor) -> CallforgeBuilder:
        self._interceptors.append(interceptor)
        return self

    def request_interceptors(self, interceptors: list[RequestInterceptor]) -> CallforgeBuilder:
        self._interceptors = list(interceptors)
        return self

    def log_level(self, level: LogLevel) -> CallforgeBuilder:
        self._log_level = level
        return self

    def call_logger(self, call_logger: CallLogger) -> CallforgeBuilder:
        self._call_logger = call_logger
        return self

    def exception_propagation_policy(
        self, policy: ExceptionPropagationPolicy
    ) -> CallforgeBuilder:
        self._propagation_policy = policy
        return self

    def decode_404(self) -> CallforgeBuilder:
        """Decode 404 responses (typically to None) instead of raising."""
        self._decode_404 = True
        return self

    def do_not_close_after_decode(self) -> CallforgeBuilder:
        """Leave bodies open after decoding (for lazily consumed results)."""
        self._close_after_decode = False
        return self

    def force_decoding(self) -> CallforgeBuilder:
        """Pass every response to the decoder, whatever its status."""
        self._force_decoding = True
        return self

    def _handler_factory(self) -> MethodHandlerFactory:
        call_logger = self._call_logger or CallLogger(self._log_level)
        return MethodHandlerFactory(
            client=self._client,
            async_client=self._async_client,
            retryer=self._retryer,
            interceptors=self._interceptors,
            call_logger=call_logger,
            propagation_policy=self._propagation_policy,
            decode_404=self._decode_404,
            close_after_decode=self._close_after_decode,
            force_decoding=self._force_decoding,
        )

    def _resolve_target(self, api: type | ContractDescriptor, url: str | Target) -> Target:
        if isinstance(url, str):
            if isinstance(api, ContractDescriptor):
                return HardCodedTarget(None, url, name=api.name)
            return HardCodedTarget(api, url)
        return url

    def _operations(self, api: type | ContractDescriptor) -> list[MethodMetadata]:
        operations = []
        for metadata in self._contract.parse(api):
            if metadata.ignored:
                logger.debug("callforge.builder.ignored", config_key=metadata.config_key)
                continue
            operations.append(metadata)
        return operations

    def target(self, api: type | ContractDescriptor, url: str | Target) -> ApiClient:
        """Parse ``api`` and build a synchronous handler per operation.

        Raises:
            ContractError: If the contract is invalid
        """
        if self._client is None:
            self._client = HttpxClient()
        target = self._resolve_target(api, url)
        factory = self._handler_factory()
        handlers = {}
        for metadata in self._operations(api):
            handlers[metadata.config_key] = factory.create(
                target,
                metadata,
                build_template_factory(metadata, self._encoder, self._query_map_encoder),
                self._options,
                self._decoder,
                self._error_decoder,
            )
        logger.info("callforge.builder.target", target=target.name, operations=len(handlers))
        return ApiClient(target, handlers)

    def async_target(self, api: type | ContractDescriptor, url: str | Target) -> AsyncApiClient:
        """Like ``target`` but with handlers running over the async client."""
        if self._async_client is None:
            self._async_client = AsyncHttpxClient()
        target = self._resolve_target(api, url)
        factory = self._handler_factory()
        handlers = {}
        for metadata in self._operations(api):
            handlers[metadata.config_key] = factory.create_async(
                target,
                metadata,
                build_template_factory(metadata, self._encoder, self._query_map_encoder),
                self._options,
                self._decoder,
                self._error_decoder,
            )
        logger.info("callforge.builder.async_target", target=target.name, operations=len(handlers))
        return AsyncApiClient(target, handlers)


class Callforge:
    """Entry point: ``Callforge.builder()``."""

    @staticmethod
    def builder() -> CallforgeBuilder:
        return CallforgeBuilder()


__all__ = ["ApiClient", "AsyncApiClient", "Callforge", "CallforgeBuilder"]
