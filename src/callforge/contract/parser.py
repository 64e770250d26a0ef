"""Contract parsing: descriptors to MethodMetadata.

BaseContract owns the validation every contract shares (generic and
inheritance checks, HTTP verb presence, body/form exclusivity, map key
types). DeclarativeContract dispatches each marker to a processor
registered for its type. DefaultContract registers the processors for the
markers in ``callforge.contract.annotations``.

Example:
    >>> from typing import Annotated
    >>> from callforge.contract.annotations import Param, request_line
    >>> class Users:
    ...     @request_line("GET /users/{id}")
    ...     def get(self, id: Annotated[int, Param("id")]) -> dict: ...
    >>> [m.config_key for m in DefaultContract().parse(Users)]
    ['Users#get(int)']
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Protocol, runtime_checkable

from callforge.contract.annotations import (
    Body,
    HeaderMap,
    Headers,
    Param,
    QueryMap,
    RequestLine,
)
from callforge.contract.descriptors import (
    ContractDescriptor,
    OperationDescriptor,
    ParameterDescriptor,
    describe,
)
from callforge.contract.types import (
    is_known,
    is_mapping_type,
    is_options_type,
    is_url_type,
    mapping_key_type,
    resolve_type,
    type_name,
)
from callforge.errors import ContractError
from callforge.metadata import (
    BodyRole,
    HeaderMapRole,
    IgnoredRole,
    MethodMetadata,
    MethodMetadataBuilder,
    QueryMapRole,
    ToStringExpander,
    UrlRole,
)
from callforge.models.enums import HttpMethod, OperationKind
from callforge.observability.logging import get_logger
from callforge.observability.metrics import get_metrics

logger = get_logger(__name__)

REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+)[ ]*(.*)$")

ClassProcessor = Callable[[Any, MethodMetadataBuilder], None]
MethodProcessor = Callable[[Any, MethodMetadataBuilder], None]
ParameterProcessor = Callable[[Any, MethodMetadataBuilder, int, ParameterDescriptor], None]


@runtime_checkable
class Contract(Protocol):
    """Turns a contract type into one MethodMetadata per remote operation."""

    def parse(self, target: type | ContractDescriptor) -> list[MethodMetadata]: ...


def config_key(descriptor: ContractDescriptor, operation: OperationDescriptor) -> str:
    """Return ``Type#method(argtypes)`` for an operation of ``descriptor``."""
    arguments = ",".join(
        type_name(resolve_type(p.annotation, descriptor.generic_bindings))
        for p in operation.parameters
    )
    return f"{descriptor.name}#{operation.name}({arguments})"


def _check_map_keys(marker: str, annotation: Any, key: str, *, require_mapping: bool) -> None:
    if not is_known(annotation):
        return
    if not is_mapping_type(annotation):
        if require_mapping:
            raise ContractError(
                f"{marker} parameter must be a Mapping: {type_name(annotation)}",
                details={"config_key": key},
            )
        return
    key_type = mapping_key_type(annotation)
    if key_type is not None and is_known(key_type) and key_type is not str:
        raise ContractError(
            f"{marker} key must be a str: {type_name(key_type)}",
            details={"config_key": key},
        )


class BaseContract(ABC):
    """Validation shared by all contracts; subclasses bind markers."""

    def parse(self, target: type | ContractDescriptor) -> list[MethodMetadata]:
        """Parse and validate every remote operation of ``target``.

        Raises:
            ContractError: If the contract or one of its operations is invalid
        """
        descriptor = target if isinstance(target, ContractDescriptor) else describe(target)
        if descriptor.type_parameters:
            raise ContractError(
                f"Parameterized types unsupported: {descriptor.name}",
                details={"contract": descriptor.name},
            )
        if len(descriptor.parents) > 1:
            raise ContractError(
                f"Only single inheritance supported: {descriptor.name}",
                details={"contract": descriptor.name},
            )
        if descriptor.parents and descriptor.parents[0].parents:
            raise ContractError(
                f"Only single-level inheritance supported: {descriptor.name}",
                details={"contract": descriptor.name},
            )

        result: dict[str, MethodMetadata] = {}
        for operation in descriptor.operations:
            if operation.kind is not OperationKind.REMOTE:
                logger.debug(
                    "callforge.contract.skipped",
                    contract=descriptor.name,
                    operation=operation.name,
                    kind=operation.kind.value,
                )
                continue
            metadata = self.parse_operation(descriptor, operation)
            if metadata.config_key in result:
                raise ContractError(
                    f"Overrides unsupported: {metadata.config_key}",
                    details={"config_key": metadata.config_key},
                )
            result[metadata.config_key] = metadata

        logger.debug(
            "callforge.contract.parsed",
            contract=descriptor.name,
            operations=len(result),
        )
        get_metrics().increment_counter(
            "callforge_operations_parsed_total", {"contract": descriptor.name}, len(result)
        )
        return list(result.values())

    def parse_operation(
        self, descriptor: ContractDescriptor, operation: OperationDescriptor
    ) -> MethodMetadata:
        """Parse one operation; called by ``parse`` for each remote operation."""
        key = config_key(descriptor, operation)
        bindings = descriptor.generic_bindings
        builder = MethodMetadataBuilder(key, operation.name)
        builder.return_type = resolve_type(operation.return_type, bindings)

        for parent in descriptor.parents:
            self.process_class(builder, parent)
        self.process_class(builder, descriptor)

        for annotation in operation.annotations:
            self.process_method(builder, annotation, operation)
        if builder.ignored:
            return builder.build()

        if builder.template.method is None:
            warnings = f" (warnings: {'; '.join(builder.warnings)})" if builder.warnings else ""
            raise ContractError(
                f"Method {key} not annotated with HTTP method type (ex. GET, POST){warnings}",
                details={"config_key": key},
            )

        for index, parameter in enumerate(operation.parameters):
            is_http_marker = False
            if parameter.markers:
                is_http_marker = self.process_parameter(builder, parameter, index)

            annotation = resolve_type(parameter.annotation, bindings)
            if is_url_type(annotation):
                builder.assign(index, UrlRole())
            elif is_http_marker:
                continue
            elif is_options_type(annotation):
                builder.assign(index, IgnoredRole())
            elif not builder.is_already_processed(index):
                if builder.form_params:
                    raise ContractError(
                        "Body parameters cannot be used with form parameters.",
                        details={"config_key": key},
                    )
                if builder.index_of("body") is not None:
                    raise ContractError(
                        f"Method has too many Body parameters: {key}",
                        details={"config_key": key},
                    )
                builder.assign(index, BodyRole())
                builder.body_type = annotation

        header_map = builder.index_of("header_map")
        if header_map is not None:
            annotation = resolve_type(operation.parameters[header_map].annotation, bindings)
            _check_map_keys("HeaderMap", annotation, key, require_mapping=True)
        query_map = builder.index_of("query_map")
        if query_map is not None:
            annotation = resolve_type(operation.parameters[query_map].annotation, bindings)
            _check_map_keys("QueryMap", annotation, key, require_mapping=False)

        if builder.index_of("body") is not None and builder.form_params:
            raise ContractError(
                "Body parameters cannot be used with form parameters.",
                details={"config_key": key},
            )
        return builder.build()

    @abstractmethod
    def process_class(self, builder: MethodMetadataBuilder, descriptor: ContractDescriptor) -> None:
        """Apply class-level markers of ``descriptor`` to the operation being built."""

    @abstractmethod
    def process_method(
        self, builder: MethodMetadataBuilder, annotation: Any, operation: OperationDescriptor
    ) -> None:
        """Apply one method-level marker."""

    @abstractmethod
    def process_parameter(
        self, builder: MethodMetadataBuilder, parameter: ParameterDescriptor, index: int
    ) -> bool:
        """Apply the markers of one parameter; True if any was an HTTP marker."""


class DeclarativeContract(BaseContract):
    """Contract whose markers are handled by processors registered per type."""

    def __init__(self) -> None:
        self._class_processors: dict[type, ClassProcessor] = {}
        self._method_processors: dict[type, MethodProcessor] = {}
        self._parameter_processors: dict[type, ParameterProcessor] = {}

    def register_class_annotation(self, annotation_type: type, processor: ClassProcessor) -> None:
        self._class_processors[annotation_type] = processor

    def register_method_annotation(
        self, annotation_type: type, processor: MethodProcessor
    ) -> None:
        self._method_processors[annotation_type] = processor

    def register_parameter_annotation(
        self, annotation_type: type, processor: ParameterProcessor
    ) -> None:
        self._parameter_processors[annotation_type] = processor

    def process_class(self, builder: MethodMetadataBuilder, descriptor: ContractDescriptor) -> None:
        for annotation in descriptor.annotations:
            processor = self._class_processors.get(type(annotation))
            if processor is not None:
                processor(annotation, builder)

    def process_method(
        self, builder: MethodMetadataBuilder, annotation: Any, operation: OperationDescriptor
    ) -> None:
        processor = self._method_processors.get(type(annotation))
        if processor is None:
            builder.warnings.append(
                f"Method {operation.name} has an annotation {type(annotation).__name__} "
                f"that is not used by contract {type(self).__name__}"
            )
            return
        processor(annotation, builder)

    def process_parameter(
        self, builder: MethodMetadataBuilder, parameter: ParameterDescriptor, index: int
    ) -> bool:
        matched = False
        for marker in parameter.markers:
            processor = self._parameter_processors.get(type(marker))
            if processor is not None:
                matched = True
                processor(marker, builder, index, parameter)
        return matched


def _header_map(values: tuple[str, ...], source: str) -> dict[str, list[str]]:
    result: dict[str, list[str]] = {}
    for header in values:
        name, separator, value = header.partition(":")
        if not separator or not name.strip():
            raise ContractError(f"Header must be 'Name: value' on {source}: {header!r}")
        result.setdefault(name.strip(), []).append(value.strip())
    return result


def _apply_headers(annotation: Headers, builder: MethodMetadataBuilder, source: str) -> None:
    if not annotation.values:
        raise ContractError(
            f"Headers annotation was empty on {source}",
            details={"config_key": builder.config_key},
        )
    for name, values in _header_map(annotation.values, source).items():
        builder.template.header(name, *values)


_EXPANDERS: dict[type, Any] = {}


def _instantiate_expander(expander: Any) -> Any:
    # one instance per class so repeated parses compare equal
    if expander is None:
        return None
    if isinstance(expander, type):
        expander = _EXPANDERS.setdefault(expander, expander())
    if isinstance(expander, ToStringExpander):
        return None
    if not callable(getattr(expander, "format", None)):
        raise ContractError(f"Expander {expander!r} has no format(value) method")
    return expander


class DefaultContract(DeclarativeContract):
    """Contract understanding ``request_line``, ``headers``, ``body`` and the
    ``Param`` / ``QueryMap`` / ``HeaderMap`` parameter markers."""

    def __init__(self) -> None:
        super().__init__()
        self.register_class_annotation(Headers, self._process_class_headers)
        self.register_method_annotation(RequestLine, self._process_request_line)
        self.register_method_annotation(Body, self._process_body)
        self.register_method_annotation(Headers, self._process_method_headers)
        self.register_parameter_annotation(Param, self._process_param)
        self.register_parameter_annotation(QueryMap, self._process_query_map)
        self.register_parameter_annotation(HeaderMap, self._process_header_map)

    @staticmethod
    def _process_class_headers(annotation: Headers, builder: MethodMetadataBuilder) -> None:
        _apply_headers(annotation, builder, f"type of {builder.config_key}")

    @staticmethod
    def _process_method_headers(annotation: Headers, builder: MethodMetadataBuilder) -> None:
        _apply_headers(annotation, builder, f"method {builder.config_key}")

    @staticmethod
    def _process_request_line(annotation: RequestLine, builder: MethodMetadataBuilder) -> None:
        value = annotation.value.strip()
        if not value:
            raise ContractError(
                f"RequestLine annotation was empty on method {builder.config_key}.",
                details={"config_key": builder.config_key},
            )
        match = REQUEST_LINE_PATTERN.match(value)
        if match is None:
            raise ContractError(
                f"RequestLine annotation didn't start with an HTTP verb on method "
                f"{builder.config_key}",
                details={"config_key": builder.config_key},
            )
        verb, uri = match.groups()
        try:
            method = HttpMethod(verb)
        except ValueError as exc:
            raise ContractError(
                f"Unsupported HTTP verb {verb!r} on method {builder.config_key}",
                details={"config_key": builder.config_key},
            ) from exc
        template = builder.template
        template.method = method
        template.set_uri(uri.strip(), append=bool(template.uri))
        template.decode_slash = annotation.decode_slash
        template.collection_format = annotation.collection_format

    @staticmethod
    def _process_body(annotation: Body, builder: MethodMetadataBuilder) -> None:
        value = annotation.value.strip()
        if not value:
            raise ContractError(
                f"Body annotation was empty on method {builder.config_key}.",
                details={"config_key": builder.config_key},
            )
        if "{" not in value:
            builder.template.body = value
        else:
            builder.template.body_template = value

    @staticmethod
    def _process_param(
        marker: Param, builder: MethodMetadataBuilder, index: int, parameter: ParameterDescriptor
    ) -> None:
        name = marker.name or parameter.name
        if not name:
            raise ContractError(
                f"Param annotation was empty on param {index}.",
                details={"config_key": builder.config_key, "index": index},
            )
        builder.name_param(index, name, _instantiate_expander(marker.expander), marker.encoded)
        if not builder.template.has_request_variable(name) and name not in builder.form_params:
            builder.form_params.append(name)

    @staticmethod
    def _process_query_map(
        marker: QueryMap, builder: MethodMetadataBuilder, index: int, parameter: ParameterDescriptor
    ) -> None:
        if builder.index_of("query_map") is not None:
            raise ContractError(
                "QueryMap annotation was present on multiple parameters.",
                details={"config_key": builder.config_key},
            )
        builder.assign(index, QueryMapRole(encoded=marker.encoded))

    @staticmethod
    def _process_header_map(
        marker: HeaderMap,
        builder: MethodMetadataBuilder,
        index: int,
        parameter: ParameterDescriptor,
    ) -> None:
        if builder.index_of("header_map") is not None:
            raise ContractError(
                "HeaderMap annotation was present on multiple parameters.",
                details={"config_key": builder.config_key},
            )
        builder.assign(index, HeaderMapRole())
