"""Per-call template construction from call arguments.

A TemplateFactory turns the arguments of one call into a resolved
RequestTemplate. Three variants exist, chosen once per operation by
``build_template_factory``:

- ArgumentTemplateFactory: path/query/header variables, url override,
  query map and header map
- FormTemplateFactory: additionally encodes form parameters as the body
- BodyTemplateFactory: additionally encodes the body argument
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from callforge.codec import FORM_TYPE, DefaultQueryMapEncoder, Encoder, QueryMapEncoder
from callforge.errors import EncodeError
from callforge.metadata import Expander, MethodMetadata
from callforge.models.enums import CollectionFormat
from callforge.template import RequestTemplate, is_multi_valued, to_string
from callforge.utils.encoding import encode_query


@runtime_checkable
class TemplateFactory(Protocol):
    def create(self, args: Sequence[Any]) -> RequestTemplate: ...


def _expand_elements(expander: Expander, value: Any) -> Any:
    if is_multi_valued(value):
        return [expander.format(v) for v in value]
    return expander.format(value)


def _values(value: Any) -> list[str]:
    if is_multi_valued(value):
        return [to_string(v) for v in value if v is not None]
    return [to_string(value)]


class ArgumentTemplateFactory:
    """Resolves the operation template against the call arguments.

    Args:
        metadata: Parsed operation
        query_map_encoder: Converts non-mapping query-map arguments
    """

    def __init__(
        self, metadata: MethodMetadata, query_map_encoder: QueryMapEncoder | None = None
    ) -> None:
        self.metadata = metadata
        self.query_map_encoder = query_map_encoder or DefaultQueryMapEncoder()
        self._index_to_name = metadata.index_to_name
        self._index_to_expander = metadata.index_to_expander
        self._encoded_names = frozenset(
            name
            for index in metadata.index_to_encoded
            for name in self._index_to_name.get(index, ())
        )

    def create(self, args: Sequence[Any]) -> RequestTemplate:
        metadata = self.metadata
        mutable = RequestTemplate.from_template(metadata.template)
        if metadata.url_index is not None:
            url = args[metadata.url_index]
            if url is None:
                raise ValueError(f"URI parameter {metadata.url_index} was null")
            mutable.target = str(url)

        variables: dict[str, Any] = {}
        for index, names in self._index_to_name.items():
            value = args[index]
            if value is None:
                continue
            expander = self._index_to_expander.get(index)
            if expander is not None:
                value = _expand_elements(expander, value)
            for name in names:
                variables[name] = value

        template = self.resolve(args, mutable, variables)

        if metadata.query_map_index is not None:
            query_map = args[metadata.query_map_index]
            if query_map is not None:
                self._add_query_map(template, query_map)
        if metadata.header_map_index is not None:
            header_map = args[metadata.header_map_index]
            if header_map is not None:
                self._add_header_map(template, header_map)
        return template

    def resolve(
        self, args: Sequence[Any], mutable: RequestTemplate, variables: Mapping[str, Any]
    ) -> RequestTemplate:
        return mutable.resolve(variables, self._encoded_names)

    def _add_query_map(self, template: RequestTemplate, query_map: Any) -> None:
        entries = (
            query_map
            if isinstance(query_map, Mapping)
            else self.query_map_encoder.encode(query_map)
        )
        encoded = self.metadata.query_map_encoded
        separate = template.collection_format is not CollectionFormat.MULTI
        for name, value in entries.items():
            if value is None:
                continue
            values = _values(value)
            if not values:
                continue
            if separate and len(values) > 1:
                if not encoded:
                    values = [encode_query(v, template.charset) for v in values]
                    name = encode_query(str(name), template.charset)
                joined = template.collection_format.encoded_separator.join(values)
                template.query(str(name), joined, append=True, encoded=True)
            else:
                template.query(str(name), *values, append=True, encoded=encoded)

    @staticmethod
    def _add_header_map(template: RequestTemplate, header_map: Any) -> None:
        if not isinstance(header_map, Mapping):
            raise TypeError(
                f"HeaderMap argument must be a Mapping, got {type(header_map).__name__}"
            )
        for name, value in header_map.items():
            if value is None:
                continue
            values = _values(value)
            if values:
                template.header(str(name), *values, append=True)


class FormTemplateFactory(ArgumentTemplateFactory):
    """Encodes the form parameters through the encoder after resolving."""

    def __init__(
        self,
        metadata: MethodMetadata,
        encoder: Encoder,
        query_map_encoder: QueryMapEncoder | None = None,
    ) -> None:
        super().__init__(metadata, query_map_encoder)
        self.encoder = encoder

    def resolve(
        self, args: Sequence[Any], mutable: RequestTemplate, variables: Mapping[str, Any]
    ) -> RequestTemplate:
        form = {
            name: variables[name] for name in self.metadata.form_params if name in variables
        }
        template = super().resolve(args, mutable, variables)
        _encode(self.encoder, form, FORM_TYPE, template)
        return template


class BodyTemplateFactory(ArgumentTemplateFactory):
    """Encodes the body argument through the encoder after resolving."""

    def __init__(
        self,
        metadata: MethodMetadata,
        encoder: Encoder,
        query_map_encoder: QueryMapEncoder | None = None,
    ) -> None:
        super().__init__(metadata, query_map_encoder)
        self.encoder = encoder

    def resolve(
        self, args: Sequence[Any], mutable: RequestTemplate, variables: Mapping[str, Any]
    ) -> RequestTemplate:
        index = self.metadata.body_index
        assert index is not None
        value = args[index]
        if value is None:
            raise ValueError(f"Body parameter {index} was null")
        template = super().resolve(args, mutable, variables)
        _encode(self.encoder, value, self.metadata.body_type, template)
        return template


def _encode(encoder: Encoder, value: Any, body_type: Any, template: RequestTemplate) -> None:
    try:
        encoder.encode(value, body_type, template)
    except EncodeError:
        raise
    except Exception as exc:
        raise EncodeError(
            f"{type(exc).__name__} encoding {type(value).__name__}: {exc}",
            details={"body_type": repr(body_type)},
        ) from exc


def build_template_factory(
    metadata: MethodMetadata,
    encoder: Encoder,
    query_map_encoder: QueryMapEncoder | None = None,
) -> ArgumentTemplateFactory:
    """Pick the factory variant for ``metadata``."""
    if metadata.form_params and metadata.body_index is None:
        return FormTemplateFactory(metadata, encoder, query_map_encoder)
    if metadata.body_index is not None:
        return BodyTemplateFactory(metadata, encoder, query_map_encoder)
    return ArgumentTemplateFactory(metadata, query_map_encoder)


__all__ = [
    "ArgumentTemplateFactory",
    "BodyTemplateFactory",
    "FormTemplateFactory",
    "TemplateFactory",
    "build_template_factory",
]
