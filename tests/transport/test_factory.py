"""Tests for per-call template construction."""

from dataclasses import dataclass
from typing import Annotated, Any

import httpx
import pytest

from callforge.codec import DefaultEncoder, JsonEncoder
from callforge.contract import DefaultContract, HeaderMap, Param, QueryMap, request_line
from callforge.errors import EncodeError
from callforge.models.enums import CollectionFormat
from callforge.testing.fixtures import GitHub, Issue
from callforge.transport.factory import (
    ArgumentTemplateFactory,
    BodyTemplateFactory,
    FormTemplateFactory,
    build_template_factory,
)


class UpperExpander:
    def format(self, value: Any) -> str:
        return str(value).upper()


class Search:
    @request_line("GET /search/{kind}?q={q}")
    def search(
        self,
        kind: Annotated[str, Param("kind", expander=UpperExpander)],
        q: Annotated[str | None, Param("q")],
    ) -> str: ...

    @request_line("GET /items")
    def items(self, query: Annotated[Any, QueryMap()]) -> str: ...

    @request_line("GET /items", collection_format=CollectionFormat.CSV)
    def items_csv(self, query: Annotated[dict[str, Any], QueryMap()]) -> str: ...

    @request_line("GET /items")
    def items_encoded(self, query: Annotated[dict[str, Any], QueryMap(encoded=True)]) -> str: ...

    @request_line("GET /items")
    def with_headers(self, extra: Annotated[Any, HeaderMap()]) -> str: ...

    @request_line("GET /ping")
    def ping(self, url: httpx.URL) -> str: ...

    @request_line("POST /login")
    def login(
        self, user: Annotated[str, Param("user")], password: Annotated[str, Param("password")]
    ) -> str: ...

    @request_line("POST /upload")
    def upload(self, data: Any) -> str: ...


@dataclass
class Filter:
    status: str
    page: int | None = None


def metadata_for(name: str) -> Any:
    (metadata,) = [m for m in DefaultContract().parse(Search) if m.method_name == name]
    return metadata


def factory_for(name: str, encoder: Any = None) -> Any:
    return build_template_factory(metadata_for(name), encoder or DefaultEncoder())


class TestBuildTemplateFactory:
    """Tests for choosing the factory variant."""

    def test_variants(self) -> None:
        assert type(factory_for("search")) is ArgumentTemplateFactory
        assert isinstance(factory_for("login"), FormTemplateFactory)
        assert isinstance(factory_for("upload"), BodyTemplateFactory)


class TestArgumentTemplateFactory:
    """Tests for variables, url override and maps."""

    def test_expands_variables_with_expander(self) -> None:
        template = factory_for("search").create(["repos", "a b"])

        assert template.resolved
        assert template.url() == "/search/REPOS?q=a%20b"

    def test_null_argument_drops_query(self) -> None:
        template = factory_for("search").create(["repos", None])

        assert template.url() == "/search/REPOS"

    def test_template_is_not_mutated(self) -> None:
        metadata = metadata_for("search")
        ArgumentTemplateFactory(metadata).create(["x", "y"])

        assert not metadata.template.resolved
        assert metadata.template.uri == "/search/{kind}"

    def test_url_argument_overrides_target(self) -> None:
        template = factory_for("ping").create([httpx.URL("https://other.example.com")])

        assert template.url() == "https://other.example.com/ping"

    def test_null_url_rejected(self) -> None:
        with pytest.raises(ValueError, match="URI parameter 0 was null"):
            factory_for("ping").create([None])

    def test_query_map_mapping(self) -> None:
        template = factory_for("items").create([{"q": "a b", "skip": None, "tag": ["x", "y"]}])

        assert template.queries == {"q": ("a%20b",), "tag": ("x", "y")}

    def test_query_map_object(self) -> None:
        template = factory_for("items").create([Filter(status="open")])

        assert template.url() == "/items?status=open"

    def test_query_map_csv_joins_values(self) -> None:
        template = factory_for("items_csv").create([{"tag": ["a b", "c"]}])

        assert template.queries == {"tag": ("a%20b,c",)}

    def test_query_map_encoded_values_kept(self) -> None:
        template = factory_for("items_encoded").create([{"q": "a%20b"}])

        assert template.queries == {"q": ("a%20b",)}

    def test_header_map(self) -> None:
        template = factory_for("with_headers").create([{"X-Trace": "1", "X-Tag": ["a", "b"]}])

        assert template.headers == {"X-Trace": ("1",), "X-Tag": ("a", "b")}

    def test_header_map_must_be_mapping(self) -> None:
        with pytest.raises(TypeError, match="HeaderMap argument must be a Mapping"):
            factory_for("with_headers").create([["X-Trace"]])


class TestFormTemplateFactory:
    """Tests for form-encoded bodies."""

    def test_form_body_and_content_type(self) -> None:
        template = factory_for("login").create(["ada", "s3cret&"])

        assert template.body == b"user=ada&password=s3cret%26"
        assert template.headers == {
            "Content-Type": ("application/x-www-form-urlencoded; charset=utf-8",)
        }

    def test_null_form_values_skipped(self) -> None:
        template = factory_for("login").create(["ada", None])

        assert template.body == b"user=ada"


class TestBodyTemplateFactory:
    """Tests for encoded body arguments."""

    def test_encodes_body(self) -> None:
        template = factory_for("upload").create(["raw text"])

        assert template.body == b"raw text"

    def test_json_body(self) -> None:
        (metadata,) = [
            m for m in DefaultContract().parse(GitHub) if m.method_name == "create_issue"
        ]
        template = build_template_factory(metadata, JsonEncoder()).create(
            [Issue(title="Bug"), "octo", "repo"]
        )

        assert template.url() == "/repos/octo/repo/issues"
        assert template.body == b'{"title":"Bug","body":""}'

    def test_null_body_rejected(self) -> None:
        with pytest.raises(ValueError, match="Body parameter 0 was null"):
            factory_for("upload").create([None])

    def test_encoder_error_propagates(self) -> None:
        with pytest.raises(EncodeError, match="is not a type supported"):
            factory_for("upload").create([object()])

    def test_other_exceptions_wrapped(self) -> None:
        class Exploding:
            def encode(self, obj: Any, body_type: Any, template: Any) -> None:
                raise RuntimeError("boom")

        with pytest.raises(EncodeError, match="RuntimeError encoding str: boom") as exc_info:
            factory_for("upload", Exploding()).create(["x"])

        assert isinstance(exc_info.value.__cause__, RuntimeError)
