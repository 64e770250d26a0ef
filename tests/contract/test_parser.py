"""Tests for contract parsing and validation."""

from typing import Annotated, Any, Generic, TypeVar

import httpx
import pytest
from pydantic import BaseModel

from callforge.contract import (
    ContractDescriptor,
    DeclarativeContract,
    DefaultContract,
    HeaderMap,
    OperationDescriptor,
    Param,
    ParameterDescriptor,
    QueryMap,
    RequestLine,
    body,
    describe,
    headers,
    request_line,
)
from callforge.errors import ContractError
from callforge.metadata import (
    BodyRole,
    HeaderMapRole,
    IgnoredRole,
    MethodMetadata,
    NamedRole,
    QueryMapRole,
    ToStringExpander,
    UrlRole,
)
from callforge.models.base import CallforgeBaseModel
from callforge.models.enums import CollectionFormat, HttpMethod
from callforge.models.http import Options
from callforge.observability.metrics import get_metrics
from callforge.testing.fixtures import Contributor, GitHub, Issue

T = TypeVar("T")


class Item(BaseModel):
    id: str


class UpperExpander:
    def format(self, value: Any) -> str:
        return str(value).upper()


def parse(api: Any) -> dict[str, MethodMetadata]:
    return {m.method_name: m for m in DefaultContract().parse(api)}


def parse_one(api: Any) -> MethodMetadata:
    (metadata,) = DefaultContract().parse(api)
    return metadata


class TestGitHubContract:
    """Parsing the shared GitHub contract."""

    def test_config_keys(self) -> None:
        keys = [m.config_key for m in DefaultContract().parse(GitHub)]

        assert keys == [
            "GitHub#contributors(str,str)",
            "GitHub#create_issue(Issue,str,str)",
        ]

    def test_contributors(self) -> None:
        metadata = parse(GitHub)["contributors"]

        assert metadata.template.method is HttpMethod.GET
        assert metadata.template.uri == "/repos/{owner}/{repo}/contributors"
        assert metadata.template.headers == {"Accept": ("application/json",)}
        assert metadata.index_to_name == {0: ("owner",), 1: ("repo",)}
        assert metadata.return_type == list[Contributor]
        assert metadata.form_params == ()

    def test_create_issue(self) -> None:
        metadata = parse(GitHub)["create_issue"]

        assert metadata.template.method is HttpMethod.POST
        assert metadata.body_index == 0
        assert metadata.body_type is Issue
        assert metadata.return_type is type(None)
        assert metadata.template.headers == {
            "Accept": ("application/json",),
            "Content-Type": ("application/json",),
        }

    def test_parsed_operations_are_counted(self) -> None:
        DefaultContract().parse(GitHub)

        assert get_metrics().get_counter(
            "callforge_operations_parsed_total", {"contract": "GitHub"}
        ) == 2.0


class TestRequestLine:
    """Tests for the request line marker."""

    def test_query_in_request_line(self) -> None:
        class Search:
            @request_line("GET /search?q={q}&sort=stars")
            def search(self, q: Annotated[str, Param()]) -> str: ...

        template = parse_one(Search).template
        assert template.uri == "/search"
        assert template.queries == {"q": ("{q}",), "sort": ("stars",)}

    def test_decode_slash_and_collection_format(self) -> None:
        class Files:
            @request_line(
                "GET /files/{path}", decode_slash=False, collection_format=CollectionFormat.CSV
            )
            def get(self, path: Annotated[str, Param()]) -> str: ...

        template = parse_one(Files).template
        assert template.decode_slash is False
        assert template.collection_format is CollectionFormat.CSV

    def test_missing_http_method(self) -> None:
        class NoVerb:
            @headers("Accept: */*")
            def ping(self) -> str: ...

        with pytest.raises(
            ContractError, match=r"not annotated with HTTP method type \(ex. GET, POST\)"
        ):
            DefaultContract().parse(NoVerb)

    def test_empty_request_line(self) -> None:
        class Empty:
            @request_line("  ")
            def ping(self) -> str: ...

        with pytest.raises(ContractError, match="RequestLine annotation was empty"):
            DefaultContract().parse(Empty)

    def test_lowercase_verb(self) -> None:
        class Lower:
            @request_line("get /ping")
            def ping(self) -> str: ...

        with pytest.raises(ContractError, match="didn't start with an HTTP verb"):
            DefaultContract().parse(Lower)

    def test_unknown_verb(self) -> None:
        class Fetch:
            @request_line("FETCH /ping")
            def ping(self) -> str: ...

        with pytest.raises(ContractError, match="Unsupported HTTP verb 'FETCH'"):
            DefaultContract().parse(Fetch)


class TestHeaders:
    """Class and method header markers."""

    def test_method_header_replaces_class_header(self) -> None:
        @headers("Accept: text/plain", "X-Api: v1")
        class Api:
            @request_line("GET /a")
            @headers("Accept: application/json")
            def a(self) -> str: ...

        assert parse_one(Api).template.headers == {
            "Accept": ("application/json",),
            "X-Api": ("v1",),
        }

    def test_repeated_header_name_collects_values(self) -> None:
        class Api:
            @request_line("GET /a")
            @headers("X-Tag: one", "X-Tag: two")
            def a(self) -> str: ...

        assert parse_one(Api).template.headers == {"X-Tag": ("one", "two")}

    def test_empty_headers(self) -> None:
        class Api:
            @request_line("GET /a")
            @headers()
            def a(self) -> str: ...

        with pytest.raises(ContractError, match="Headers annotation was empty"):
            DefaultContract().parse(Api)

    def test_malformed_header(self) -> None:
        class Api:
            @request_line("GET /a")
            @headers("NoColon")
            def a(self) -> str: ...

        with pytest.raises(ContractError, match="Header must be 'Name: value'"):
            DefaultContract().parse(Api)


class TestBodyMarker:
    """Literal bodies versus body templates."""

    def test_literal_body(self) -> None:
        class Api:
            @request_line("POST /ping")
            @body("ping")
            def ping(self) -> str: ...

        template = parse_one(Api).template
        assert template.body == b"ping"
        assert template.body_template is None

    def test_body_template(self) -> None:
        class Api:
            @request_line("POST /login")
            @body('%7B"user": "{user}"%7D')
            def login(self, user: Annotated[str, Param()]) -> str: ...

        metadata = parse_one(Api)
        assert metadata.template.body_template == '%7B"user": "{user}"%7D'
        assert metadata.form_params == ()


class TestParameters:
    """Parameter role assignment."""

    def test_param_name_defaults_to_parameter_name(self) -> None:
        class Api:
            @request_line("GET /users/{user_id}")
            def get(self, user_id: Annotated[int, Param()]) -> str: ...

        assert parse_one(Api).index_to_name == {0: ("user_id",)}

    def test_unreferenced_params_become_form_params(self) -> None:
        class Auth:
            @request_line("POST /login")
            def login(
                self,
                username: Annotated[str, Param()],
                password: Annotated[str, Param()],
            ) -> str: ...

        metadata = parse_one(Auth)
        assert metadata.form_params == ("username", "password")
        assert metadata.body_index is None

    def test_header_variable_is_not_a_form_param(self) -> None:
        class Api:
            @request_line("GET /me")
            @headers("Authorization: Bearer {token}")
            def me(self, token: Annotated[str, Param()]) -> str: ...

        assert parse_one(Api).form_params == ()

    def test_unmarked_parameter_is_body(self) -> None:
        class Api:
            @request_line("POST /items")
            def create(self, item: Item) -> Item: ...

        metadata = parse_one(Api)
        assert metadata.parameters == {0: BodyRole()}
        assert metadata.body_type is Item

    def test_unannotated_parameter_is_body_of_any(self) -> None:
        class Api:
            @request_line("POST /items")
            def create(self, payload):  # type: ignore[no-untyped-def]
                ...

        metadata = parse_one(Api)
        assert metadata.body_index == 0
        assert metadata.body_type is Any
        assert metadata.return_type is Any

    def test_too_many_bodies(self) -> None:
        class Api:
            @request_line("POST /items")
            def create(self, first: str, second: str) -> str: ...

        with pytest.raises(ContractError, match="Method has too many Body parameters"):
            DefaultContract().parse(Api)

    @pytest.mark.parametrize("body_first", [True, False])
    def test_body_with_form_params(self, body_first: bool) -> None:
        if body_first:

            class Api:
                @request_line("POST /items")
                def create(self, payload: str, name: Annotated[str, Param()]) -> str: ...

        else:

            class Api:  # type: ignore[no-redef]
                @request_line("POST /items")
                def create(self, name: Annotated[str, Param()], payload: str) -> str: ...

        with pytest.raises(
            ContractError, match="Body parameters cannot be used with form parameters."
        ):
            DefaultContract().parse(Api)

    def test_url_and_options_parameters(self) -> None:
        class Api:
            @request_line("GET /ping")
            def ping(self, base: httpx.URL, options: Options) -> str: ...

        metadata = parse_one(Api)
        assert metadata.parameters == {0: UrlRole(), 1: IgnoredRole()}
        assert metadata.config_key == "Api#ping(URL,Options)"

    def test_expanders(self) -> None:
        class Api:
            @request_line("GET /users/{name}/{id}")
            def get(
                self,
                name: Annotated[str, Param(expander=UpperExpander)],
                id: Annotated[int, Param(expander=ToStringExpander)],
            ) -> str: ...

        metadata = parse_one(Api)
        assert isinstance(metadata.index_to_expander[0], UpperExpander)
        assert 1 not in metadata.index_to_expander

    def test_expander_without_format(self) -> None:
        class Api:
            @request_line("GET /users/{name}")
            def get(self, name: Annotated[str, Param(expander=object())]) -> str: ...

        with pytest.raises(ContractError, match="has no format"):
            DefaultContract().parse(Api)

    def test_encoded_param(self) -> None:
        class Api:
            @request_line("GET /files/{path}")
            def get(self, path: Annotated[str, Param(encoded=True)]) -> str: ...

        role = parse_one(Api).parameters[0]
        assert isinstance(role, NamedRole)
        assert role.encoded


class TestMaps:
    """QueryMap and HeaderMap markers."""

    def test_query_and_header_maps(self) -> None:
        class Api:
            @request_line("GET /search")
            def search(
                self,
                query: Annotated[dict[str, Any], QueryMap(encoded=True)],
                extra: Annotated[dict[str, str], HeaderMap()],
            ) -> str: ...

        metadata = parse_one(Api)
        assert metadata.parameters == {0: QueryMapRole(encoded=True), 1: HeaderMapRole()}
        assert metadata.query_map_encoded

    def test_query_map_may_be_an_object(self) -> None:
        class Api:
            @request_line("GET /search")
            def search(self, query: Annotated[Item, QueryMap()]) -> str: ...

        assert parse_one(Api).query_map_index == 0

    def test_two_query_maps(self) -> None:
        class Api:
            @request_line("GET /search")
            def search(
                self,
                a: Annotated[dict[str, str], QueryMap()],
                b: Annotated[dict[str, str], QueryMap()],
            ) -> str: ...

        with pytest.raises(
            ContractError, match="QueryMap annotation was present on multiple parameters."
        ):
            DefaultContract().parse(Api)

    def test_two_header_maps(self) -> None:
        class Api:
            @request_line("GET /search")
            def search(
                self,
                a: Annotated[dict[str, str], HeaderMap()],
                b: Annotated[dict[str, str], HeaderMap()],
            ) -> str: ...

        with pytest.raises(
            ContractError, match="HeaderMap annotation was present on multiple parameters."
        ):
            DefaultContract().parse(Api)

    def test_header_map_must_be_mapping(self) -> None:
        class Api:
            @request_line("GET /search")
            def search(self, a: Annotated[str, HeaderMap()]) -> str: ...

        with pytest.raises(ContractError, match="HeaderMap parameter must be a Mapping"):
            DefaultContract().parse(Api)

    def test_query_map_keys_must_be_str(self) -> None:
        class Api:
            @request_line("GET /search")
            def search(self, a: Annotated[dict[int, str], QueryMap()]) -> str: ...

        with pytest.raises(ContractError, match="QueryMap key must be a str: int"):
            DefaultContract().parse(Api)


class Base(Generic[T]):
    @request_line("GET /items/{id}")
    def get(self, id: Annotated[str, Param()]) -> T: ...

    @request_line("GET /items")
    def index(self) -> list[T]: ...


class Items(Base[Item]):
    @request_line("DELETE /items/{id}")
    def delete(self, id: Annotated[str, Param()]) -> None: ...


@headers("X-Parent: yes", "Accept: text/plain")
class Parent:
    @request_line("GET /parent")
    def parent_op(self) -> str: ...


@headers("Accept: application/json")
class Child(Parent):
    @request_line("GET /child")
    def child_op(self) -> str: ...


class TestInheritance:
    """Generic and inheritance rules."""

    def test_generic_parent_is_resolved(self) -> None:
        operations = parse(Items)

        assert [m.config_key for m in operations.values()] == [
            "Items#delete(str)",
            "Items#get(str)",
            "Items#index()",
        ]
        assert operations["get"].return_type is Item
        assert operations["index"].return_type == list[Item]

    def test_parameterized_contract_rejected(self) -> None:
        with pytest.raises(ContractError, match="Parameterized types unsupported: Base"):
            DefaultContract().parse(Base)

    def test_parent_headers_apply_first(self) -> None:
        operations = parse(Child)

        assert operations["parent_op"].template.headers == {
            "X-Parent": ("yes",),
            "Accept": ("application/json",),
        }
        assert operations["child_op"].config_key == "Child#child_op()"

    def test_multiple_inheritance_rejected(self) -> None:
        class Other:
            @request_line("GET /other")
            def other(self) -> str: ...

        class Both(Parent, Other):
            pass

        with pytest.raises(ContractError, match="Only single inheritance supported: Both"):
            DefaultContract().parse(Both)

    def test_multi_level_inheritance_rejected(self) -> None:
        class GrandChild(Child):
            pass

        with pytest.raises(ContractError, match="Only single-level inheritance supported"):
            DefaultContract().parse(GrandChild)

    def test_overrides_rejected(self) -> None:
        operation = OperationDescriptor(
            name="get",
            parameters=(ParameterDescriptor(name="id", annotation=str, markers=(Param(),)),),
            annotations=(RequestLine(value="GET /{id}"),),
        )
        descriptor = ContractDescriptor(name="Api", operations=(operation, operation))

        with pytest.raises(ContractError, match=r"Overrides unsupported: Api#get\(str\)"):
            DefaultContract().parse(descriptor)


class TestSkippedMembers:
    """Static and undecorated members are not operations."""

    def test_static_and_default_methods_skipped(self) -> None:
        class Api:
            @request_line("GET /ping")
            def ping(self) -> str: ...

            @staticmethod
            def helper() -> str:
                return "x"

            def default(self) -> str:
                return "y"

        assert list(parse(Api)) == ["ping"]


class Ignore(CallforgeBaseModel):
    """Marks an operation as not invokable."""


class IgnoringContract(DefaultContract):
    def __init__(self) -> None:
        super().__init__()
        self.register_method_annotation(Ignore, lambda annotation, builder: builder.ignore_method())


class TestDeclarativeContract:
    """Custom processors and unknown markers."""

    def test_custom_processor(self) -> None:
        descriptor = ContractDescriptor(
            name="Api",
            operations=(OperationDescriptor(name="hidden", annotations=(Ignore(),)),),
        )

        (metadata,) = IgnoringContract().parse(descriptor)
        assert metadata.ignored

    def test_unknown_marker_becomes_warning(self) -> None:
        descriptor = ContractDescriptor(
            name="Api",
            operations=(
                OperationDescriptor(
                    name="ping", annotations=(Ignore(), RequestLine(value="GET /ping"))
                ),
            ),
        )

        (metadata,) = DefaultContract().parse(descriptor)
        assert metadata.warnings == (
            "Method ping has an annotation Ignore that is not used by contract DefaultContract",
        )

    def test_warnings_included_in_missing_verb_error(self) -> None:
        descriptor = ContractDescriptor(
            name="Api", operations=(OperationDescriptor(name="ping", annotations=(Ignore(),)),)
        )

        with pytest.raises(ContractError, match="warnings: Method ping has an annotation Ignore"):
            DefaultContract().parse(descriptor)

    def test_bare_declarative_contract_ignores_everything(self) -> None:
        with pytest.raises(ContractError, match="not annotated with HTTP method type"):
            DeclarativeContract().parse(describe(GitHub))
