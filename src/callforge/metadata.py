"""Parsed representation of one remote operation.

MethodMetadata is produced once per operation by a Contract and shared,
read-only, by every call of that operation. Each parameter position maps
to exactly one role:

- UrlRole: the argument replaces the target base URL
- BodyRole: the argument is encoded as the request body
- HeaderMapRole / QueryMapRole: the argument's entries become headers /
  query parameters
- NamedRole: the argument supplies one or more template variables
- IgnoredRole: the argument is not a request input (per-call Options)

MethodMetadataBuilder is the mutable side used while parsing; it refuses
a second role for a position that is already bound.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Protocol, Union, runtime_checkable

from pydantic import Field, model_validator

from callforge.errors import ContractError
from callforge.models.base import CallforgeBaseModel
from callforge.template import RequestTemplate, to_string


@runtime_checkable
class Expander(Protocol):
    """Custom formatting of a parameter value before template substitution."""

    def format(self, value: Any) -> str: ...


class ToStringExpander:
    """Default expander: the engine's plain string conversion."""

    def format(self, value: Any) -> str:
        return to_string(value)


class UrlRole(CallforgeBaseModel):
    kind: Literal["url"] = "url"


class BodyRole(CallforgeBaseModel):
    kind: Literal["body"] = "body"


class HeaderMapRole(CallforgeBaseModel):
    kind: Literal["header_map"] = "header_map"


class QueryMapRole(CallforgeBaseModel):
    kind: Literal["query_map"] = "query_map"
    encoded: bool = False


class NamedRole(CallforgeBaseModel):
    """Argument feeding the template variables ``names``.

    Attributes:
        names: Variable names the argument supplies
        expander: Formatter applied to the value (None for default conversion)
        encoded: Value is already percent-encoded
    """

    kind: Literal["named"] = "named"
    names: tuple[str, ...]
    expander: Any = None
    encoded: bool = False


class IgnoredRole(CallforgeBaseModel):
    kind: Literal["ignored"] = "ignored"


ParameterRole = Annotated[
    Union[UrlRole, BodyRole, HeaderMapRole, QueryMapRole, NamedRole, IgnoredRole],
    Field(discriminator="kind"),
]

# Roles that may be held by at most one parameter per operation
_SINGLETON_ROLES = ("url", "body", "header_map", "query_map")


class MethodMetadata(CallforgeBaseModel):
    """Immutable intermediate representation of one remote operation.

    Attributes:
        config_key: Unique operation identifier, ``Type#method(argtypes)``
        method_name: Name of the declaring method
        return_type: Declared return type (None for void)
        body_type: Declared type of the body parameter, if any
        template: Request template shared by all calls (never mutated)
        parameters: Parameter position to role
        form_params: Names encoded as form fields when there is no body parameter
        ignored: The operation is not invokable
        warnings: Non-fatal notes collected while parsing
    """

    config_key: str
    method_name: str = ""
    return_type: Any = None
    body_type: Any = None
    template: RequestTemplate
    parameters: dict[int, ParameterRole] = Field(default_factory=dict)
    form_params: tuple[str, ...] = ()
    ignored: bool = False
    warnings: tuple[str, ...] = ()

    @model_validator(mode="after")
    def _check_roles(self) -> MethodMetadata:
        for kind in _SINGLETON_ROLES:
            holders = [i for i, role in self.parameters.items() if role.kind == kind]
            if len(holders) > 1:
                raise ValueError(f"{self.config_key}: parameters {holders} all claim role {kind}")
        if self.body_index is not None and self.form_params:
            raise ValueError(f"{self.config_key}: body parameter used with form parameters")
        return self

    def _index_of(self, kind: str) -> int | None:
        for index, role in self.parameters.items():
            if role.kind == kind:
                return index
        return None

    @property
    def url_index(self) -> int | None:
        return self._index_of("url")

    @property
    def body_index(self) -> int | None:
        return self._index_of("body")

    @property
    def header_map_index(self) -> int | None:
        return self._index_of("header_map")

    @property
    def query_map_index(self) -> int | None:
        return self._index_of("query_map")

    @property
    def query_map_encoded(self) -> bool:
        index = self.query_map_index
        if index is None:
            return False
        role = self.parameters[index]
        return isinstance(role, QueryMapRole) and role.encoded

    @property
    def index_to_name(self) -> dict[int, tuple[str, ...]]:
        return {i: role.names for i, role in self.parameters.items() if isinstance(role, NamedRole)}

    @property
    def index_to_expander(self) -> dict[int, Expander]:
        return {
            i: role.expander
            for i, role in self.parameters.items()
            if isinstance(role, NamedRole) and role.expander is not None
        }

    @property
    def index_to_encoded(self) -> dict[int, bool]:
        return {
            i: role.encoded
            for i, role in self.parameters.items()
            if isinstance(role, NamedRole) and role.encoded
        }

    @property
    def parameter_to_ignore(self) -> frozenset[int]:
        """Positions that are neither the body nor the url argument."""
        return frozenset(
            i for i, role in self.parameters.items() if role.kind not in ("url", "body")
        )


class MethodMetadataBuilder:
    """Mutable accumulator used by contracts while parsing one operation."""

    def __init__(self, config_key: str, method_name: str = "") -> None:
        self.config_key = config_key
        self.method_name = method_name
        self.template = RequestTemplate()
        self.return_type: Any = None
        self.body_type: Any = None
        self.roles: dict[int, ParameterRole] = {}
        self.form_params: list[str] = []
        self.ignored = False
        self.warnings: list[str] = []

    def assign(self, index: int, role: ParameterRole) -> None:
        """Bind ``role`` to parameter ``index``.

        Raises:
            ContractError: If the position already holds a role
        """
        existing = self.roles.get(index)
        if existing is not None:
            raise ContractError(
                f"Parameter {index} of {self.config_key} is already bound as "
                f"{existing.kind}; cannot also bind it as {role.kind}",
                details={"config_key": self.config_key, "index": index},
            )
        self.roles[index] = role

    def name_param(
        self,
        index: int,
        name: str,
        expander: Expander | None = None,
        encoded: bool = False,
    ) -> None:
        """Link a template variable name to a parameter position.

        A position may supply several names; later names are appended.
        """
        existing = self.roles.get(index)
        if isinstance(existing, NamedRole):
            self.roles[index] = existing.model_copy(
                update={
                    "names": (*existing.names, name),
                    "expander": existing.expander or expander,
                    "encoded": existing.encoded or encoded,
                }
            )
            return
        self.assign(index, NamedRole(names=(name,), expander=expander, encoded=encoded))

    def index_of(self, kind: str) -> int | None:
        for index, role in self.roles.items():
            if role.kind == kind:
                return index
        return None

    def is_already_processed(self, index: int) -> bool:
        return index in self.roles

    def ignore_method(self) -> None:
        self.ignored = True

    def build(self) -> MethodMetadata:
        return MethodMetadata(
            config_key=self.config_key,
            method_name=self.method_name,
            return_type=self.return_type,
            body_type=self.body_type,
            template=self.template,
            parameters=dict(self.roles),
            form_params=tuple(self.form_params),
            ignored=self.ignored,
            warnings=tuple(self.warnings),
        )
