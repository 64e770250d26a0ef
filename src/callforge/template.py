"""Parameterized request templates.

A RequestTemplate holds the shape of a request (method, URI template,
query and header templates, literal body or body template) and expands it
against call-time variables into a resolved template, from which a
concrete Request is produced.

Expressions are written ``{name}``. Expansion rules:
- Path: values are percent-encoded with path rules; ``/`` survives only
  when ``decode_slash`` is True. Undefined variables expand to "".
- Query: names and values are percent-encoded. A query value whose
  expressions are all undefined is dropped. Multi-valued variables follow
  ``collection_format``: MULTI emits one pair per value, the other formats
  join the values with their encoded separator.
- Headers: values are not encoded. Undefined values are dropped, as is a
  header left without values.
- Body template: expressions are substituted without encoding, undefined
  ones are left in place, then ``%7B``/``%7D`` are decoded so JSON bodies
  can escape literal braces.

Example:
    >>> template = RequestTemplate()
    >>> template.method = HttpMethod.GET
    >>> template.uri = "/repos/{owner}/{repo}/contributors?page={page}"
    >>> template.target = "https://api.github.com"
    >>> request = template.expand({"owner": "OpenFeign", "repo": "feign"})
    >>> request.url
    'https://api.github.com/repos/OpenFeign/feign/contributors'
"""

from __future__ import annotations

import re
from collections.abc import Collection, Iterable, Mapping
from typing import Any
from urllib.parse import quote

from callforge.errors import TemplateError
from callforge.models.constants import DEFAULT_CHARSET
from callforge.models.enums import CollectionFormat, HttpMethod
from callforge.models.http import Request
from callforge.utils.encoding import QUERY_SAFE, encode_path, encode_query

EXPRESSION_PATTERN = re.compile(r"\{([A-Za-z0-9_.\-]+)\}")
_ESCAPED_BRACES = re.compile(r"%7[BbDd]")
_ABSOLUTE_URL = re.compile(r"^[A-Za-z][A-Za-z0-9+.\-]*://")

# Literal template text is authored URL text: keep existing escapes
LITERAL_QUERY_SAFE = QUERY_SAFE + "%"


def to_string(value: Any) -> str:
    """Default conversion of a variable value to its template text.

    Example:
        >>> to_string(True), to_string(3), to_string("x")
        ('true', '3', 'x')
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, bytes):
        return value.decode(DEFAULT_CHARSET)
    return str(value)


def is_multi_valued(value: Any) -> bool:
    return isinstance(value, Iterable) and not isinstance(value, (str, bytes, Mapping))


def expressions(template: str) -> list[str]:
    """Return the variable names referenced by ``template`` in order."""
    return EXPRESSION_PATTERN.findall(template)


def _lookup(variables: Mapping[str, Any], name: str) -> list[str] | None:
    """Return the string values bound to ``name``, or None when undefined."""
    if name not in variables:
        return None
    value = variables[name]
    if value is None:
        return None
    if is_multi_valued(value):
        values = [to_string(v) for v in value if v is not None]
        return values or None
    return [to_string(value)]


class RequestTemplate:
    """Mutable builder describing a request before and after expansion.

    Attributes:
        method: HTTP method (None until a contract binds one)
        target: Base URL prefixed to ``uri`` (may be empty until targeted)
        collection_format: Serialization of multi-valued queries and headers
        decode_slash: Keep ``/`` literal in expanded path values
        charset: Charset of bodies and percent-encoding
    """

    def __init__(self) -> None:
        self.method: HttpMethod | None = None
        self.target: str = ""
        self.collection_format = CollectionFormat.MULTI
        self.decode_slash = True
        self.charset = DEFAULT_CHARSET
        self._uri = ""
        self._queries: dict[str, list[str]] = {}
        self._headers: dict[str, list[str]] = {}
        self._body: bytes | None = None
        self._body_template: str | None = None
        self._resolved = False

    @classmethod
    def from_template(cls, other: RequestTemplate) -> RequestTemplate:
        """Return an independent copy of ``other``."""
        template = cls()
        template.method = other.method
        template.target = other.target
        template.collection_format = other.collection_format
        template.decode_slash = other.decode_slash
        template.charset = other.charset
        template._uri = other._uri
        template._queries = {name: list(values) for name, values in other._queries.items()}
        template._headers = {name: list(values) for name, values in other._headers.items()}
        template._body = other._body
        template._body_template = other._body_template
        template._resolved = other._resolved
        return template

    # -- uri ---------------------------------------------------------------

    @property
    def uri(self) -> str:
        return self._uri

    @uri.setter
    def uri(self, value: str) -> None:
        self.set_uri(value)

    def set_uri(self, value: str, append: bool = False) -> None:
        """Set (or append to) the URI; a ``?query`` suffix becomes query templates."""
        value = value or ""
        if "?" in value:
            value, query_string = value.split("?", 1)
            for pair in query_string.split("&"):
                if not pair:
                    continue
                name, _, query_value = pair.partition("=")
                if "=" in pair:
                    self._queries.setdefault(name, []).append(query_value)
                else:
                    self._queries.setdefault(name, [])
        if value and not value.startswith("/") and not value.startswith("{") and not append:
            if not _ABSOLUTE_URL.match(value):
                value = "/" + value
        self._uri = self._uri + value if append else value

    @property
    def resolved(self) -> bool:
        return self._resolved

    # -- headers -----------------------------------------------------------

    @property
    def headers(self) -> dict[str, tuple[str, ...]]:
        return {name: tuple(values) for name, values in self._headers.items()}

    def header(self, name: str, *values: str, append: bool = False) -> RequestTemplate:
        """Set header ``name`` to ``values``; no values removes the header.

        Names match case-insensitively. With ``append=True`` values are
        added after existing ones instead of replacing them.
        """
        if not name:
            raise TemplateError("header name is required")
        existing = self._find_header(name)
        if not values:
            if existing is not None:
                del self._headers[existing]
            return self
        cleaned = [v.strip() for v in values]
        if existing is not None and append:
            self._headers[existing].extend(cleaned)
        else:
            if existing is not None:
                del self._headers[existing]
            self._headers[name] = cleaned
        return self

    def _find_header(self, name: str) -> str | None:
        lower = name.lower()
        for key in self._headers:
            if key.lower() == lower:
                return key
        return None

    # -- queries -----------------------------------------------------------

    @property
    def queries(self) -> dict[str, tuple[str, ...]]:
        return {name: tuple(values) for name, values in self._queries.items()}

    def query(
        self, name: str, *values: str, append: bool = False, encoded: bool = False
    ) -> RequestTemplate:
        """Set query ``name`` to ``values``; no values removes it.

        On a resolved template the values are literal and get encoded here
        unless ``encoded`` says they already are.
        """
        if not name:
            raise TemplateError("query name is required")
        if not values:
            self._queries.pop(name, None)
            return self
        new_values = list(values)
        if self._resolved and not encoded:
            name = encode_query(name, self.charset)
            new_values = [encode_query(v, self.charset) for v in new_values]
        if append and name in self._queries:
            self._queries[name].extend(new_values)
        else:
            self._queries[name] = new_values
        return self

    # -- body --------------------------------------------------------------

    @property
    def body(self) -> bytes | None:
        return self._body

    @body.setter
    def body(self, value: bytes | str | None) -> None:
        if isinstance(value, str):
            value = value.encode(self.charset)
        self._body = value
        self._body_template = None

    @property
    def body_template(self) -> str | None:
        return self._body_template

    @body_template.setter
    def body_template(self, value: str | None) -> None:
        self._body_template = value
        self._body = None

    # -- introspection -----------------------------------------------------

    def variables(self) -> list[str]:
        """Return every variable name the template references, in order."""
        names: list[str] = []
        sources: list[str] = [self._uri]
        for query_values in self._queries.values():
            sources.extend(query_values)
        for header_values in self._headers.values():
            sources.extend(header_values)
        if self._body_template:
            sources.append(self._body_template)
        for source in sources:
            for name in expressions(source):
                if name not in names:
                    names.append(name)
        return names

    def has_request_variable(self, name: str) -> bool:
        return name in self.variables()

    # -- expansion ---------------------------------------------------------

    def resolve(
        self, variables: Mapping[str, Any], encoded: Collection[str] = ()
    ) -> RequestTemplate:
        """Expand this template against ``variables``.

        Args:
            variables: Variable name to value (or list of values)
            encoded: Names whose values are already percent-encoded

        Returns:
            A new resolved template; this one is left untouched
        """
        resolved = RequestTemplate.from_template(self)
        resolved._uri = self._expand_uri(variables, encoded)
        resolved._queries = self._expand_queries(variables, encoded)
        resolved._headers = self._expand_headers(variables)
        if self._body_template is not None:
            resolved._body = self._expand_body(variables).encode(self.charset)
            resolved._body_template = None
        resolved._resolved = True
        return resolved

    def _expand_uri(self, variables: Mapping[str, Any], encoded: Collection[str]) -> str:
        def substitute(match: re.Match[str]) -> str:
            name = match.group(1)
            values = _lookup(variables, name)
            if values is None:
                return ""
            if name not in encoded:
                values = [encode_path(v, self.decode_slash, self.charset) for v in values]
            separator = self.collection_format.encoded_separator
            return separator.join(values)

        return EXPRESSION_PATTERN.sub(substitute, self._uri)

    def _expand_queries(
        self, variables: Mapping[str, Any], encoded: Collection[str]
    ) -> dict[str, list[str]]:
        result: dict[str, list[str]] = {}
        for raw_name, templates in self._queries.items():
            name = raw_name if self._resolved else quote(raw_name, safe=LITERAL_QUERY_SAFE)
            if self._resolved:
                result[name] = list(templates)
                continue
            if not templates:
                result[name] = []
                continue
            values: list[str] = []
            for template in templates:
                values.extend(self._expand_query_value(template, variables, encoded))
            if values:
                if self.collection_format is not CollectionFormat.MULTI and len(values) > 1:
                    values = [self.collection_format.encoded_separator.join(values)]
                result.setdefault(name, []).extend(values)
        return result

    def _expand_query_value(
        self, template: str, variables: Mapping[str, Any], encoded: Collection[str]
    ) -> list[str]:
        names = expressions(template)
        if not names:
            return [quote(template, safe=LITERAL_QUERY_SAFE)]
        bound = {name: _lookup(variables, name) for name in names}
        if all(values is None for values in bound.values()):
            return []

        def encode(name: str, value: str) -> str:
            if name in encoded:
                return value
            return encode_query(value, self.charset)

        match = EXPRESSION_PATTERN.fullmatch(template)
        if match is not None:
            name = match.group(1)
            return [encode(name, v) for v in bound[name] or []]

        separator = self.collection_format.encoded_separator

        def substitute(m: re.Match[str]) -> str:
            values = bound.get(m.group(1)) or []
            return separator.join(encode(m.group(1), v) for v in values)

        literal = quote(template, safe=LITERAL_QUERY_SAFE + "{}")
        return [EXPRESSION_PATTERN.sub(substitute, literal)]

    def _expand_headers(self, variables: Mapping[str, Any]) -> dict[str, list[str]]:
        result: dict[str, list[str]] = {}
        for name, templates in self._headers.items():
            values: list[str] = []
            for template in templates:
                names = expressions(template)
                if not names:
                    values.append(template)
                    continue
                match = EXPRESSION_PATTERN.fullmatch(template)
                if match is not None:
                    bound = _lookup(variables, match.group(1))
                    if bound is not None:
                        values.extend(bound)
                    continue
                if all(_lookup(variables, n) is None for n in names):
                    continue
                separator = self.collection_format.separator
                values.append(
                    EXPRESSION_PATTERN.sub(
                        lambda m: separator.join(_lookup(variables, m.group(1)) or []), template
                    )
                )
            if not values:
                continue
            if self.collection_format is not CollectionFormat.MULTI and len(values) > 1:
                values = [self.collection_format.separator.join(values)]
            result[name] = values
        return result

    def _expand_body(self, variables: Mapping[str, Any]) -> str:
        assert self._body_template is not None

        def substitute(match: re.Match[str]) -> str:
            values = _lookup(variables, match.group(1))
            if values is None:
                return match.group(0)
            return self.collection_format.separator.join(values)

        expanded = EXPRESSION_PATTERN.sub(substitute, self._body_template)
        return _ESCAPED_BRACES.sub(lambda m: "{" if m.group(0)[-1] in "Bb" else "}", expanded)

    def expand(self, variables: Mapping[str, Any], encoded: Collection[str] = ()) -> Request:
        """Resolve against ``variables`` and build the concrete request."""
        return self.resolve(variables, encoded).request()

    # -- concrete request --------------------------------------------------

    def query_line(self) -> str:
        """Return the query string (without ``?``) of a resolved template."""
        pairs: list[str] = []
        for name, values in self._queries.items():
            if not values:
                pairs.append(name)
            for value in values:
                pairs.append(f"{name}={value}")
        return "&".join(pairs)

    def url(self) -> str:
        """Return target + uri + query string."""
        url = self.target.rstrip("/") + self._uri if self.target else self._uri
        query_line = self.query_line()
        if query_line:
            url = f"{url}?{query_line}"
        return url

    def request(self) -> Request:
        """Build the concrete Request from a resolved template.

        Raises:
            TemplateError: If the template is unresolved, has no method, or
                its URL is not absolute
        """
        if not self._resolved:
            raise TemplateError("template has not been resolved")
        if self.method is None:
            raise TemplateError("template has no HTTP method")
        url = self.url()
        if not _ABSOLUTE_URL.match(url):
            raise TemplateError(
                f"URL is not absolute: {url!r}. Target the template with a base URL.",
                details={"url": url},
            )
        return Request(
            method=self.method,
            url=url,
            headers=self.headers,
            body=self._body,
            charset=self.charset,
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RequestTemplate):
            return NotImplemented
        return self._state() == other._state()

    __hash__ = None  # type: ignore[assignment]

    def _state(self) -> tuple[Any, ...]:
        return (
            self.method,
            self.target,
            self.collection_format,
            self.decode_slash,
            self.charset,
            self._uri,
            self._queries,
            self._headers,
            self._body,
            self._body_template,
            self._resolved,
        )

    def __repr__(self) -> str:
        method = self.method.value if self.method else "?"
        return f"RequestTemplate({method} {self.url()!r}, resolved={self._resolved})"
