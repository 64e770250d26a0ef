"""Enumerations for callforge.

This module defines the enum types shared by templates, contracts and
handlers to prevent magic strings.
"""

from enum import Enum


class HttpMethod(str, Enum):
    """HTTP request methods a contract may declare.

    Example:
        >>> HttpMethod("GET") is HttpMethod.GET
        True
    """

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    TRACE = "TRACE"
    PATCH = "PATCH"


class CollectionFormat(str, Enum):
    """How multi-valued query parameters and headers are serialized.

    MULTI emits one entry per value (``a=1&a=2``); the other formats join
    all values into a single entry using their separator.

    Example:
        >>> CollectionFormat.CSV.separator
        ','
        >>> CollectionFormat.PIPES.encoded_separator
        '%7C'
    """

    CSV = "csv"
    SSV = "ssv"
    TSV = "tsv"
    PIPES = "pipes"
    MULTI = "multi"

    @property
    def separator(self) -> str:
        """Raw separator, used for headers."""
        return _SEPARATORS[self]

    @property
    def encoded_separator(self) -> str:
        """Percent-encoded separator, used for query strings."""
        return _ENCODED_SEPARATORS[self]


_SEPARATORS = {
    CollectionFormat.CSV: ",",
    CollectionFormat.SSV: " ",
    CollectionFormat.TSV: "\t",
    CollectionFormat.PIPES: "|",
    CollectionFormat.MULTI: ",",
}

_ENCODED_SEPARATORS = {
    CollectionFormat.CSV: ",",
    CollectionFormat.SSV: "%20",
    CollectionFormat.TSV: "%09",
    CollectionFormat.PIPES: "%7C",
    CollectionFormat.MULTI: ",",
}


class LogLevel(str, Enum):
    """How much of each call the CallLogger records.

    NONE: nothing
    BASIC: request line, response status and elapsed time
    HEADERS: BASIC plus request and response headers
    FULL: HEADERS plus bodies
    """

    NONE = "none"
    BASIC = "basic"
    HEADERS = "headers"
    FULL = "full"

    def includes(self, other: "LogLevel") -> bool:
        """Return True if this level logs at least as much as ``other``."""
        order = list(LogLevel)
        return order.index(self) >= order.index(other)


class OperationKind(str, Enum):
    """Kind of a member found on a contract.

    Only REMOTE members become invokable operations; STATIC and DEFAULT
    members are skipped by the contract parser.
    """

    REMOTE = "remote"
    STATIC = "static"
    DEFAULT = "default"
