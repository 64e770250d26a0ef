"""Contracts: declarative description of remote operations.

Example:
    >>> from typing import Annotated
    >>> from callforge.contract import DefaultContract, Param, headers, request_line
    >>> @headers("Accept: application/json")
    ... class GitHub:
    ...     @request_line("GET /repos/{owner}/{repo}/contributors")
    ...     def contributors(
    ...         self, owner: Annotated[str, Param()], repo: Annotated[str, Param()]
    ...     ) -> list[dict]: ...
    >>> metadata = DefaultContract().parse(GitHub)[0]
    >>> metadata.config_key
    'GitHub#contributors(str,str)'
"""

from callforge.contract.annotations import (
    Body,
    HeaderMap,
    Headers,
    Param,
    QueryMap,
    RequestLine,
    body,
    headers,
    request_line,
)
from callforge.contract.descriptors import (
    ContractDescriptor,
    OperationDescriptor,
    ParameterDescriptor,
    describe,
)
from callforge.contract.parser import (
    BaseContract,
    Contract,
    DeclarativeContract,
    DefaultContract,
    config_key,
)

__all__ = [
    "BaseContract",
    "Body",
    "Contract",
    "ContractDescriptor",
    "DeclarativeContract",
    "DefaultContract",
    "HeaderMap",
    "Headers",
    "OperationDescriptor",
    "Param",
    "ParameterDescriptor",
    "QueryMap",
    "RequestLine",
    "body",
    "config_key",
    "describe",
    "headers",
    "request_line",
]
