"""Callforge value models.

This module provides the enums, constants and HTTP value objects shared
by templates, contracts and handlers.
"""

# Base models
from callforge.models.base import CallforgeBaseModel

# Enums
from callforge.models.enums import CollectionFormat, HttpMethod, LogLevel, OperationKind

# HTTP values
from callforge.models.http import (
    BytesBody,
    Options,
    Request,
    Response,
    ResponseBody,
    StreamBody,
)

__all__ = [
    "BytesBody",
    "CallforgeBaseModel",
    "CollectionFormat",
    "HttpMethod",
    "LogLevel",
    "OperationKind",
    "Options",
    "Request",
    "Response",
    "ResponseBody",
    "StreamBody",
]
