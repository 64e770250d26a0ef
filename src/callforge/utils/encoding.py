"""Percent-encoding rules for URI templates.

Path values keep the RFC 3986 sub-delimiters literal and encode everything
else outside the unreserved set; ``/`` is kept or encoded depending on the
template's slash-decoding flag. Query names and values additionally encode
``&``, ``=``, ``+`` and ``#`` so they cannot break the query string.

Example:
    >>> encode_path("a b/c", decode_slash=True)
    'a%20b/c'
    >>> encode_path("a b/c", decode_slash=False)
    'a%20b%2Fc'
    >>> encode_query("x&y=z")
    'x%26y%3Dz'
"""

from urllib.parse import quote, unquote

from callforge.models.constants import DEFAULT_CHARSET

PATH_SAFE = "!$&'()*+,;=:@"
QUERY_SAFE = "!$'()*,;:@/?"


def encode_path(value: str, decode_slash: bool = True, charset: str = DEFAULT_CHARSET) -> str:
    """Percent-encode a value substituted into the path."""
    safe = PATH_SAFE + "/" if decode_slash else PATH_SAFE
    return quote(value, safe=safe, encoding=charset)


def encode_query(value: str, charset: str = DEFAULT_CHARSET) -> str:
    """Percent-encode a query parameter name or value."""
    return quote(value, safe=QUERY_SAFE, encoding=charset)


def decode(value: str, charset: str = DEFAULT_CHARSET) -> str:
    return unquote(value, encoding=charset)
