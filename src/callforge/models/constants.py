"""Callforge constants.

This module defines engine-wide defaults used across templates, handlers
and retry policies.
"""

DEFAULT_CHARSET = "utf-8"
"""Charset used for templates and request bodies unless overridden."""

MAX_RESPONSE_BUFFER_SIZE = 8192
"""Largest raw-response body (bytes) the response handler buffers eagerly.

Responses declared as returning the raw Response whose body is larger than
this, or whose length is unknown, are handed back unbuffered and the caller
owns closing them.
"""

# Options defaults (seconds)
DEFAULT_CONNECT_TIMEOUT = 10.0
DEFAULT_READ_TIMEOUT = 60.0

# Retry and backoff constants
DEFAULT_RETRY_PERIOD = 0.1
"""Initial interval in seconds between attempts of the default retryer.

Subsequent intervals grow by a factor of 1.5 per attempt.
"""

DEFAULT_RETRY_MAX_PERIOD = 1.0
"""Maximum interval in seconds between attempts of the default retryer."""

DEFAULT_RETRY_MAX_ATTEMPTS = 5
"""Maximum number of attempts (including the first) of the default retryer."""

RETRY_BACKOFF_MULTIPLIER = 1.5

RETRY_JITTER_RATIO = 0.1
"""Upper bound of random jitter, as a fraction of the computed interval."""

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"

# Request headers whose values are never logged verbatim
SENSITIVE_HEADERS = frozenset({"authorization", "proxy-authorization", "cookie", "set-cookie"})
