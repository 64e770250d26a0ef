"""Turning a transport Response into the operation's outcome.

Example:
    >>> from callforge.codec import DefaultDecoder, DefaultErrorDecoder
    >>> from callforge.models.http import BytesBody
    >>> handler = ResponseHandler(CallLogger(), DefaultDecoder(), DefaultErrorDecoder())
    >>> handler.handle("Api#ping()", Response(200, body=BytesBody(b"pong")), str, 1.0)
    'pong'
"""

from __future__ import annotations

from typing import Any

from callforge.codec import Decoder, ErrorDecoder
from callforge.contract.types import is_void
from callforge.errors import CallforgeError, DecodeError, error_reading
from callforge.models.constants import MAX_RESPONSE_BUFFER_SIZE
from callforge.models.enums import LogLevel
from callforge.models.http import Response, ensure_closed
from callforge.observability.call_logger import CallLogger


def decode_response(decoder: Decoder, response: Response, return_type: Any) -> Any:
    """Run ``decoder``; failures other than callforge and I/O errors become DecodeError."""
    try:
        return decoder.decode(response, return_type)
    except (CallforgeError, OSError):
        raise
    except Exception as exc:
        raise DecodeError(
            response.status,
            f"{type(exc).__name__}: {exc}",
            request=response.request,
            cause=exc,
        ) from exc


class ResponseHandler:
    """Decides between raw response, decoded value and raised error.

    Args:
        call_logger: Logger for the response (and read failures)
        decoder: Decoder for successful responses
        error_decoder: Maps non-success responses to exceptions
        decode_404: Decode 404 responses instead of raising
        close_after_decode: Close the body once the decoder returns
    """

    def __init__(
        self,
        call_logger: CallLogger,
        decoder: Decoder,
        error_decoder: ErrorDecoder,
        decode_404: bool = False,
        close_after_decode: bool = True,
    ) -> None:
        self.call_logger = call_logger
        self.decoder = decoder
        self.error_decoder = error_decoder
        self.decode_404 = decode_404
        self.close_after_decode = close_after_decode

    def handle(
        self, config_key: str, response: Response, return_type: Any, elapsed_ms: float
    ) -> Any:
        """Return the call's result for ``response`` or raise its error.

        Raises:
            HttpError: As produced by the error decoder
            DecodeError: If the decoder failed
            ReadError: If the body could not be read
        """
        should_close = True
        try:
            if self.call_logger.level is not LogLevel.NONE:
                response = self.call_logger.log_and_rebuffer_response(
                    config_key, response, elapsed_ms
                )

            if return_type is Response:
                if response.body is None:
                    return response
                length = response.body.length
                if length is None or length > MAX_RESPONSE_BUFFER_SIZE:
                    # caller owns the open body
                    should_close = False
                    return response
                return response.with_body(response.body.read())

            if 200 <= response.status < 300:
                if is_void(return_type):
                    return None
                result = decode_response(self.decoder, response, return_type)
                should_close = self.close_after_decode
                return result

            if self.decode_404 and response.status == 404 and not is_void(return_type):
                result = decode_response(self.decoder, response, return_type)
                should_close = self.close_after_decode
                return result

            error = self.error_decoder.decode(config_key, response)
        except OSError as exc:
            self.call_logger.log_io_exception(config_key, exc, elapsed_ms)
            raise error_reading(response.request, response.status, exc) from exc
        finally:
            if should_close:
                ensure_closed(response)
        raise error
