import json
import logging
import socket
from typing import Any, Mapping
from httpexceptions import SerializationFailure, WriteFailure, UnexpectedConnectionClose
from httpheaders import HttpHeaders, TOKEN_RE
from httpsettings import BODY_ENCODING, HEADER_ENCODING, HTTP_VERSION, SERVER_HEADER

_logger = logging.getLogger(__name__)


class HttpResponse:

    def __init__(self, status_code: int = 200, status: str = "OK", headers: Mapping[str, Any] = None):

        self.version: str = HTTP_VERSION
        self.status_code: int = status_code
        self.status: str = status
        self.headers: HttpHeaders = HttpHeaders(headers or {})
        self._content: bytes = b""

        return

    def to_bytes(self, encoding: str = HEADER_ENCODING) -> bytes:

        result = bytearray(f"{self.version} {self.status_code} {self.status}\r\n", encoding=encoding)

        for k, v in self.headers.items():
            result.extend(f"{k}: {v}\r\n".encode(encoding=encoding))
        result.extend("\r\n".encode(encoding=encoding))

        result.extend(self._content)

        return bytes(result)

    def validate(self):
        """Refuse anything that would not frame as a valid status line or field line."""

        if not isinstance(self.status_code, int) or not 100 <= self.status_code <= 999:
            raise ValueError(f"Invalid status code: {self.status_code!r}")
        if _has_line_break(self.status):
            raise ValueError(f"Line break in status description: {self.status!r}")

        for k, v in self.headers.items():
            if not TOKEN_RE.match(k) or _has_line_break(k):
                raise ValueError(f"Invalid header name: {k!r}")
            if _has_line_break(str(v)):
                raise ValueError(f"Line break in value of header {k!r}")

        return

    @property
    def content(self) -> bytes:
        return self._content

    @content.setter
    def content(self, content: bytes | bytearray | str):

        if isinstance(content, bytes):
            self._content = content
        elif isinstance(content, bytearray):
            self._content = bytes(content)
        elif isinstance(content, str):
            self._content = content.encode(encoding=BODY_ENCODING)
        else:
            raise TypeError(f"Response content can only be 'bytes', 'bytearray' or 'str', not '{type(content)}'")

        # Always the real length, whatever the caller put in the headers
        self.headers["Content-Length"] = len(self._content)


def _has_line_break(value: str) -> bool:
    return "\r" in value or "\n" in value


def send_http_response(connection: socket.socket, status_code: int, status: str, headers: Mapping[str, Any] = None, body: bytes | bytearray | str = b""):
    """
    Write a complete HTTP/1.1 response on `connection`.

    Content-Length is computed from `body` and replaces any value given in
    `headers`. A Server header is added unless the caller sets one. The body
    goes out byte for byte.

    :raises ValueError: a header name is not a token, or a status or value holds a line break.
    :raises UnexpectedConnectionClose: the peer went away during the write.
    :raises WriteFailure: any other socket error; part of the response may have been sent.
    """

    response = HttpResponse(status_code, status)

    for k, v in (headers or {}).items():
        if k.lower() == "content-length":
            continue
        response.headers[k] = v

    if "Server" not in response.headers:
        response.headers["Server"] = SERVER_HEADER

    response.content = body
    response.validate()

    data = response.to_bytes()

    try:
        connection.sendall(data)
    except (BrokenPipeError, ConnectionResetError) as e:
        _logger.warning(f"Connection closed while sending {status_code} {status}: {e}")
        raise UnexpectedConnectionClose(f"Connection closed while sending {status_code} {status}") from e
    except OSError as e:
        _logger.warning(f"Failed to send {status_code} {status}: {e}")
        raise WriteFailure(f"Failed to send {status_code} {status}: {e}") from e

    _logger.debug(f"Sent {status_code} {status} with {len(response.content)} body bytes")

    return


def send_json_response(connection: socket.socket, status_code: int, status: str, json_object: Any):
    """
    Serialize `json_object` and send it as an application/json response.

    :raises SerializationFailure: the object is cyclic, holds NaN or infinity,
        or has something json cannot encode. Nothing is written in that case.
    """

    try:
        body = json.dumps(json_object, separators=(",", ":"), sort_keys=True, ensure_ascii=False, allow_nan=False)
    except (TypeError, ValueError, RecursionError) as e:
        raise SerializationFailure(f"Cannot serialize {type(json_object).__name__} to JSON: {e}") from e

    headers = {"Content-Type": "application/json"}
    send_http_response(connection, status_code, status, headers, body.encode(BODY_ENCODING))

    return


def send_error_response(connection: socket.socket, status_code: int, status: str, message: str):
    send_json_response(connection, status_code, status, {"error": message})
