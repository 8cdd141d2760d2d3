import logging
import re
from typing import Optional
from httpexceptions import MalformedRequestLine, MalformedMultipartBody
from httpheaders import HttpHeaders, TOKEN_RE, find_header_end, parse_header_lines, parse_header_params, split_lines
from multipart import MultipartPart, extract_boundary, parse_multipart_body
from httpsettings import HEADER_ENCODING

_logger = logging.getLogger(__name__)

VERSION_RE = re.compile(r"^HTTP/[0-9]+\.[0-9]+$")


class HttpRequest:

    def __init__(self):

        self.method: str = None
        self.path: str = None
        self.version: Optional[str] = None
        self.headers: HttpHeaders = HttpHeaders()
        self.body: bytes = b""
        self.multipart_boundary: Optional[str] = None
        self.multipart_parts: list[MultipartPart] = []

        return

    @property
    def target(self) -> str:
        """Path without its query string, still percent-encoded."""
        return self.path.split("?", 1)[0]

    @property
    def query_string(self) -> str:
        return self.path.split("?", 1)[1] if "?" in self.path else ""

    @property
    def is_multipart(self) -> bool:
        """True when Content-Type declares multipart/*, even if no boundary came with it."""

        media_type, _ = parse_header_params(self.headers.get("Content-Type", ""))
        return media_type.startswith("multipart/")

    def get_part(self, name: str) -> Optional[MultipartPart]:
        """First multipart part whose form field name is `name`."""

        for part in self.multipart_parts:
            if part.name == name:
                return part

        return None

    def __eq__(self, other) -> bool:

        if not isinstance(other, HttpRequest):
            return NotImplemented

        return (
            self.method == other.method
            and self.path == other.path
            and self.version == other.version
            and self.headers == other.headers
            and self.body == other.body
            and self.multipart_boundary == other.multipart_boundary
            and self.multipart_parts == other.multipart_parts
        )

    def __repr__(self) -> str:
        return (f"HttpRequest(method={self.method!r}, path={self.path!r}, "
                f"version={self.version!r}, headers={dict(self.headers.items())!r}, "
                f"body={self.body[:100]!r}, parts={len(self.multipart_parts)})")


def parse_http_request(data: bytes) -> HttpRequest:
    """
    Parse one complete HTTP request held in `data`.

    The header block ends at the first blank line (CRLF CRLF, or a bare LF LF
    when that comes first); everything after it is the body. When the buffer
    has no blank line at all it is read as headers only, with an empty body.
    Empty lines before the request line are skipped.

    Duplicate headers keep the last value. A valid Content-Length that fits in
    the buffer truncates the body; otherwise the body is all remaining bytes.
    A multipart body that cannot be split, or a multipart Content-Type with no
    boundary, leaves `multipart_parts` empty and is logged; the rest of the
    request is still returned.

    :raises MalformedRequestLine: the request line is not "METHOD target [HTTP/x.y]".
    :raises MalformedHeader: a header line is not "Name: value".
    """

    data = bytes(data).lstrip(b"\r\n")

    header_end, separator_length = find_header_end(data)
    if header_end < 0:
        header_block, rest = data, b""
    else:
        header_block, rest = data[:header_end], data[header_end + separator_length:]

    lines = split_lines(header_block)

    request = HttpRequest()
    request.method, request.path, request.version = _parse_request_line(lines[0])
    request.headers = parse_header_lines(lines[1:])
    request.body = _trim_body(rest, request.headers.get("Content-Length"))

    boundary = extract_boundary(request.headers.get("Content-Type"))
    if boundary is not None:
        request.multipart_boundary = boundary
        try:
            request.multipart_parts = parse_multipart_body(request.body, boundary)
        except MalformedMultipartBody as e:
            _logger.warning(f"{request.method} {request.path}: Unreadable multipart body: {e}")
            request.multipart_parts = []
    elif request.is_multipart:
        _logger.warning(f"{request.method} {request.path}: Multipart Content-Type without a boundary: {request.headers['Content-Type']!r}")

    _logger.debug(f"Parsed {request.method} {request.path} with {len(request.headers)} headers and {len(request.body)} body bytes")

    return request


def _parse_request_line(line: bytes) -> tuple[str, str, Optional[str]]:

    text = line.decode(HEADER_ENCODING)
    tokens = text.split(" ")

    if len(tokens) < 2 or len(tokens) > 3 or not all(tokens):
        raise MalformedRequestLine(f"Malformed request line: {text!r}")

    method, path = tokens[0], tokens[1]
    version = tokens[2] if len(tokens) == 3 else None

    if not TOKEN_RE.match(method):
        raise MalformedRequestLine(f"Invalid method: {method!r}")
    if any(c.isspace() or ord(c) < 0x21 or ord(c) == 0x7f for c in path):
        raise MalformedRequestLine(f"Invalid request target: {path!r}")
    if version is not None and not VERSION_RE.match(version):
        raise MalformedRequestLine(f"Invalid protocol version: {version!r}")

    return method.upper(), path, version


def _trim_body(rest: bytes, content_length: Optional[str]) -> bytes:

    if content_length is None:
        return rest

    if not (content_length.isascii() and content_length.isdigit()):
        _logger.warning(f"Ignoring invalid Content-Length {content_length!r}, using all {len(rest)} remaining bytes")
        return rest

    length = int(content_length)
    if length > len(rest):
        _logger.warning(f"Content-Length {length} exceeds the {len(rest)} bytes received, using all of them")
        return rest

    return rest[:length]

