import logging
from typing import Iterable, Optional
from httpexceptions import MissingMultipartBoundary, MalformedMultipartSegment
from httpheaders import HttpHeaders, find_header_end, parse_header_lines, parse_header_params, split_lines
from httpsettings import HEADER_ENCODING

_logger = logging.getLogger(__name__)


class MultipartPart:

    def __init__(self, headers: HttpHeaders = None, body: bytes = b"", name: str = None, filename: str = None):

        self.headers: HttpHeaders = HttpHeaders(headers or {})
        self.body: bytes = bytes(body)
        self.name: Optional[str] = name
        self.filename: Optional[str] = filename

        return

    @property
    def content_type(self) -> Optional[str]:
        return self.headers.get("Content-Type")

    def __eq__(self, other) -> bool:

        if not isinstance(other, MultipartPart):
            return NotImplemented

        return (self.headers, self.body, self.name, self.filename) == (other.headers, other.body, other.name, other.filename)

    def __repr__(self) -> str:
        return (f"MultipartPart(name={self.name!r}, filename={self.filename!r}, "
                f"headers={dict(self.headers.items())!r}, body={self.body[:64]!r})")


def extract_boundary(content_type: Optional[str]) -> Optional[str]:
    """Return the boundary of a multipart/* Content-Type value, or None."""

    if not content_type:
        return None

    media_type, params = parse_header_params(content_type)
    if not media_type.startswith("multipart/"):
        return None

    return params.get("boundary") or None


def parse_multipart_body(body: bytes, boundary: str) -> list[MultipartPart]:
    """
    Split a multipart body into its parts, in the order they appear.

    The preamble before the first delimiter and the epilogue after the closing
    one are dropped. Each part keeps the exact bytes between its header block
    and the line break that precedes the next delimiter.

    :raises MissingMultipartBoundary: the boundary is empty or never starts a line of `body`.
    :raises MalformedMultipartSegment: a part has no blank line after its headers,
        or the body stops before the closing delimiter.
    """

    if not boundary:
        raise MissingMultipartBoundary("Empty multipart boundary")

    try:
        delimiter = b"--" + boundary.encode(HEADER_ENCODING)
    except UnicodeEncodeError as e:
        raise MissingMultipartBoundary(f"Boundary is not representable on the wire: {boundary!r}") from e

    body = bytes(body)
    position = _find_first_delimiter(body, delimiter)
    if position < 0:
        raise MissingMultipartBoundary(f"Boundary {boundary!r} not found in body")

    parts = []
    while True:
        after = position + len(delimiter)

        # Closing delimiter, anything past it is epilogue
        if body.startswith(b"--", after):
            break

        start = _skip_delimiter_line_end(body, after)
        if start < 0:
            raise MalformedMultipartSegment(f"Delimiter line of part {len(parts)} is not terminated")

        end, position = _find_next_delimiter(body, delimiter, start)
        if end < 0:
            raise MalformedMultipartSegment(f"Body ends before the closing delimiter, in part {len(parts)}")

        parts.append(_parse_part(body[start:end], len(parts)))

    _logger.debug(f"Parsed {len(parts)} multipart parts with boundary {boundary!r}")

    return parts


def build_multipart_body(parts: Iterable[MultipartPart], boundary: str) -> bytes:
    """
    Assemble parts into a multipart body delimited by `boundary`.

    A part without a Content-Disposition header but with a name gets a
    form-data disposition built from its name and filename.
    """

    if not boundary:
        raise ValueError("Empty multipart boundary")

    delimiter = b"--" + boundary.encode(HEADER_ENCODING)
    result = bytearray()

    for part in parts:
        if delimiter in part.body:
            raise ValueError(f"Part {part.name!r} contains the boundary {boundary!r}")

        headers = part.headers.copy()
        if "Content-Disposition" not in headers and part.name is not None:
            disposition = f"form-data; name={_quote(part.name)}"
            if part.filename is not None:
                disposition += f"; filename={_quote(part.filename)}"
            headers["Content-Disposition"] = disposition

        result.extend(delimiter + b"\r\n")
        for k, v in headers.items():
            result.extend(f"{k}: {v}\r\n".encode(HEADER_ENCODING))
        result.extend(b"\r\n")
        result.extend(part.body)
        result.extend(b"\r\n")

    result.extend(delimiter + b"--\r\n")

    return bytes(result)


def _quote(value: str) -> str:
    return '"' + value.replace("\\", "\\\\").replace('"', '\\"') + '"'


def _is_delimiter_end(body: bytes, index: int) -> bool:
    # A delimiter is followed by "--", or by optional padding and a line break
    if body.startswith(b"--", index):
        return True

    while index < len(body) and body[index:index + 1] in (b" ", b"\t"):
        index += 1

    return index == len(body) or body.startswith(b"\r\n", index) or body.startswith(b"\n", index)


def _find_first_delimiter(body: bytes, delimiter: bytes) -> int:

    index = body.find(delimiter)
    while index >= 0:
        at_line_start = index == 0 or body[index - 1:index] == b"\n"
        if at_line_start and _is_delimiter_end(body, index + len(delimiter)):
            return index
        index = body.find(delimiter, index + 1)

    return -1


def _skip_delimiter_line_end(body: bytes, index: int) -> int:

    while body[index:index + 1] in (b" ", b"\t"):
        index += 1

    if body.startswith(b"\r\n", index):
        return index + 2
    if body.startswith(b"\n", index):
        return index + 1

    return -1


def _find_next_delimiter(body: bytes, delimiter: bytes, start: int) -> tuple[int, int]:
    """Return (end of the current part, start of the next delimiter), or (-1, -1)."""

    marker = b"\n" + delimiter
    # From start - 1 so a delimiter right after the previous one is seen as an empty part
    index = body.find(marker, max(start - 1, 0))
    while index >= 0:
        if _is_delimiter_end(body, index + len(marker)):
            end = index - 1 if index > start and body[index - 1:index] == b"\r" else index
            return max(end, start), index + 1
        index = body.find(marker, index + 1)

    return -1, -1


def _parse_part(segment: bytes, number: int) -> MultipartPart:

    if segment.startswith(b"\r\n"):
        header_block, payload = b"", segment[2:]
    elif segment.startswith(b"\n"):
        header_block, payload = b"", segment[1:]
    else:
        header_end, separator_length = find_header_end(segment)
        if header_end < 0:
            raise MalformedMultipartSegment(f"Part {number} has no blank line after its headers")
        header_block = segment[:header_end]
        payload = segment[header_end + separator_length:]

    headers = parse_header_lines(split_lines(header_block), error=MalformedMultipartSegment)

    name = None
    filename = None
    disposition = headers.get("Content-Disposition")
    if disposition:
        _, params = parse_header_params(disposition)
        name = params.get("name")
        filename = params.get("filename")

    return MultipartPart(headers, payload, name, filename)
