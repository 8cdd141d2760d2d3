import re
from collections.abc import MutableMapping
from typing import Iterator
from httpexceptions import MalformedHeader
from httpsettings import HEADER_ENCODING

TOKEN_RE = re.compile(r"^[!#$%&'*+\-.^_`|~0-9A-Za-z]+$")


class HttpHeaders(MutableMapping):
    """
    Header mapping with case-insensitive lookup.

    A name set twice keeps only the last value, and the casing of the last
    assignment is the one reported when iterating.
    """

    def __init__(self, *args, **kwargs):

        self._store: dict[str, tuple[str, str]] = {}
        self.update(*args, **kwargs)

        return

    def __setitem__(self, name: str, value: str):
        self._store[name.lower()] = (name, value)

    def __getitem__(self, name: str) -> str:
        return self._store[name.lower()][1]

    def __delitem__(self, name: str):
        del self._store[name.lower()]

    def __iter__(self) -> Iterator[str]:
        return (name for name, _ in self._store.values())

    def __len__(self) -> int:
        return len(self._store)

    def __eq__(self, other) -> bool:

        if isinstance(other, MutableMapping) and not isinstance(other, HttpHeaders):
            other = HttpHeaders(other)
        if not isinstance(other, HttpHeaders):
            return NotImplemented

        return self.lower_items() == other.lower_items()

    def lower_items(self) -> dict[str, str]:
        return {key: value for key, (_, value) in self._store.items()}

    def copy(self) -> "HttpHeaders":
        return HttpHeaders(self.items())

    def __repr__(self) -> str:
        return f"HttpHeaders({dict(self.items())!r})"


def parse_header_lines(lines: list[bytes], error: type = MalformedHeader) -> HttpHeaders:
    """
    Parse raw header lines (without their line breaks) into an HttpHeaders.

    Each line is split on its first colon and the value is trimmed. A line that
    starts with a space or tab continues the previous value (obsolete folding).
    Any other line without a colon, or with a name that is not a token, raises
    `error`, so the caller decides which exception family the failure belongs to.
    """

    headers = HttpHeaders()
    last_name = None

    for raw_line in lines:
        line = raw_line.decode(HEADER_ENCODING)

        if not line:
            continue

        if line[0] in " \t":
            if last_name is None:
                raise error(f"Continuation line without a header to continue: {line!r}")
            folded = line.strip()
            previous = headers[last_name]
            headers[last_name] = f"{previous} {folded}" if previous and folded else previous + folded
            continue

        if ":" not in line:
            raise error(f"Bad header line: {line!r}")

        name, value = line.split(":", 1)
        if not TOKEN_RE.match(name):
            raise error(f"Bad header name: {name!r}")

        headers[name] = value.strip()
        last_name = name

    return headers


def find_header_end(data: bytes) -> tuple[int, int]:
    """
    Locate the blank line that ends a header block.

    Returns (index, separator length), with CRLF CRLF preferred unless a bare
    LF LF shows up earlier. (-1, 0) when there is no blank line.
    """

    crlf = data.find(b"\r\n\r\n")
    lf = data.find(b"\n\n")

    if crlf >= 0 and (lf < 0 or crlf <= lf):
        return crlf, 4
    if lf >= 0:
        # "\r\n\n" ends the block too; keep the CR on the header side
        return lf, 2

    return -1, 0


def split_lines(block: bytes) -> list[bytes]:
    """Split a header block on LF, dropping the CR of CRLF line endings."""

    lines = block.split(b"\n")
    return [line[:-1] if line.endswith(b"\r") else line for line in lines]


def parse_header_params(value: str) -> tuple[str, dict[str, str]]:
    """
    Parse a Content-Type or Content-Disposition like value.

    Returns the lowercased main value and a dict of its parameters, with
    lowercased names. Quoted values are unquoted and backslash escapes undone;
    semicolons inside quotes do not split. Nothing is percent-decoded.
    """

    parts = _split_params(value)
    key = parts[0].strip().lower() if parts else ""
    params: dict[str, str] = {}

    for part in parts[1:]:
        index = part.find("=")
        if index < 0:
            continue
        name = part[:index].strip().lower()
        param = part[index + 1:].strip()
        if len(param) >= 2 and param[0] == param[-1] == '"':
            param = re.sub(r"\\(.)", r"\1", param[1:-1])
        if name:
            params[name] = param

    return key, params


def _split_params(value: str) -> list[str]:

    parts = []
    current = []
    in_quotes = False
    escaped = False

    for char in value:
        if escaped:
            escaped = False
        elif char == "\\" and in_quotes:
            escaped = True
        elif char == '"':
            in_quotes = not in_quotes
        elif char == ";" and not in_quotes:
            parts.append("".join(current))
            current = []
            continue
        current.append(char)

    parts.append("".join(current))

    return parts
