import pytest

from httpexceptions import MalformedMultipartBody, MalformedMultipartSegment, MissingMultipartBoundary
from multipart import MultipartPart, build_multipart_body, extract_boundary, parse_multipart_body

BOUNDARY = "----VoiceFormBoundary7MA4YWxkTrZu0gW"

# Binary payload with CRLFs and a dash run that is not the boundary
WAV = b"RIFF\x24\x00\x00\x00WAVE\r\n\x00\xff--notboundary\r\n\x80\x81"


def upload_body(boundary: str = BOUNDARY) -> bytes:
    return (
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="voice"\r\n'
        "\r\n"
        "alloy\r\n"
        f"--{boundary}\r\n"
        'Content-Disposition: form-data; name="audio"; filename="clip.wav"\r\n'
        "Content-Type: audio/wav\r\n"
        "\r\n"
    ).encode() + WAV + f"\r\n--{boundary}--\r\n".encode()


def test_parse_two_parts_in_order() -> None:
    parts = parse_multipart_body(upload_body(), BOUNDARY)

    assert len(parts) == 2

    voice, audio = parts
    assert voice.name == "voice"
    assert voice.filename is None
    assert voice.body == b"alloy"
    assert voice.content_type is None

    assert audio.name == "audio"
    assert audio.filename == "clip.wav"
    assert audio.headers["content-type"] == "audio/wav"
    assert audio.content_type == "audio/wav"
    assert audio.body == WAV


def test_preamble_and_epilogue_are_dropped() -> None:
    body = (
        b"This is the preamble.\r\n"
        b"--b\r\n"
        b'Content-Disposition: form-data; name="text"\r\n'
        b"\r\n"
        b"hello\r\n"
        b"--b--\r\n"
        b"This is the epilogue.\r\n--b\r\n"
    )

    parts = parse_multipart_body(body, "b")

    assert len(parts) == 1
    assert parts[0].body == b"hello"


def test_bare_lf_line_endings() -> None:
    body = b'--b\nContent-Disposition: form-data; name="text"\n\nhello\n--b--\n'

    parts = parse_multipart_body(body, "b")

    assert parts[0].name == "text"
    assert parts[0].body == b"hello"


def test_only_the_last_crlf_before_the_delimiter_is_stripped() -> None:
    body = b'--b\r\nContent-Disposition: form-data; name="t"\r\n\r\nline\r\n\r\n\r\n--b--'

    parts = parse_multipart_body(body, "b")

    assert parts[0].body == b"line\r\n\r\n"


def test_part_without_headers() -> None:
    parts = parse_multipart_body(b"--b\r\n\r\nraw\r\n--b--\r\n", "b")

    assert len(parts[0].headers) == 0
    assert parts[0].name is None
    assert parts[0].filename is None
    assert parts[0].body == b"raw"


def test_part_with_empty_payload() -> None:
    body = b'--b\r\nContent-Disposition: form-data; name="empty"; filename=""\r\n\r\n\r\n--b--'

    parts = parse_multipart_body(body, "b")

    assert parts[0].body == b""
    assert parts[0].filename == ""


def test_transport_padding_after_delimiter() -> None:
    body = b'--b  \r\nContent-Disposition: form-data; name="x"\r\n\r\n1\r\n--b \t\r\nContent-Disposition: form-data; name="y"\r\n\r\n2\r\n--b--'

    parts = parse_multipart_body(body, "b")

    assert [(p.name, p.body) for p in parts] == [("x", b"1"), ("y", b"2")]


def test_longer_dash_line_is_not_a_delimiter() -> None:
    body = b"--b\r\n\r\nx\r\n--bb\r\n--b--"

    parts = parse_multipart_body(body, "b")

    assert parts[0].body == b"x\r\n--bb"


def test_boundary_is_matched_literally() -> None:
    boundary = "a.b*c+(d)?"
    body = (
        b"--aXb*c+(d)?\r\n"
        b"--a.b*c+(d)?\r\n"
        b'Content-Disposition: form-data; name="q"\r\n'
        b"\r\n"
        b"--aab*cc+(d)\r\n"
        b"--a.b*c+(d)?--\r\n"
    )

    parts = parse_multipart_body(body, boundary)

    assert len(parts) == 1
    assert parts[0].body == b"--aab*cc+(d)"


def test_unquoted_and_escaped_disposition_parameters() -> None:
    body = (
        b"--b\r\n"
        b"Content-Disposition: form-data; name=field1\r\n\r\nv1\r\n"
        b"--b\r\n"
        b'Content-Disposition: form-data; name="a;b"; filename="say \\"hi\\".wav"\r\n\r\nv2\r\n'
        b"--b--"
    )

    first, second = parse_multipart_body(body, "b")

    assert first.name == "field1"
    assert second.name == "a;b"
    assert second.filename == 'say "hi".wav'


def test_closing_delimiter_only_gives_no_parts() -> None:
    assert parse_multipart_body(b"--b--\r\n", "b") == []


@pytest.mark.parametrize("body, boundary", [
    (b"no delimiter anywhere", "b"),
    (b"text--b\r\n\r\nx\r\n--b--", "c"),
    (upload_body(), ""),
])
def test_missing_boundary(body, boundary) -> None:
    with pytest.raises(MissingMultipartBoundary):
        parse_multipart_body(body, boundary)


@pytest.mark.parametrize("body", [
    b'--b\r\nContent-Disposition: form-data; name="x"\r\n--b--',
    b'--b\r\nContent-Disposition: form-data; name="x"\r\n\r\nno closing delimiter',
    b"--b\r\nnot a header\r\n\r\nx\r\n--b--",
    b"--b",
    b"--b\r\n--b--",
])
def test_malformed_segments(body) -> None:
    with pytest.raises(MalformedMultipartSegment):
        parse_multipart_body(body, "b")


def test_malformed_errors_share_a_base_class() -> None:
    assert issubclass(MissingMultipartBoundary, MalformedMultipartBody)
    assert issubclass(MalformedMultipartSegment, MalformedMultipartBody)


def test_build_then_parse_keeps_headers_and_bodies() -> None:
    original = [
        MultipartPart({"Content-Disposition": 'form-data; name="text"', "Content-Type": "text/plain"}, b"hello"),
        MultipartPart({"Content-Type": "audio/wav"}, bytes(range(256)), name="audio", filename="a.wav"),
    ]

    body = build_multipart_body(original, BOUNDARY)
    parsed = parse_multipart_body(body, BOUNDARY)

    assert len(parsed) == 2
    assert parsed[0] == MultipartPart(original[0].headers, b"hello", name="text")
    assert parsed[1].body == bytes(range(256))
    assert parsed[1].name == "audio"
    assert parsed[1].filename == "a.wav"
    assert parsed[1].content_type == "audio/wav"


def test_build_refuses_a_body_containing_the_boundary() -> None:
    part = MultipartPart(body=b"x\r\n--b\r\ny", name="x")

    with pytest.raises(ValueError):
        build_multipart_body([part], "b")


@pytest.mark.parametrize("content_type, expected", [
    ('multipart/form-data; boundary="abc def"', "abc def"),
    ("Multipart/Mixed; BOUNDARY=xyz", "xyz"),
    ("multipart/form-data", None),
    ("multipart/form-data; boundary=", None),
    ("text/plain; boundary=xyz", None),
    ("application/json", None),
    (None, None),
])
def test_extract_boundary(content_type, expected) -> None:
    assert extract_boundary(content_type) == expected
