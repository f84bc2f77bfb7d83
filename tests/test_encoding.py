"""Tests for binary detection, base64 and normalization helpers."""

import os

import pytest

from zipbridge.encoding import (
    decode_base64,
    decode_utf8,
    encode_base64,
    has_null_byte,
    is_binary_content,
    is_image_path,
    normalize_content,
    prepare_content,
)


class TestBinaryDetection:
    def test_text_is_never_binary(self):
        assert not is_binary_content("\x00 looks odd", "logo.png")

    def test_null_byte_in_first_kilobyte(self):
        assert has_null_byte(b"abc\x00def")
        assert not has_null_byte(b"a" * 1024 + b"\x00")

    def test_bytes_with_binary_extension(self):
        assert is_binary_content(b"<svg></svg>", "icons/logo.SVG")

    def test_invalid_utf8_bytes(self):
        assert is_binary_content(b"\xff\xfe\xfa", "data.txt")

    def test_utf8_bytes_are_text(self):
        assert not is_binary_content("héllo".encode("utf-8"), "notes.txt")

    def test_decode_utf8_is_strict(self):
        assert decode_utf8(b"ok") == "ok"
        assert decode_utf8(b"\xc3\x28") is None

    @pytest.mark.parametrize("path", ["a.png", "b/c.JPEG", "d.webp", "e.heif", "f.tif"])
    def test_image_paths(self, path):
        assert is_image_path(path)

    def test_svg_is_not_an_image_for_comparison(self):
        assert not is_image_path("logo.svg")


class TestBase64:
    def test_round_trip_arbitrary_bytes(self):
        data = bytes(range(256)) + os.urandom(4096)
        assert decode_base64(encode_base64(data)) == data

    def test_decode_ignores_line_breaks(self):
        encoded = encode_base64(b"hello world, this is a longer payload")
        wrapped = "\n".join(encoded[i:i + 8] for i in range(0, len(encoded), 8))
        assert decode_base64(wrapped) == b"hello world, this is a longer payload"

    def test_empty(self):
        assert decode_base64(encode_base64(b"")) == b""


class TestNormalize:
    def test_line_endings(self):
        assert normalize_content("a\r\nb\rc\n") == "a\nb\nc"

    def test_trailing_whitespace_and_blank_lines(self):
        assert normalize_content("  x = 1   \n\ty = 2\t\n\n\n") == "x = 1\n\ty = 2"

    def test_equivalent_styles_normalize_equal(self):
        assert normalize_content("hi\r\n") == normalize_content("hi")


class TestPrepareContent:
    def test_text_is_sent_as_is(self):
        assert prepare_content("print(1)\n", "main.py") == ("print(1)\n", None)

    def test_utf8_bytes_become_text(self):
        assert prepare_content(b"body {}", "style.css") == ("body {}", None)

    def test_binary_bytes_become_base64(self):
        payload, encoding = prepare_content(b"\x89PNG\r\n\x1a\n\x00\x00", "logo.png")
        assert encoding == "base64"
        assert decode_base64(payload) == b"\x89PNG\r\n\x1a\n\x00\x00"
