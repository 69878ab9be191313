"""
Tests for the MIME part tree.
"""

import base64
import io
from email import message_from_bytes

import pytest

from rfcmail.enums import Mode
from rfcmail.formats.rfc5322.mime import (
    BinaryPart,
    Headers,
    MultipartPart,
    TextPart,
)


def fixed_boundary(boundary="b1"):
    """Boundary generator returning a fixed token and counting its calls."""
    calls = []

    def generator(part):
        calls.append(part)
        return boundary

    generator.calls = calls
    return generator


class TestHeaders:
    """Tests for the ordered multi-map of extra headers."""

    def test_order_and_repeats(self):
        """Test names keep first insertion order and every value is kept."""
        headers = Headers()
        headers.add("X-B", "1")
        headers.add("X-A", "2")
        headers.add("x-b", "3")
        assert list(headers.items()) == [("X-B", "1"), ("X-B", "3"), ("X-A", "2")]
        assert len(headers) == 3

    def test_case_insensitive_lookup(self):
        """Test lookups ignore the case of the name."""
        headers = Headers({"Content-ID": "<a@b>"})
        assert "content-id" in headers
        assert headers.get("CONTENT-ID") == "<a@b>"
        assert headers.get_all("x-missing") == []
        assert headers.get("x-missing", "default") == "default"

    def test_remove(self):
        """Test removing a name drops all of its values."""
        headers = Headers([("X-A", "1"), ("X-A", "2")])
        headers.remove("x-a")
        assert "X-A" not in headers
        assert len(headers) == 0


class TestTextPart:
    """Tests for text leaves."""

    def test_eight_bit_serialization(self):
        """Test the exact bytes of a simple 8bit text part."""
        part = TextPart("text/plain", "Hello")
        assert part.as_bytes(Mode.EIGHT_BIT) == (
            b"Content-Type: text/plain; charset=utf-8\r\n"
            b"Content-Transfer-Encoding: 8bit\r\n"
            b"Content-Disposition: inline\r\n"
            b"\r\n"
            b"Hello\r\n"
        )

    def test_seven_bit_serialization(self):
        """Test 7bit mode encodes text as quoted-printable."""
        part = TextPart("text/html", "<p>café</p>")
        assert part.as_bytes(Mode.SEVEN_BIT) == (
            b"Content-Type: text/html; charset=utf-8\r\n"
            b"Content-Transfer-Encoding: quoted-printable\r\n"
            b"Content-Disposition: inline\r\n"
            b"\r\n"
            b"<p>caf=C3=A9</p>=\r\n"
        )

    def test_extra_headers(self):
        """Test extra headers follow the content headers."""
        part = TextPart("text/plain", b"x", headers={"X-Part": "one"})
        raw = part.as_bytes()
        assert raw.index(b"Content-Disposition") < raw.index(b"X-Part: one\r\n")

    def test_reserved_headers_are_ignored(self):
        """Test an extra Content-Type cannot override the part's own."""
        part = TextPart("text/plain", b"x", headers={"Content-Type": "image/png"})
        raw = part.as_bytes()
        assert raw.count(b"Content-Type") == 1
        assert b"image/png" not in raw

    def test_no_disposition(self):
        """Test an empty disposition writes no Content-Disposition."""
        part = TextPart("text/plain", b"x", disposition="")
        assert b"Content-Disposition" not in part.as_bytes()

    def test_is_html(self):
        """Test HTML detection."""
        assert TextPart("text/html").is_html
        assert not TextPart("text/plain").is_html


class TestBinaryPart:
    """Tests for binary leaves."""

    def test_base64_serialization(self):
        """Test the exact bytes of a base64 attachment."""
        part = BinaryPart("application/pdf", b"%PDF", filename="doc.pdf")
        assert part.as_bytes(Mode.EIGHT_BIT) == (
            b"Content-Type: application/pdf\r\n"
            b"Content-Transfer-Encoding: base64\r\n"
            b'Content-Disposition: attachment; filename="doc.pdf"\r\n'
            b"\r\n"
            b"JVBERg==\r\n"
        )

    def test_binary_serialization(self):
        """Test binary mode writes the raw bytes."""
        part = BinaryPart("application/octet-stream", b"\x00\xff\r\n")
        assert part.as_bytes(Mode.BINARY).endswith(
            b"Content-Transfer-Encoding: binary\r\n"
            b"Content-Disposition: attachment\r\n"
            b"\r\n"
            b"\x00\xff\r\n"
        )

    def test_non_ascii_filename(self):
        """Test a non-ASCII filename uses RFC2231 parameter encoding."""
        part = BinaryPart("image/png", b"png", filename="résumé.png")
        raw = part.as_bytes()
        assert b"filename*=utf-8''r%C3%A9sum%C3%A9.png" in raw

    def test_filename_is_quoted(self):
        """Test quotes in a filename are escaped."""
        part = BinaryPart("text/plain", b"x", filename='say "hi".txt')
        assert b'filename="say \\"hi\\".txt"' in part.as_bytes()

    def test_file_object_is_read_once(self):
        """Test a file object source is consumed by the first serialization."""
        part = BinaryPart("application/octet-stream", io.BytesIO(b"abc"))
        first = part.as_bytes(Mode.EIGHT_BIT)
        second = part.as_bytes(Mode.EIGHT_BIT)
        assert first.endswith(b"\r\n\r\nYWJj\r\n")
        assert second.endswith(b"\r\n\r\n")

    def test_bytes_are_reusable(self):
        """Test bytes content serializes identically every time."""
        part = BinaryPart("application/octet-stream", b"abc")
        assert part.as_bytes() == part.as_bytes()


class TestMultipartPart:
    """Tests for multipart containers."""

    def test_exact_serialization(self):
        """Test boundary delimiters between and after the children."""
        text = TextPart("text/plain", "a")
        html = TextPart("text/html", "<b>b</b>")
        container = MultipartPart("multipart/alternative", [text, html], boundary="b1")

        assert container.as_bytes(Mode.EIGHT_BIT) == (
            b'Content-Type: multipart/alternative; boundary="b1"\r\n'
            b"\r\n"
            b"\r\n--b1\r\n"
            + text.as_bytes(Mode.EIGHT_BIT)
            + b"\r\n--b1\r\n"
            + html.as_bytes(Mode.EIGHT_BIT)
            + b"\r\n--b1--\r\n"
        )

    def test_boundary_is_generated_once(self):
        """Test the generated boundary is cached on the container."""
        generator = fixed_boundary("generated")
        container = MultipartPart(parts=[TextPart("text/plain", "a")])

        first = container.as_bytes(Mode.EIGHT_BIT, generator)
        second = container.as_bytes(Mode.EIGHT_BIT, generator)

        assert container.boundary == "generated"
        assert len(generator.calls) == 1
        assert generator.calls[0] is container
        assert first == second

    def test_default_boundary_generator(self):
        """Test a boundary is generated when no generator is given."""
        container = MultipartPart(parts=[TextPart("text/plain", "a")])
        container.as_bytes()
        assert container.boundary.startswith("=_")

    def test_explicit_boundary_is_kept(self):
        """Test an assigned boundary bypasses the generator."""
        generator = fixed_boundary("unused")
        container = MultipartPart(parts=[TextPart()], boundary="mine")
        container.as_bytes(Mode.EIGHT_BIT, generator)
        assert container.boundary == "mine"
        assert not generator.calls

    def test_nested_tree_parses(self):
        """Test a nested tree is read back by the standard library parser."""
        alternative = MultipartPart(
            "multipart/alternative",
            [TextPart("text/plain", "plain body\n"), TextPart("text/html", "<p>html</p>")],
        )
        png = bytes(range(256)) * 4
        mixed = MultipartPart(
            "multipart/mixed",
            [alternative, BinaryPart("image/png", png, filename="dots.png")],
        )
        counter = iter(range(100))

        raw = mixed.as_bytes(Mode.SEVEN_BIT, lambda part: f"=_b{next(counter)}")
        parsed = message_from_bytes(raw)

        assert parsed.get_content_type() == "multipart/mixed"
        first, attachment = parsed.get_payload()
        assert first.get_content_type() == "multipart/alternative"
        text, html = first.get_payload()
        assert text.get_payload(decode=True).rstrip() == b"plain body"
        assert html.get_payload(decode=True) == b"<p>html</p>"
        assert attachment.get_filename() == "dots.png"
        assert attachment.get_payload(decode=True) == png
        assert base64.b64decode(attachment.get_payload()) == png

    @pytest.mark.parametrize("mode", list(Mode))
    def test_mode_is_propagated(self, mode):
        """Test the children are written with the container's mode."""
        container = MultipartPart(
            parts=[BinaryPart("application/octet-stream", b"\x00")], boundary="b"
        )
        expected = "binary" if mode == Mode.BINARY else "base64"
        raw = container.as_bytes(mode)
        assert f"Content-Transfer-Encoding: {expected}\r\n".encode() in raw
