"""
Content-Transfer-Encoding of MIME part bodies.

Text favors a readable encoding: raw 8bit lines when the channel allows it,
quoted-printable otherwise. Binary content is base64 encoded unless the
channel is known to be binary clean.
"""

import base64
import io
import logging
import re
import shutil
from typing import BinaryIO, Tuple, Union

from rfcmail.enums import Mode, TransferEncoding

logger = logging.getLogger(__name__)

LINE_END = b"\r\n"
LINE_QP_LENGTH = 76
LINE_MAX_LENGTH = 998

LF = ord("\n")
SPACE = ord(" ")
TAB = ord("\t")
EQUALS = ord("=")

# 57 input bytes make exactly one 76 character line of base64
BASE64_READ_SIZE = 57 * 1024

_LINE_BREAK = re.compile(rb"[\r\n]")


class LineTooLongError(ValueError):
    """A line is too long to be sent without transfer encoding."""


def bit8_encode(content: bytes) -> bytes:
    """
    Canonicalize line endings of 8bit content to CRLF.

    Raises:
        LineTooLongError: If a line is longer than LINE_MAX_LENGTH
    """
    # CRLF first, so that it does not count as two line breaks
    lines = _LINE_BREAK.split(content.replace(b"\r\n", b"\n"))
    for line in lines:
        if len(line) > LINE_MAX_LENGTH:
            raise LineTooLongError(
                f"Line of {len(line)} bytes exceeds {LINE_MAX_LENGTH}"
            )
    body = LINE_END.join(lines)
    if lines[-1]:
        body += LINE_END
    return body


class _QPWriter:
    """Builds quoted-printable output one byte at a time."""

    def __init__(self):
        self.out = io.BytesIO()
        self.line = bytearray()

    def soft_end(self):
        self.line += b"="
        self.out.write(self.line)
        self.out.write(LINE_END)
        self.line.clear()

    def hard_end(self):
        # A line must not end in whitespace, it would be stripped in transit
        if self.line and self.line[-1] in (SPACE, TAB):
            self.soft_end()
        self.out.write(self.line)
        self.out.write(LINE_END)
        self.line.clear()

    def write(self, byte: int):
        if byte < 33 or byte > 126 or byte == EQUALS:
            if byte in (SPACE, TAB):
                if len(self.line) >= LINE_QP_LENGTH - 2:
                    self.soft_end()
                self.line.append(byte)
                return
            if len(self.line) >= LINE_QP_LENGTH - 3:
                self.soft_end()
            self.line += b"=%02X" % byte
            return
        if len(self.line) >= LINE_QP_LENGTH - 1:
            self.soft_end()
        self.line.append(byte)

    def getvalue(self) -> bytes:
        return self.out.getvalue()


def qp_encode(content: bytes) -> bytes:
    """
    Quoted-printable encode content.

    LF (or CRLF) is a hard line break. A final line without a line break is
    closed with a soft line break so that decoding gives back the input.
    No output line is longer than LINE_QP_LENGTH characters.
    """
    writer = _QPWriter()
    for byte in content.replace(b"\r\n", b"\n"):
        if byte == LF:
            writer.hard_end()
        else:
            writer.write(byte)
    if writer.line:
        writer.soft_end()
    return writer.getvalue()


def encode_text(content: bytes, mode: Mode) -> Tuple[bytes, TransferEncoding]:
    """
    Encode a text body for the given mode.

    Returns:
        The encoded body and the transfer encoding used
    """
    if mode >= Mode.EIGHT_BIT:
        try:
            return bit8_encode(content), TransferEncoding.EIGHT_BIT
        except LineTooLongError as e:
            logger.debug("Falling back to quoted-printable: %s", e)
    return qp_encode(content), TransferEncoding.QUOTED_PRINTABLE


class LineChopper:
    """
    Writer that inserts CRLF every LINE_QP_LENGTH characters.

    The column is kept across writes; ``close()`` terminates a final
    partial line.
    """

    def __init__(self, sink):
        self.sink = sink
        self.chars = 0

    def write(self, data: bytes) -> int:
        written = 0
        while self.chars + len(data) > LINE_QP_LENGTH:
            head = LINE_QP_LENGTH - self.chars
            written += self.sink.write(data[:head]) or 0
            self.sink.write(LINE_END)
            data = data[head:]
            self.chars = 0
        self.chars += len(data)
        written += self.sink.write(data) or 0
        return written

    def close(self):
        if self.chars > 0:
            self.sink.write(LINE_END)
            self.chars = 0


def base64_encode_copy(sink, source: BinaryIO):
    """Copy a forward-only source to sink as line chopped base64."""
    chopper = LineChopper(sink)
    pending = b""
    while True:
        chunk = source.read(BASE64_READ_SIZE)
        if not chunk:
            break
        pending += chunk
        # Only whole 3 byte groups, so that no padding ends up mid-stream
        usable = len(pending) - len(pending) % 3
        chopper.write(base64.b64encode(pending[:usable]))
        pending = pending[usable:]
    if pending:
        chopper.write(base64.b64encode(pending))
    chopper.close()


def write_binary(
    sink, source: Union[bytes, BinaryIO], mode: Mode
) -> TransferEncoding:
    """
    Write a binary body to sink.

    The encoding is decided before anything is read from the source, see
    ``binary_encoding``.
    """
    if isinstance(source, (bytes, bytearray)):
        source = io.BytesIO(source)
    if mode >= Mode.BINARY:
        shutil.copyfileobj(source, sink)
        return TransferEncoding.BINARY
    base64_encode_copy(sink, source)
    return TransferEncoding.BASE64


def binary_encoding(mode: Mode) -> TransferEncoding:
    """Transfer encoding used for binary content in the given mode."""
    if mode >= Mode.BINARY:
        return TransferEncoding.BINARY
    return TransferEncoding.BASE64
