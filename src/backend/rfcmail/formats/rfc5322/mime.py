"""
MIME part tree.

A message body is a tree built from exactly three kinds of parts: text
leaves, binary leaves and multipart containers. Every part knows how to
write its own header block and body for a given Mode.
"""

import io
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.utils import encode_rfc2231
from typing import (
    BinaryIO,
    Callable,
    Dict,
    Iterable,
    Iterator,
    List,
    Optional,
    Tuple,
    Union,
)

from rfcmail.enums import Mode
from rfcmail.generators import default_boundary_generator

from .headers import LINE_END, encode_header, is_plain
from .transfer import binary_encoding, encode_text, write_binary

logger = logging.getLogger(__name__)

BoundaryGenerator = Callable[["MultipartPart"], str]

# Managed by the parts themselves
RESERVED_HEADERS = frozenset(["content-type", "content-transfer-encoding"])


class Headers:
    """
    Ordered, case-insensitive multi-map of header fields.

    Names are kept in the order they were first added, and the values of
    each name in the order they were added.
    """

    def __init__(
        self,
        fields: Optional[Union[Dict[str, str], Iterable[Tuple[str, str]]]] = None,
    ):
        self._fields: Dict[str, Tuple[str, List[str]]] = {}
        if isinstance(fields, Headers):
            fields = list(fields.items())
        elif isinstance(fields, dict):
            fields = fields.items()
        for name, value in fields or ():
            self.add(name, value)

    def add(self, name: str, value: str):
        """Add a value, keeping the values already set for this name."""
        key = name.lower()
        if key not in self._fields:
            self._fields[key] = (name, [])
        self._fields[key][1].append(value)

    def get_all(self, name: str) -> List[str]:
        """Return every value set for name."""
        return list(self._fields.get(name.lower(), (name, []))[1])

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        values = self.get_all(name)
        return values[0] if values else default

    def remove(self, name: str):
        self._fields.pop(name.lower(), None)

    def items(self) -> Iterator[Tuple[str, str]]:
        """Yield (name, value) pairs, one per value."""
        for name, values in self._fields.values():
            for value in values:
                yield name, value

    def __contains__(self, name: str) -> bool:
        return name.lower() in self._fields

    def __len__(self) -> int:
        return sum(len(values) for _, values in self._fields.values())

    def __eq__(self, other) -> bool:
        if not isinstance(other, Headers):
            return NotImplemented
        return list(self.items()) == list(other.items())

    def __repr__(self) -> str:
        return f"Headers({list(self.items())!r})"


def write_header_block(sink, fields: List[Tuple[str, str]], extra: Headers):
    """Write encoded header fields followed by the blank separator line."""
    lines = [encode_header(name, value) for name, value in fields]
    for name, value in extra.items():
        if name.lower() in RESERVED_HEADERS:
            logger.warning("Ignoring extra %s header on MIME part", name)
            continue
        lines.append(encode_header(name, value))
    lines.append(LINE_END)
    sink.write("".join(lines).encode("utf-8"))


def _quote_parameter(name: str, value: str) -> str:
    if is_plain(value):
        value = value.replace("\\", "\\\\").replace('"', '\\"')
        return f'{name}="{value}"'
    # RFC2231
    return f"{name}*={encode_rfc2231(value, 'utf-8')}"


class MIMEPart(ABC):
    """Common interface of the three part kinds."""

    headers: Headers

    @abstractmethod
    def write_to(
        self,
        sink,
        mode: Mode,
        boundary_generator: Optional[BoundaryGenerator] = None,
    ):
        """Write the header block and encoded body of this part to sink."""

    def as_bytes(
        self,
        mode: Mode = Mode.EIGHT_BIT,
        boundary_generator: Optional[BoundaryGenerator] = None,
    ) -> bytes:
        """Serialize this part on its own."""
        buffer = io.BytesIO()
        self.write_to(buffer, mode, boundary_generator)
        return buffer.getvalue()


@dataclass
class TextPart(MIMEPart):
    """Text leaf. The content is held in memory."""

    content_type: str = "text/plain"
    content: bytes = b""
    disposition: str = "inline"
    charset: str = "utf-8"
    headers: Headers = field(default_factory=Headers)

    def __post_init__(self):
        if isinstance(self.content, str):
            self.content = self.content.encode(self.charset)
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    @property
    def is_html(self) -> bool:
        return self.content_type.lower() == "text/html"

    def write_to(self, sink, mode, boundary_generator=None):
        body, encoding = encode_text(self.content, mode)
        fields = [
            (
                "Content-Type",
                f"{self.content_type}; charset={self.charset or 'utf-8'}",
            ),
            ("Content-Transfer-Encoding", encoding.value),
        ]
        if self.disposition:
            fields.append(("Content-Disposition", self.disposition))
        write_header_block(sink, fields, self.headers)
        sink.write(body)


@dataclass
class BinaryPart(MIMEPart):
    """
    Binary leaf.

    ``content`` is either bytes or a binary file object. A file object is
    read forward only, once: serializing the part a second time gives an
    empty body.
    """

    content_type: str = "application/octet-stream"
    content: Union[bytes, BinaryIO] = b""
    disposition: str = "attachment"
    filename: str = ""
    headers: Headers = field(default_factory=Headers)

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    def write_to(self, sink, mode, boundary_generator=None):
        fields = [
            ("Content-Type", self.content_type),
            ("Content-Transfer-Encoding", binary_encoding(mode).value),
        ]
        if self.disposition:
            disposition = self.disposition
            if self.filename:
                disposition += "; " + _quote_parameter("filename", self.filename)
            fields.append(("Content-Disposition", disposition))
        write_header_block(sink, fields, self.headers)
        write_binary(sink, self.content, mode)


@dataclass
class MultipartPart(MIMEPart):
    """
    Container of other parts.

    The boundary is generated on first serialization when none was given,
    and kept for later ones.
    """

    content_type: str = "multipart/mixed"
    parts: List[MIMEPart] = field(default_factory=list)
    boundary: str = ""
    headers: Headers = field(default_factory=Headers)

    def __post_init__(self):
        if not isinstance(self.headers, Headers):
            self.headers = Headers(self.headers)

    def append(self, part: MIMEPart):
        self.parts.append(part)

    def write_to(self, sink, mode, boundary_generator=None):
        if not self.boundary:
            self.boundary = (boundary_generator or default_boundary_generator)(self)

        write_header_block(
            sink,
            [("Content-Type", f'{self.content_type}; boundary="{self.boundary}"')],
            self.headers,
        )

        delimiter = f"{LINE_END}--{self.boundary}".encode("ascii")
        for part in self.parts:
            sink.write(delimiter + LINE_END.encode("ascii"))
            part.write_to(sink, mode, boundary_generator)
        sink.write(delimiter + f"--{LINE_END}".encode("ascii"))
