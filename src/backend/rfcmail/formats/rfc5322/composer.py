"""
RFC5322 email composer.

This module assembles a complete message from an envelope (sender,
recipients, subject, date, message id and extra headers) and a MIME part
tree, and serializes it to bytes. It also provides ``compose_email``, which
builds such a message from JMAP-style data structures.
"""

import base64
import binascii
import datetime
import io
import logging
from email.utils import format_datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from django.utils import timezone

from rfcmail.conf import get_setting
from rfcmail.enums import BodyState, Mode
from rfcmail.generators import (
    default_boundary_generator,
    default_message_id_generator,
)

from .address import Address
from .headers import encode_address_header, encode_header
from .mime import (
    RESERVED_HEADERS,
    BinaryPart,
    Headers,
    MIMEPart,
    MultipartPart,
    TextPart,
)

# Setup logger
logger = logging.getLogger(__name__)

Content = Union[str, bytes, Any]
AddressLike = Union[Address, str]

# Header fields rendered from the envelope itself
ENVELOPE_HEADERS = frozenset(
    ["from", "to", "cc", "bcc", "reply-to", "subject", "date", "message-id"]
)


class EmailComposeError(Exception):
    """Exception raised for errors during email composition."""


class FromRequiredError(EmailComposeError):
    """The message has no sender address."""


class NoBodyError(EmailComposeError):
    """The message has no body."""


class InvalidMimeTreeError(EmailComposeError):
    """The body tree has no obvious place for the inserted part."""


def _as_address(value: AddressLike) -> Address:
    if isinstance(value, Address):
        return value
    return Address.parse(value)


def _read_content(content: Content) -> bytes:
    if hasattr(content, "read"):
        content = content.read()
    if isinstance(content, str):
        return content.encode("utf-8")
    return bytes(content)


def format_message_id(message_id: str) -> str:
    """Enclose a message id in angle brackets, adding whichever is missing."""
    if not message_id.startswith("<"):
        message_id = "<" + message_id
    if not message_id.endswith(">"):
        message_id += ">"
    return message_id


class Email:  # pylint: disable=too-many-instance-attributes
    """
    An email message under construction.

    Fields may be changed freely until the message is serialized, nothing is
    encoded before that. Serializing does not change the tree, except that
    an unset date, message id or multipart boundary is filled in.
    """

    def __init__(  # pylint: disable=too-many-arguments
        self,
        subject: str = "",
        from_: Optional[AddressLike] = None,
        to: Iterable[AddressLike] = (),
        *,
        cc: Iterable[AddressLike] = (),
        bcc: Iterable[AddressLike] = (),
        reply_to: Iterable[AddressLike] = (),
        date: Optional[datetime.datetime] = None,
        message_id: str = "",
        headers: Optional[Headers] = None,
        body: Optional[MIMEPart] = None,
        boundary_generator: Optional[Callable[[MultipartPart], str]] = None,
        message_id_generator: Optional[Callable[["Email"], str]] = None,
    ):
        self.subject = subject
        self.from_ = _as_address(from_) if from_ else None
        self.to: List[Address] = [_as_address(a) for a in to]
        self.cc: List[Address] = [_as_address(a) for a in cc]
        self.bcc: List[Address] = [_as_address(a) for a in bcc]
        self.reply_to: List[Address] = [_as_address(a) for a in reply_to]
        self.date = date
        self.message_id = message_id
        self.headers = Headers(headers)
        self.body = body
        self.boundary_generator = boundary_generator or default_boundary_generator
        self.message_id_generator = (
            message_id_generator or default_message_id_generator
        )

    def __repr__(self):
        return f"<Email subject={self.subject!r} from={str(self.from_)!r}>"

    # Envelope

    def add_to(self, *addresses: AddressLike):
        """Add To recipients."""
        self.to.extend(_as_address(a) for a in addresses)

    def add_cc(self, *addresses: AddressLike):
        """Add Cc recipients."""
        self.cc.extend(_as_address(a) for a in addresses)

    def add_bcc(self, *addresses: AddressLike):
        """Add Bcc recipients."""
        self.bcc.extend(_as_address(a) for a in addresses)

    def add_reply_to(self, *addresses: AddressLike):
        self.reply_to.extend(_as_address(a) for a in addresses)

    def add_header(self, name: str, value: str):
        """
        Add an extra header field.

        Headers are not validated. A name may be added several times, each
        value is written as its own header line.
        """
        self.headers.add(name, value)

    # Body

    @property
    def body_state(self) -> BodyState:
        """Classify the body for the text/HTML insertion rules."""
        body = self.body
        if body is None:
            return BodyState.EMPTY
        if isinstance(body, MultipartPart):
            return BodyState.MULTIPART
        if isinstance(body, TextPart):
            return BodyState.SINGLE_HTML if body.is_html else BodyState.SINGLE_TEXT
        return BodyState.OTHER

    def add_text_body(self, content: Content):
        """
        Add a plain text body. The text must be UTF-8.

        Adding more than one text body is not recommended, but works: the
        new part always goes first.

        Raises:
            InvalidMimeTreeError: If the body is neither empty, a single text
                part nor a multipart container. The body is left unchanged.
        """
        state = self.body_state
        if state == BodyState.OTHER:
            raise InvalidMimeTreeError(
                "Ambiguous MIME tree for inserting a text body"
            )

        part = TextPart("text/plain", _read_content(content))
        if state == BodyState.EMPTY:
            self.body = part
        elif state in (BodyState.SINGLE_TEXT, BodyState.SINGLE_HTML):
            self.body = MultipartPart("multipart/alternative", [part, self.body])
        elif state == BodyState.MULTIPART:
            self.body.parts.insert(0, part)

    def add_html_body(self, content: Content):
        """
        Add an HTML body. The HTML must be UTF-8.

        The new part always goes last.

        Raises:
            InvalidMimeTreeError: If the body is neither empty, a single text
                part nor a multipart container. The body is left unchanged.
        """
        state = self.body_state
        if state == BodyState.OTHER:
            raise InvalidMimeTreeError(
                "Ambiguous MIME tree for inserting an HTML body"
            )

        part = TextPart("text/html", _read_content(content))
        if state == BodyState.EMPTY:
            self.body = part
        elif state in (BodyState.SINGLE_TEXT, BodyState.SINGLE_HTML):
            self.body = MultipartPart("multipart/alternative", [self.body, part])
        elif state == BodyState.MULTIPART:
            self.body.parts.append(part)

    def attach_part(self, part: MIMEPart):
        """
        Add a part to the top-level multipart/mixed container.

        A body that is not already multipart/mixed is wrapped in one,
        followed by the new part.
        """
        body = self.body
        if body is None:
            self.body = MultipartPart("multipart/mixed", [part])
        elif (
            isinstance(body, MultipartPart)
            and body.content_type == "multipart/mixed"
        ):
            body.append(part)
        else:
            self.body = MultipartPart("multipart/mixed", [body, part])

    def attach(  # pylint: disable=too-many-arguments
        self,
        content: Union[bytes, Any],
        content_type: str = "application/octet-stream",
        filename: str = "",
        disposition: str = "attachment",
        content_id: str = "",
    ) -> BinaryPart:
        """
        Attach binary content, a file object is read during serialization.

        Returns:
            The new part
        """
        part = BinaryPart(
            content_type=content_type,
            content=content,
            disposition=disposition,
            filename=filename,
        )
        if content_id:
            part.headers.add("Content-ID", format_message_id(content_id))
        self.attach_part(part)
        return part

    # Serialization

    def _header_block(self) -> str:
        date = self.date
        if timezone.is_naive(date):
            date = timezone.make_aware(date, datetime.timezone.utc)

        lines = [
            encode_header("Date", format_datetime(date)),
            encode_address_header("From", [self.from_]),
        ]
        for name, addresses in (
            ("To", self.to),
            ("Cc", self.cc),
            ("Bcc", self.bcc),
            ("Reply-To", self.reply_to),
        ):
            if addresses:
                lines.append(encode_address_header(name, addresses))
        lines.append(encode_header("Subject", self.subject))
        lines.append(encode_header("Message-ID", format_message_id(self.message_id)))
        lines.append(encode_header("MIME-Version", "1.0"))

        for name, value in self.headers.items():
            if name.lower() == "mime-version":
                continue
            if name.lower() in RESERVED_HEADERS:
                logger.warning("Ignoring extra %s header on message", name)
                continue
            lines.append(encode_header(name, value))
        return "".join(lines)

    def write_to(self, sink, mode: Optional[Mode] = None):
        """
        Write this email to a binary sink.

        The mode is the most liberal encoding the channel accepts: with
        EIGHT_BIT binary parts are base64 encoded, with SEVEN_BIT UTF-8 text
        is sent as quoted-printable.

        Raises:
            FromRequiredError: If there is no sender address
            NoBodyError: If there is no body
        """
        if mode is None:
            mode = get_setting("RFCMAIL_DEFAULT_MODE")

        if self.date is None:
            self.date = datetime.datetime.now(datetime.timezone.utc)
        if not self.message_id:
            self.message_id = self.message_id_generator(self)
        if self.from_ is None or not self.from_.email:
            logger.error("Cannot serialize %r: From is required", self)
            raise FromRequiredError("From is required")
        if self.body is None:
            logger.error("Cannot serialize %r: body is missing", self)
            raise NoBodyError("Body is missing")

        sink.write(self._header_block().encode("utf-8"))
        self.body.write_to(sink, mode, self.boundary_generator)

    def as_bytes(self, mode: Optional[Mode] = None) -> bytes:
        """Serialize this email to bytes."""
        buffer = io.BytesIO()
        self.write_to(buffer, mode)
        return buffer.getvalue()

    serialize = as_bytes


def _parse_date(value: Any) -> Optional[datetime.datetime]:
    if isinstance(value, datetime.datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            logger.warning("Ignoring unparsable date %r", value)
    return None


def _content_of(part_data: Any) -> str:
    if isinstance(part_data, dict):
        return part_data.get("content", "")
    return part_data


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    return value if isinstance(value, list) else [value]


def create_attachment_part(attachment: Dict[str, Any]) -> Optional[BinaryPart]:
    """
    Create a MIME part for an attachment from JMAP data.

    Args:
        attachment: Dictionary containing attachment data with keys:
            - content: Base64 encoded content (or raw bytes)
            - type: MIME type (e.g., 'image/jpeg')
            - name: Filename
            - disposition: 'attachment' or 'inline'
            - cid: Content-ID for inline images (optional)

    Returns:
        The part, or None if the attachment data is unusable
    """
    if not attachment or not isinstance(attachment, dict):
        logger.warning("Invalid attachment data provided")
        return None

    content = attachment.get("content")
    if not content:
        logger.warning("No content provided for attachment")
        return None

    if isinstance(content, str):
        try:
            content = base64.b64decode(content, validate=True)
        except binascii.Error as e:
            logger.error("Failed to decode base64 content: %s", str(e))
            return None

    disposition = attachment.get("disposition", "attachment")
    part = BinaryPart(
        content_type=attachment.get("type", "application/octet-stream"),
        content=content,
        disposition=disposition,
        filename=attachment.get("name", ""),
    )

    content_id = attachment.get("cid")
    if disposition == "inline" and content_id:
        part.headers.add("Content-ID", f"<{content_id.strip('<>')}>")

    return part


def compose_email(jmap_data: Dict[str, Any], mode: Optional[Mode] = None) -> bytes:
    """
    Convert a JMAP email object to RFC5322 format.

    Args:
        jmap_data: Dictionary with JMAP email data
        mode: Most liberal transfer encoding of the channel

    Returns:
        RFC5322 formatted email as bytes

    Raises:
        EmailComposeError: If composition fails
    """
    try:
        if not jmap_data:
            raise EmailComposeError("Empty JMAP data provided")

        from_data = jmap_data.get("from", {})
        if isinstance(from_data, list):
            if not from_data:
                raise EmailComposeError("Empty 'from' list in JMAP data")
            from_data = from_data[0]

        if not isinstance(from_data, dict) or not from_data.get("email"):
            raise EmailComposeError("Missing or invalid 'from' field in JMAP data")

        def addresses(key):
            return [
                Address.from_dict(item)
                for item in _as_list(jmap_data.get(key))
                if item.get("email")
            ]

        email = Email(
            subject=jmap_data.get("subject", ""),
            from_=Address.from_dict(from_data),
            to=addresses("to"),
            cc=addresses("cc"),
            bcc=addresses("bcc"),
            reply_to=addresses("replyTo"),
            date=_parse_date(jmap_data.get("date")),
            message_id=jmap_data.get("messageId", jmap_data.get("message_id", "")),
        )

        # Each text body is prepended, so add them last to first
        for part_data in reversed(_as_list(jmap_data.get("textBody"))):
            email.add_text_body(_content_of(part_data))
        for part_data in _as_list(jmap_data.get("htmlBody")):
            email.add_html_body(_content_of(part_data))

        for attachment in jmap_data.get("attachments", []):
            part = create_attachment_part(attachment)
            if part:
                email.attach_part(part)

        if email.body is None:
            email.add_text_body("")

        for header_name, header_value in jmap_data.get("headers", {}).items():
            if header_name.lower() not in ENVELOPE_HEADERS:
                email.add_header(header_name, header_value)

        return email.as_bytes(mode)
    except EmailComposeError:
        raise
    except Exception as e:
        logger.exception("Unexpected error during email composition: %s", str(e))
        raise EmailComposeError(f"Failed to compose email: {str(e)}") from e
