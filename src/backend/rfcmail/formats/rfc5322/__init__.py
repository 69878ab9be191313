"""
RFC5322 email format package.

This package provides functionality for building email messages according
to RFC5322 and the MIME RFCs, down to the exact bytes sent on the wire.
"""

from .address import (
    Address,
    InvalidAddressError,
    format_address,
    format_address_list,
    parse_address_list,
)
from .composer import (
    Email,
    EmailComposeError,
    FromRequiredError,
    InvalidMimeTreeError,
    NoBodyError,
    compose_email,
    create_attachment_part,
)
from .headers import encode_address_header, encode_header
from .mime import BinaryPart, Headers, MIMEPart, MultipartPart, TextPart
from .transfer import bit8_encode, encode_text, qp_encode

__all__ = [
    # Addresses
    "Address",
    "InvalidAddressError",
    "format_address",
    "format_address_list",
    "parse_address_list",
    # Composer
    "Email",
    "EmailComposeError",
    "FromRequiredError",
    "InvalidMimeTreeError",
    "NoBodyError",
    "compose_email",
    "create_attachment_part",
    # MIME tree
    "MIMEPart",
    "TextPart",
    "BinaryPart",
    "MultipartPart",
    "Headers",
    # Encoders
    "encode_header",
    "encode_address_header",
    "encode_text",
    "bit8_encode",
    "qp_encode",
]
