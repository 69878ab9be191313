"""
Email addresses as used in address header fields.

Parsing is delegated to the Flanker address library; the rest of the package
only ever sees already validated (name, email) pairs.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from flanker.addresslib import address as flanker_address

from .headers import escape_word, is_plain

logger = logging.getLogger(__name__)

# Characters that force a display name to be quoted
_SPECIALS = ',.;:@<>()[]"\\'


class InvalidAddressError(ValueError):
    """Raised when an address string cannot be parsed."""


def format_address(name: str, email: str) -> str:
    """
    Format a name and email address according to RFC5322.

    Args:
        name: The display name (can be empty)
        email: The email address

    Returns:
        Properly formatted email address string

    Examples:
        >>> format_address('', 'user@example.com')
        'user@example.com'
        >>> format_address('John Doe', 'john@example.com')
        'John Doe <john@example.com>'
    """
    if not email:
        return ""

    if not name:
        return email.strip()

    if not is_plain(name):
        return f"{escape_word(name, phrase=True)} <{email.strip()}>"

    needs_quoting = any(c in name for c in _SPECIALS)

    if needs_quoting and not (
        len(name) > 1 and name.startswith('"') and name.endswith('"')
    ):
        name = '"' + name.replace("\\", "\\\\").replace('"', '\\"') + '"'

    return f"{name} <{email.strip()}>"


def format_address_list(addresses: List[Dict[str, str]]) -> str:
    """
    Format a list of address objects into a comma-separated string.

    Entries without an email are skipped.
    """
    formatted = []
    for addr in addresses:
        name = addr.get("name", "")
        email = addr.get("email", "")
        if email:
            formatted.append(format_address(name, email))

    return ", ".join(formatted)


@dataclass(frozen=True)
class Address:
    """A pre-validated mailbox: an email address and an optional display name."""

    email: str
    name: str = ""

    def __str__(self):
        return format_address(self.name, self.email)

    @classmethod
    def parse(cls, text: str) -> "Address":
        """
        Parse a single address such as ``Jane <jane@example.com>``.

        Raises:
            InvalidAddressError: If Flanker cannot parse the string
        """
        parsed = flanker_address.parse(text)
        if parsed is None:
            logger.warning("Could not parse address %r", text)
            raise InvalidAddressError(f"Invalid address: {text!r}")
        return cls(email=parsed.address, name=parsed.display_name or "")

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "Address":
        """Build an address from a JMAP style ``{"name": ..., "email": ...}`` dict."""
        return cls(email=data.get("email", ""), name=data.get("name", "") or "")


def parse_address_list(text: str) -> List[Address]:
    """
    Parse a comma separated list of addresses.

    Raises:
        InvalidAddressError: If any entry cannot be parsed
    """
    if not text:
        return []

    parsed, unparsed = flanker_address.parse_list(text, as_tuple=True)
    if unparsed:
        logger.warning("Could not parse addresses %r", unparsed)
        raise InvalidAddressError(f"Invalid addresses: {', '.join(unparsed)}")

    return [Address(email=item.address, name=item.display_name or "") for item in parsed]
