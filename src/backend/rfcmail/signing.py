"""
DKIM signing of composed messages.

The set of signed header fields is derived from the envelope of the Email
being signed, so that only fields actually present in the message are
covered.
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import dkim

from rfcmail.conf import get_setting
from rfcmail.enums import Mode
from rfcmail.formats.rfc5322.composer import Email, EmailComposeError
from rfcmail.formats.rfc5322.headers import canonical_header_name

logger = logging.getLogger(__name__)

# Extra header fields signed when the message carries them
SIGNED_EXTRA_HEADERS = frozenset(
    ["in-reply-to", "references", "list-id", "list-unsubscribe", "list-post"]
)


class DKIMSigningError(EmailComposeError):
    """The DKIM signer refused the message or the key."""


def _load_private_key() -> Optional[bytes]:
    key_file = get_setting("RFCMAIL_DKIM_PRIVATE_KEY_FILE")
    if key_file:
        try:
            with open(key_file, "rb") as f:
                return f.read()
        except FileNotFoundError:
            logger.error("DKIM private key file not found: %s", key_file)
            return None
    key_b64 = get_setting("RFCMAIL_DKIM_PRIVATE_KEY_B64")
    if key_b64:
        try:
            return base64.b64decode(key_b64)
        except (TypeError, ValueError):
            logger.error("Failed to decode RFCMAIL_DKIM_PRIVATE_KEY_B64")
    return None


@dataclass(frozen=True)
class DKIMSigner:
    """Signs messages for one domain with one selector and key."""

    domain: str
    selector: str
    private_key: bytes = field(repr=False)
    canonicalize: Tuple[bytes, bytes] = (b"relaxed", b"simple")

    @classmethod
    def for_domain(cls, domain: str) -> Optional["DKIMSigner"]:
        """
        Build a signer from the RFCMAIL_DKIM_* settings.

        Returns:
            The signer, or None if the domain is not one we sign for or no
            key is configured
        """
        domain = domain.lower()
        if domain not in get_setting("RFCMAIL_DKIM_DOMAINS"):
            logger.warning(
                "Domain %s is not in RFCMAIL_DKIM_DOMAINS, skipping DKIM signing",
                domain,
            )
            return None

        private_key = _load_private_key()
        if not private_key:
            logger.warning(
                "RFCMAIL_DKIM_PRIVATE_KEY_B64/FILE is not set, skipping DKIM signing"
            )
            return None

        return cls(domain, get_setting("RFCMAIL_DKIM_SELECTOR"), private_key)

    @staticmethod
    def signed_headers(email: Email) -> List[str]:
        """
        Header fields to sign for this message, in signing order.

        Bcc is never signed, relays are expected to remove it.
        """
        names = ["From"]
        for name, addresses in (
            ("To", email.to),
            ("Cc", email.cc),
            ("Reply-To", email.reply_to),
        ):
            if addresses:
                names.append(name)
        names += ["Subject", "Date", "Message-ID", "MIME-Version"]

        for name, _ in email.headers.items():
            name = canonical_header_name(name)
            if name.lower() in SIGNED_EXTRA_HEADERS and name not in names:
                names.append(name)
        return names

    def signature(self, raw: bytes, headers: List[str]) -> bytes:
        """
        Compute the DKIM-Signature header field of a serialized message.

        Raises:
            DKIMSigningError: If dkimpy rejects the message or the key
        """
        try:
            header = dkim.sign(
                message=raw,
                selector=self.selector.encode("ascii"),
                domain=self.domain.encode("ascii"),
                privkey=self.private_key,
                include_headers=[name.encode("ascii") for name in headers],
                canonicalize=self.canonicalize,
            )
        except dkim.DKIMException as e:
            logger.error("Error during DKIM signing for domain %s: %s", self.domain, e)
            raise DKIMSigningError(f"DKIM signing failed: {e}") from e
        return header.rstrip(b"\r\n") + b"\r\n"

    def sign(self, email: Email, mode: Optional[Mode] = None) -> bytes:
        """Serialize email and prepend its DKIM-Signature header field."""
        raw = email.as_bytes(mode)
        return self.signature(raw, self.signed_headers(email)) + raw


def sign_email(email: Email, mode: Optional[Mode] = None) -> bytes:
    """
    Serialize email, DKIM signed when its sender domain is configured.

    A message whose sender domain we do not sign for is returned unsigned.

    Raises:
        FromRequiredError, NoBodyError: As for ``Email.as_bytes``
        DKIMSigningError: If a configured signer fails
    """
    sender = email.from_.email if email.from_ else ""
    _, at, domain = sender.rpartition("@")
    signer = DKIMSigner.for_domain(domain) if at else None
    if signer is None:
        return email.as_bytes(mode)
    return signer.sign(email, mode)
