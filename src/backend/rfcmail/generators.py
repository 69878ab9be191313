"""
Default generators for multipart boundaries and message identifiers.

Both are plain functions so that callers can swap them per message. They hold
no state and may be called from several threads at once.
"""

import logging
from email.utils import make_msgid

from django.utils.crypto import get_random_string

from rfcmail.conf import get_setting

logger = logging.getLogger(__name__)

# "=_" can never show up in quoted-printable or base64 output.
BOUNDARY_PREFIX = "=_"


def default_boundary_generator(part) -> str:  # pylint: disable=unused-argument
    """Return a fresh boundary token for a multipart container."""
    boundary = BOUNDARY_PREFIX + get_random_string(
        get_setting("RFCMAIL_BOUNDARY_LENGTH")
    )
    logger.debug("Generated boundary %s", boundary)
    return boundary


def default_message_id_generator(email) -> str:  # pylint: disable=unused-argument
    """Return a fresh Message-ID, including the angle brackets."""
    message_id = make_msgid(domain=get_setting("RFCMAIL_MESSAGE_ID_DOMAIN"))
    logger.debug("Generated message id %s", message_id)
    return message_id
