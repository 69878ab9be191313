"""Access to rfcmail settings, with defaults when Django is not configured."""

from django.conf import settings

from rfcmail.enums import Mode

DEFAULTS = {
    "RFCMAIL_DEFAULT_MODE": Mode.EIGHT_BIT,
    "RFCMAIL_BOUNDARY_LENGTH": 30,
    "RFCMAIL_MESSAGE_ID_DOMAIN": None,
    "RFCMAIL_DKIM_DOMAINS": [],
    "RFCMAIL_DKIM_SELECTOR": "default",
    "RFCMAIL_DKIM_PRIVATE_KEY_B64": None,
    "RFCMAIL_DKIM_PRIVATE_KEY_FILE": None,
}


def get_setting(name):
    """Return the value of an rfcmail setting."""
    if not settings.configured:
        return DEFAULTS[name]
    return getattr(settings, name, DEFAULTS[name])
