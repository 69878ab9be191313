"""
rfcmail enums declaration
"""

from django.db import models
from django.utils.translation import gettext_lazy as _


class Mode(models.IntegerChoices):
    """
    The most liberal transfer encoding the receiving channel accepts.

    Members are ordered: a mode also allows everything a lower mode allows.
    """

    SEVEN_BIT = 0, _("7bit")
    EIGHT_BIT = 1, _("8bit")
    BINARY = 2, _("Binary")


class TransferEncoding(models.TextChoices):
    """Values of the Content-Transfer-Encoding header."""

    SEVEN_BIT = "7bit", _("7bit")
    EIGHT_BIT = "8bit", _("8bit")
    QUOTED_PRINTABLE = "quoted-printable", _("Quoted-printable")
    BASE64 = "base64", _("Base64")
    BINARY = "binary", _("Binary")


class BodyState(models.TextChoices):
    """Shape of a message body, as far as body insertion is concerned."""

    EMPTY = "empty", _("Empty")
    SINGLE_TEXT = "single_text", _("Single text part")
    SINGLE_HTML = "single_html", _("Single HTML part")
    MULTIPART = "multipart", _("Multipart")
    OTHER = "other", _("Other")
