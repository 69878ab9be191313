"""Tests for settings access and the default generators."""

from django.test import override_settings

import pytest

from rfcmail.conf import DEFAULTS, get_setting
from rfcmail.enums import Mode
from rfcmail.generators import (
    BOUNDARY_PREFIX,
    default_boundary_generator,
    default_message_id_generator,
)


class TestSettings:
    """Tests for rfcmail settings."""

    def test_project_setting(self):
        """Test a value from the Django settings wins over the default."""
        assert get_setting("RFCMAIL_MESSAGE_ID_DOMAIN") == "rfcmail.test"

    def test_default(self):
        """Test the default is used when the setting is absent."""
        assert get_setting("RFCMAIL_DEFAULT_MODE") == Mode.EIGHT_BIT
        assert get_setting("RFCMAIL_DKIM_SELECTOR") == "default"

    def test_unknown_setting(self):
        """Test only known settings can be read."""
        with pytest.raises(KeyError):
            get_setting("RFCMAIL_UNKNOWN")

    def test_every_default_is_readable(self):
        """Test every default has a matching name."""
        for name in DEFAULTS:
            get_setting(name)


class TestMode:
    """Tests for the ordering of transfer modes."""

    def test_ordering(self):
        """Test each mode allows what lower modes allow."""
        assert Mode.SEVEN_BIT < Mode.EIGHT_BIT < Mode.BINARY
        assert sorted([Mode.BINARY, Mode.SEVEN_BIT, Mode.EIGHT_BIT]) == list(Mode)


class TestBoundaryGenerator:
    """Tests for the default boundary generator."""

    def test_format(self):
        """Test boundaries are prefixed random tokens of the configured length."""
        boundary = default_boundary_generator(None)
        assert boundary.startswith(BOUNDARY_PREFIX)
        assert len(boundary) == len(BOUNDARY_PREFIX) + 30
        assert boundary[len(BOUNDARY_PREFIX) :].isalnum()

    @override_settings(RFCMAIL_BOUNDARY_LENGTH=12)
    def test_length_setting(self):
        """Test the length follows RFCMAIL_BOUNDARY_LENGTH."""
        assert len(default_boundary_generator(None)) == len(BOUNDARY_PREFIX) + 12

    def test_unique(self):
        """Test two calls give different boundaries."""
        boundaries = {default_boundary_generator(None) for _ in range(50)}
        assert len(boundaries) == 50


class TestMessageIdGenerator:
    """Tests for the default message id generator."""

    def test_format(self):
        """Test ids are angle bracketed and use the configured domain."""
        message_id = default_message_id_generator(None)
        assert message_id.startswith("<")
        assert message_id.endswith("@rfcmail.test>")

    @override_settings(RFCMAIL_MESSAGE_ID_DOMAIN="mail.example.org")
    def test_domain_setting(self):
        """Test the domain follows RFCMAIL_MESSAGE_ID_DOMAIN."""
        assert default_message_id_generator(None).endswith("@mail.example.org>")

    def test_unique(self):
        """Test two calls give different ids."""
        assert default_message_id_generator(None) != default_message_id_generator(
            None
        )
