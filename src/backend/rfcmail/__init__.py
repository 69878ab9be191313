"""rfcmail: RFC5322/MIME message construction."""

__version__ = "0.1.0"
