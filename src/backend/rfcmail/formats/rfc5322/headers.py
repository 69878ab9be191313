"""
RFC5322 header field encoding.

Header values are folded at word boundaries so that lines stay under the
recommended length of 78 characters, and words that are not printable ASCII
are rewritten as RFC2047 encoded words (``=?utf-8?q?...?=``).
"""

import re
import string
from typing import Iterable, List

LINE_END = "\r\n"
LINE_SHOULD_LENGTH = 78
LINE_MAX_LENGTH = 998

ENCODED_WORD_OPEN = "=?utf-8?q?"
ENCODED_WORD_CLOSE = "?="
# RFC2047 section 2
ENCODED_WORD_MAX_LENGTH = 75

# Room needed on a line before we bother starting an encoded word on it
MIN_ENCODED_WORD_ROOM = len(ENCODED_WORD_OPEN) + len(ENCODED_WORD_CLOSE) + 12

_Q_SAFE = frozenset(chr(c) for c in range(ord("!"), ord("~") + 1)) - set("=?_")
# RFC2047 section 5 (3): encoded words inside a phrase
_Q_SAFE_PHRASE = frozenset(string.ascii_letters + string.digits + "!*+-/")

_ACRONYMS = {"mime": "MIME", "id": "ID", "dkim": "DKIM"}

_WORD_SPLIT = re.compile("(?= )")


def canonical_header_name(name: str) -> str:
    """
    Return the canonical spelling of a header field name.

    Examples:
        >>> canonical_header_name("content-type")
        'Content-Type'
        >>> canonical_header_name("message-id")
        'Message-ID'
    """
    return "-".join(
        _ACRONYMS.get(piece.lower(), piece.capitalize())
        for piece in name.strip().split("-")
    )


def is_plain(word: str) -> bool:
    """Whether a word is made only of printable ASCII characters."""
    return word.isascii() and word.isprintable()


def _q_encode(char: str, safe: frozenset) -> str:
    if char == " ":
        return "_"
    return "".join(
        chr(byte) if chr(byte) in safe else f"={byte:02X}"
        for byte in char.encode("utf-8")
    )


def encoded_words(
    text: str, first_length: int, length: int, phrase: bool = False
) -> List[str]:
    """
    Encode text as a list of "Q" encoded words.

    The first encoded word is at most ``first_length`` characters long, the
    following ones at most ``length``. A character is never split across two
    encoded words.
    """
    safe = _Q_SAFE_PHRASE if phrase else _Q_SAFE
    overhead = len(ENCODED_WORD_OPEN) + len(ENCODED_WORD_CLOSE)
    words = []
    body = ""
    limit = first_length
    for char in text:
        encoded = _q_encode(char, safe)
        if body and overhead + len(body) + len(encoded) > limit:
            words.append(ENCODED_WORD_OPEN + body + ENCODED_WORD_CLOSE)
            body = ""
            limit = length
        body += encoded
    words.append(ENCODED_WORD_OPEN + body + ENCODED_WORD_CLOSE)
    return words


def escape_word(word: str, phrase: bool = False) -> str:
    """
    Escape a single word for use in a header.

    Printable ASCII is returned unchanged, anything else becomes one or more
    space separated encoded words.
    """
    if is_plain(word):
        return word
    return " ".join(
        encoded_words(word, ENCODED_WORD_MAX_LENGTH, ENCODED_WORD_MAX_LENGTH, phrase)
    )


class HeaderFolder:
    """Accumulates the words of a header field into folded lines."""

    def __init__(self, name: str):
        self.lines: List[str] = []
        self.line = f"{canonical_header_name(name)}: "
        # Nothing has been written on the current line yet
        self.blank = True

    def fold(self):
        """Close the current line and start a continuation line."""
        self.lines.append(self.line)
        self.line = ""
        self.blank = True

    def fits(self, word: str) -> bool:
        """Whether a plain word can be added without exceeding LINE_MAX_LENGTH."""
        if self.blank:
            return len(self.line or " ") + len(word) <= LINE_MAX_LENGTH
        # add_plain folds in front of the word if needed
        return len(word) + 1 <= LINE_MAX_LENGTH

    def add_plain(self, word: str):
        """Append a word that needs no encoding, folding in front of it if needed."""
        if not self.blank and len(self.line) + len(word) > LINE_SHOULD_LENGTH:
            self.fold()
        if not self.line and not word.startswith(" "):
            word = " " + word
        self.line += word
        self.blank = False

    def add_encoded(self, text: str, separator: str):
        """
        Append text as encoded words.

        ``separator`` is the literal whitespace written before the first
        encoded word.
        """
        room = LINE_SHOULD_LENGTH - len(self.line) - len(separator)
        if room < MIN_ENCODED_WORD_ROOM and self.line.strip():
            if self.blank:
                # Only the field name is on this line, fold right after it
                self.line = self.line.rstrip(" ")
            self.fold()
        if not self.line and not separator:
            separator = " "
        room = LINE_SHOULD_LENGTH - len(self.line) - len(separator)
        words = encoded_words(
            text,
            min(room, ENCODED_WORD_MAX_LENGTH),
            min(LINE_SHOULD_LENGTH - 1, ENCODED_WORD_MAX_LENGTH),
        )
        self.line += separator + words[0]
        for word in words[1:]:
            self.fold()
            self.line = " " + word
        self.blank = False

    def getvalue(self) -> str:
        """Return all lines, each terminated by CRLF."""
        return LINE_END.join(self.lines + [self.line]) + LINE_END


def encode_header(name: str, value: str) -> str:
    """
    Encode a header field as one or more CRLF terminated lines.

    The value is split on spaces, each separator staying attached to the word
    that follows it. Folding inserts CRLF in front of such a separator, so
    unfolding gives back the original value. Decoders drop the whitespace
    separating two encoded words, so whitespace following an encoded word is
    encoded into the next one instead.

    Args:
        name: The header field name, canonicalized on output
        value: The raw header value

    Returns:
        The encoded header lines
    """
    folder = HeaderFolder(name)
    previous_encoded = False
    # Whitespace-only words, held until we know what follows them
    pending = ""
    for word in _WORD_SPLIT.split(value):
        if word and not word.strip(" "):
            pending += word
            continue
        word, pending = pending + word, ""
        if is_plain(word) and folder.fits(word):
            folder.add_plain(word)
            previous_encoded = False
        elif previous_encoded:
            folder.add_encoded(word, " ")
        else:
            separator = " " if word.startswith(" ") else ""
            folder.add_encoded(word[len(separator) :], separator)
            previous_encoded = True
    if pending:
        if previous_encoded:
            folder.add_encoded(pending, " ")
        else:
            folder.add_plain(pending)
    return folder.getvalue()


def encode_address_header(name: str, addresses: Iterable) -> str:
    """
    Encode an address list header field.

    Addresses are rendered with ``str()`` and separated by ", ". The field is
    folded between addresses. An address too long for a line of its own is
    also folded at the spaces inside it, which only separate the words of
    its display name.
    """
    lines = []
    line = f"{canonical_header_name(name)}:"
    started = False
    for index, address in enumerate(addresses):
        formatted = str(address)
        if index:
            line += ","
        words = [formatted]
        if len(formatted) + 1 > LINE_SHOULD_LENGTH:
            words = formatted.split(" ")
        for word in words:
            if (started or len(words) > 1) and len(line) + 1 + len(word) > (
                LINE_SHOULD_LENGTH
            ):
                lines.append(line)
                line = ""
            line += " " + word
            started = True
    lines.append(line)
    return LINE_END.join(lines) + LINE_END
