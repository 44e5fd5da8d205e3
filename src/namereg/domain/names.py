"""Name validation, canonical form, and effective character counting.

All rules operate on raw bytes. ``str`` input is UTF-8 encoded first.

Canonical form lower-cases ASCII ``A-Z`` only; every other byte passes
through unchanged. Well-formedness is a shallow byte check:

- length in ``[1, 63]`` bytes after canonicalization
- each byte is ``[0-9a-zA-Z-]``, a multi-byte UTF-8 lead byte, or a
  continuation byte whose immediate predecessor is a lead byte

The lookback is a single byte. Sequence length and code point range are
not checked, so the validator accepts exactly what the pairing rule allows.

INVARIANT: every name that reaches the store went through :func:`validate`.
"""

from __future__ import annotations

from namereg.domain.errors import InvalidCharacter, NameTooLong, NameTooShort

MIN_NAME_BYTES = 1
MAX_NAME_BYTES = 63

_HYPHEN = 0x2D


def to_bytes(name: str | bytes) -> bytes:
    """Return *name* as bytes (UTF-8 for ``str`` input)."""
    if isinstance(name, str):
        return name.encode("utf-8")
    return bytes(name)


def is_ascii_allowed(byte: int) -> bool:
    """ASCII digit, letter, or hyphen."""
    return (
        0x30 <= byte <= 0x39
        or 0x41 <= byte <= 0x5A
        or 0x61 <= byte <= 0x7A
        or byte == _HYPHEN
    )


def is_lead_byte(byte: int) -> bool:
    """Lead byte of a 2, 3 or 4 byte UTF-8 sequence."""
    return 0xC0 <= byte <= 0xDF or 0xE0 <= byte <= 0xEF or 0xF0 <= byte <= 0xF7


def is_continuation_byte(byte: int) -> bool:
    return 0x80 <= byte <= 0xBF


def canonicalize(name: str | bytes) -> bytes:
    """Lower-case ASCII letters, leaving non-ASCII bytes untouched.

    ``bytes.lower`` only folds ``A-Z``, which is exactly the canonical rule.
    """
    return to_bytes(name).lower()


def validate(name: str | bytes) -> bytes:
    """Validate *name* and return its canonical bytes.

    Raises:
        NameTooShort: Empty name.
        NameTooLong: More than 63 bytes.
        InvalidCharacter: A byte outside the allowed classes, or a
            continuation byte not preceded by a lead byte.
    """
    canonical = canonicalize(name)
    length = len(canonical)
    if length < MIN_NAME_BYTES:
        raise NameTooShort("Name must not be empty", length=length)
    if length > MAX_NAME_BYTES:
        raise NameTooLong(
            f"Name is {length} bytes; the maximum is {MAX_NAME_BYTES}",
            length=length,
        )

    for offset, byte in enumerate(canonical):
        if is_ascii_allowed(byte) or is_lead_byte(byte):
            continue
        if is_continuation_byte(byte) and offset > 0 and is_lead_byte(canonical[offset - 1]):
            continue
        raise InvalidCharacter(
            f"Invalid byte 0x{byte:02x} at offset {offset}",
            byte=byte,
            offset=offset,
        )
    return canonical


def is_well_formed(name: str | bytes) -> bool:
    """Boolean form of :func:`validate`."""
    try:
        validate(name)
    except (NameTooShort, NameTooLong, InvalidCharacter):
        return False
    return True


def count_effective_characters(name: str | bytes) -> int:
    """Visible character count used for pricing.

    One unit per ASCII byte or lead byte; continuation bytes add nothing.

    Examples:
        >>> count_effective_characters("abc")
        3
        >>> count_effective_characters("é")
        1
    """
    return sum(1 for byte in to_bytes(name) if byte < 0x80 or is_lead_byte(byte))


def display_name(name: bytes) -> str:
    """Human-readable form of stored name bytes."""
    return name.decode("utf-8", errors="replace")
