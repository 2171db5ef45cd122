"""Short non-cryptographic hash used for the _rsc cache-busting value.

The App Router derives _rsc as djb2 (32-bit) → base-36 → first 5 digits.
The hash is computed over UTF-16 code units so that values match the ones a
browser computes for the same header string, including non-BMP characters.

Collisions are expected and harmless: _rsc is a cache key, not a token.
"""

from __future__ import annotations

from rscguard.constants import (
    BASE36_ALPHABET,
    DJB2_SEED,
    SHORT_HASH_LENGTH,
    UINT32_MASK,
)


def _utf16_code_units(value: str) -> list[int]:
    encoded = value.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(encoded[i:i + 2], "little") for i in range(0, len(encoded), 2)]


def to_base36(number: int) -> str:
    """Encode a non-negative integer in lower-case base 36."""
    if number < 0:
        raise ValueError(f"to_base36() expects a non-negative integer, got {number}")
    if number == 0:
        return "0"
    digits: list[str] = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(BASE36_ALPHABET[remainder])
    return "".join(reversed(digits))


def djb2_hash(value: str) -> int:
    """Return the unsigned 32-bit djb2 (xor variant) hash of ``value``.

    Example::

        >>> djb2_hash("")
        5381
        >>> djb2_hash("a")
        177604
    """
    result = DJB2_SEED
    for code_unit in _utf16_code_units(value):
        result = (((result << 5) + result) ^ code_unit) & UINT32_MASK
    return result


def short_hash(value: str) -> str:
    """Return at most the first 5 base-36 digits of djb2_hash(value).

    The result is shorter than 5 characters when the full encoding is.
    """
    return to_base36(djb2_hash(value))[:SHORT_HASH_LENGTH]
