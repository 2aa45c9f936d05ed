"""Base36 codec used by the sequence parts of post ids."""
from __future__ import annotations

ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"
_DIGITS = {char: value for value, char in enumerate(ALPHABET)}
_DIGITS.update({char.upper(): value for char, value in list(_DIGITS.items())})


class InvalidDigit(ValueError):
    """Raised when a base36 string contains a character outside ``0-9a-z``."""

    def __init__(self, text: str, char: str) -> None:
        super().__init__(f"invalid base36 digit {char!r} in {text!r}")
        self.text = text
        self.char = char


def decode(text: str) -> int:
    # int(text, 36) also takes signs, whitespace, underscores and non-ASCII digits
    if not text:
        raise InvalidDigit(text, "")
    value = 0
    for char in text:
        digit = _DIGITS.get(char)
        if digit is None:
            raise InvalidDigit(text, char)
        value = value * 36 + digit
    return value


def encode(value: int) -> str:
    if value < 0:
        raise ValueError(f"base36 values must be non-negative, got {value}")
    if value == 0:
        return "0"
    chars: list[str] = []
    while value:
        value, remainder = divmod(value, 36)
        chars.append(ALPHABET[remainder])
    return "".join(reversed(chars))


__all__ = ["ALPHABET", "InvalidDigit", "decode", "encode"]
