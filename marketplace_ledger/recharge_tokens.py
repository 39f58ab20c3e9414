"""
Recharge code tokens.

A token is 8 random characters plus one check character, drawn
from an alphabet without look-alikes (no 0/O, 1/I/L, 5/S, U).
The check character is Luhn mod N over the alphabet, so any
single mistyped character and most adjacent swaps are rejected
before the database is consulted.

Tokens are stored normalized ("ABCDEFGHX") and shown grouped
("ABC-DEF-GHX").
"""

import re
import secrets

ALPHABET = "ABCDEFGHJKMNPQRTVWXYZ23456789"
PAYLOAD_LENGTH = 8
TOKEN_LENGTH = PAYLOAD_LENGTH + 1
GROUP_SIZE = 3

_SEPARATORS = re.compile(r"[\s\-]+")


def check_character(payload: str) -> str:
    """Luhn mod N check character for `payload`."""
    n = len(ALPHABET)
    factor = 2
    total = 0
    for ch in reversed(payload):
        addend = factor * ALPHABET.index(ch)
        factor = 1 if factor == 2 else 2
        total += addend // n + addend % n
    return ALPHABET[(n - total % n) % n]


def generate_code() -> str:
    payload = "".join(secrets.choice(ALPHABET) for _ in range(PAYLOAD_LENGTH))
    return payload + check_character(payload)


def normalize_code(raw: str) -> str:
    """Strip whitespace and dashes, upper-case."""
    return _SEPARATORS.sub("", raw).upper()


def is_valid_code(code: str) -> bool:
    """Check length, alphabet and check character of a normalized code."""
    if len(code) != TOKEN_LENGTH:
        return False
    if any(ch not in ALPHABET for ch in code):
        return False
    return check_character(code[:-1]) == code[-1]


def format_code(code: str) -> str:
    return "-".join(
        code[i:i + GROUP_SIZE] for i in range(0, len(code), GROUP_SIZE)
    )
