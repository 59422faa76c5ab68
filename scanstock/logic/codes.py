"""Canonical product-code helpers shared by every scan channel."""
from __future__ import annotations

import re

from config import CANONICAL_MIN_LENGTH

_ALNUM_RE = re.compile(r"[0-9A-Za-z]+")


def normalize_code(token: str) -> str:
    """
    Turn a raw scanner payload into the stored barcode shape.

    ``ABCdef1234`` becomes ``ABC-def-1234``. Tokens that are too short or
    contain anything besides ASCII letters and digits pass through untouched,
    which also makes the function idempotent.
    """
    if len(token) >= CANONICAL_MIN_LENGTH and _ALNUM_RE.fullmatch(token):
        return f"{token[:3]}-{token[3:6]}-{token[6:]}"
    return token
