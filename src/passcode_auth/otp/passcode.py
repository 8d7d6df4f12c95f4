"""Numeric passcode generation."""

from __future__ import annotations

import random
import string

CODE_LENGTH = 5


def generate_passcode(length: int = CODE_LENGTH) -> str:
    """Return *length* random ASCII digits, e.g. ``"04821"``.

    Every digit is drawn independently and uniformly, so the code as a whole
    is uniform over ``[0, 10**length)`` with leading zeros kept.
    """
    return "".join(random.choices(string.digits, k=length))
