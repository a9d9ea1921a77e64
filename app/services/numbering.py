"""Human-readable order, return and refund numbers."""

from __future__ import annotations

import random
import string
import time
from typing import Optional

ORDER_PREFIX = "NO"
RETURN_PREFIX = "RT"
REFUND_PREFIX = "RF"

_ALPHABET = string.digits + string.ascii_uppercase  # base 36
_rng = random.SystemRandom()


def generate_reference(prefix: str, now_ms: Optional[int] = None) -> str:
    """prefix + last 8 digits of the epoch-ms timestamp + 4 random base-36 chars.

    Not unique on its own; pair with a unique column and a retry loop.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    stamp = str(now_ms)[-8:].rjust(8, "0")
    suffix = "".join(_rng.choice(_ALPHABET) for _ in range(4))
    return f"{prefix}{stamp}{suffix}"


def generate_order_number(now_ms: Optional[int] = None) -> str:
    return generate_reference(ORDER_PREFIX, now_ms)


def generate_return_number(now_ms: Optional[int] = None) -> str:
    return generate_reference(RETURN_PREFIX, now_ms)


def generate_refund_number(now_ms: Optional[int] = None) -> str:
    return generate_reference(REFUND_PREFIX, now_ms)
