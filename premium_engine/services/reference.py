from __future__ import annotations

import secrets
import string
import time
from typing import Any, Optional

from premium_engine.domain.policy import PolicyType

BASE36 = string.digits + string.ascii_uppercase

# 36**9 ms is past the year 5000, so the width is fixed and references sort by time
TIMESTAMP_WIDTH = 9
QUOTE_SUFFIX_LENGTH = 5
POLICY_SUFFIX_LENGTH = 9


def to_base36(value: int, width: int = 0) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(BASE36[rem])
    encoded = "".join(reversed(digits)) or "0"
    return encoded.rjust(width, "0")


def _random_base36(length: int) -> str:
    return "".join(secrets.choice(BASE36) for _ in range(length))


def _millis(now: Optional[float]) -> int:
    return int((time.time() if now is None else now) * 1000)


def generate_quote_number(policy_type: Any = None, *, now: Optional[float] = None) -> str:
    """
    QTE-HOME-<timestamp>-<random>, or QTE-<timestamp>-<random> without a type.

    ``now`` is a POSIX timestamp in seconds; the random suffix keeps
    references issued in the same millisecond apart.
    """
    stamp = to_base36(_millis(now), TIMESTAMP_WIDTH)
    suffix = _random_base36(QUOTE_SUFFIX_LENGTH)
    if policy_type is None:
        return f"QTE-{stamp}-{suffix}"
    return f"QTE-{PolicyType.parse(policy_type).value}-{stamp}-{suffix}"


def generate_policy_number(*, now: Optional[float] = None) -> str:
    """POL-<ms timestamp>-<random>, assigned when a draft becomes a policy."""
    return f"POL-{_millis(now)}-{_random_base36(POLICY_SUFFIX_LENGTH)}"
