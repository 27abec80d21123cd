"""
Time helpers shared by the translators and the assembler.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def iso_from_millis(ms: float) -> str:
    """
    Render epoch milliseconds as an ISO-8601 UTC instant with millisecond
    precision, e.g. "2021-03-04T05:06:07.089Z". Fractional milliseconds are
    truncated toward zero.
    """
    dt = _EPOCH + timedelta(milliseconds=int(ms))
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def optional_iso_from_millis(ms: Optional[float]) -> Optional[str]:
    """Like iso_from_millis, but a missing (or zero) value yields None."""
    if not ms:
        return None
    return iso_from_millis(ms)
