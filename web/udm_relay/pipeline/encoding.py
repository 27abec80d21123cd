"""
Binary/text encoding for payloads that cannot travel as plain JSON strings.

Standard base64 alphabet with '=' padding. Text is UTF-8 encoded first.

Known, accepted laxity: `decode` silently discards characters outside the
alphabet instead of rejecting them. Its input is always produced by `encode`,
so this never loses data in practice; it is not a recovery mechanism for
arbitrary garbage.
"""

from __future__ import annotations

import base64
import re
from typing import Any, Optional, Union

# '=' is dropped too; padding is recomputed from the symbol count
_NON_ALPHABET = re.compile(r"[^A-Za-z0-9+/]")


def encode(data: Union[bytes, str]) -> str:
    """Encode bytes (or UTF-8 text) into padded base64 text."""
    if isinstance(data, str):
        data = data.encode("utf-8")
    return base64.b64encode(bytes(data)).decode("ascii")


def decode(text: str) -> bytes:
    """Decode base64 text; non-alphabet characters are skipped."""
    symbols = _NON_ALPHABET.sub("", text)
    # a lone trailing symbol carries fewer than 8 bits
    if len(symbols) % 4 == 1:
        symbols = symbols[:-1]
    symbols += "=" * (-len(symbols) % 4)
    return base64.b64decode(symbols)


def encode_payload(value: Any) -> Optional[str]:
    """
    Encode an option payload of whatever type the decoder handed us.

    bytes/bytearray go straight through, text is UTF-8 encoded, anything else
    (ints, addresses) is stringified first. None stays None.
    """
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray, memoryview)):
        return encode(bytes(value))
    if isinstance(value, str):
        return encode(value)
    return encode(str(value))
