"""
Deep links back to the originating flow.

The link opens a records query in the source product: a fixed window around
the event time, a base64 filter on the flow id, newest-first sorting, and one
`r.types[i]` parameter per record type hint.
"""

from __future__ import annotations

import math
from typing import Optional, Sequence

from .encoding import encode

DEFAULT_RECORD_TYPES = ("~flow",)


def build_link(
    timestamp: Optional[float],
    record_types: Optional[Sequence[str]],
    flow_id: str,
    *,
    hostname: str,
    window_seconds: int = 1800,
) -> str:
    """
    Build the deep link for one event.

    Parameters
    ----------
    timestamp : float
        Event time in epoch milliseconds. NaN/None/inf are tolerated and
        anchor the window at 0.
    record_types : sequence of str
        Record type hints (e.g. "~flow", "~dns_request"); defaults to "~flow".
    flow_id : str
        Flow identifier used in the filter expression.
    """
    anchor = _seconds(timestamp)
    types = list(record_types) if record_types else list(DEFAULT_RECORD_TYPES)
    flow_filter = encode(
        f'[{{"field":"flowId:string","operator":"=","operand":"{flow_id}"}}]'
    )

    parts = [
        f"https://{hostname}/extrahop/#/Records/create?delta_type",
        f"from={anchor - window_seconds}&interval_type=DT",
        f"r.filter={flow_filter}",
        "r.sort%5B0%5D.direction=desc&r.sort%5B0%5D.field=timestamp",
        "&".join(f"r.types%5B{i}%5D={t}" for i, t in enumerate(types)),
        "r.v=8.0",
        "return=clear",
        f"until={anchor + window_seconds}",
    ]
    return "&".join(parts)


def _seconds(timestamp: Optional[float]) -> int:
    """trunc(timestamp / 1000); 0 for anything that is not a finite number."""
    try:
        value = float(timestamp)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(value):
        return 0
    return int(value / 1000)
