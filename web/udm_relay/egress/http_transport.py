"""
HTTP transport adapter: one synchronous POST per batch, no retries.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

import httpx

from ..ports import TransportPort

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0


class HttpTransport(TransportPort):
    """
    POST batches to `base_url + path` with httpx.

    A transport error or a non-2xx status is logged and reported as False;
    whether to try again is not this adapter's decision.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        headers: Optional[Dict[str, str]] = None,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._client = client or httpx.Client(timeout=httpx.Timeout(timeout))

    def post(self, path: str, payload: bytes) -> bool:
        url = f"{self._base_url}{path}"
        try:
            response = self._client.post(url, content=payload, headers=self._headers)
        except httpx.HTTPError as e:
            logger.warning("POST %s failed: %s", _redact(url), e)
            return False

        if not response.is_success:
            logger.warning(
                "POST %s rejected: HTTP %d - %s",
                _redact(url),
                response.status_code,
                response.text[:200],
            )
            return False
        return True

    def close(self) -> None:
        self._client.close()


def _redact(url: str) -> str:
    """Keep the instance key out of the logs."""
    head, sep, _ = url.partition("key=")
    return f"{head}{sep}***" if sep else url
