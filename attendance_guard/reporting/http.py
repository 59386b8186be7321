"""
HTTP transport for violation reports and critical alerts.

POSTs JSON payloads to <base_url>/security/violations and
<base_url>/security/alerts. Any transport error or non-2xx response becomes a
TransientIOError so the caller can queue the payload for retry.
"""

from __future__ import annotations

from typing import Any

import httpx

from attendance_guard.core.exceptions import TransientIOError
from attendance_guard.guard_logging import get_logger

logger = get_logger(__name__)

VIOLATIONS_PATH = "/security/violations"
ALERTS_PATH = "/security/alerts"
DEFAULT_TIMEOUT_SEC = 15.0


class HttpReportTransport:
    def __init__(
        self,
        base_url: str,
        *,
        timeout_sec: float = DEFAULT_TIMEOUT_SEC,
        client: httpx.Client | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_sec = timeout_sec
        self._client = client or httpx.Client(timeout=timeout_sec, headers=headers)
        self._owns_client = client is None

    def send_report(self, payload: dict[str, Any]) -> None:
        self._post(VIOLATIONS_PATH, payload)

    def send_alert(self, payload: dict[str, Any]) -> None:
        self._post(ALERTS_PATH, payload)

    def _post(self, path: str, payload: dict[str, Any]) -> None:
        url = f"{self.base_url}{path}"
        try:
            resp = self._client.post(url, json=payload)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise TransientIOError(f"{path} returned HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise TransientIOError(f"{path} request failed: {e}") from e
        logger.debug("report_sent", path=path, status_code=resp.status_code)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()
