"""HTTP client for DataLab, the hosted stats and AI service.

DataLab owns every piece of real computation: Scout answers, trade and draft
grading, season simulation. This module only forwards JSON and turns
failures into ``DataLabError``.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

SOURCE_HEADER = "sportsmockery.com"

QUERY_PATH = "/api/query"
GRADE_TRADE_PATH = "/api/gm/grade"
GRADE_DRAFT_PATH = "/api/gm/draft/grade"
SIMULATE_SEASON_PATH = "/api/gm/sim/season"
SINCE_LAST_VISIT_PATH = "/api/scout/since-last-visit"


class DataLabError(Exception):
    """DataLab returned a non-2xx response or could not be reached.

    ``status`` is the upstream HTTP status, or None for transport errors.
    """

    def __init__(self, status: int | None, message: str) -> None:
        super().__init__(message)
        self.status = status
        self.message = message

    @property
    def is_timeout(self) -> bool:
        return self.status is None and "timed out" in self.message.lower()


class DataLabClient:
    """Thin async wrapper around the DataLab REST API.

    Usage:
        client = DataLabClient(settings.datalab_api_url, settings.datalab_api_key)
        result = await client.grade_trade(payload)

    ``transport`` lets tests plug in ``httpx.MockTransport``.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = httpx.Timeout(timeout, connect=5.0)
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json", "X-Source": SOURCE_HEADER}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(url, json=payload, headers=self._headers())
        except httpx.TimeoutException as exc:
            logger.warning("datalab_timeout path=%s", path)
            raise DataLabError(None, f"DataLab request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            logger.warning("datalab_unreachable path=%s error=%s", path, exc)
            raise DataLabError(None, f"DataLab unreachable: {exc}") from exc

        if resp.is_error:
            message = _error_message(resp)
            logger.warning("datalab_error path=%s status=%d message=%s", path, resp.status_code, message)
            raise DataLabError(resp.status_code, message)

        try:
            data = resp.json()
        except ValueError as exc:
            raise DataLabError(resp.status_code, "DataLab returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise DataLabError(resp.status_code, "DataLab returned an unexpected payload")
        return data

    async def query(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Ask Scout a question."""
        return await self._post(QUERY_PATH, payload)

    async def grade_trade(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post(GRADE_TRADE_PATH, payload)

    async def grade_draft(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post(GRADE_DRAFT_PATH, payload)

    async def simulate_season(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self._post(SIMULATE_SEASON_PATH, payload)

    async def summarize_since_last_visit(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Scout recap of what happened since the fan last visited."""
        return await self._post(SINCE_LAST_VISIT_PATH, payload)


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if isinstance(body.get(key), str):
                return body[key]
    return f"DataLab returned HTTP {resp.status_code}"
