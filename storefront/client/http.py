"""httpx による TransportInterface 実装."""

import logging
from typing import Any

import httpx

from storefront.client.errors import NetworkError, RequestTimeoutError
from storefront.interfaces.transport import TransportInterface, TransportResponse

logger = logging.getLogger(__name__)

_NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
}


class HttpxTransport(TransportInterface):
    """httpx.AsyncClient を使ってバックエンドへ1回ずつ送信する.

    タイムアウトとリトライは ResilientClient 側で制御するため、
    httpx 自体のタイムアウトは無効にしている。
    """

    def __init__(
        self,
        base_url: str,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if client is None:
            client = httpx.AsyncClient(base_url=base_url, timeout=None)
        self._client = client

    async def send(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json: Any = None,
    ) -> TransportResponse:
        logger.debug("Sending %s %s params=%s", method, path, params)
        try:
            response = await self._client.request(
                method,
                path,
                params=params or None,
                json=json,
                headers=_NO_CACHE_HEADERS,
            )
        except httpx.TimeoutException as exc:
            raise RequestTimeoutError(f"{method} {path} timed out") from exc
        except httpx.TransportError as exc:
            raise NetworkError(f"{method} {path} failed: {exc}") from exc
        return TransportResponse(status=response.status_code, text=response.text)

    async def aclose(self) -> None:
        await self._client.aclose()
