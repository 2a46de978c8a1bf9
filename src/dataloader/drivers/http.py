import logging
from typing import Any
from urllib.parse import quote

import aiohttp

from ..errors import OperationError
from ..models import Mode, Operation, Record

logger = logging.getLogger(__name__)


class HttpDriver:
    """
    Record operations against a REST endpoint.

    create  POST   {base}/records
    load    PUT    {base}/records/{key}
    query   GET    {base}/records/{key}
    delete  DELETE {base}/records/{key}
    """

    name = "http"

    def __init__(
        self,
        base_url: str,
        request_timeout_s: float = 30.0,
        headers: dict[str, str] | None = None,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.request_timeout_s = request_timeout_s
        self.headers = headers or {}
        self._session = session
        self._owns_session = session is None

    async def connect(self) -> "HttpDriver":
        if self._session is None:
            connector = aiohttp.TCPConnector(limit=0)
            timeout = aiohttp.ClientTimeout(total=self.request_timeout_s)
            self._session = aiohttp.ClientSession(
                connector=connector, timeout=timeout, headers=self.headers
            )
            logger.info(f"HTTP driver connected to {self.base_url}")
        return self

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
            logger.debug("HTTP driver session closed")
        self._session = None

    def _url(self, record: Record | None = None) -> str:
        if record is None:
            return f"{self.base_url}/records"
        return f"{self.base_url}/records/{quote(record.key, safe='')}"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        if self._session is None:
            raise OperationError("HTTP driver is not connected")
        try:
            async with self._session.request(method, url, **kwargs) as resp:
                body = await resp.text()
                if not 200 <= resp.status < 300:
                    raise OperationError(
                        f"{method} {url} returned {resp.status}",
                        status=resp.status,
                        data={"body": body[:200]},
                    )
                logger.debug(f"{method} {url}: status={resp.status}, size={len(body)} bytes")
                return resp.status
        except aiohttp.ClientError as e:
            raise OperationError(f"{method} {url} failed: {e}") from e
        except TimeoutError as e:
            raise OperationError(f"{method} {url} timed out after {self.request_timeout_s}s") from e

    async def create(self, record: Record) -> Any:
        return await self._request("POST", self._url(), json=dict(record.data))

    async def load(self, record: Record) -> Any:
        return await self._request("PUT", self._url(record), json=dict(record.data))

    async def query(self, record: Record) -> Any:
        return await self._request("GET", self._url(record))

    async def delete(self, record: Record) -> Any:
        return await self._request("DELETE", self._url(record))

    def handlers(self) -> dict[Mode, Operation]:
        return {
            Mode.CREATE: self.create,
            Mode.LOAD: self.load,
            Mode.QUERY: self.query,
            Mode.DELETE: self.delete,
        }
