from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from ..errors import ExternalServiceError

log = logging.getLogger("integrations.http")


class VendorClient:
    """
    Thin async wrapper over one vendor's REST API.

    Every transport or HTTP status failure surfaces as ExternalServiceError so
    handlers deal with a single error type regardless of vendor.
    """

    service = "vendor"

    def __init__(
        self,
        *,
        base_url: str = "",
        headers: Optional[dict[str, str]] = None,
        auth: Any = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._http = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            auth=auth,
            timeout=timeout,
            transport=transport,
        )

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        try:
            resp = await self._http.request(method, url, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as e:
            status = e.response.status_code
            log.warning("%s %s %s -> %s", self.service, method, url, status)
            raise ExternalServiceError(self.service, f"{method} {url} returned {status}", status_code=status) from e
        except httpx.HTTPError as e:
            log.warning("%s %s %s failed: %s", self.service, method, url, e)
            raise ExternalServiceError(self.service, f"{method} {url} failed: {e}") from e
        return resp

    async def aclose(self) -> None:
        await self._http.aclose()
