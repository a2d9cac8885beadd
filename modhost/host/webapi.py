# modhost/host/webapi.py
from __future__ import annotations

import logging
from typing import Any

import httpx

from modhost.app.settings import settings
from modhost.core.errors import ModHostError

logger = logging.getLogger(__name__)

__all__ = ["HostApiError", "HostApiClient"]



class HostApiError(ModHostError):
    def __init__(self, status: int, body: str):
        super().__init__(f"Host API HTTP {status}: {body[:200]}")
        self.status = status
        self.body = body



def _filterNone(values: dict[str, Any] | None) -> dict[str, Any]:
    return {key: value for key, value in (values or {}).items() if value is not None}



def _queryValue(value: Any) -> Any:
    if isinstance(value, (list, tuple)):
        return ",".join(str(item) for item in value)
    if isinstance(value, bool):
        return "true" if value else "false"
    return value



class HostApiClient:
    """
    Client for the host's loopback REST API.

    The bearer token is fetched once from `application/info` and cached for
    the lifetime of the client; every call appends it as `?token=`.
    GET parameters and POST bodies drop None values before sending.
    """

    def __init__(
        self,
        baseUrl: str | None = None,
        *,
        timeoutMs: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.baseUrl = str(baseUrl or settings("host.apiBaseUrl", "http://localhost:41595/api")).rstrip("/")
        self.timeoutMs = int(timeoutMs if timeoutMs is not None else settings("host.timeoutMs", 10_000))
        self._transport = transport
        self._token: str | None = None

        self.application = _ApplicationApi(self)
        self.folder = _FolderApi(self)
        self.library = _LibraryApi(self)
        self.item = _ItemApi(self)
        self.tag = _TagApi(self)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=httpx.Timeout(max(self.timeoutMs, 1) / 1_000), transport=self._transport)

    # ---------- Token ----------

    async def getToken(self) -> str | None:
        if self._token:
            return self._token
        try:
            async with self._client() as cli:
                resp = await cli.get(f"{self.baseUrl}/application/info")
            raw = resp.json()
            token = (((raw.get("data") or {}).get("preferences") or {}).get("developer") or {}).get("apiToken")
        except (httpx.HTTPError, ValueError, AttributeError) as err:
            logger.error("Could not obtain host API token: %s", err)
            return None
        if token:
            self._token = str(token)
        return self._token

    def resetToken(self) -> None:
        """Forget the cached token; the next call fetches a fresh one."""
        self._token = None

    def setToken(self, token: str | None) -> None:
        self._token = token

    # ---------- Transport ----------

    async def request(
        self,
        path: str,
        method: str = "GET",
        data: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        token = await self.getToken()
        if not token:
            raise HostApiError(401, "No host API token available")

        method = method.upper()
        query: dict[str, Any] = {"token": token}
        query.update({key: _queryValue(value) for key, value in _filterNone(params).items()})

        async with self._client() as cli:
            if method == "POST":
                resp = await cli.post(f"{self.baseUrl}/{path}", params=query, json=_filterNone(data))
            else:
                resp = await cli.get(f"{self.baseUrl}/{path}", params=query)

        if resp.status_code >= 400:
            raise HostApiError(resp.status_code, resp.text)
        try:
            payload = resp.json()
        except ValueError as err:
            raise HostApiError(resp.status_code, f"non-JSON response: {err}") from err
        return payload.get("data") if isinstance(payload, dict) else payload



class _Namespace:
    def __init__(self, client: HostApiClient):
        self._client = client



class _ApplicationApi(_Namespace):
    async def info(self):
        return await self._client.request("application/info")



class _FolderApi(_Namespace):
    async def create(self, folderName: str, parent: str | None = None):
        return await self._client.request("folder/create", "POST", {"folderName": folderName, "parent": parent})

    async def rename(self, folderId: str, newName: str):
        return await self._client.request("folder/rename", "POST", {"folderId": folderId, "newName": newName})

    async def update(self, folderId: str, newName: str | None = None, newDescription: str | None = None, newColor: str | None = None):
        return await self._client.request("folder/update", "POST", {
            "folderId": folderId, "newName": newName, "newDescription": newDescription, "newColor": newColor,
        })

    async def list(self):
        return await self._client.request("folder/list")

    async def listRecent(self):
        return await self._client.request("folder/listRecent")



class _LibraryApi(_Namespace):
    async def info(self):
        return await self._client.request("library/info")

    async def history(self):
        return await self._client.request("library/history")

    async def switch(self, libraryPath: str):
        return await self._client.request("library/switch", "POST", {"libraryPath": libraryPath})

    async def icon(self, libraryPath: str):
        return await self._client.request("library/icon", params={"libraryPath": libraryPath})



class _ItemApi(_Namespace):
    async def update(self, itemId: str, *, tags: list[str] | None = None, annotation: str | None = None, url: str | None = None, star: int | None = None):
        return await self._client.request("item/update", "POST", {
            "id": itemId, "tags": tags, "annotation": annotation, "url": url, "star": star,
        })

    async def refreshThumbnail(self, itemId: str):
        return await self._client.request("item/refreshThumbnail", "POST", {"id": itemId})

    async def refreshPalette(self, itemId: str):
        return await self._client.request("item/refreshPalette", "POST", {"id": itemId})

    async def moveToTrash(self, itemIds: list[str]):
        return await self._client.request("item/moveToTrash", "POST", {"itemIds": list(itemIds)})

    async def list(self, **params):
        return await self._client.request("item/list", params=params)

    async def getThumbnail(self, itemId: str):
        return await self._client.request("item/thumbnail", params={"id": itemId})

    async def getInfo(self, itemId: str):
        return await self._client.request("item/info", params={"id": itemId})

    async def addBookmark(self, url: str, name: str, **extra):
        return await self._client.request("item/addBookmark", "POST", {"url": url, "name": name, **extra})

    async def addFromURL(self, url: str, name: str, **extra):
        return await self._client.request("item/addFromURL", "POST", {"url": url, "name": name, **extra})

    async def addFromPath(self, path: str, name: str, **extra):
        return await self._client.request("item/addFromPath", "POST", {"path": path, "name": name, **extra})

    async def addFromURLs(self, items: list[dict[str, Any]], folderId: str | None = None):
        return await self._client.request("item/addFromURLs", "POST", {"items": items, "folderId": folderId})



class _TagApi(_Namespace):
    async def list(self):
        return await self._client.request("tag/list")

    async def listRecent(self):
        return await self._client.request("tag/listRecentTags")
