"""
HTTP remote store.

Talks to a collection-oriented REST data API:

    GET    {base}/{id}              query
    GET    {base}/?query=...        query_with_query
    POST   {base}/_group            aggregate
    POST   {base}/                  save (new object)
    PUT    {base}/{id}              save (existing object)
    DELETE {base}/{id}              remove
    DELETE {base}/?query=...        remove_with_query

where ``{base}`` is ``/appdata/{app_key}/{collection}``, or
``/user/{app_key}`` for the user collection.

Per-call sub-options:
    timeout: Request timeout in seconds
    headers: Extra request headers
    auth_token: Session token overriding the logged-in user's token
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
from collections.abc import Mapping
from typing import Any
from urllib.parse import quote

import aiohttp

from ..directives import USER_COLLECTION, entity_id
from ..exceptions import (
    BackendError,
    ConfigurationError,
    RemoteRequestError,
    StorageConnectionError,
)
from .base import RemoteBackend

logger = logging.getLogger(__name__)

QUERY_KEYS = frozenset({"filter", "sort", "limit", "skip", "fields"})


def query_params(query: Mapping[str, Any]) -> dict[str, str]:
    """Translate a query spec into request parameters.

    A mapping without any of the query keys is treated as a bare filter.
    """
    if not QUERY_KEYS & set(query):
        return {"query": json.dumps(query, sort_keys=True)}

    params: dict[str, str] = {}
    if query.get("filter") is not None:
        params["query"] = json.dumps(query["filter"], sort_keys=True)
    if query.get("sort") is not None:
        params["sort"] = json.dumps(query["sort"])
    for name in ("limit", "skip"):
        if query.get(name) is not None:
            params[name] = str(int(query[name]))
    if query.get("fields"):
        params["fields"] = ",".join(query["fields"])
    return params


def _describe(body: str) -> str | None:
    """Pull a readable description out of an error body."""
    if not body.strip():
        return None
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body[:200]
    if isinstance(parsed, dict):
        return parsed.get("description") or parsed.get("error") or body[:200]
    return body[:200]


class HttpRemoteBackend(RemoteBackend):
    """Remote store over HTTP using aiohttp.

    Example:
        >>> remote = HttpRemoteBackend(
        ...     "books",
        ...     api_url="https://api.example.com",
        ...     app_key="kid_123",
        ...     app_secret="secret",
        ... )
        >>> book = await remote.query("book-1", {})
        >>> await remote.close()
    """

    def __init__(
        self,
        collection: str,
        api_url: str | None,
        app_key: str | None,
        app_secret: str | None = None,
        request_timeout: float = 30.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        """Initialize the remote store.

        Args:
            collection: Collection name
            api_url: Base URL of the data API
            app_key: Application key used in request paths
            app_secret: Application secret for app-level basic auth
            request_timeout: Default timeout per request in seconds
            session: Optional shared client session (not closed by this backend)

        Raises:
            ConfigurationError: If api_url or app_key is missing
        """
        super().__init__()
        if not api_url:
            raise ConfigurationError("api_url", "remote store requires an API URL")
        if not app_key:
            raise ConfigurationError("app_key", "remote store requires an application key")

        self.collection = collection
        self.api_url = api_url.rstrip("/")
        self.app_key = app_key
        self.app_secret = app_secret
        self.request_timeout = request_timeout

        self._session = session
        self._owns_session = session is None
        self._auth_token: str | None = None

    @property
    def collection_path(self) -> str:
        if self.collection == USER_COLLECTION:
            return f"/user/{self.app_key}"
        return f"/appdata/{self.app_key}/{self.collection}"

    @property
    def auth_token(self) -> str | None:
        """Session token of the logged-in user, if any."""
        return self._auth_token

    async def aggregate(self, aggregation: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        return await self._request(
            "POST",
            f"{self.collection_path}/_group",
            options,
            operation="aggregate",
            json_body=dict(aggregation),
        )

    async def query(self, id: str, options: Mapping[str, Any]) -> Any:
        return await self._request(
            "GET", self._object_path(id), options, operation="query"
        )

    async def query_with_query(self, query: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        return await self._request(
            "GET",
            f"{self.collection_path}/",
            options,
            operation="query_with_query",
            params=query_params(query),
        )

    async def save(self, obj: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        object_id = entity_id(obj)
        if object_id is None:
            return await self._request(
                "POST", f"{self.collection_path}/", options, operation="save", json_body=dict(obj)
            )
        return await self._request(
            "PUT", self._object_path(object_id), options, operation="save", json_body=dict(obj)
        )

    async def remove(self, obj: Any, options: Mapping[str, Any]) -> Any:
        object_id = entity_id(obj)
        if object_id is None:
            raise BackendError(self.name, "remove", "object has no _id")
        return await self._request(
            "DELETE", self._object_path(object_id), options, operation="remove"
        )

    async def remove_with_query(self, query: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        return await self._request(
            "DELETE",
            f"{self.collection_path}/",
            options,
            operation="remove_with_query",
            params=query_params(query),
        )

    async def login(self, credentials: Mapping[str, Any], options: Mapping[str, Any]) -> Any:
        user = await self._request(
            "POST",
            f"/user/{self.app_key}/login",
            options,
            operation="login",
            json_body=dict(credentials),
            app_auth=True,
        )
        token = (user or {}).get("_kmd", {}).get("authtoken")
        if token:
            self._auth_token = token
            logger.info(f"Logged in to {self.api_url}")
        else:
            logger.warning("Login response carried no session token")
        return user

    async def logout(self, options: Mapping[str, Any]) -> Any:
        await self._request("POST", f"/user/{self.app_key}/_logout", options, operation="logout")
        self._auth_token = None
        logger.info(f"Logged out of {self.api_url}")
        return None

    async def close(self) -> None:
        """Close the client session if this backend created it."""
        if self._owns_session and self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _object_path(self, object_id: Any) -> str:
        return f"{self.collection_path}/{quote(str(object_id), safe='')}"

    def _basic_credentials(self) -> str:
        pair = f"{self.app_key}:{self.app_secret}".encode()
        return f"Basic {base64.b64encode(pair).decode('ascii')}"

    def _client(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
            self._owns_session = True
        return self._session

    async def _request(
        self,
        method: str,
        path: str,
        options: Mapping[str, Any],
        *,
        operation: str,
        params: Mapping[str, str] | None = None,
        json_body: Any = None,
        app_auth: bool = False,
    ) -> Any:
        """Send one request and decode the JSON response.

        Raises:
            RemoteRequestError: If the API answers with an error status
            StorageConnectionError: If the request could not be completed
        """
        opts = self._effective(options)
        url = f"{self.api_url}{path}"

        headers = {"Accept": "application/json"}
        headers.update(opts.get("headers") or {})

        token = None if app_auth else (opts.get("auth_token") or self._auth_token)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        elif self.app_secret and "Authorization" not in headers:
            headers["Authorization"] = self._basic_credentials()

        timeout = aiohttp.ClientTimeout(total=float(opts.get("timeout", self.request_timeout)))

        logger.debug(f"{method} {url}")
        try:
            async with self._client().request(
                method,
                url,
                params=params,
                json=json_body,
                headers=headers,
                timeout=timeout,
            ) as response:
                status = response.status
                body = await response.text()
        except aiohttp.ClientError as e:
            raise StorageConnectionError(url, e, operation) from e
        except asyncio.TimeoutError as e:
            raise StorageConnectionError(url, e, operation) from e

        if status >= 400:
            raise RemoteRequestError(status, url, _describe(body), operation)
        if not body.strip():
            return None
        try:
            return json.loads(body)
        except json.JSONDecodeError as e:
            raise RemoteRequestError(status, url, "response is not valid JSON", operation) from e
