"""PostgREST client used to probe the platform database."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from loftwatch.core.settings import settings

logger = logging.getLogger(__name__)

# Error codes meaning the relation or function is not deployed
MISSING_OBJECT_CODES = {"42P01", "42883", "PGRST202", "PGRST205"}


@dataclass
class QueryError:
    """Error reported by the store for a single query."""

    message: str
    code: Optional[str] = None

    @property
    def is_missing_object(self) -> bool:
        """Whether the queried table or function does not exist."""
        if self.code in MISSING_OBJECT_CODES:
            return True
        return "does not exist" in self.message or "Could not find" in self.message


@dataclass
class QueryResult:
    """Rows returned by a query, or the error that prevented it."""

    data: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[QueryError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PostgrestStore:
    """Read-only PostgREST client.

    Query failures, including transport errors, come back as QueryResult
    errors instead of exceptions.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        """Initialize store client with configuration."""
        self.base_url = base_url or settings.store_url
        self.api_key = api_key if api_key is not None else settings.store_api_key
        self.timeout = timeout or settings.store_timeout
        self._client: Optional[httpx.AsyncClient] = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            headers = {"Accept": "application/json"}
            if self.api_key:
                headers["apikey"] = self.api_key
                headers["Authorization"] = f"Bearer {self.api_key}"
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                headers=headers,
                limits=httpx.Limits(max_connections=5, max_keepalive_connections=2),
            )
        return self._client

    async def close(self) -> None:
        """Close HTTP client connections."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def select(
        self,
        table: str,
        columns: str = "*",
        limit: Optional[int] = None,
        filters: Optional[Dict[str, str]] = None,
    ) -> QueryResult:
        """
        Select rows from a table.

        Args:
            table: Table name
            columns: PostgREST select expression
            limit: Maximum rows to return
            filters: PostgREST filters, e.g. {"id": "in.(a,b)"}

        Returns:
            QueryResult with rows or error
        """
        params: Dict[str, Any] = {"select": columns}
        if limit is not None:
            params["limit"] = limit
        if filters:
            params.update(filters)
        return await self._request("GET", f"/{table}", params=params)

    async def rpc(
        self,
        function: str,
        params: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> QueryResult:
        """Call a stored procedure."""
        query = {"limit": limit} if limit is not None else None
        return await self._request(
            "POST", f"/rpc/{function}", params=query, json=params or {}
        )

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> QueryResult:
        try:
            client = await self._get_client()
            response = await client.request(method, path, params=params, json=json)
        except httpx.HTTPError as e:
            logger.warning(f"Store request {method} {path} failed: {e}")
            return QueryResult(error=QueryError(message=str(e) or type(e).__name__))

        if response.status_code >= 400:
            return QueryResult(error=self._parse_error(response))

        payload = response.json() if response.content else None
        if payload is None:
            return QueryResult()
        if isinstance(payload, list):
            return QueryResult(data=payload)
        if isinstance(payload, dict):
            return QueryResult(data=[payload])
        # Scalar RPC results
        return QueryResult(data=[{"value": payload}])

    @staticmethod
    def _parse_error(response: httpx.Response) -> QueryError:
        try:
            body = response.json()
        except ValueError:
            return QueryError(message=f"HTTP {response.status_code}: {response.text}")
        return QueryError(
            message=body.get("message") or f"HTTP {response.status_code}",
            code=body.get("code"),
        )
