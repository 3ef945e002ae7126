# app/services/baseql_client.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from app.core.config import get_settings

logger = logging.getLogger(__name__)


class BaseQLClientError(RuntimeError):
    """
    Raised when a BaseQL call fails: transport error, non-2xx response or
    a GraphQL `errors` payload. The message is safe to show to users.
    """


class BaseQLClient:
    """
    Minimal GraphQL client for the BaseQL proxy in front of Airtable.

    Responsibilities
    ----------------
    - POST `{"query", "variables"}` to the configured endpoint with the API key.
    - Turn HTTP and GraphQL failures into BaseQLClientError.
    - Avoid leaking HTTP client details into the rest of the codebase.

    Notes
    -----
    - No retries: every failure is terminal for that call.
    - Mutations go through the same endpoint as queries.
    """

    def __init__(
        self,
        api_url: str,
        api_key: str,
        timeout_seconds: float = 15.0,
    ) -> None:
        if not api_url or not api_key:
            raise ValueError("api_url and api_key are required")

        self._api_url = api_url
        self._api_key = api_key
        self._timeout_seconds = timeout_seconds

    @property
    def api_url(self) -> str:
        return self._api_url

    async def _post(self, payload: Dict[str, Any]) -> httpx.Response:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            # BaseQL expects the raw key, not a bearer token.
            "Authorization": self._api_key,
        }
        try:
            async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                return await client.post(self._api_url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise BaseQLClientError(f"BaseQL request failed: {exc}") from exc

    async def query(
        self,
        query: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Execute a GraphQL document and return its `data` object.

        Raises BaseQLClientError on non-2xx responses, on a body that is not
        a JSON object, or when the payload carries GraphQL errors.
        """
        resp = await self._post({"query": query, "variables": variables or {}})

        if resp.status_code // 100 != 2:
            raise BaseQLClientError(
                f"BaseQL query failed (status={resp.status_code}): {resp.text}"
            )

        try:
            payload = resp.json()
        except ValueError as exc:
            raise BaseQLClientError(f"BaseQL returned a non-JSON body: {resp.text[:200]}") from exc
        if not isinstance(payload, dict):
            raise BaseQLClientError(f"BaseQL returned an unexpected payload: {type(payload).__name__}")

        errors = payload.get("errors")
        if errors:
            first = errors[0] if isinstance(errors, list) else errors
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise BaseQLClientError(message or "GraphQL query error")

        return payload.get("data") or {}

    async def mutate(
        self,
        mutation: str,
        variables: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        return await self.query(mutation, variables)


_baseql_client_instance: Optional[BaseQLClient] = None


def get_baseql_client() -> BaseQLClient:
    """
    Lazily construct the shared BaseQLClient from application settings.
    """
    global _baseql_client_instance
    if _baseql_client_instance is None:
        settings = get_settings()
        if not settings.BASEQL_API_URL or not settings.BASEQL_API_KEY:
            raise BaseQLClientError(
                "BaseQL not configured. Set BASEQL_API_URL and BASEQL_API_KEY."
            )
        _baseql_client_instance = BaseQLClient(
            api_url=str(settings.BASEQL_API_URL),
            api_key=settings.BASEQL_API_KEY,
            timeout_seconds=settings.BASEQL_TIMEOUT_SECONDS,
        )
    return _baseql_client_instance
