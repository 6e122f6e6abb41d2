"""Client for the inventory relay service.

The relay sits in front of the Wazuh manager API: it exchanges credentials
for a bearer token and lists groups and the agents in each group. Listing
responses wrap their items as ``{"data": {"affected_items": [...]}}``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from ..errors import AuthError, ExhaustedRetries, NetworkError
from .models import Agent, AuthRequest, AuthResponse, Group, InventoryRequest


def _affected_items(response: httpx.Response) -> list[dict[str, Any]] | None:
    """Return the item list from a listing envelope, or None if malformed."""
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    data = body.get("data")
    if not isinstance(data, dict):
        return None
    items = data.get("affected_items")
    if not isinstance(items, list):
        return None
    return [item for item in items if isinstance(item, dict)]


def _str_field(item: dict[str, Any], key: str) -> str | None:
    value = item.get(key)
    return value if isinstance(value, str) else None


class InventoryClient:
    """Async client for the relay. Use as an async context manager or call ``aclose()``."""

    def __init__(
        self,
        api_url: str,
        endpoint: str,
        *,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        timeout: float = 30.0,
        http_client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.api_url = api_url.rstrip("/")
        self.endpoint = endpoint
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.token: str | None = None
        self._owns_http = http_client is None
        self._http = http_client if http_client is not None else httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep

    async def __aenter__(self) -> "InventoryClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def authenticate(self, username: str, password: str) -> str:
        body = AuthRequest(endpoint=self.endpoint, username=username, password=password)
        try:
            r = await self._http.post(f"{self.api_url}/auth", json=body.model_dump())
        except httpx.HTTPError as e:
            raise NetworkError(f"Authentication request failed: {e}", e) from e
        logging.info("Auth response status: %s", r.status_code)
        if not r.is_success:
            raise AuthError(f"Authentication failed: {r.text}")
        try:
            parsed = AuthResponse.model_validate_json(r.text)
        except ValidationError as e:
            raise AuthError("Authentication failed: malformed response") from e
        if not parsed.token:
            reason = f" ({parsed.error})" if parsed.error else ""
            raise AuthError(f"Authentication failed: No token received{reason}")
        self.token = parsed.token
        return parsed.token

    async def _fetch_items(self, path: str, params: dict[str, str], operation: str) -> list[dict[str, Any]]:
        if not self.token:
            raise AuthError("Not authenticated; call authenticate() first")
        body = InventoryRequest(endpoint=self.endpoint, token=self.token, params=params).model_dump()
        last_error: object = None
        for attempt in range(1, self.max_retries + 1):
            try:
                r = await self._http.post(f"{self.api_url}{path}", json=body)
            except httpx.HTTPError as e:
                last_error = e
                logging.warning("%s attempt %d/%d failed: %s", operation, attempt, self.max_retries, e)
            else:
                logging.info("Response status: %s", r.status_code)
                logging.debug("Response body: %s", r.text)
                if r.is_success:
                    items = _affected_items(r)
                    if items is not None:
                        return items
                    last_error = "unexpected response structure"
                    logging.warning("Unexpected response structure from %s: %.200s", path, r.text)
                else:
                    last_error = f"HTTP {r.status_code}"
                    logging.warning("Request failed with status: %s", r.status_code)
            if attempt < self.max_retries:
                logging.info("Retrying in %s seconds...", self.retry_delay)
                await self._sleep(self.retry_delay)
        raise ExhaustedRetries(operation, self.max_retries, last_error)

    async def fetch_groups(self) -> list[Group]:
        items = await self._fetch_items("/groups", {}, "fetch groups")
        groups = []
        for item in items:
            # Groups are addressed by name.
            name = _str_field(item, "name")
            if name is not None:
                groups.append(Group(id=name, name=name))
        logging.info("Parsed %d groups", len(groups))
        return groups

    async def fetch_agents(self, group_id: str) -> list[Agent]:
        items = await self._fetch_items(
            f"/groups/{quote(group_id, safe='')}/agents",
            {"group_id": group_id},
            f"fetch agents for group {group_id}",
        )
        agents = []
        for item in items:
            agent_id, name = _str_field(item, "id"), _str_field(item, "name")
            if agent_id is not None and name is not None:
                agents.append(Agent(id=agent_id, name=name))
        logging.info("Parsed %d agents for group %s", len(agents), group_id)
        return agents


__all__ = ["InventoryClient"]
