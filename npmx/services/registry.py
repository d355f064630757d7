"""npm registry search client used as the remote suggestion lookup."""

from __future__ import annotations

from typing import Protocol

import httpx
from pydantic import ValidationError

from npmx.config import RegistrySettings
from npmx.domain.models import SearchPage
from npmx.logging import logger
from npmx.services.exceptions import RegistryError
from npmx.utils.retry import retry_async


class PackageLookup(Protocol):
    async def search_packages(self, query: str, size: int = 20, offset: int = 0) -> SearchPage: ...


def _is_retryable(exc: Exception) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        status = exc.response.status_code
        return status == 429 or 500 <= status <= 599
    return isinstance(exc, httpx.TransportError)


class RegistryClient:
    """Query the registry's ``/-/v1/search`` endpoint."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: RegistrySettings | None = None,
    ) -> None:
        self._client = http_client
        self._settings = settings or RegistrySettings()

    def _search_url(self) -> str:
        return f"{str(self._settings.base_url).rstrip('/')}/-/v1/search"

    async def search_packages(self, query: str, size: int = 20, offset: int = 0) -> SearchPage:
        query = query.strip()
        if not query:
            raise ValueError("Search query must not be empty.")

        params = {"text": query, "size": size, "from": offset}

        async def _request() -> httpx.Response:
            response = await self._client.get(
                self._search_url(),
                params=params,
                headers={"Accept": "application/json"},
                timeout=self._settings.request_timeout_seconds,
            )
            response.raise_for_status()
            return response

        try:
            response = await retry_async(
                _request,
                max_attempts=self._settings.max_attempts,
                base_delay=self._settings.base_delay_seconds,
                jitter=self._settings.jitter_seconds,
                retry_on=_is_retryable,
                logger=logger,
                operation_name="registry_search",
            )
        except httpx.HTTPStatusError as exc:
            detail = exc.response.text[:500] if exc.response is not None else str(exc)
            status_code = exc.response.status_code if exc.response is not None else "unknown"
            raise RegistryError(f"Registry search failed ({status_code}): {detail}") from exc
        except httpx.RequestError as exc:
            raise RegistryError(f"Registry search failed: {exc}") from exc

        try:
            return SearchPage.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise RegistryError(f"Registry returned a malformed search payload: {exc}") from exc


__all__ = ["PackageLookup", "RegistryClient"]
