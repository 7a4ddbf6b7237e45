"""
WHO ICD-11 API client service.

Handles communication with WHO ICD-11 API for terminology search and retrieval.
Every call is fail-open: errors and timeouts are logged and an empty result is
returned.
"""

import re
import time
from typing import Any, Dict, List, Optional

import httpx
from loguru import logger

from namaste_bridge.config import settings
from namaste_bridge.schema import CodeSystem, Concept

TOKEN_SCOPE = "icdapi_access"
# Refresh tokens a minute before the server expires them
TOKEN_EXPIRY_MARGIN_SECONDS = 60

_MARKUP = re.compile(r"<[^>]+>")


def _label(value: Any) -> str:
    """WHO API labels come either as plain strings or as ``{"@value": ...}`` objects."""
    if isinstance(value, dict):
        value = value.get("@value", "")
    return _MARKUP.sub("", value or "").strip()


class ICD11Client:
    """Client for WHO ICD-11 API operations."""

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        token_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.icd11_base_url).rstrip("/")
        self.token_url = token_url or settings.icd11_token_url
        self.client_id = client_id if client_id is not None else settings.icd11_client_id
        self.client_secret = client_secret if client_secret is not None else settings.icd11_client_secret
        self.timeout = timeout or settings.external_api_timeout_seconds
        self._transport = transport
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def _get_access_token(self, client: httpx.AsyncClient) -> Optional[str]:
        """
        Get an OAuth2 client-credentials token, reusing the cached one until it expires.

        Returns:
            Access token or None if no credentials are configured
        """
        if not self.configured:
            return None
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        response = await client.post(
            self.token_url,
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "scope": TOKEN_SCOPE,
            },
        )
        response.raise_for_status()
        payload = response.json()

        self._access_token = payload["access_token"]
        expires_in = float(payload.get("expires_in", 3600))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        logger.info("WHO ICD-11 access token obtained")
        return self._access_token

    async def _headers(self, client: httpx.AsyncClient) -> Dict[str, str]:
        headers = {
            "Accept": "application/json",
            "Accept-Language": "en",
            "API-Version": "v2",
        }
        token = await self._get_access_token(client)
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def search(self, query: str, limit: int = 10) -> List[Concept]:
        """
        Search WHO ICD-11 terminology.

        Args:
            query: Search query string
            limit: Maximum number of results

        Returns:
            ICD-11 concepts matching the query; empty when the API is unreachable
        """
        if not self.configured:
            return []
        try:
            async with self._client() as client:
                response = await client.get(
                    f"{self.base_url}/search",
                    params={"q": query, "useFlexisearch": "true", "flatResults": "true"},
                    headers=await self._headers(client),
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning(f"WHO ICD-11 search failed for '{query}': {e}")
            return []

        concepts = []
        for entity in data.get("destinationEntities", []):
            concept = self._parse_icd11_entity(entity)
            if concept:
                concepts.append(concept)
            if len(concepts) >= limit:
                break
        return concepts

    def _parse_icd11_entity(self, entity: Dict[str, Any]) -> Optional[Concept]:
        """Parse a WHO ICD-11 entity; entities without a code or title are skipped."""
        code = entity.get("theCode") or entity.get("code")
        title = _label(entity.get("title"))
        if not code or not title:
            return None
        return Concept(
            system=CodeSystem.ICD11_MMS,
            code=code,
            display=title,
            description=_label(entity.get("definition")) or None,
        )

    async def get_concept_by_code(self, code: str) -> Optional[Concept]:
        """
        Get a specific ICD-11 concept by its code.

        Returns:
            Concept or None if not found or the API is unreachable
        """
        for concept in await self.search(code, limit=10):
            if concept.code == code:
                return concept
        return None

    async def health_check(self) -> str:
        """``healthy``, ``unhealthy`` or ``not_configured``."""
        if not self.configured:
            return "not_configured"
        try:
            async with self._client() as client:
                await self._get_access_token(client)
        except (httpx.HTTPError, ValueError, KeyError) as e:
            logger.warning(f"WHO ICD-11 health check failed: {e}")
            return "unhealthy"
        return "healthy"
