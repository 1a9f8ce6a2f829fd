"""
short_links.py — Shareable links for proposals.

When a link service is configured the client asks it for a short code;
otherwise, or when the service is unreachable, it builds the plain
``{base}/{namespace}/{entity_id}`` URL so proposal creation never blocks on
link minting.
"""

import logging
from typing import Optional

import httpx

from app import config

logger = logging.getLogger("wellness-short-links")


class ShortLinkClient:
    def __init__(
        self,
        base_url: str = config.SHORT_LINK_BASE_URL,
        api_url: str = config.SHORT_LINK_API_URL,
        timeout: float = config.SHORT_LINK_TIMEOUT_S,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_url = api_url
        self.timeout = timeout
        self._transport = transport

    def fallback_url(self, namespace: str, entity_id: str) -> str:
        return f"{self.base_url}/{namespace}/{entity_id}"

    async def mint(self, namespace: str, entity_id: str) -> str:
        """Return a short URL for ``entity_id`` (e.g. namespace "proposal")."""
        target = self.fallback_url(namespace, entity_id)
        if not self.api_url:
            return target

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.api_url,
                    json={"url": target, "namespace": namespace, "id": entity_id},
                )
                resp.raise_for_status()
                data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Short link service failed for {namespace}/{entity_id}: {e}")
            return target

        short_url = data.get("short_url") or data.get("url")
        if not short_url:
            logger.warning(f"Short link service returned no URL for {namespace}/{entity_id}")
            return target
        return short_url
