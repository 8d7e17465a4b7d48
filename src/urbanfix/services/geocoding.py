"""Reverse geocoding client used to label new issues with an address.

Failures never propagate: an issue without an address is still a valid issue.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from urbanfix.core.settings import settings
from urbanfix.utils.geo import GeoPoint

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeocoderConfig:
    """Connection settings for a Nominatim-compatible reverse endpoint."""

    enabled: bool
    base_url: str
    timeout_seconds: float
    user_agent: str


def _default_config() -> GeocoderConfig:
    return GeocoderConfig(
        enabled=settings.geocoding_enabled,
        base_url=settings.geocoding_base_url.rstrip("/"),
        timeout_seconds=float(settings.geocoding_timeout_seconds),
        user_agent=settings.geocoding_user_agent,
    )


class ReverseGeocoder:
    """Async client turning coordinates into a display address."""

    def __init__(
        self,
        config: GeocoderConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or _default_config()
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _ensure_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.config.base_url,
                timeout=httpx.Timeout(self.config.timeout_seconds),
                headers={"User-Agent": self.config.user_agent},
                transport=self._transport,
            )
        return self._client

    async def reverse(self, point: GeoPoint) -> str | None:
        """Return the address for ``point`` or None if unavailable."""
        if not self.enabled:
            return None
        try:
            response = await self._ensure_client().get(
                "/reverse",
                params={
                    "lat": point.latitude,
                    "lon": point.longitude,
                    "format": "jsonv2",
                },
            )
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning(
                "Reverse geocoding failed for (%s, %s): %s",
                point.latitude,
                point.longitude,
                exc,
            )
            return None

        address = payload.get("display_name") if isinstance(payload, dict) else None
        if not address:
            return None
        return str(address)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


_geocoder: ReverseGeocoder | None = None


def get_reverse_geocoder() -> ReverseGeocoder:
    """Return the shared reverse geocoder."""
    global _geocoder
    if _geocoder is None:
        _geocoder = ReverseGeocoder()
    return _geocoder
