"""
Key set cache for the identity provider's signing keys.
"""

import time
from typing import Any, Callable, Dict, List, Optional

import httpx

from shared.errors import DependencyError, KeyNotFoundError
from shared.logging import get_logger
from shared.metrics import MetricsCollector


JWKS_PATH = "/.well-known/jwks.json"


class KeyCache:
    """Fetches and memoizes the public key set of each issuer.

    A key set is fetched once per issuer. When a token names a key id the
    cached set does not contain, the set is fetched again, but no more than
    once per ``refresh_cooldown`` seconds per issuer; a negative cooldown
    disables refetching entirely.
    """

    def __init__(
        self,
        timeout: float = 5.0,
        refresh_cooldown: float = 300.0,
        metrics: Optional[MetricsCollector] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.timeout = timeout
        self.refresh_cooldown = refresh_cooldown
        self.metrics = metrics
        self.logger = get_logger("media.jwks")
        self._transport = transport
        self._clock = clock

        self._keys: Dict[str, List[Dict[str, Any]]] = {}
        self._fetched_at: Dict[str, float] = {}

    @staticmethod
    def jwks_url(issuer: str) -> str:
        return f"{issuer.rstrip('/')}{JWKS_PATH}"

    async def _fetch(self, issuer: str) -> List[Dict[str, Any]]:
        url = self.jwks_url(issuer)
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.get(url)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            self._count("error")
            self.logger.error("Unable to download JWKS", issuer=issuer, error=str(e))
            raise DependencyError("jwks", "Unable to download JWKS", details={"issuer": issuer, "error": str(e)})
        except ValueError as e:
            self._count("error")
            self.logger.error("JWKS response is not JSON", issuer=issuer, error=str(e))
            raise DependencyError("jwks", "Malformed JWKS response", details={"issuer": issuer})

        keys = body.get("keys") if isinstance(body, dict) else None
        if not isinstance(keys, list):
            self._count("error")
            raise DependencyError("jwks", "Malformed JWKS response", details={"issuer": issuer})

        # Concurrent first fetches may both land here; the value is the same
        self._keys[issuer] = keys
        self._fetched_at[issuer] = self._clock()
        self._count("ok")
        self.logger.info("JWKS fetched", issuer=issuer, keys_count=len(keys))
        return keys

    async def resolve(self, issuer: str) -> List[Dict[str, Any]]:
        """Return the key set for ``issuer``, fetching it on first use."""
        cached = self._keys.get(issuer)
        if cached is not None:
            return cached
        return await self._fetch(issuer)

    async def resolve_key(self, issuer: str, kid: str) -> Dict[str, Any]:
        """Return the key with ``kid`` from the issuer's key set."""
        was_cached = issuer in self._keys
        key = self._find(await self.resolve(issuer), kid)
        if key is not None:
            return key

        if was_cached and self._may_refresh(issuer):
            self.logger.info("Unknown key id, refreshing JWKS", issuer=issuer, kid=kid)
            key = self._find(await self._fetch(issuer), kid)
            if key is not None:
                return key

        self.logger.warning("Key not found", issuer=issuer, kid=kid)
        raise KeyNotFoundError(details={"issuer": issuer, "kid": kid})

    def _may_refresh(self, issuer: str) -> bool:
        if self.refresh_cooldown < 0:
            return False
        last = self._fetched_at.get(issuer)
        return last is None or self._clock() - last >= self.refresh_cooldown

    @staticmethod
    def _find(keys: List[Dict[str, Any]], kid: str) -> Optional[Dict[str, Any]]:
        for key in keys:
            if key.get("kid") == kid:
                return key
        return None

    def _count(self, status: str):
        if self.metrics:
            self.metrics.increment_counter("jwks_fetch_total", status=status)

    def cached_issuers(self) -> List[str]:
        return sorted(self._keys)

    def clear(self):
        """Drop every cached key set."""
        self._keys.clear()
        self._fetched_at.clear()
        self.logger.info("JWKS cache cleared")
