"""
Provider client base for Seaside Beacon

Every upstream call goes through the same four layers, in order:

1. Positive cache  - fresh entry returned with no network I/O
2. Negative cache  - recent exhausted failure: skip the network, serve stale
3. In-flight dedup - join an already pending fetch for the same key
4. Retry + backoff - bounded attempts, auth failures abort immediately

After an exhausted chain the failure is negative-cached and the last known
good payload (any age) is returned. Only when nothing was ever cached does
the caller see NoDataAvailable.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Hashable, Mapping, Optional

import httpx

from seaside_beacon.cache_manager import (
    DEFAULT_FAILURE_TTL_SECONDS,
    CacheEntry,
    CacheStore,
    KeyState,
)
from seaside_beacon.errors import MalformedResponseError, NoDataAvailable, UpstreamError
from seaside_beacon.inflight import InFlightRegistry
from seaside_beacon.resilience import DEFAULT_RETRY_CONFIG, RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FetchResult:
    """Result of a provider fetch with fallback chain info."""
    provider: str
    endpoint: str
    key: Hashable
    data: Any
    source: str  # "API", "CACHE", "STALE"
    fetched_at: float
    age_seconds: float
    error_message: Optional[str] = None

    @property
    def is_degraded(self) -> bool:
        return self.source == "STALE"

    @property
    def status_label(self) -> str:
        """Human-readable status for logs and API consumers."""
        if self.source == "API":
            return "LIVE"
        if self.source == "CACHE":
            return "CACHED"
        return f"STALE ({int(self.age_seconds // 60)}m)"


class ProviderClient:
    """
    Generic acquisition client for one upstream provider.

    Subclasses declare ENDPOINT_TTLS and implement _request(endpoint, key),
    which performs exactly one upstream attempt and returns the payload to
    cache. Everything else (caching, coalescing, retries, stale fallback)
    lives here.
    """

    NAME = "provider"
    ENDPOINT_TTLS: Mapping[str, float] = {}

    def __init__(
        self,
        *,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 10.0,
        user_agent: str = "SeasideBeacon/1.0",
        caches: Optional[Mapping[str, CacheStore]] = None,
        inflight: Optional[InFlightRegistry] = None,
        retry_config: Optional[RetryConfig] = None,
        endpoint_ttls: Optional[Mapping[str, float]] = None,
        failure_ttl_seconds: float = DEFAULT_FAILURE_TTL_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        ttls = dict(self.ENDPOINT_TTLS)
        if endpoint_ttls:
            ttls.update(endpoint_ttls)

        self._caches: Dict[str, CacheStore] = dict(caches) if caches else {}
        for endpoint, ttl in ttls.items():
            if endpoint not in self._caches:
                self._caches[endpoint] = CacheStore(
                    f"{self.NAME}.{endpoint}", ttl,
                    failure_ttl_seconds=failure_ttl_seconds, clock=clock,
                )

        self._inflight = inflight or InFlightRegistry(self.NAME)
        self._retry_config = retry_config or DEFAULT_RETRY_CONFIG
        self._sleep = sleep
        self._timeout = timeout_seconds
        self._user_agent = user_agent
        self._http_client = http_client
        self._owns_client = http_client is None

        self.stats: Dict[str, int] = {
            "api_calls": 0,
            "cache_hits": 0,
            "negative_hits": 0,
            "stale_served": 0,
            "failures": 0,
        }

    @property
    def endpoints(self) -> tuple:
        return tuple(self._caches)

    def cache(self, endpoint: str) -> CacheStore:
        try:
            return self._caches[endpoint]
        except KeyError:
            raise ValueError(f"[{self.NAME}] Unknown endpoint '{endpoint}'") from None

    def key_state(self, endpoint: str, key: Hashable) -> KeyState:
        if self._inflight.is_pending((endpoint, key)):
            return KeyState.FETCHING
        return self.cache(endpoint).state(key)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                headers={"User-Agent": self._user_agent},
                timeout=self._timeout,
            )
        return self._http_client

    async def aclose(self) -> None:
        if self._http_client is not None and self._owns_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(self, endpoint: str, key: Hashable) -> Any:
        """Perform one upstream attempt. Raise on any failure."""
        raise NotImplementedError

    async def fetch(self, endpoint: str, key: Hashable, force_refresh: bool = False) -> FetchResult:
        """
        Resolve endpoint data for key through the four acquisition layers.

        Args:
            endpoint: Endpoint name (see ENDPOINT_TTLS)
            key: Cache key (location key or GridCell)
            force_refresh: Skip the positive cache (warmup only)

        Returns:
            FetchResult with source API, CACHE or STALE

        Raises:
            NoDataAvailable: every layer exhausted with nothing to return
        """
        cache = self.cache(endpoint)

        # Layer 1: positive cache
        if not force_refresh:
            entry = cache.get_fresh(key)
            if entry is not None:
                self.stats["cache_hits"] += 1
                logger.debug(
                    f"[{self.NAME}] CACHE HIT {endpoint} {key} "
                    f"(age {cache.age_seconds(entry):.0f}s)"
                )
                return self._result(endpoint, key, entry, "CACHE")

        # Layer 2: negative cache
        if cache.recent_failure(key) is not None:
            self.stats["negative_hits"] += 1
            logger.info(f"[{self.NAME}] Recent failure for {endpoint} {key}, skipping network")
            return self._stale_or_raise(endpoint, key, "recent failure (negative cache)")

        # Layers 3 + 4: coalesce, then retry with backoff
        return await self._inflight.run(
            (endpoint, key), lambda: self._refresh(endpoint, key)
        )

    async def _refresh(self, endpoint: str, key: Hashable) -> FetchResult:
        cache = self.cache(endpoint)

        async def attempt() -> Any:
            self.stats["api_calls"] += 1
            return await self._request(endpoint, key)

        try:
            payload = await retry_with_backoff(
                attempt,
                provider_name=f"{self.NAME}.{endpoint}",
                config=self._retry_config,
                sleep=self._sleep,
            )
        except (UpstreamError, MalformedResponseError) as e:
            self.stats["failures"] += 1
            cache.record_failure(key)
            return self._stale_or_raise(endpoint, key, str(e))

        entry = cache.put(key, payload)
        logger.info(f"[{self.NAME}] FRESH {endpoint} {key} from API")
        return self._result(endpoint, key, entry, "API")

    def _stale_or_raise(self, endpoint: str, key: Hashable, reason: str) -> FetchResult:
        cache = self.cache(endpoint)
        entry = cache.get_any(key)
        if entry is None:
            logger.error(f"[{self.NAME}] No data of any age for {endpoint} {key}: {reason}")
            raise NoDataAvailable(self.NAME, endpoint, key)

        self.stats["stale_served"] += 1
        age = cache.age_seconds(entry)
        logger.warning(
            f"[{self.NAME}] Serving STALE {endpoint} {key} "
            f"({age / 60:.1f} min old): {reason}"
        )
        return self._result(endpoint, key, entry, "STALE", error_message=reason)

    def _result(
        self,
        endpoint: str,
        key: Hashable,
        entry: CacheEntry,
        source: str,
        error_message: Optional[str] = None,
    ) -> FetchResult:
        return FetchResult(
            provider=self.NAME,
            endpoint=endpoint,
            key=key,
            data=entry.payload,
            source=source,
            fetched_at=entry.fetched_at,
            age_seconds=self.cache(endpoint).age_seconds(entry),
            error_message=error_message,
        )
