from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from .alerts import WeatherWarning, filter_warnings
from .config import DEFAULT_ALERTS_URL, DEFAULT_UA, FeedConfig

log = logging.getLogger("calmweather.feed")

SleepFn = Callable[[float], Awaitable[Any]]


class NwsAlertSource:
    """
    Fetches active alerts from api.weather.gov for one region and one event type.

    Transient failures (transport errors, non-2xx status, undecodable body) are
    retried with exponential backoff: base * 2**attempt, attempts counted from 0.
    Once retries are exhausted the cycle just sees no alerts.
    """

    def __init__(
        self,
        *,
        category: str,
        url: str = DEFAULT_ALERTS_URL,
        user_agent: str = DEFAULT_UA,
        max_retries: int = 5,
        base_delay_seconds: float = 5.0,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
        sleep: SleepFn = asyncio.sleep,
    ) -> None:
        self.category = category
        self.url = url
        self.max_retries = max(0, int(max_retries))
        self.base_delay_seconds = max(0.0, float(base_delay_seconds))
        self._sleep = sleep

        self._client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(timeout, connect=min(10.0, timeout)),
            headers={
                "User-Agent": user_agent,
                "Accept": "application/geo+json, application/json;q=0.9, */*;q=0.1",
            },
            follow_redirects=True,
        )

    @classmethod
    def from_config(cls, cfg: FeedConfig, **kwargs: Any) -> "NwsAlertSource":
        return cls(
            category=cfg.category,
            url=cfg.url,
            user_agent=cfg.user_agent,
            max_retries=cfg.max_retries,
            base_delay_seconds=cfg.base_retry_delay_seconds,
            timeout=cfg.timeout_seconds,
            **kwargs,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    def build_params(self, region: str) -> Dict[str, str]:
        return {
            "area": region.strip().upper(),
            "event": self.category,
            "status": "actual",
        }

    def backoff_delay(self, attempt: int) -> float:
        return self.base_delay_seconds * (2 ** attempt)

    async def fetch_features(self, region: str) -> List[Dict[str, Any]]:
        params = self.build_params(region)
        total = self.max_retries + 1

        for attempt in range(total):
            try:
                log.debug("Fetching NWS alerts (attempt %d/%d)", attempt + 1, total)
                r = await self._client.get(self.url, params=params)
                if not r.is_success:
                    raise httpx.HTTPStatusError(f"HTTP {r.status_code}", request=r.request, response=r)
                data = r.json()
            except (httpx.HTTPError, ValueError) as e:
                if attempt >= self.max_retries:
                    log.error("Giving up on NWS alerts after %d attempts: %s", total, e)
                    return []
                delay = self.backoff_delay(attempt)
                log.warning("NWS alerts fetch failed (try %d/%d): %s; retrying in %.1fs", attempt + 1, total, e, delay)
                await self._sleep(delay)
                continue

            feats = data.get("features") if isinstance(data, dict) else None
            if not isinstance(feats, list):
                feats = []
            log.debug("NWS returned %d active alert(s)", len(feats))
            return feats

        return []

    async def fetch_active_warnings(self, region: str) -> List[WeatherWarning]:
        return filter_warnings(await self.fetch_features(region), self.category)
