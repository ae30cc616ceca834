import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, Optional

import requests

from errors import UpstreamError
from utils import normalize_coin

log = logging.getLogger(__name__)

DEFAULT_API_URL = "https://api.coingecko.com/api/v3"
CATALOG_TTL = 6 * 60 * 60  # seconds


@dataclass(frozen=True)
class CoinCatalog:
    ids: FrozenSet[str]
    fetched_at: float

    def is_fresh(self, now):
        return now - self.fetched_at < CATALOG_TTL


@dataclass
class PriceLookup:
    """Outcome of one batched price request.

    ``ok`` is False when the request itself failed; a coin that is simply
    missing from ``prices`` had no usable quote in an otherwise good response.
    """

    prices: Dict[str, float] = field(default_factory=dict)
    ok: bool = True
    error: Optional[str] = None


class PriceClient:
    def __init__(self, api_url=DEFAULT_API_URL, timeout=10.0, session=None, clock=time.monotonic):
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.setdefault("accept", "application/json")
        self._clock = clock
        self._catalog: Optional[CoinCatalog] = None

    def _get(self, path, params=None):
        response = self.session.get(f"{self.api_url}{path}", params=params, timeout=self.timeout)
        if not response.ok:
            raise UpstreamError(f"CoinGecko {path} HTTP {response.status_code}")
        return response.json()

    async def fetch_catalog(self) -> FrozenSet[str]:
        catalog = self._catalog
        if catalog is not None and catalog.is_fresh(self._clock()):
            return catalog.ids

        try:
            data = await asyncio.to_thread(self._get, "/coins/list", {"include_platform": "false"})
            if not isinstance(data, list):
                raise UpstreamError("malformed coin list")
            ids = frozenset(
                normalize_coin(c["id"]) for c in data if isinstance(c, dict) and isinstance(c.get("id"), str)
            )
        except (requests.RequestException, UpstreamError, ValueError, TypeError) as e:
            if catalog is None:
                raise UpstreamError(f"coin list unavailable: {e}") from e
            log.warning("Coin list refresh failed, serving stale catalog: %s", e)
            return catalog.ids

        self._catalog = CoinCatalog(ids=ids, fetched_at=self._clock())
        log.info("Fetched CoinGecko coin list (%d ids)", len(ids))
        return ids

    async def validate_id(self, coin) -> bool:
        return normalize_coin(coin) in await self.fetch_catalog()

    async def lookup_prices(self, coins: Iterable[str]) -> PriceLookup:
        ids = sorted({normalize_coin(c) for c in coins})
        if not ids:
            return PriceLookup()

        params = {"ids": ",".join(ids), "vs_currencies": "usd"}
        try:
            data = await asyncio.to_thread(self._get, "/simple/price", params)
        except (requests.RequestException, UpstreamError, ValueError) as e:
            log.error("Price fetch failed for %s: %s", ",".join(ids), e)
            return PriceLookup(ok=False, error=str(e))

        if not isinstance(data, dict):
            log.error("Unexpected price payload: %r", data)
            return PriceLookup(ok=False, error="malformed response")

        prices = {}
        for coin in ids:
            quote = data.get(coin)
            usd = quote.get("usd") if isinstance(quote, dict) else None
            # bool is an int subclass; never a price
            if isinstance(usd, (int, float)) and not isinstance(usd, bool):
                prices[coin] = float(usd)
        return PriceLookup(prices=prices)

    async def fetch_prices(self, coins: Iterable[str]) -> Dict[str, float]:
        return (await self.lookup_prices(coins)).prices

    async def fetch_price(self, coin) -> Optional[float]:
        coin = normalize_coin(coin)
        return (await self.lookup_prices([coin])).prices.get(coin)
