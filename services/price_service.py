# services/price_service.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Any, Dict, Optional

import httpx

from config import settings
from models.asset import SOURCE_BINANCE, SOURCE_COINGECKO, SOURCE_YAHOO
from utils.common_helpers import to_decimal

logger = logging.getLogger(__name__)

YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart/{symbol}"
BINANCE_PRICE_URL = "https://api.binance.com/api/v3/ticker/price"
COINGECKO_PRICE_URL = "https://api.coingecko.com/api/v3/simple/price"

# Yahoo answers 429/403 to clients without a browser-like user agent
BROWSER_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)


class PriceServiceError(Exception):
    """A single quote could not be obtained from its source."""


def _positive_price(raw: Any, what: str) -> Decimal:
    if raw is None:
        raise PriceServiceError(f"No price for {what}")
    try:
        price = to_decimal(raw)
    except ValueError as e:
        raise PriceServiceError(f"Unparseable price for {what}: {raw!r}") from e
    if not price.is_finite() or price <= 0:
        raise PriceServiceError(f"Price not available for {what}")
    return price


class PriceService:
    """
    Quote lookups against the configured sources.

    The service knows nothing about the database; it maps
    (api_ticker, source) to a Decimal price or raises PriceServiceError.
    Bounding each call by a timeout is the caller's job (see
    portfolio_service.refresh_prices).
    """

    def __init__(self, timeout: float = settings.PRICE_FETCH_TIMEOUT_SEC, coingecko_api_key: Optional[str] = None):
        self.timeout = timeout
        self.coingecko_api_key = coingecko_api_key or settings.COINGECKO_API_KEY

    @asynccontextmanager
    async def _client(self, client: Optional[httpx.AsyncClient] = None):
        if client is not None:
            yield client
        else:
            async with httpx.AsyncClient(timeout=self.timeout, headers={"User-Agent": BROWSER_UA}) as c:
                yield c

    async def fetch_price(
        self,
        api_ticker: str,
        source: str,
        client: Optional[httpx.AsyncClient] = None,
    ) -> Decimal:
        src = (source or SOURCE_YAHOO).upper()
        fetchers = {
            SOURCE_YAHOO: self._fetch_yahoo,
            SOURCE_BINANCE: self._fetch_binance,
            SOURCE_COINGECKO: self._fetch_coingecko,
        }
        fetcher = fetchers.get(src)
        if fetcher is None:
            raise PriceServiceError(f"Unknown price source {source}")

        async with self._client(client) as c:
            try:
                return await fetcher(c, api_ticker)
            except (httpx.HTTPError, ValueError) as e:
                # ValueError: body was not JSON
                raise PriceServiceError(f"{src} request failed for {api_ticker}: {type(e).__name__}") from e
            except (AttributeError, KeyError, TypeError, IndexError) as e:
                # body parsed but not in the shape the source documents
                raise PriceServiceError(f"{src} returned an unexpected body for {api_ticker}: {type(e).__name__}") from e

    # ---------- Sources ----------

    async def _fetch_yahoo(self, c: httpx.AsyncClient, symbol: str) -> Decimal:
        r = await c.get(YAHOO_CHART_URL.format(symbol=symbol), params={"interval": "1d", "range": "1d"})
        r.raise_for_status()
        chart = (r.json() or {}).get("chart") or {}
        if chart.get("error"):
            err = chart["error"]
            raise PriceServiceError(f"Yahoo error for {symbol}: {err.get('code')} - {err.get('description')}")
        results = chart.get("result") or []
        if not results:
            raise PriceServiceError(f"No data found for {symbol}")
        meta: Dict[str, Any] = results[0].get("meta") or {}
        return _positive_price(meta.get("regularMarketPrice"), symbol)

    async def _fetch_binance(self, c: httpx.AsyncClient, symbol: str) -> Decimal:
        r = await c.get(BINANCE_PRICE_URL, params={"symbol": symbol.upper()})
        r.raise_for_status()
        # Binance sends the price as a string, e.g. "0.69300000"
        return _positive_price((r.json() or {}).get("price"), symbol)

    async def _fetch_coingecko(self, c: httpx.AsyncClient, coin_id: str) -> Decimal:
        params = {"ids": coin_id, "vs_currencies": "usd"}
        headers = {"x-cg-demo-api-key": self.coingecko_api_key} if self.coingecko_api_key else None
        r = await c.get(COINGECKO_PRICE_URL, params=params, headers=headers)
        r.raise_for_status()
        data = r.json() or {}
        return _positive_price((data.get(coin_id) or {}).get("usd"), coin_id)


def get_price_service() -> PriceService:
    return PriceService()
