import asyncio
import os
import unittest
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import httpx
from sqlalchemy.exc import OperationalError

from models.asset import SOURCE_COINGECKO, SOURCE_YAHOO, Asset
from models.holding import Holding
from schemas.portfolio import HoldingCreate, HoldingUpdate
from services.errors import AlreadyHeld, NotFoundError, UnknownAsset
from services.helpers.portfolio_metrics import calculate_change_percent
from services.portfolio_service import (
    add_holding,
    get_portfolio,
    held_currencies,
    refresh_asset_price,
    refresh_prices,
    remove_holding,
    update_holding,
)
from services.price_service import PriceService, PriceServiceError
from tests.fixtures import D, DatabaseTestMixin, make_user
from utils.common_helpers import quantize_rate


class _FakePriceService:
    """Answers from a table; a ticker mapped to None hangs, one mapped to an exception raises it."""

    def __init__(self, quotes):
        self.quotes = quotes
        self.calls = []

    async def fetch_price(self, api_ticker, source, client=None):
        self.calls.append(api_ticker)
        quote = self.quotes[api_ticker]
        if quote is None:
            await asyncio.sleep(5)
        if isinstance(quote, Exception):
            raise quote
        return quote


class TestHoldings(DatabaseTestMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.user = make_user(self.db)

    def test_add_update_remove(self):
        h = add_holding(self.db, self.user, HoldingCreate(ticker=" aapl ", quantity=D("10"), avg_buy_price=D("150")))
        self.assertEqual(h.ticker, "AAPL")

        h = update_holding(self.db, self.user, "aapl", HoldingUpdate(quantity=D("12")))
        self.assertEqual(h.quantity, D("12"))
        self.assertEqual(h.avg_buy_price, D("150"))

        remove_holding(self.db, self.user, "AAPL")
        self.assertEqual(self.db.query(Holding).count(), 0)
        with self.assertRaises(NotFoundError):
            remove_holding(self.db, self.user, "AAPL")
        with self.assertRaises(NotFoundError):
            update_holding(self.db, self.user, "AAPL", HoldingUpdate(quantity=D("1")))

    def test_unknown_and_duplicate_tickers_are_rejected(self):
        with self.assertRaises(UnknownAsset):
            add_holding(self.db, self.user, HoldingCreate(ticker="NOPE", quantity=D("1"), avg_buy_price=D("1")))

        add_holding(self.db, self.user, HoldingCreate(ticker="BTC", quantity=D("0.5"), avg_buy_price=D("30000")))
        with self.assertRaises(AlreadyHeld):
            add_holding(self.db, self.user, HoldingCreate(ticker="btc", quantity=D("1"), avg_buy_price=D("1")))

        # another user may hold the same asset
        bob = make_user(self.db, "bob")
        add_holding(self.db, bob, HoldingCreate(ticker="BTC", quantity=D("1"), avg_buy_price=D("1")))
        self.assertEqual(self.db.query(Holding).count(), 2)

    def test_invalid_quantities_fail_schema_validation(self):
        with self.assertRaises(ValueError):
            HoldingCreate(ticker="AAPL", quantity=D("0"), avg_buy_price=D("1"))
        with self.assertRaises(ValueError):
            HoldingCreate(ticker="AAPL", quantity=D("1"), avg_buy_price=D("-1"))

    def test_portfolio_totals_in_base_currency(self):
        self.db.get(Asset, "AAPL").current_price = D("200")
        self.db.commit()
        add_holding(self.db, self.user, HoldingCreate(ticker="AAPL", quantity=D("10"), avg_buy_price=D("150")))
        add_holding(self.db, self.user, HoldingCreate(ticker="MSFT", quantity=D("2"), avg_buy_price=D("100")))

        self.assertEqual(held_currencies(self.db, self.user.id), {"USD"})
        p = get_portfolio(self.db, self.user, {"USD": D("1.5")})

        aapl, msft = p.items
        self.assertEqual(aapl.total_value_converted, D("3000"))
        self.assertEqual(aapl.total_cost_converted, D("2250"))
        self.assertEqual(aapl.price_status, "live")
        # never priced: valued at cost
        self.assertEqual(msft.price_status, "unavailable")
        self.assertEqual(msft.total_value_converted, D("300"))

        self.assertEqual(p.total_value, D("3300"))
        self.assertEqual(p.total_cost, D("2550"))
        self.assertEqual(p.absolute_change, D("750"))
        self.assertEqual(p.currency, "SGD")

    def test_change_percent(self):
        self.assertEqual(calculate_change_percent(D("150"), D("100")), D("50"))
        self.assertEqual(calculate_change_percent(D("10"), D("0")), D("0"))


class TestRefreshPrices(DatabaseTestMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        user = make_user(self.db)
        for ticker in ("AAPL", "MSFT", "BTC"):
            add_holding(self.db, user, HoldingCreate(ticker=ticker, quantity=D("1"), avg_buy_price=D("1")))
        self.db.get(Asset, "BTC").current_price = D("40000")
        self.db.commit()

    def _price(self, ticker):
        self.db.expire_all()
        return self.db.get(Asset, ticker).current_price

    def test_slow_ticker_is_skipped_and_others_are_saved(self):
        prices = _FakePriceService({"AAPL": D("190.25"), "MSFT": D("410"), "bitcoin": None})

        updated = asyncio.run(refresh_prices(self.db, prices, timeout=0.05))

        self.assertEqual(updated, 2)
        self.assertEqual(sorted(prices.calls), ["AAPL", "MSFT", "bitcoin"])
        self.assertEqual(self._price("AAPL"), D("190.25"))
        self.assertEqual(self._price("MSFT"), D("410"))
        self.assertEqual(self._price("BTC"), D("40000"))
        self.assertIsNotNone(self.db.get(Asset, "AAPL").last_updated)

    def test_source_errors_are_skipped(self):
        prices = _FakePriceService({
            "AAPL": PriceServiceError("No data found for AAPL"),
            "MSFT": D("410"),
            "bitcoin": D("65000.5"),
        })
        self.assertEqual(asyncio.run(refresh_prices(self.db, prices, timeout=1)), 2)
        self.assertIsNone(self._price("AAPL"))
        self.assertEqual(self._price("BTC"), D("65000.5"))

    def test_unexpected_error_for_one_ticker_does_not_stop_the_rest(self):
        prices = _FakePriceService({
            "AAPL": RuntimeError("boom"),
            "MSFT": D("410"),
            "bitcoin": D("65000.5"),
        })
        with self.assertLogs("services.portfolio_service", level="ERROR"):
            updated = asyncio.run(refresh_prices(self.db, prices, timeout=1))

        self.assertEqual(updated, 2)
        self.assertIsNone(self._price("AAPL"))
        self.assertEqual(self._price("MSFT"), D("410"))

    def test_store_failure_for_one_ticker_does_not_stop_the_rest(self):
        prices = _FakePriceService({"AAPL": D("1"), "MSFT": D("2"), "bitcoin": D("3")})

        def _flaky(value):
            if value == D("2"):
                raise OperationalError("UPDATE assets", {}, Exception("database is locked"))
            return quantize_rate(value)

        with patch("services.portfolio_service.quantize_rate", side_effect=_flaky):
            updated = asyncio.run(refresh_prices(self.db, prices, timeout=1))

        self.assertEqual(updated, 2)
        self.assertIsNone(self._price("MSFT"))
        self.assertEqual(self._price("AAPL"), D("1"))
        self.assertEqual(self._price("BTC"), D("3"))

    def test_unheld_assets_are_not_fetched(self):
        prices = _FakePriceService({"AAPL": D("1"), "MSFT": D("2"), "bitcoin": D("3")})
        asyncio.run(refresh_prices(self.db, prices, timeout=1))
        self.assertNotIn("NVDA", prices.calls)

    def test_single_asset_refresh(self):
        prices = _FakePriceService({"NVDA": D("900")})
        self.assertTrue(asyncio.run(refresh_asset_price(self.db, prices, "nvda", timeout=1)))
        self.assertEqual(self._price("NVDA"), D("900"))

        prices = _FakePriceService({"NVDA": PriceServiceError("down")})
        self.assertFalse(asyncio.run(refresh_asset_price(self.db, prices, "NVDA", timeout=1)))
        self.assertEqual(self._price("NVDA"), D("900"))


class TestPriceServiceParsing(unittest.TestCase):
    def _fetch(self, body, source=SOURCE_YAHOO, symbol="AAPL"):
        async def _run():
            transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))
            async with httpx.AsyncClient(transport=transport) as client:
                return await PriceService().fetch_price(symbol, source, client=client)

        return asyncio.run(_run())

    def test_yahoo_quote(self):
        body = {"chart": {"result": [{"meta": {"regularMarketPrice": 190.25}}], "error": None}}
        self.assertEqual(self._fetch(body), D("190.25"))

    def test_malformed_bodies_become_price_errors(self):
        with self.assertRaises(PriceServiceError):
            self._fetch({"chart": {"result": [None]}})
        with self.assertRaises(PriceServiceError):
            self._fetch({"chart": "gone"})
        with self.assertRaises(PriceServiceError):
            self._fetch(["unexpected"], source=SOURCE_COINGECKO, symbol="bitcoin")


if __name__ == "__main__":
    unittest.main()
