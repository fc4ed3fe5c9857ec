import asyncio
import os
import unittest
from decimal import Decimal

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

import httpx

from services.currency_service import FxService, FxServiceError, normalize_amount, resolve_rate, validate_amount
from services.errors import InvalidAmount, ValidationError
from tests.fixtures import D


class TestNormalizeAmount(unittest.TestCase):
    def test_same_currency_is_stored_untouched(self):
        n = normalize_amount(D("10.5"), "SGD", "SGD")
        self.assertEqual(n.amount, D("10.5"))
        self.assertIsNone(n.original_currency)
        self.assertIsNone(n.original_amount)
        self.assertIsNone(n.exchange_rate)

    def test_missing_currency_means_base_currency(self):
        n = normalize_amount(D("3"), None, "USD")
        self.assertEqual(n.amount, D("3"))
        self.assertIsNone(n.original_currency)

    def test_foreign_currency_is_converted_with_rate(self):
        n = normalize_amount(D("50"), "eur", "USD", D("1.1"))
        self.assertEqual(n.amount, D("55.0000"))
        self.assertEqual(n.original_currency, "EUR")
        self.assertEqual(n.original_amount, D("50"))
        self.assertEqual(n.exchange_rate, D("1.10000000"))

    def test_conversion_rounds_half_up_to_four_places(self):
        n = normalize_amount(D("1"), "IDR", "SGD", D("0.00008525"))
        self.assertEqual(n.amount, D("0.0001"))

        n = normalize_amount(D("3"), "EUR", "SGD", D("1.45678901"))
        # 3 * 1.45678901 = 4.37036703
        self.assertEqual(n.amount, D("4.3704"))
        self.assertEqual(n.amount, (n.original_amount * n.exchange_rate).quantize(D("0.0001")))

    def test_foreign_currency_without_rate_is_rejected(self):
        with self.assertRaises(ValidationError):
            normalize_amount(D("5"), "EUR", "SGD")

    def test_non_positive_and_over_precise_amounts_are_rejected(self):
        for bad in (D("0"), D("-1"), D("1.00001"), D("NaN")):
            with self.subTest(amount=bad):
                with self.assertRaises(InvalidAmount):
                    validate_amount(bad)

    def test_out_of_range_amounts_are_rejected(self):
        for bad in (D("1e30"), D("1E+15"), D("1000000000000000.0001")):
            with self.subTest(amount=bad):
                with self.assertRaises(InvalidAmount):
                    validate_amount(bad)
        self.assertEqual(validate_amount(D("999999999999999.9999")), D("999999999999999.9999"))

    def test_conversion_that_overflows_the_money_column_is_rejected(self):
        with self.assertRaises(InvalidAmount):
            normalize_amount(D("1000000000000"), "SGD", "IDR", D("11700"))
        with self.assertRaises(ValidationError):
            normalize_amount(D("5"), "EUR", "SGD", D("1e20"))

    def test_four_decimal_places_are_accepted(self):
        self.assertEqual(validate_amount(D("0.0001")), D("0.0001"))


def _fx_client(rate):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(dict(request.url.params))
        if rate is None:
            return httpx.Response(503, json={"message": "down"})
        return httpx.Response(200, json={"rates": {request.url.params["to"]: rate}})

    return httpx.AsyncClient(transport=httpx.MockTransport(handler)), calls


class TestFxService(unittest.TestCase):
    def test_rate_is_fetched_quantized_and_cached(self):
        async def _run():
            client, calls = _fx_client(0.741234567)
            fx = FxService(base_url="https://fx.test/latest", ttl_sec=60)
            async with client:
                first = await fx.get_rate("usd", "sgd", client=client)
                second = await fx.get_rate("USD", "SGD", client=client)
            return first, second, calls

        first, second, calls = asyncio.run(_run())
        self.assertEqual(first, Decimal("0.74123457"))
        self.assertEqual(second, first)
        self.assertEqual(calls, [{"from": "USD", "to": "SGD"}])

    def test_same_currency_needs_no_lookup(self):
        fx = FxService(base_url="https://fx.test/latest")
        self.assertEqual(asyncio.run(fx.get_rate("SGD", "sgd")), Decimal("1"))

    def test_upstream_failure_raises_fx_error(self):
        async def _run():
            client, _ = _fx_client(None)
            fx = FxService(base_url="https://fx.test/latest")
            async with client:
                await fx.get_rate("EUR", "SGD", client=client)

        with self.assertRaises(FxServiceError):
            asyncio.run(_run())

    def test_resolve_rate_prefers_caller_rate(self):
        class _NoNetwork(FxService):
            async def get_rate(self, from_ccy, to_ccy, client=None):
                raise AssertionError("should not be called")

        rate = asyncio.run(resolve_rate(_NoNetwork(), "EUR", "SGD", D("1.5")))
        self.assertEqual(rate, D("1.5"))
        self.assertIsNone(asyncio.run(resolve_rate(_NoNetwork(), "SGD", "SGD")))

    def test_resolve_rate_turns_fx_failure_into_validation_error(self):
        class _Down(FxService):
            async def get_rate(self, from_ccy, to_ccy, client=None):
                raise FxServiceError("No exchange rate for EUR -> SGD")

        with self.assertRaises(ValidationError):
            asyncio.run(resolve_rate(_Down(), "EUR", "SGD"))


if __name__ == "__main__":
    unittest.main()
