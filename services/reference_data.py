# services/reference_data.py
"""
Reference rows every deployment needs: currencies, the global category
list (including the transfer pair) and the asset catalog.

The alembic initial migration inserts the same rows; `seed_reference_data`
is the idempotent path used at startup for dev SQLite and by the tests.
"""
import logging

from sqlalchemy.orm import Session

from models.asset import SOURCE_COINGECKO, SOURCE_YAHOO, Asset
from models.category import TRANSFER_IN, TRANSFER_OUT, Category
from models.currency import Currency
from services.unit_of_work import unit_of_work

logger = logging.getLogger(__name__)

CURRENCIES = [
    ("SGD", "S$", "Singapore Dollar"),
    ("USD", "$", "US Dollar"),
    ("IDR", "Rp", "Indonesian Rupiah"),
    ("EUR", "€", "Euro"),
    ("GBP", "£", "British Pound"),
    ("JPY", "¥", "Japanese Yen"),
    ("AUD", "A$", "Australian Dollar"),
    ("MYR", "RM", "Malaysian Ringgit"),
]

# (name, is_income, icon, exclude_from_analysis)
CATEGORIES = [
    ("Food", False, "restaurant", False),
    ("Transport", False, "commute", False),
    ("Entertainment", False, "movie", False),
    ("Shopping", False, "shopping_bag", False),
    ("Healthcare", False, "health_and_safety", False),
    ("Education", False, "school", False),
    ("Utilities", False, "bolt", False),
    ("Housing", False, "home", False),
    ("Insurance", False, "security", False),
    ("Personal Care", False, "self_improvement", False),
    ("Salary", True, "attach_money", False),
    ("Freelance", True, "work", False),
    ("Investment Returns", True, "trending_up", False),
    (TRANSFER_OUT, False, "call_made", True),
    (TRANSFER_IN, True, "call_received", True),
]

# (ticker, name, asset_type, source, api_ticker)
ASSETS = [
    ("AAPL", "Apple Inc.", "Stock", SOURCE_YAHOO, "AAPL"),
    ("MSFT", "Microsoft Corporation", "Stock", SOURCE_YAHOO, "MSFT"),
    ("GOOGL", "Alphabet Inc.", "Stock", SOURCE_YAHOO, "GOOGL"),
    ("AMZN", "Amazon.com Inc.", "Stock", SOURCE_YAHOO, "AMZN"),
    ("NVDA", "NVIDIA Corporation", "Stock", SOURCE_YAHOO, "NVDA"),
    ("TSLA", "Tesla Inc.", "Stock", SOURCE_YAHOO, "TSLA"),
    ("META", "Meta Platforms Inc.", "Stock", SOURCE_YAHOO, "META"),
    ("BRK.B", "Berkshire Hathaway Inc.", "Stock", SOURCE_YAHOO, "BRK-B"),
    ("V", "Visa Inc.", "Stock", SOURCE_YAHOO, "V"),
    ("JPM", "JPMorgan Chase & Co.", "Stock", SOURCE_YAHOO, "JPM"),
    ("KO", "The Coca-Cola Company", "Stock", SOURCE_YAHOO, "KO"),
    ("NFLX", "Netflix Inc.", "Stock", SOURCE_YAHOO, "NFLX"),
    ("BTC", "Bitcoin", "Crypto", SOURCE_COINGECKO, "bitcoin"),
    ("ETH", "Ethereum", "Crypto", SOURCE_COINGECKO, "ethereum"),
    ("BNB", "Binance Coin", "Crypto", SOURCE_COINGECKO, "binancecoin"),
    ("SOL", "Solana", "Crypto", SOURCE_COINGECKO, "solana"),
    ("XRP", "Ripple", "Crypto", SOURCE_COINGECKO, "ripple"),
    ("ADA", "Cardano", "Crypto", SOURCE_COINGECKO, "cardano"),
    ("DOGE", "Dogecoin", "Crypto", SOURCE_COINGECKO, "dogecoin"),
]


def seed_reference_data(db: Session) -> int:
    """Insert whatever reference rows are missing. Returns how many were added."""
    added = 0
    with unit_of_work(db):
        known = {c for (c,) in db.query(Currency.code).all()}
        for code, symbol, name in CURRENCIES:
            if code not in known:
                db.add(Currency(code=code, symbol=symbol, name=name))
                added += 1

        known = {n for (n,) in db.query(Category.name).all()}
        for name, is_income, icon, excluded in CATEGORIES:
            if name not in known:
                db.add(Category(name=name, is_income=is_income, icon=icon, exclude_from_analysis=excluded))
                added += 1

        known = {t for (t,) in db.query(Asset.ticker).all()}
        for ticker, name, asset_type, source, api_ticker in ASSETS:
            if ticker not in known:
                db.add(Asset(ticker=ticker, name=name, asset_type=asset_type, source=source, api_ticker=api_ticker))
                added += 1

    if added:
        logger.info("reference_data_seeded rows=%d", added)
    return added
