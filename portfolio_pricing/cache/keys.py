"""
Cache key builders.

Key layout is shared with every other writer of the same cache, so the
formats here must not change:
    price:<SYMBOL>[:<CURRENCY>]
    historical:<SYMBOL>:<CURRENCY>:<start>:<end>
    historical:<SYMBOL>:<interval>:<range>[:<CURRENCY>]
    search:<query lowercased, non-alphanumerics stripped>
"""
import re
from datetime import date


PRICE_PREFIX = "price:"
HISTORICAL_PREFIX = "historical:"
SEARCH_PREFIX = "search:"

CACHE_PREFIXES = (PRICE_PREFIX, HISTORICAL_PREFIX, SEARCH_PREFIX)

DEFAULT_CURRENCY = "USD"

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def price_key(symbol: str, currency: str = DEFAULT_CURRENCY) -> str:
    symbol = symbol.upper()
    currency = (currency or DEFAULT_CURRENCY).upper()
    if currency == DEFAULT_CURRENCY:
        return f"{PRICE_PREFIX}{symbol}"
    return f"{PRICE_PREFIX}{symbol}:{currency}"


def historical_range_key(symbol: str, currency: str, start_date: date, end_date: date) -> str:
    return (
        f"{HISTORICAL_PREFIX}{symbol.upper()}:{(currency or DEFAULT_CURRENCY).upper()}:"
        f"{start_date.isoformat()}:{end_date.isoformat()}"
    )


def historical_key(symbol: str, interval: str, range_: str, currency: str = DEFAULT_CURRENCY) -> str:
    key = f"{HISTORICAL_PREFIX}{symbol.upper()}:{interval}:{range_}"
    currency = (currency or DEFAULT_CURRENCY).upper()
    if currency == DEFAULT_CURRENCY:
        return key
    return f"{key}:{currency}"


def normalize_query(query: str) -> str:
    return _NON_ALNUM.sub("", query.lower())


def search_key(query: str) -> str:
    return f"{SEARCH_PREFIX}{normalize_query(query)}"
