"""Caches for prices, company overviews and filing analysis."""

from signaltrader.cache.analysis import AnalysisCache
from signaltrader.cache.base import FixedTTL, MarketHoursTTL, TTLPolicy, cached_lookup
from signaltrader.cache.overview import OverviewCache
from signaltrader.cache.prices import PriceCache

__all__ = [
    "AnalysisCache",
    "FixedTTL",
    "MarketHoursTTL",
    "OverviewCache",
    "PriceCache",
    "TTLPolicy",
    "cached_lookup",
]
