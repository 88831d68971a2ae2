"""Filing analysis cache.

Analysis is produced by three chained oracle calls, each one seeing the
output of the previous ones:

1. business overview from the Business section
2. risk summary from Risk Factors, conditioned on the overview
3. full analysis from MD&A, conditioned on both

The three texts are stored together under one timestamp and kept for 30 days.
"""

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Optional

from signaltrader.cache.base import CachedValue, Clock, FixedTTL, TTLPolicy, cached_lookup
from signaltrader.db.store import DataStore
from signaltrader.models import FilingAnalysis

if TYPE_CHECKING:
    from signaltrader.agents.oracle import Oracle

logger = logging.getLogger(__name__)


class AnalysisCache:
    """Per-ticker cache of oracle-generated filing analysis."""

    def __init__(
        self,
        store: DataStore,
        oracle: "Oracle",
        policy: Optional[TTLPolicy] = None,
        clock: Clock = datetime.now,
    ):
        self._store = store
        self._oracle = oracle
        self._policy = policy or FixedTTL(timedelta(days=30))
        self._clock = clock

    def _load(self, ticker: str) -> Optional[CachedValue[FilingAnalysis]]:
        entry = self._store.get_cached_analysis(ticker)
        return CachedValue(*entry) if entry else None

    def _save(self, ticker: str, analysis: FilingAnalysis, now: datetime) -> None:
        self._store.save_cached_analysis(ticker, analysis, now)

    def generate(self, ticker: str, business: str, risk_factors: str, mdna: str) -> FilingAnalysis:
        """Run the three-step analysis pipeline without touching the cache."""
        logger.info("Generating fresh filing analysis for %s", ticker)
        business_overview = self._oracle.summarize_business(business)
        risk_overview = self._oracle.summarize_risks(risk_factors, business_overview)
        full_analysis = self._oracle.analyze_filing(mdna, business_overview, risk_overview)
        return FilingAnalysis(
            business_overview=business_overview,
            risk_overview=risk_overview,
            full_analysis=full_analysis,
        )

    def get_or_generate(
        self, ticker: str, business: str, risk_factors: str, mdna: str
    ) -> FilingAnalysis:
        """Get cached analysis, generating it when missing or older than the TTL.

        Args:
            ticker: Ticker symbol.
            business: Business section text.
            risk_factors: Risk factors section text.
            mdna: MD&A section text.

        Returns:
            The filing analysis.
        """
        return cached_lookup(
            ticker,
            load=self._load,
            fetch=lambda: self.generate(ticker, business, risk_factors, mdna),
            save=self._save,
            policy=self._policy,
            now=self._clock(),
            label="filing analysis",
        )

    def clear(self, ticker: str) -> None:
        self._store.delete_cached_analysis(ticker)
        logger.info("Cleared cached analysis for %s", ticker)

    def stats(self) -> dict:
        cutoff = self._clock() - self._policy.ttl(self._clock())
        return self._store.cache_age_stats("analysis_cache", cutoff)
