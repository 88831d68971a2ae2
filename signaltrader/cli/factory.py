"""Builds SignalTrader components from settings for the CLI commands."""

from datetime import timedelta
from typing import Any

from signaltrader.config import Settings, load_component
from signaltrader.errors import ConfigurationError


def _source(settings: Settings, name: str) -> Any:
    path = getattr(settings.sources, name)
    if not path:
        raise ConfigurationError(
            f"No {name} source configured. Set [sources] {name} = \"module:Class\" "
            "in the config file."
        )
    return load_component(path, **settings.sources.options.get(name, {}))


class Components:
    """Lazily constructed object graph shared by one CLI invocation."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._cache: dict[str, Any] = {}

    def _get(self, key: str, build):
        if key not in self._cache:
            self._cache[key] = build()
        return self._cache[key]

    @property
    def data_store(self):
        from signaltrader.db.store import DataStore

        return self._get("data_store", lambda: DataStore(self.settings.database.path))

    @property
    def ledger(self):
        from signaltrader.trading.ledger import Ledger

        return self._get(
            "ledger",
            lambda: Ledger(self.data_store, self.settings.trading.starting_balance),
        )

    @property
    def prices(self):
        from signaltrader.cache import FixedTTL, MarketHoursTTL, PriceCache

        cache = self.settings.cache
        market = self.settings.market
        return self._get(
            "prices",
            lambda: PriceCache(
                self.data_store,
                _source(self.settings, "prices"),
                current_policy=MarketHoursTTL(
                    open_hour=market.open_hour,
                    close_hour=market.close_hour,
                    market_window=timedelta(minutes=cache.price_market_hours_minutes),
                    off_hours_window=timedelta(hours=cache.price_off_hours_hours),
                ),
                previous_policy=FixedTTL(timedelta(hours=cache.previous_close_hours)),
            ),
        )

    @property
    def positions(self):
        from signaltrader.trading.positions import PositionLifecycle

        return self._get(
            "positions",
            lambda: PositionLifecycle(self.data_store, self.ledger, self.prices),
        )

    @property
    def oracle(self):
        from signaltrader.agents.oracle import AgentOracle

        agents = self.settings.agents
        return self._get(
            "oracle", lambda: AgentOracle(model=agents.model, fast_model=agents.fast_model)
        )

    def _ticker_extractor(self):
        from signaltrader.agents.extractors import AgentTickerExtractor, CashtagTickerExtractor

        choice = self.settings.sources.ticker_extractor
        options = self.settings.sources.options.get("ticker_extractor", {})
        if choice == "agent":
            return AgentTickerExtractor(self.oracle)
        if choice == "cashtag":
            return CashtagTickerExtractor(**options)
        return load_component(choice, **options)

    @property
    def overviews(self):
        from signaltrader.cache import FixedTTL, OverviewCache

        return self._get(
            "overviews",
            lambda: OverviewCache(
                self.data_store,
                self.prices,
                policy=FixedTTL(timedelta(hours=self.settings.cache.overview_hours)),
            ),
        )

    @property
    def analyses(self):
        from signaltrader.cache import AnalysisCache, FixedTTL

        return self._get(
            "analyses",
            lambda: AnalysisCache(
                self.data_store,
                self.oracle,
                policy=FixedTTL(timedelta(days=self.settings.cache.analysis_days)),
            ),
        )

    @property
    def orchestrator(self):
        from signaltrader.trading.orchestrator import TradingOrchestrator
        from signaltrader.trading.ratelimit import CooldownGate, SqliteCooldownStore

        def build():
            trading = self.settings.trading
            return TradingOrchestrator(
                data_store=self.data_store,
                ledger=self.ledger,
                positions=self.positions,
                prices=self.prices,
                overviews=self.overviews,
                analyses=self.analyses,
                oracle=self.oracle,
                signal_source=_source(self.settings, "signals"),
                ticker_extractor=self._ticker_extractor(),
                document_source=_source(self.settings, "documents"),
                fundamentals_source=_source(self.settings, "fundamentals"),
                cooldown_gate=CooldownGate(
                    SqliteCooldownStore(self.data_store), cooldown=trading.cooldown
                ),
                max_signals_per_run=trading.max_signals_per_run,
                max_tickers_per_signal=trading.max_tickers_per_signal,
            )

        return self._get("orchestrator", build)
