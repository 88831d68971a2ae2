"""Oracle interface and its OpenAI Agents implementation.

The oracle is the only component that turns text into judgements: filing
summaries, sentiment, the trade decision itself and human-readable
explanations. Everything it returns that the engine acts on is parsed and
validated before use.
"""

import json
import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Optional

from agents import Agent

from signaltrader.agents.base import create_agent, run_agent_sync
from signaltrader.agents.parsing import parse_decision, parse_sentiment
from signaltrader.models import (
    ClosedPosition,
    CompanyOverview,
    FilingAnalysis,
    SentimentJudgment,
    Signal,
    TradeDecision,
)

logger = logging.getLogger(__name__)


class Oracle(ABC):
    """Text-in, judgement-out service used by the trading engine."""

    @abstractmethod
    def summarize_business(self, business: str) -> str:
        """Business overview from the filing's Business section."""
        pass

    @abstractmethod
    def summarize_risks(self, risk_factors: str, business_overview: str) -> str:
        """Company-specific risk summary from the Risk Factors section."""
        pass

    @abstractmethod
    def analyze_filing(self, mdna: str, business_overview: str, risk_overview: str) -> str:
        """Investment-oriented analysis combining MD&A with the two summaries."""
        pass

    @abstractmethod
    def judge_sentiment(
        self, signal: Signal, analysis: FilingAnalysis, overview: CompanyOverview
    ) -> SentimentJudgment:
        """Sentiment about the company mentioned in a signal."""
        pass

    @abstractmethod
    def decide(
        self, sentiment: SentimentJudgment, available_cash: float, today: date
    ) -> Optional[TradeDecision]:
        """Propose a trade, or None for no trade.

        Raises:
            DecisionParseError: If the proposal cannot be validated.
        """
        pass

    @abstractmethod
    def explain_trade(self, decision: TradeDecision, ticker: str) -> str:
        """Short human-readable explanation of an executed trade."""
        pass

    @abstractmethod
    def review_closures(self, closed: list[ClosedPosition]) -> str:
        """Short narrative review of recently closed positions."""
        pass


TICKER_INSTRUCTIONS = """You are a financial assistant. Extract the stock tickers of the \
companies mentioned in a discussion post.
Return the tickers in a comma-separated format, without any additional text or explanation.
If no tickers are mentioned, return "No tickers found"."""

BUSINESS_INSTRUCTIONS = """You are a financial analyst. Given the Business section of a \
company's annual report, write a complete business overview of the company."""

RISK_INSTRUCTIONS = """You are a financial analyst. Given a business overview and the Risk \
Factors section of that company's annual report, summarize the risk factors concisely.
Ignore generic boilerplate risks that apply to all companies (general economic conditions, \
cybersecurity, legal compliance) and focus on risks that are specific, detailed or unusually \
emphasized for this company."""

ANALYSIS_INSTRUCTIONS = """You are a financial analyst reviewing a company based on its \
annual report. Produce a comprehensive investment-oriented summary including:
1. Key business model insights
2. Strategic goals and priorities
3. Strengths and weaknesses (backed by numbers)
4. Major risks and challenges (ignore generic ones)
5. Opportunities for future growth
6. Overall company outlook

Use bullet points where helpful. Focus on specifics. Include relevant financial figures \
if mentioned. Think like an investor."""

SENTIMENT_INSTRUCTIONS = """You are a market analyst. Determine your sentiment about a \
company from a filing analysis, the company overview and its price information. The \
discussion post is additional context, not the primary source.
Explain your reasoning clearly and objectively. Do not add a disclaimer.
End your answer with a line of the form "SENTIMENT: bullish", "SENTIMENT: bearish" or \
"SENTIMENT: neutral"."""

DECISION_INSTRUCTIONS = """You are a trading assistant. Based on the sentiment provided, \
make a trading decision. Respond with a single JSON object and nothing else:
{
  "direction": "Long" | "Short",
  "amount_to_invest": number (USD, not more than the available cash),
  "leverage": integer 1-10,
  "start_date": "YYYY-MM-DD",
  "end_date": "YYYY-MM-DD",
  "stop_loss_pct": number 1-50,
  "take_profit_pct": number 1-100,
  "summary": "1-2 sentences justifying the decision",
  "confidence": number 0-1
}
If the sentiment is neutral or there is no clear opportunity, respond with {"direction": null}."""

EXPLAIN_INSTRUCTIONS = """You are the spokesperson of a trading desk. Explain a trading \
decision in at most two sentences, in a confident tone. Write nothing else."""

REVIEW_INSTRUCTIONS = """You are the head of a trading desk. In under 50 words, review a \
list of closed positions: what went well, what went badly and the lesson for next time. \
Write nothing else."""


class AgentOracle(Oracle):
    """Oracle backed by the OpenAI Agents SDK, one agent per concern."""

    def __init__(self, model: Optional[str] = None, fast_model: Optional[str] = None):
        """Initialize the oracle agents.

        Args:
            model: Model for the filing analysis and decision agents.
            fast_model: Model for the short-form agents. Defaults to ``model``.
        """
        fast = fast_model or model
        self.business_agent = create_agent("Business Analyst", BUSINESS_INSTRUCTIONS, model)
        self.risk_agent = create_agent("Risk Analyst", RISK_INSTRUCTIONS, model)
        self.analysis_agent = create_agent("Filing Analyst", ANALYSIS_INSTRUCTIONS, model)
        self.sentiment_agent = create_agent("Sentiment Analyst", SENTIMENT_INSTRUCTIONS, fast)
        self.decision_agent = create_agent("Trader", DECISION_INSTRUCTIONS, model)
        self.explain_agent = create_agent("Trade Explainer", EXPLAIN_INSTRUCTIONS, fast)
        self.review_agent = create_agent("Trade Reviewer", REVIEW_INSTRUCTIONS, fast)
        self.ticker_agent = create_agent("Ticker Extractor", TICKER_INSTRUCTIONS, fast)

    def _ask(self, agent: Agent, message: str) -> str:
        return run_agent_sync(agent, message).strip()

    def summarize_business(self, business: str) -> str:
        return self._ask(
            self.business_agent,
            f"Business section:\n{business}",
        )

    def summarize_risks(self, risk_factors: str, business_overview: str) -> str:
        return self._ask(
            self.risk_agent,
            f"Business overview:\n{business_overview}\n\n"
            f"Risk Factors section:\n{risk_factors}",
        )

    def analyze_filing(self, mdna: str, business_overview: str, risk_overview: str) -> str:
        return self._ask(
            self.analysis_agent,
            f"Business overview:\n{business_overview}\n\n"
            f"Risk factors:\n{risk_overview}\n\n"
            f"MD&A:\n{mdna}",
        )

    def judge_sentiment(
        self, signal: Signal, analysis: FilingAnalysis, overview: CompanyOverview
    ) -> SentimentJudgment:
        published = signal.published.isoformat() if signal.published else "unknown"
        message = (
            f"Discussion post:\nTitle: {signal.title}\nDate: {published}\n"
            f"Content: {signal.body}\nEND OF POST\n\n"
            f"Filing analysis of {overview.symbol}:\n{analysis.full_analysis}\n\n"
            f"{overview.describe()}"
        )
        judgment = parse_sentiment(self._ask(self.sentiment_agent, message))
        logger.info("Sentiment for %s: %s", overview.symbol, judgment.label)
        return judgment

    def decide(
        self, sentiment: SentimentJudgment, available_cash: float, today: date
    ) -> Optional[TradeDecision]:
        message = (
            f"Today is {today.isoformat()}.\n"
            f"You have {available_cash:.2f} USD available to invest.\n"
            f"Sentiment ({sentiment.label}):\n{sentiment.reasoning}"
        )
        return parse_decision(self._ask(self.decision_agent, message))

    def explain_trade(self, decision: TradeDecision, ticker: str) -> str:
        details = json.dumps(decision.model_dump(mode="json"), indent=2)
        return self._ask(
            self.explain_agent,
            f"Ticker: {ticker}\nDecision:\n{details}",
        )

    def review_closures(self, closed: list[ClosedPosition]) -> str:
        lines = "\n".join(
            f"{c.ticker} {c.direction} x{c.leverage}: invested {c.amount_invested:.2f}, "
            f"entry {c.entry_price:.2f}, close {c.close_price:.2f}, "
            f"P&L {c.formatted_pnl}, reason {c.close_reason}, "
            f"{c.open_date} to {c.close_date}"
            for c in closed
        )
        return self._ask(self.review_agent, f"Closed positions:\n{lines}")

    def extract_tickers(self, signal: Signal) -> str:
        """Raw ticker list response for a signal."""
        published = signal.published.isoformat() if signal.published else "unknown"
        return self._ask(
            self.ticker_agent,
            f"Title: {signal.title}\nDate: {published}\nContent: {signal.body}\nEND OF POST",
        )
