"""Parsers that turn free-form agent output into validated models."""

import json
import re
from typing import Any, Optional

from pydantic import ValidationError

from signaltrader.errors import DecisionParseError
from signaltrader.models import SentimentJudgment, TradeDecision
from signaltrader.models.decision import SentimentLabel

# Keys agents sometimes emit in place of the model field names
DECISION_ALIASES = {
    "decision": "direction",
    "amountToInvest": "amount_to_invest",
    "suggestedLeverage": "leverage",
    "startDate": "start_date",
    "endDate": "end_date",
    "stopLoss": "stop_loss_pct",
    "takeProfit": "take_profit_pct",
    "confidenceLevel": "confidence",
    "stop_loss": "stop_loss_pct",
    "take_profit": "take_profit_pct",
}

NO_TRADE_MARKERS = ("no trade", "no_trade", "none", "hold", "neutral")

BULLISH_KEYWORDS = [
    "surge", "rally", "gain", "rise", "jump", "soar", "bullish",
    "upgrade", "buy", "outperform", "beat", "strong", "growth",
    "profit", "dividend", "expansion", "acquisition", "positive",
    "record high", "breakout", "momentum", "upside",
]

BEARISH_KEYWORDS = [
    "fall", "drop", "decline", "plunge", "crash", "bearish",
    "downgrade", "sell", "underperform", "miss", "weak", "loss",
    "cut", "layoff", "debt", "negative", "concern", "risk",
    "record low", "breakdown", "downside", "warning",
]

_SENTIMENT_LABEL = re.compile(r"SENTIMENT\s*:\s*\**\s*(bullish|bearish|neutral)", re.IGNORECASE)
_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)
_TICKER = re.compile(r"[A-Z]{1,5}")


def classify_sentiment(text: str) -> tuple[SentimentLabel, float]:
    """Keyword-based sentiment classification.

    Args:
        text: Text to analyze.

    Returns:
        Tuple of (sentiment, confidence).
    """
    text_lower = text.lower()

    bullish_count = sum(1 for kw in BULLISH_KEYWORDS if kw in text_lower)
    bearish_count = sum(1 for kw in BEARISH_KEYWORDS if kw in text_lower)

    if bullish_count > bearish_count:
        return "bullish", round(min(0.9, 0.5 + (bullish_count - bearish_count) * 0.1), 2)
    if bearish_count > bullish_count:
        return "bearish", round(min(0.9, 0.5 + (bearish_count - bullish_count) * 0.1), 2)
    return "neutral", 0.5


def parse_sentiment(text: str) -> SentimentJudgment:
    """Parse a sentiment response.

    An explicit ``SENTIMENT: <label>`` line wins; otherwise the keyword
    classifier decides.
    """
    match = _SENTIMENT_LABEL.search(text)
    if match:
        label = match.group(1).lower()
    else:
        label, _ = classify_sentiment(text)
    return SentimentJudgment(label=label, reasoning=text.strip())


def _extract_json(text: str) -> Any:
    stripped = text.strip()
    if stripped.startswith("```"):
        stripped = re.sub(r"^```[a-zA-Z]*\s*|\s*```$", "", stripped)
    try:
        return json.loads(stripped)
    except json.JSONDecodeError:
        match = _JSON_OBJECT.search(stripped)
        if not match:
            raise DecisionParseError(f"No JSON object in decision output: {text[:200]!r}")
        try:
            return json.loads(match.group(0))
        except json.JSONDecodeError as e:
            raise DecisionParseError(f"Malformed decision JSON: {e}") from e


def parse_decision(text: str) -> Optional[TradeDecision]:
    """Parse a trading decision response.

    Args:
        text: Agent output, expected to contain one JSON object.

    Returns:
        The validated decision, or None when the agent proposes no trade.

    Raises:
        DecisionParseError: If the output is not valid JSON, has no direction or fails
            validation (direction, leverage 1-10, stop loss 1-50,
            take profit 1-100, confidence 0-1).
    """
    if text.strip().lower().strip(".\"'") in NO_TRADE_MARKERS:
        return None

    data = _extract_json(text)
    if data is None:
        return None
    if not isinstance(data, dict):
        raise DecisionParseError("Decision output is not a JSON object")

    data = {DECISION_ALIASES.get(key, key): value for key, value in data.items()}

    if "direction" not in data:
        raise DecisionParseError("Decision output has no direction")

    direction = data["direction"]
    if direction is None or str(direction).strip().lower() in NO_TRADE_MARKERS:
        return None
    data["direction"] = str(direction).strip().capitalize()

    try:
        return TradeDecision.model_validate(data)
    except ValidationError as e:
        raise DecisionParseError(f"Invalid trade decision: {e}") from e


def parse_ticker_list(text: str) -> list[str]:
    """Parse a comma-separated ticker list, dropping anything not ticker-shaped."""
    if "no tickers" in text.lower():
        return []
    tickers = []
    for part in text.split(","):
        ticker = part.strip().strip("$").strip().upper()
        if _TICKER.fullmatch(ticker) and ticker not in tickers:
            tickers.append(ticker)
    return tickers
