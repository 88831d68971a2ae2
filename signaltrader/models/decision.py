"""Oracle decision data models."""

from datetime import date
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from signaltrader.models.position import Direction

SentimentLabel = Literal["bullish", "bearish", "neutral"]


class SentimentJudgment(BaseModel):
    """The oracle's sentiment about a ticker."""

    label: SentimentLabel = Field(..., description="Sentiment classification")
    reasoning: str = Field(..., description="Free-text reasoning behind the label")

    model_config = {"frozen": True}

    @property
    def is_neutral(self) -> bool:
        return self.label == "neutral"


class TradeDecision(BaseModel):
    """A structured trade proposal returned by the oracle."""

    direction: Direction = Field(..., description="Long or Short")
    amount_to_invest: float = Field(..., gt=0, description="Cash to commit")
    leverage: int = Field(..., ge=1, le=10, description="Leverage multiplier")
    start_date: date = Field(..., description="Position start date")
    end_date: date = Field(..., description="Target close date")
    stop_loss_pct: float = Field(..., ge=1, le=50, description="Stop loss (%)")
    take_profit_pct: float = Field(..., ge=1, le=100, description="Take profit (%)")
    summary: str = Field(default="", description="Short justification")
    confidence: float = Field(..., ge=0, le=1, description="Confidence level")

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def _end_after_start(self) -> "TradeDecision":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not precede start_date")
        return self
