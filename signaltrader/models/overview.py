"""Company fundamentals and price data models."""

from typing import Optional

from pydantic import BaseModel, Field


class PriceInfo(BaseModel):
    """Current and previous-close price for a ticker."""

    ticker: str = Field(..., min_length=1, description="Ticker symbol")
    current_price: float = Field(..., ge=0, description="Latest price")
    previous_close: float = Field(..., ge=0, description="Previous session close")

    model_config = {"frozen": True}

    @property
    def change_percent(self) -> float:
        if self.previous_close <= 0:
            return 0.0
        return (self.current_price - self.previous_close) / self.previous_close * 100


class CompanyFundamentals(BaseModel):
    """Slow-moving company fundamentals, cached for a day."""

    symbol: str = Field(..., min_length=1, description="Ticker symbol")
    name: str = Field(default="", description="Company name")
    sector: str = Field(default="", description="Sector")
    industry: str = Field(default="", description="Industry")
    description: str = Field(default="", description="Business description")
    market_capitalization: Optional[float] = Field(default=None, description="Market cap")
    revenue_ttm: Optional[float] = Field(default=None, description="Trailing revenue")
    pe_ratio: Optional[float] = Field(default=None, description="P/E ratio")
    forward_pe: Optional[float] = Field(default=None, description="Forward P/E")
    dividend_yield: Optional[float] = Field(default=None, description="Dividend yield")
    dividend_per_share: Optional[float] = Field(default=None, description="Dividend per share")
    eps: Optional[float] = Field(default=None, description="Earnings per share")
    profit_margin: Optional[float] = Field(default=None, description="Profit margin")
    operating_margin_ttm: Optional[float] = Field(default=None, description="Operating margin")
    week_52_high: Optional[float] = Field(default=None, description="52-week high")
    week_52_low: Optional[float] = Field(default=None, description="52-week low")
    moving_average_50_day: Optional[float] = Field(default=None, description="50-day MA")
    moving_average_200_day: Optional[float] = Field(default=None, description="200-day MA")
    beta: Optional[float] = Field(default=None, description="Beta (volatility)")

    model_config = {"frozen": True}


FUNDAMENTAL_FIELDS = tuple(CompanyFundamentals.model_fields)


class CompanyOverview(BaseModel):
    """Fundamentals combined with live price information."""

    fundamentals: CompanyFundamentals = Field(..., description="Cached fundamentals")
    price: PriceInfo = Field(..., description="Live price information")

    model_config = {"frozen": True}

    @property
    def symbol(self) -> str:
        return self.fundamentals.symbol

    def describe(self) -> str:
        """Render the overview as plain text for oracle prompts."""
        f = self.fundamentals
        lines = [
            f"Symbol: {f.symbol}",
            f"Name: {f.name}",
            f"Sector: {f.sector}",
            f"Industry: {f.industry}",
            f"Description: {f.description}",
            f"Market Capitalization: {f.market_capitalization}",
            f"Revenue (TTM): {f.revenue_ttm}",
            f"P/E Ratio: {f.pe_ratio}",
            f"Forward P/E: {f.forward_pe}",
            f"Dividend Yield: {f.dividend_yield}",
            f"Dividend Per Share: {f.dividend_per_share}",
            f"EPS: {f.eps}",
            f"Profit Margin: {f.profit_margin}",
            f"Operating Margin TTM: {f.operating_margin_ttm}",
            f"Current Price: {self.price.current_price}",
            f"Previous Close: {self.price.previous_close}",
            f"Change: {self.price.change_percent:.2f}%",
            f"52 Week High: {f.week_52_high}",
            f"52 Week Low: {f.week_52_low}",
            f"50 Day Moving Average: {f.moving_average_50_day}",
            f"200 Day Moving Average: {f.moving_average_200_day}",
            f"Beta (Volatility): {f.beta}",
        ]
        return "\n".join(lines)
