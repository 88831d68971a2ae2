"""Signal and filing data models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class Signal(BaseModel):
    """A discussion post that may mention tradable tickers."""

    title: str = Field(..., description="Post title")
    body: str = Field(default="", description="Post content")
    published: Optional[datetime] = Field(default=None, description="Publication time")
    link: str = Field(default="", description="Source URL")

    model_config = {"frozen": True}


class FilingSections(BaseModel):
    """Annual-report sections needed for the analysis pipeline."""

    business: str = Field(default="", description="Business section")
    risk_factors: str = Field(default="", description="Risk factors section")
    mdna: str = Field(default="", description="Management discussion and analysis")

    model_config = {"frozen": True}

    def missing(self) -> list[str]:
        """Names of sections that are empty or whitespace only."""
        return [
            name
            for name in ("business", "risk_factors", "mdna")
            if not getattr(self, name).strip()
        ]


class FilingAnalysis(BaseModel):
    """Oracle-derived analysis of a filing, cached for 30 days."""

    business_overview: str = Field(..., description="Business summary")
    risk_overview: str = Field(..., description="Risk summary")
    full_analysis: str = Field(..., description="Investment-oriented analysis")

    model_config = {"frozen": True}
