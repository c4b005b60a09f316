"""Performance refund schemas"""

from typing import Optional

from pydantic import BaseModel, Field


class QualityRatingRequest(BaseModel):
    stars: int = Field(ge=0, le=5)


class RefundResult(BaseModel):
    success: bool
    message: str
    refundAmount: Optional[float] = None


class StarLevelSummary(BaseModel):
    starLevel: int
    count: int
    amount: float


class RefundSummaryResponse(BaseModel):
    totalRefunds: int
    totalAmount: float
    byStarLevel: list[StarLevelSummary]


class RefundSettingResponse(BaseModel):
    starLevel: int
    refundPercentage: float
    description: Optional[str] = None
    isActive: bool
