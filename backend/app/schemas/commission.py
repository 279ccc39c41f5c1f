from pydantic import BaseModel, Field, field_validator
from typing import Optional, List
from datetime import datetime
from decimal import Decimal


class CommissionTierBase(BaseModel):
    schedule_version: str = Field(..., min_length=1)
    min_anp: Decimal = Field(..., ge=0)
    bonus_rate: Decimal = Field(..., ge=0, le=1)
    description: Optional[str] = None


class CommissionTierCreate(CommissionTierBase):
    pass


class CommissionTier(BaseModel):
    id: int
    schedule_version: str
    min_anp: float
    bonus_rate: float
    description: Optional[str]
    is_active: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class AdjustmentCreate(BaseModel):
    agent_id: str
    month_period: str  # Format: "YYYY-MM"
    amount: Decimal
    description: str = Field(..., min_length=1)

    @field_validator("amount")
    @classmethod
    def amount_not_zero(cls, v):
        if v == 0:
            raise ValueError("amount must be non-zero")
        return v


class AdjustmentUpdate(BaseModel):
    amount: Optional[Decimal] = None
    description: Optional[str] = None


class Adjustment(BaseModel):
    id: int
    agent_id: str
    month_period: str
    amount: float
    description: str
    created_by: str
    updated_by: Optional[str]
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class GenerateReportRequest(BaseModel):
    agent_id: str
    month_period: str  # Format: "YYYY-MM"


class GeneratedReport(BaseModel):
    id: int
    agent_id: str
    agent_name: str
    agent_type: Optional[str]
    month_period: str
    invoices_count: int
    invoice_ids: Optional[List[str]]
    total_basic_commission: float
    total_bonus_commission: float
    total_adjustments: float
    final_total_commission: float
    basic_rate: Optional[float]
    tier_schedule_version: Optional[str]
    generated_by: Optional[str]
    generated_at: Optional[datetime]
    is_paid: bool
    paid_by: Optional[str]
    paid_at: Optional[datetime]

    class Config:
        from_attributes = True
