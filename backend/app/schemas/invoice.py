from pydantic import BaseModel
from typing import Optional, List
from datetime import datetime


class Payment(BaseModel):
    id: int
    amount: float
    payment_method: Optional[str]
    verified_by: Optional[str]
    payment_date: datetime

    class Config:
        from_attributes = True


class InvoiceDetail(BaseModel):
    id: str
    invoice_number: Optional[int]
    agent_id: Optional[str]
    customer_id: Optional[str]
    amount: Optional[float]
    amount_eligible_for_comm: Optional[float]
    eligible_amount_description: Optional[str]
    invoice_date: Optional[datetime]
    first_payment_date: Optional[datetime]
    first_payment_amount: Optional[float]
    full_payment_date: Optional[datetime]
    achieved_monthly_anp: Optional[float]
    payments: List[Payment] = []

    class Config:
        from_attributes = True
