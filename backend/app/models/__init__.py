from app.models.user import User, UserRole
from app.models.agent import Agent, AgentType
from app.models.customer import Customer
from app.models.invoice import Invoice
from app.models.payment import Payment
from app.models.commission import (
    CommissionTier, CommissionAdjustment, GeneratedCommissionReport,
)

__all__ = [
    "User",
    "UserRole",
    "Agent",
    "AgentType",
    "Customer",
    "Invoice",
    "Payment",
    "CommissionTier",
    "CommissionAdjustment",
    "GeneratedCommissionReport",
]
