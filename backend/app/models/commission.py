from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Boolean, Text, JSON, UniqueConstraint,
)
from sqlalchemy.sql import func
from app.core.database import Base


class CommissionTier(Base):
    """One step of a bonus schedule keyed on achieved monthly ANP.

    Tiers sharing a ``schedule_version`` form one schedule; the version in
    settings selects the active one so older reports keep their meaning.
    """
    __tablename__ = "commission_tiers"
    __table_args__ = (
        UniqueConstraint("schedule_version", "min_anp", name="uq_commission_tier_version_min"),
    )

    id = Column(Integer, primary_key=True, index=True)

    schedule_version = Column(String, nullable=False, index=True)  # e.g. "2024-01"
    min_anp = Column(Numeric(14, 2), nullable=False)  # tier applies from this ANP upwards
    bonus_rate = Column(Numeric(5, 4), nullable=False)  # e.g. 0.0200 for 2%

    description = Column(String, nullable=True)
    is_active = Column(Boolean, default=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class CommissionAdjustment(Base):
    """Manual signed line item added on top of an agent's computed commission for a month."""
    __tablename__ = "commission_adjustments"

    id = Column(Integer, primary_key=True, index=True)

    agent_id = Column(String, nullable=False, index=True)
    month_period = Column(String, nullable=False, index=True)  # Format: "2024-01"

    amount = Column(Numeric(12, 2), nullable=False)
    description = Column(Text, nullable=False)

    created_by = Column(String, nullable=False)
    updated_by = Column(String, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class GeneratedCommissionReport(Base):
    """Snapshot of what an agent is owed for a month, and whether it was paid."""
    __tablename__ = "generated_commission_reports"
    __table_args__ = (
        UniqueConstraint("agent_id", "month_period", name="uq_generated_report_agent_month"),
    )

    id = Column(Integer, primary_key=True, index=True)

    agent_id = Column(String, nullable=False, index=True)
    month_period = Column(String, nullable=False, index=True)

    # Agent info snapshot
    agent_name = Column(String, nullable=False)
    agent_type = Column(String, nullable=True)

    # Contributing invoices
    invoices_count = Column(Integer, default=0)
    invoice_ids = Column(JSON, nullable=True)

    # Totals
    total_basic_commission = Column(Numeric(12, 2), default=0)
    total_bonus_commission = Column(Numeric(12, 2), default=0)
    total_adjustments = Column(Numeric(12, 2), default=0)
    final_total_commission = Column(Numeric(12, 2), default=0)

    # Rules in force when generated
    basic_rate = Column(Numeric(5, 4), nullable=True)
    tier_schedule_version = Column(String, nullable=True)

    generated_by = Column(String, nullable=True)
    generated_at = Column(DateTime(timezone=True), nullable=True)

    # Payout status, never touched by regeneration
    is_paid = Column(Boolean, default=False, nullable=False)
    paid_by = Column(String, nullable=True)
    paid_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
