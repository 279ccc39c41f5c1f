from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    # Opaque identifier assigned by the upstream sync
    id = Column(String, primary_key=True, index=True)
    invoice_number = Column(Integer, nullable=True, index=True)

    agent_id = Column(String, ForeignKey("agents.id"), nullable=True, index=True)
    customer_id = Column(String, ForeignKey("customers.id"), nullable=True, index=True)

    # Amounts
    amount = Column(Numeric(12, 2), nullable=True)
    amount_eligible_for_comm = Column(Numeric(12, 2), nullable=True)  # may differ from amount
    eligible_amount_description = Column(Text, nullable=True)

    # Payment milestones (derived from payments by the payment scanner)
    invoice_date = Column(DateTime(timezone=True), nullable=True)
    first_payment_date = Column(DateTime(timezone=True), nullable=True, index=True)
    first_payment_amount = Column(Numeric(12, 2), nullable=True)
    full_payment_date = Column(DateTime(timezone=True), nullable=True, index=True)

    # Sum of amounts for the same agent + first payment month, NULL until computed
    achieved_monthly_anp = Column(Numeric(14, 2), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    agent = relationship("Agent", back_populates="invoices")
    customer = relationship("Customer", back_populates="invoices")
    payments = relationship(
        "Payment",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="Payment.payment_date",
    )
