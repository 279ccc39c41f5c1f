from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from app.core.database import Base
import enum


class AgentType(str, enum.Enum):
    INTERNAL = "internal"
    OUTSOURCE = "outsource"
    BLOCKED = "blocked"


class Agent(Base):
    __tablename__ = "agents"

    # Opaque identifier assigned by the upstream sync
    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    contact = Column(String, nullable=True)

    # internal / outsource / blocked, NULL until classified
    agent_type = Column(String, nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    invoices = relationship("Invoice", back_populates="agent")
