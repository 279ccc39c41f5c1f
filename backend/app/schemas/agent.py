from pydantic import BaseModel
from typing import Optional
from app.models.agent import AgentType


class Agent(BaseModel):
    id: str
    name: str
    contact: Optional[str]
    agent_type: Optional[str]

    class Config:
        from_attributes = True


class AgentTypeUpdate(BaseModel):
    # None clears the classification
    agent_type: Optional[AgentType] = None
