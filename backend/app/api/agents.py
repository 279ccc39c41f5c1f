"""Agents API — list agents and set their classification."""
import logging
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user, require_role
from app.models.user import User
from app.models.agent import Agent, AgentType
from app.schemas.agent import Agent as AgentSchema, AgentTypeUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/agents", tags=["agents"])


@router.get("/list")
def list_agents(
    include_blocked: bool = True,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    query = db.query(Agent)
    if not include_blocked:
        query = query.filter(
            or_(Agent.agent_type.is_(None), Agent.agent_type != AgentType.BLOCKED.value)
        )
    agents = query.order_by(Agent.name).all()
    return {
        "agents": [AgentSchema.model_validate(a).model_dump() for a in agents],
        "total": len(agents),
    }


@router.put("/{agent_id}/type", response_model=AgentSchema)
def update_agent_type(
    agent_id: str,
    body: AgentTypeUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Reclassify an agent. Generated reports keep the type captured when they were generated."""
    require_role(current_user, "admin")

    agent = db.query(Agent).filter(Agent.id == agent_id).first()
    if not agent:
        raise HTTPException(status_code=404, detail="Agent not found")

    previous = agent.agent_type
    agent.agent_type = body.agent_type.value if body.agent_type else None
    db.commit()
    db.refresh(agent)

    logger.info(f"Agent {agent_id} type {previous} -> {agent.agent_type} by {current_user.username}")
    return agent
