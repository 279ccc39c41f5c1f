"""Commission API — calculator, monthly report, adjustments, generated reports and tiers."""
import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user, require_role
from app.models.user import User
from app.models.commission import CommissionTier as TierModel
from app.schemas.commission import (
    Adjustment, AdjustmentCreate, AdjustmentUpdate,
    CommissionTier, CommissionTierCreate,
    GenerateReportRequest, GeneratedReport,
)
from app.services.commission import (
    CommissionCalculationService, CommissionConfigurationError, validate_schedule,
)
from app.services.commission_report import CommissionReportService
from app.services.commission_pdf import generate_commission_pdf

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/commission", tags=["commission"])


def _config_error(e: CommissionConfigurationError) -> HTTPException:
    logger.error(f"Commission configuration error: {e}")
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))


# ── Calculator & monthly report ─────────────────────────────────────

@router.get("/report")
def commission_report(
    agent: str,
    month: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Basic + bonus commission for an agent on invoices fully paid in the month (YYYY-MM)."""
    try:
        return CommissionCalculationService(db).compute_commission(agent, month)
    except CommissionConfigurationError as e:
        raise _config_error(e)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/monthly-report")
def monthly_report(
    month: str,
    include_blocked: bool = False,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Per-agent invoice count and eligible amount for the month."""
    try:
        return CommissionCalculationService(db).monthly_report(month, include_blocked=include_blocked)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Generated reports ───────────────────────────────────────────────

@router.post("/generate-report")
def generate_report(
    body: GenerateReportRequest,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Compute and store the agent's commission report for the month."""
    require_role(current_user, "admin", "finance")
    try:
        return CommissionReportService(db).generate_report(
            body.agent_id, body.month_period, actor=current_user.username
        )
    except CommissionConfigurationError as e:
        raise _config_error(e)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/reports", response_model=List[GeneratedReport])
def list_reports(
    agent: Optional[str] = None,
    month: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return CommissionReportService(db).report_history(agent_id=agent, month=month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/reports/{report_id}")
def get_report(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return CommissionReportService(db).statement_data(report_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.get("/reports/{report_id}/pdf")
def get_report_pdf(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        statement = CommissionReportService(db).statement_data(report_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))

    pdf_bytes = generate_commission_pdf(statement)
    filename = f"commission_{statement['agent_id']}_{statement['month_period']}.pdf"
    return Response(
        content=pdf_bytes,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/reports/{report_id}/mark-paid", response_model=GeneratedReport)
def mark_report_paid(
    report_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Record that the report's final total was paid out."""
    require_role(current_user, "admin", "finance")
    try:
        return CommissionReportService(db).mark_report_paid(report_id, actor=current_user.username)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


# ── Adjustments ─────────────────────────────────────────────────────

@router.get("/adjustments", response_model=List[Adjustment])
def list_adjustments(
    agent: str,
    month: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    try:
        return CommissionReportService(db).list_adjustments(agent, month)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/adjustments", response_model=Adjustment, status_code=status.HTTP_201_CREATED)
def create_adjustment(
    body: AdjustmentCreate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, "admin", "finance")
    try:
        return CommissionReportService(db).create_adjustment(
            body.agent_id, body.month_period, body.amount, body.description,
            actor=current_user.username,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.put("/adjustments/{adjustment_id}", response_model=Adjustment)
def update_adjustment(
    adjustment_id: int,
    body: AdjustmentUpdate,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, "admin", "finance")
    try:
        return CommissionReportService(db).update_adjustment(
            adjustment_id, actor=current_user.username,
            amount=body.amount, description=body.description,
        )
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.delete("/adjustments/{adjustment_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_adjustment(
    adjustment_id: int,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    require_role(current_user, "admin", "finance")
    try:
        CommissionReportService(db).delete_adjustment(adjustment_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ── Tier schedule ───────────────────────────────────────────────────

@router.get("/tiers", response_model=List[CommissionTier])
def list_commission_tiers(
    schedule_version: Optional[str] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List active bonus tiers, all versions unless one is given."""
    query = db.query(TierModel).filter(TierModel.is_active == True)
    if schedule_version:
        query = query.filter(TierModel.schedule_version == schedule_version)
    return query.order_by(TierModel.schedule_version, TierModel.min_anp).all()


@router.post("/tiers", response_model=CommissionTier, status_code=status.HTTP_201_CREATED)
def create_commission_tier(
    tier_data: CommissionTierCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Add a tier to a schedule version (admin only). The schedule must stay non-decreasing."""
    require_role(current_user, "admin")

    existing = db.query(TierModel).filter(
        TierModel.schedule_version == tier_data.schedule_version,
        TierModel.min_anp == tier_data.min_anp,
    ).first()
    if existing:
        raise HTTPException(status_code=400, detail="A tier with this threshold already exists in the schedule")

    tier = TierModel(**tier_data.model_dump())
    schedule = db.query(TierModel).filter(
        TierModel.schedule_version == tier_data.schedule_version,
        TierModel.is_active == True,
    ).all()
    try:
        validate_schedule(sorted(schedule + [tier], key=lambda t: t.min_anp))
    except CommissionConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.add(tier)
    db.commit()
    db.refresh(tier)
    logger.info(
        f"Tier {tier.schedule_version} from {tier.min_anp} at {tier.bonus_rate} created by {current_user.username}"
    )
    return tier
