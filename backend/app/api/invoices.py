"""Invoices API — payment rescan, ANP aggregation and eligible-commission views."""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session, selectinload

from app.core.database import get_db
from app.core.security import get_current_user, require_role
from app.models.user import User
from app.models.invoice import Invoice
from app.schemas.invoice import InvoiceDetail
from app.services.anp import ANPAggregationService
from app.services.commission import CommissionCalculationService
from app.services.payment_scan import PaymentScanService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/invoices", tags=["invoices"])


@router.get("/fully-paid")
def list_fully_paid_invoices(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    agent: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Invoices whose payments have reached the invoice amount."""
    return PaymentScanService(db).fully_paid_invoices(limit=limit, offset=offset, agent_id=agent)


@router.post("/rescan-payments")
def rescan_payments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Recompute first/full payment dates from recorded payments."""
    require_role(current_user, "admin", "finance")
    logger.info(f"Payment rescan triggered by {current_user.username}")
    return PaymentScanService(db).rescan_payments()


@router.get("/anp-calculator")
def list_anp_invoices(
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Paid invoices with their achieved monthly ANP."""
    return ANPAggregationService(db).anp_invoices(limit=limit, offset=offset)


@router.post("/update-anp")
def update_anp(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Recompute achieved monthly ANP for every agent and first-payment month."""
    require_role(current_user, "admin", "finance")
    logger.info(f"ANP recompute triggered by {current_user.username}")
    return ANPAggregationService(db).recompute_anp()


@router.get("/anp-related")
def anp_related_invoices(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Invoices sharing the agent and first-payment month of ``invoice_id``, with ANP cross-check."""
    try:
        return ANPAggregationService(db).related_invoices(invoice_id)
    except LookupError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.get("/eligible-comm")
def list_eligible_invoices(
    agent: Optional[str] = None,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Invoices with an eligible-for-commission amount, optionally for one agent."""
    return CommissionCalculationService(db).eligible_invoices(agent_id=agent, limit=limit, offset=offset)


@router.get("/{invoice_id}", response_model=InvoiceDetail)
def get_invoice(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    invoice = (
        db.query(Invoice)
        .options(selectinload(Invoice.payments))
        .filter(Invoice.id == invoice_id)
        .first()
    )
    if not invoice:
        raise HTTPException(status_code=404, detail="Invoice not found")
    return invoice
