"""Derive first-payment and full-payment milestones from recorded payments.

An invoice is fully paid once the running total of its payments (in payment
date order) reaches the invoice amount; the payment that crosses the line
gives the full-payment date.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session, selectinload, joinedload

from app.models.invoice import Invoice
from app.services.money import to_decimal, ZERO

logger = logging.getLogger(__name__)


def payment_milestones(amount, payments) -> Dict:
    """Return first/full payment info for an invoice amount and its payments."""
    ordered = sorted(payments, key=lambda p: (p.payment_date, p.id or 0))
    first = ordered[0] if ordered else None
    running = ZERO
    full_payment_date = None
    for payment in ordered:
        running += to_decimal(payment.amount) or ZERO
        if running >= amount:
            full_payment_date = payment.payment_date
            break
    return {
        "first_payment_date": first.payment_date if first else None,
        "first_payment_amount": to_decimal(first.amount) if first else None,
        "full_payment_date": full_payment_date,
        "payment_sum": sum((to_decimal(p.amount) or ZERO for p in ordered), ZERO),
    }


class PaymentScanService:
    def __init__(self, db: Session):
        self.db = db

    def rescan_payments(self) -> Dict:
        """Recompute payment milestones for invoices with payments or stale milestones.

        An invoice whose payments are all gone has its milestones cleared.
        """
        invoices = (
            self.db.query(Invoice)
            .filter(
                or_(
                    Invoice.payments.any(),
                    Invoice.first_payment_date.isnot(None),
                    Invoice.first_payment_amount.isnot(None),
                    Invoice.full_payment_date.isnot(None),
                )
            )
            .options(selectinload(Invoice.payments))
            .order_by(Invoice.id)
            .all()
        )

        updated = 0
        errors: List[Dict] = []

        for invoice in invoices:
            amount = to_decimal(invoice.amount)
            if invoice.payments and (amount is None or amount <= 0):
                errors.append({"identifier": invoice.id, "error": "Invoice amount missing or not positive"})
                continue

            try:
                with self.db.begin_nested():
                    milestones = payment_milestones(amount or ZERO, invoice.payments)
                    changed = self._apply(invoice, milestones)
                if changed:
                    updated += 1
            except Exception as e:
                logger.warning(f"Payment rescan failed for invoice {invoice.id}: {e}")
                errors.append({"identifier": invoice.id, "error": str(e)})

        self.db.commit()
        logger.info(
            f"Payment rescan: checked={len(invoices)}, updated={updated}, errors={len(errors)}"
        )
        return {
            "message": f"Rescanned {len(invoices)} invoices, updated {updated}",
            "updated_invoices": updated,
            "total_checked": len(invoices),
            "errors": errors,
        }

    @staticmethod
    def _apply(invoice: Invoice, milestones: Dict) -> bool:
        changed = False
        for field in ("first_payment_date", "first_payment_amount", "full_payment_date"):
            if getattr(invoice, field) != milestones[field]:
                setattr(invoice, field, milestones[field])
                changed = True
        return changed

    def fully_paid_invoices(self, limit: int = 100, offset: int = 0, agent_id: Optional[str] = None) -> Dict:
        query = self.db.query(Invoice).filter(Invoice.full_payment_date.isnot(None))
        if agent_id:
            query = query.filter(Invoice.agent_id == agent_id)
        total = query.count()
        invoices = (
            query.options(joinedload(Invoice.customer), joinedload(Invoice.agent))
            .order_by(Invoice.full_payment_date.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )
        return {
            "invoices": [
                {
                    "id": inv.id,
                    "invoice_number": inv.invoice_number,
                    "amount": inv.amount,
                    "invoice_date": inv.invoice_date,
                    "full_payment_date": inv.full_payment_date,
                    "customer_name": inv.customer.name if inv.customer else None,
                    "agent_name": inv.agent.name if inv.agent else None,
                }
                for inv in invoices
            ],
            "total": total,
        }
