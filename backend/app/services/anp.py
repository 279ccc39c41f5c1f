"""Achieved monthly ANP aggregation.

ANP for an agent and month is the sum of invoice amounts whose first payment
landed in that month. Every invoice in the group carries the same value in
``achieved_monthly_anp``; the bonus tier of the commission calculator reads it.
"""
import logging
from collections import defaultdict
from decimal import Decimal
from typing import Dict, List, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.core.periods import period_bounds, period_of
from app.models.invoice import Invoice
from app.models.payment import Payment
from app.services.money import to_decimal, ZERO

logger = logging.getLogger(__name__)

# Tolerance for the ANP cross-check
ANP_TOLERANCE = Decimal("0.01")


class ANPAggregationService:
    def __init__(self, db: Session):
        self.db = db

    def _payment_totals(self):
        return (
            self.db.query(
                Payment.invoice_id.label("invoice_id"),
                func.sum(Payment.amount).label("payment_sum"),
            )
            .group_by(Payment.invoice_id)
            .subquery()
        )

    def _paid_invoices(self) -> List[Tuple[Invoice, Decimal]]:
        """Invoices with a first payment date and a positive payment sum."""
        totals = self._payment_totals()
        return (
            self.db.query(Invoice, totals.c.payment_sum)
            .join(totals, totals.c.invoice_id == Invoice.id)
            .filter(
                Invoice.first_payment_date.isnot(None),
                totals.c.payment_sum > 0,
            )
            .order_by(Invoice.first_payment_date, Invoice.id)
            .all()
        )

    def recompute_anp(self) -> Dict:
        """Recompute ``achieved_monthly_anp`` for every (agent, first payment month)."""
        rows = self._paid_invoices()

        groups: Dict[Tuple[str, str], List[Invoice]] = defaultdict(list)
        for invoice, _payment_sum in rows:
            if not invoice.agent_id:
                continue
            groups[(invoice.agent_id, period_of(invoice.first_payment_date))].append(invoice)

        updated = 0
        errors: List[Dict] = []

        for (agent_id, month), invoices in groups.items():
            group_key = f"{agent_id}:{month}"
            total = ZERO
            for invoice in invoices:
                amount = to_decimal(invoice.amount)
                if amount is None:
                    errors.append({"identifier": invoice.id, "error": "Missing invoice amount, counted as 0"})
                    continue
                total += amount

            try:
                with self.db.begin_nested():
                    changed = 0
                    for invoice in invoices:
                        if to_decimal(invoice.achieved_monthly_anp) != total:
                            invoice.achieved_monthly_anp = total
                            changed += 1
                updated += changed
            except Exception as e:
                logger.warning(f"ANP update failed for {group_key}: {e}")
                errors.append({"identifier": group_key, "error": str(e)})

        # Invoices that left every group (agent cleared, payments removed) lose their ANP
        grouped_ids = {invoice.id for invoices in groups.values() for invoice in invoices}
        stale = (
            self.db.query(Invoice)
            .filter(Invoice.achieved_monthly_anp.isnot(None))
            .order_by(Invoice.id)
            .all()
        )
        for invoice in stale:
            if invoice.id in grouped_ids:
                continue
            try:
                with self.db.begin_nested():
                    invoice.achieved_monthly_anp = None
                updated += 1
            except Exception as e:
                logger.warning(f"ANP reset failed for invoice {invoice.id}: {e}")
                errors.append({"identifier": invoice.id, "error": str(e)})

        self.db.commit()

        processed_agents = len({agent_id for agent_id, _ in groups})
        logger.info(
            f"ANP recompute: checked={len(rows)}, groups={len(groups)}, "
            f"agents={processed_agents}, updated={updated}, errors={len(errors)}"
        )
        return {
            "message": f"ANP updated for {len(groups)} agent-month combinations",
            "updated_invoices": updated,
            "total_checked": len(rows),
            "processed_agents": processed_agents,
            "agent_month_combinations": len(groups),
            "errors": errors,
        }

    def anp_invoices(self, limit: int = 100, offset: int = 0) -> Dict:
        """Invoices that have received payment, newest first payment first."""
        totals = self._payment_totals()
        query = (
            self.db.query(Invoice, totals.c.payment_sum)
            .join(totals, totals.c.invoice_id == Invoice.id)
            .filter(totals.c.payment_sum > 0)
        )
        total = query.count()
        rows = (
            query.options(joinedload(Invoice.agent), joinedload(Invoice.customer))
            .order_by(Invoice.first_payment_date.desc(), Invoice.id)
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
                    "first_payment_date": inv.first_payment_date,
                    "achieved_monthly_anp": inv.achieved_monthly_anp,
                    "agent_name": inv.agent.name if inv.agent else None,
                    "customer_name": inv.customer.name if inv.customer else None,
                    "payment_sum": payment_sum,
                }
                for inv, payment_sum in rows
            ],
            "total": total,
        }

    def related_invoices(self, invoice_id: str) -> Dict:
        """Return the ANP group of an invoice and whether its stored ANP checks out."""
        invoice = self.db.query(Invoice).filter(Invoice.id == invoice_id).first()
        if not invoice:
            raise LookupError(f"Invoice {invoice_id} not found")
        if not invoice.agent_id or not invoice.first_payment_date:
            raise ValueError("Invoice has no agent or first payment date, it is not part of any ANP group")

        month = period_of(invoice.first_payment_date)
        start, end = period_bounds(month)
        related = (
            self.db.query(Invoice)
            .options(joinedload(Invoice.agent))
            .filter(
                Invoice.agent_id == invoice.agent_id,
                Invoice.first_payment_date >= start,
                Invoice.first_payment_date < end,
            )
            .order_by(Invoice.first_payment_date, Invoice.id)
            .all()
        )

        total_amount = sum((to_decimal(inv.amount) or ZERO for inv in related), ZERO)
        return {
            "invoice_id": invoice.id,
            "agent_id": invoice.agent_id,
            "month": month,
            "invoices": [
                {
                    "id": inv.id,
                    "invoice_number": inv.invoice_number,
                    "agent_name": inv.agent.name if inv.agent else None,
                    "first_payment_date": inv.first_payment_date,
                    "first_payment_amount": inv.first_payment_amount,
                    "amount": inv.amount,
                    "achieved_monthly_anp": inv.achieved_monthly_anp,
                }
                for inv in related
            ],
            "total_amount": total_amount,
            "anp_checked": anp_group_consistent(related, total_amount),
        }


def anp_group_consistent(invoices: List[Invoice], total_amount: Decimal) -> bool:
    """True when every invoice carries the same positive ANP equal to the group total."""
    if not invoices:
        return False
    first_anp = to_decimal(invoices[0].achieved_monthly_anp) or ZERO
    same_anp = all(
        abs((to_decimal(inv.achieved_monthly_anp) or ZERO) - first_anp) < ANP_TOLERANCE
        for inv in invoices
    )
    return same_anp and abs(total_amount - first_anp) < ANP_TOLERANCE and first_anp > 0
