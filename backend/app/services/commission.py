"""Commission calculation.

1. ANP (see ``app.services.anp``) is grouped by FIRST payment month
2. Commission is earned in the month the invoice became FULLY paid
3. Basic commission is a flat rate on the eligible amount
4. Bonus commission rate steps up with the invoice's achieved monthly ANP
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.core.periods import period_bounds
from app.models.agent import Agent, AgentType
from app.models.commission import CommissionTier, GeneratedCommissionReport
from app.models.invoice import Invoice
from app.services.money import money, to_decimal, ZERO

logger = logging.getLogger(__name__)


class CommissionConfigurationError(Exception):
    """The commission rules needed for a calculation are missing or inconsistent."""


def bonus_rate_for_anp(tiers: List[CommissionTier], anp: Decimal) -> Decimal:
    """Rate of the highest tier whose threshold the ANP reaches (tiers sorted by min_anp)."""
    rate = ZERO
    for tier in tiers:
        if anp >= tier.min_anp:
            rate = to_decimal(tier.bonus_rate)
        else:
            break
    return rate


def validate_schedule(tiers: List[CommissionTier]) -> None:
    previous = None
    for tier in tiers:
        if tier.bonus_rate is None or tier.bonus_rate < 0:
            raise CommissionConfigurationError(f"Tier from {tier.min_anp} has an invalid bonus rate")
        if previous is not None and tier.bonus_rate < previous.bonus_rate:
            raise CommissionConfigurationError(
                f"Bonus rate decreases from {previous.bonus_rate} to {tier.bonus_rate} "
                f"at ANP {tier.min_anp}; tier rates must not decrease"
            )
        previous = tier


class CommissionCalculationService:
    def __init__(
        self,
        db: Session,
        basic_rate: Optional[Decimal] = None,
        schedule_version: Optional[str] = None,
    ):
        self.db = db
        self.basic_rate = to_decimal(basic_rate if basic_rate is not None else settings.COMMISSION_BASIC_RATE)
        self.schedule_version = schedule_version or settings.COMMISSION_TIER_SCHEDULE

    def get_tier_schedule(self) -> List[CommissionTier]:
        """Active tiers of the configured schedule version, lowest threshold first."""
        tiers = (
            self.db.query(CommissionTier)
            .filter(
                CommissionTier.is_active == True,
                CommissionTier.schedule_version == self.schedule_version,
            )
            .order_by(CommissionTier.min_anp)
            .all()
        )
        if not tiers:
            raise CommissionConfigurationError(
                f"No commission tier schedule configured for version {self.schedule_version}"
            )
        validate_schedule(tiers)
        return tiers

    def calculate_invoice_commission(self, invoice: Invoice, tiers: List[CommissionTier], errors: List[Dict]) -> Dict:
        """Basic + bonus commission for one fully paid invoice."""
        eligible = to_decimal(invoice.amount_eligible_for_comm)
        if eligible is None:
            errors.append({"identifier": invoice.id, "error": "Missing eligible amount, counted as 0"})
            eligible = ZERO
        elif eligible < 0:
            errors.append({"identifier": invoice.id, "error": f"Negative eligible amount {eligible}, counted as 0"})
            eligible = ZERO

        anp = to_decimal(invoice.achieved_monthly_anp)
        if anp is None:
            errors.append({"identifier": invoice.id, "error": "Achieved monthly ANP not computed, no bonus applied"})
            bonus_rate = ZERO
        else:
            bonus_rate = bonus_rate_for_anp(tiers, anp)

        basic = money(eligible * self.basic_rate)
        bonus = money(eligible * bonus_rate)
        return {
            "id": invoice.id,
            "invoice_number": invoice.invoice_number,
            "customer_name": invoice.customer.name if invoice.customer else None,
            "full_payment_date": invoice.full_payment_date,
            "amount": invoice.amount,
            "amount_eligible_for_comm": eligible,
            "eligible_amount_description": invoice.eligible_amount_description,
            "achieved_monthly_anp": invoice.achieved_monthly_anp,
            "basic_rate": self.basic_rate,
            "bonus_rate": bonus_rate,
            "basic_commission": basic,
            "bonus_commission": bonus,
            "total_commission": basic + bonus,
        }

    def compute_commission(self, agent_id: str, month: str) -> Dict:
        """Commission for an agent on invoices fully paid during ``month``."""
        start, end = period_bounds(month)
        tiers = self.get_tier_schedule()

        invoices = (
            self.db.query(Invoice)
            .options(joinedload(Invoice.customer))
            .filter(
                Invoice.agent_id == agent_id,
                Invoice.full_payment_date >= start,
                Invoice.full_payment_date < end,
            )
            .order_by(Invoice.full_payment_date, Invoice.id)
            .all()
        )

        errors: List[Dict] = []
        lines = [self.calculate_invoice_commission(inv, tiers, errors) for inv in invoices]

        total_basic = sum((l["basic_commission"] for l in lines), ZERO)
        total_bonus = sum((l["bonus_commission"] for l in lines), ZERO)

        if errors:
            logger.warning(f"Commission for {agent_id} {month}: {len(errors)} invoice issue(s)")

        return {
            "agent_id": agent_id,
            "month": month,
            "tier_schedule_version": self.schedule_version,
            "basic_rate": self.basic_rate,
            "invoices": lines,
            "total_eligible_amount": sum((l["amount_eligible_for_comm"] for l in lines), ZERO),
            "total_basic_commission": total_basic,
            "total_bonus_commission": total_bonus,
            "total_commission": total_basic + total_bonus,
            "errors": errors,
        }

    def monthly_report(self, month: str, include_blocked: bool = False) -> Dict:
        """Eligible amount and invoice count per agent for invoices fully paid in ``month``."""
        start, end = period_bounds(month)
        eligible = func.coalesce(Invoice.amount_eligible_for_comm, 0)
        positive_eligible = case((eligible > 0, eligible), else_=0)

        query = (
            self.db.query(
                Agent.id,
                Agent.name,
                Agent.agent_type,
                func.count(Invoice.id).label("invoice_count"),
                func.sum(positive_eligible).label("total_eligible_amount"),
            )
            .join(Invoice, Invoice.agent_id == Agent.id)
            .filter(
                Invoice.full_payment_date >= start,
                Invoice.full_payment_date < end,
            )
        )
        if not include_blocked:
            query = query.filter(
                or_(Agent.agent_type.is_(None), Agent.agent_type != AgentType.BLOCKED.value)
            )
        rows = (
            query.group_by(Agent.id, Agent.name, Agent.agent_type)
            .order_by(Agent.name)
            .all()
        )

        reports = {
            r.agent_id: r
            for r in self.db.query(GeneratedCommissionReport)
            .filter(GeneratedCommissionReport.month_period == month)
            .all()
        }

        agents = []
        for agent_id, name, agent_type, invoice_count, total_eligible in rows:
            report = reports.get(agent_id)
            agents.append({
                "agent_id": agent_id,
                "agent_name": name,
                "agent_type": agent_type,
                "invoice_count": invoice_count,
                "total_eligible_amount": money(total_eligible),
                "report_id": report.id if report else None,
                "is_paid": bool(report and report.is_paid),
            })

        return {
            "month": month,
            "agents": agents,
            "total_invoices": sum(a["invoice_count"] for a in agents),
            "total_eligible_amount": sum((a["total_eligible_amount"] for a in agents), ZERO),
        }

    def eligible_invoices(self, agent_id: Optional[str] = None, limit: int = 100, offset: int = 0) -> Dict:
        """Invoices carrying an eligible-for-commission amount."""
        query = self.db.query(Invoice).filter(Invoice.amount_eligible_for_comm.isnot(None))
        if agent_id:
            query = query.filter(Invoice.agent_id == agent_id)
        total = query.count()
        invoices = (
            query.options(joinedload(Invoice.agent), joinedload(Invoice.customer))
            .order_by(Invoice.created_at.desc(), Invoice.id)
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
                    "amount_eligible_for_comm": inv.amount_eligible_for_comm,
                    "amount_difference": (to_decimal(inv.amount_eligible_for_comm) or ZERO)
                    - (to_decimal(inv.amount) or ZERO),
                    "eligible_amount_description": inv.eligible_amount_description,
                    "customer_name": inv.customer.name if inv.customer else None,
                    "agent_name": inv.agent.name if inv.agent else None,
                    "invoice_date": inv.invoice_date,
                }
                for inv in invoices
            ],
            "total": total,
        }
