"""Commission adjustments and generated (persisted) commission reports."""
import logging
from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload

from app.core.periods import parse_period, period_display
from app.models.agent import Agent
from app.models.commission import CommissionAdjustment, GeneratedCommissionReport
from app.models.invoice import Invoice
from app.services.commission import CommissionCalculationService
from app.services.money import money, to_decimal, ZERO

logger = logging.getLogger(__name__)


def adjustment_to_dict(adj: CommissionAdjustment) -> Dict:
    return {
        "id": adj.id,
        "agent_id": adj.agent_id,
        "month_period": adj.month_period,
        "amount": adj.amount,
        "description": adj.description,
        "created_by": adj.created_by,
        "updated_by": adj.updated_by,
        "created_at": adj.created_at,
        "updated_at": adj.updated_at,
    }


def report_to_dict(report: GeneratedCommissionReport) -> Dict:
    return {
        "report_id": report.id,
        "agent_id": report.agent_id,
        "agent_name": report.agent_name,
        "agent_type": report.agent_type,
        "month_period": report.month_period,
        "period_display": period_display(report.month_period),
        "invoices_count": report.invoices_count,
        "invoice_ids": report.invoice_ids or [],
        "total_basic_commission": report.total_basic_commission,
        "total_bonus_commission": report.total_bonus_commission,
        "total_adjustments": report.total_adjustments,
        "final_total_commission": report.final_total_commission,
        "basic_rate": report.basic_rate,
        "tier_schedule_version": report.tier_schedule_version,
        "generated_by": report.generated_by,
        "generated_at": report.generated_at,
        "is_paid": report.is_paid,
        "paid_by": report.paid_by,
        "paid_at": report.paid_at,
    }


class CommissionReportService:
    def __init__(self, db: Session, calculator: Optional[CommissionCalculationService] = None):
        self.db = db
        self.calculator = calculator or CommissionCalculationService(db)

    def _get_agent(self, agent_id: str) -> Agent:
        agent = self.db.query(Agent).filter(Agent.id == agent_id).first()
        if not agent:
            raise LookupError(f"Agent {agent_id} not found")
        return agent

    # ── Adjustments ──────────────────────────────────────────────────

    def list_adjustments(self, agent_id: str, month: str) -> List[CommissionAdjustment]:
        parse_period(month)
        return (
            self.db.query(CommissionAdjustment)
            .filter(
                CommissionAdjustment.agent_id == agent_id,
                CommissionAdjustment.month_period == month,
            )
            .order_by(CommissionAdjustment.created_at, CommissionAdjustment.id)
            .all()
        )

    def create_adjustment(
        self,
        agent_id: str,
        month: str,
        amount: Decimal,
        description: str,
        actor: str,
    ) -> CommissionAdjustment:
        parse_period(month)
        self._get_agent(agent_id)
        amount = to_decimal(amount)
        if amount is None or amount == 0:
            raise ValueError("Adjustment amount must be a non-zero number")
        if not (description or "").strip():
            raise ValueError("Adjustment description is required")

        adjustment = CommissionAdjustment(
            agent_id=agent_id,
            month_period=month,
            amount=money(amount),
            description=description.strip(),
            created_by=actor,
        )
        self.db.add(adjustment)
        self.db.commit()
        self.db.refresh(adjustment)
        logger.info(f"Adjustment {adjustment.id} {adjustment.amount} for {agent_id} {month} by {actor}")
        return adjustment

    def update_adjustment(
        self,
        adjustment_id: int,
        actor: str,
        amount: Optional[Decimal] = None,
        description: Optional[str] = None,
    ) -> CommissionAdjustment:
        adjustment = self.db.query(CommissionAdjustment).filter(CommissionAdjustment.id == adjustment_id).first()
        if not adjustment:
            raise LookupError(f"Adjustment {adjustment_id} not found")

        if amount is not None:
            amount = to_decimal(amount)
            if amount is None or amount == 0:
                raise ValueError("Adjustment amount must be a non-zero number")
            adjustment.amount = money(amount)
        if description is not None:
            if not description.strip():
                raise ValueError("Adjustment description is required")
            adjustment.description = description.strip()

        adjustment.updated_by = actor
        self.db.commit()
        self.db.refresh(adjustment)
        return adjustment

    def delete_adjustment(self, adjustment_id: int) -> None:
        adjustment = self.db.query(CommissionAdjustment).filter(CommissionAdjustment.id == adjustment_id).first()
        if not adjustment:
            raise LookupError(f"Adjustment {adjustment_id} not found")
        self.db.delete(adjustment)
        self.db.commit()

    # ── Generated reports ────────────────────────────────────────────

    def generate_report(self, agent_id: str, month: str, actor: str) -> Dict:
        """Compute commission + adjustments and store them as the agent's report for the month.

        Regenerating overwrites totals; the paid flag, payer and timestamp stay as they were.
        """
        agent = self._get_agent(agent_id)
        result = self.calculator.compute_commission(agent_id, month)
        adjustments = self.list_adjustments(agent_id, month)
        total_adjustments = money(sum((to_decimal(a.amount) or ZERO for a in adjustments), ZERO))

        report = (
            self.db.query(GeneratedCommissionReport)
            .filter(
                GeneratedCommissionReport.agent_id == agent_id,
                GeneratedCommissionReport.month_period == month,
            )
            .first()
        )
        try:
            if report is None:
                report = GeneratedCommissionReport(agent_id=agent_id, month_period=month, is_paid=False)
                self.db.add(report)
            elif report.is_paid:
                logger.warning(f"Regenerating already paid report {report.id} ({agent_id} {month})")

            report.agent_name = agent.name
            report.agent_type = agent.agent_type
            report.invoices_count = len(result["invoices"])
            report.invoice_ids = [line["id"] for line in result["invoices"]]
            report.total_basic_commission = result["total_basic_commission"]
            report.total_bonus_commission = result["total_bonus_commission"]
            report.total_adjustments = total_adjustments
            report.final_total_commission = (
                result["total_basic_commission"] + result["total_bonus_commission"] + total_adjustments
            )
            report.basic_rate = result["basic_rate"]
            report.tier_schedule_version = result["tier_schedule_version"]
            report.generated_by = actor
            report.generated_at = datetime.utcnow()
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(report)

        logger.info(
            f"Generated commission report {report.id} for {agent_id} {month}: "
            f"final={report.final_total_commission}"
        )
        return {
            **report_to_dict(report),
            "success": True,
            "total_commission": result["total_commission"],
            "invoices": result["invoices"],
            "adjustments": [adjustment_to_dict(a) for a in adjustments],
            "errors": result["errors"],
        }

    def get_report(self, report_id: int) -> GeneratedCommissionReport:
        report = self.db.query(GeneratedCommissionReport).filter(GeneratedCommissionReport.id == report_id).first()
        if not report:
            raise LookupError(f"Commission report {report_id} not found")
        return report

    def report_history(self, agent_id: Optional[str] = None, month: Optional[str] = None) -> List[GeneratedCommissionReport]:
        query = self.db.query(GeneratedCommissionReport)
        if agent_id:
            query = query.filter(GeneratedCommissionReport.agent_id == agent_id)
        if month:
            parse_period(month)
            query = query.filter(GeneratedCommissionReport.month_period == month)
        return query.order_by(
            GeneratedCommissionReport.month_period.desc(),
            GeneratedCommissionReport.agent_name,
        ).all()

    def mark_report_paid(self, report_id: int, actor: str) -> GeneratedCommissionReport:
        """Record the payout. Totals are left exactly as generated."""
        report = self.get_report(report_id)
        if report.is_paid:
            raise ValueError(f"Commission report {report_id} is already marked paid")

        report.is_paid = True
        report.paid_by = actor
        report.paid_at = datetime.utcnow()
        self.db.commit()
        self.db.refresh(report)
        logger.info(f"Commission report {report.id} marked paid by {actor}")
        return report

    def statement_data(self, report_id: int) -> Dict:
        """Stored report plus its invoices and adjustments, for statements and detail views."""
        report = self.get_report(report_id)
        invoice_ids = report.invoice_ids or []
        invoices = []
        if invoice_ids:
            rows = (
                self.db.query(Invoice)
                .options(joinedload(Invoice.customer))
                .filter(Invoice.id.in_(invoice_ids))
                .order_by(Invoice.full_payment_date, Invoice.id)
                .all()
            )
            invoices = [
                {
                    "id": inv.id,
                    "invoice_number": inv.invoice_number,
                    "customer_name": inv.customer.name if inv.customer else None,
                    "full_payment_date": inv.full_payment_date,
                    "amount": inv.amount,
                    "amount_eligible_for_comm": inv.amount_eligible_for_comm,
                    "achieved_monthly_anp": inv.achieved_monthly_anp,
                }
                for inv in rows
            ]
        adjustments = self.list_adjustments(report.agent_id, report.month_period)
        return {
            **report_to_dict(report),
            "invoices": invoices,
            "adjustments": [adjustment_to_dict(a) for a in adjustments],
        }
