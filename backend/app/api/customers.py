"""Customers API — customer directory search."""
import logging
from difflib import SequenceMatcher
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy import case, func, or_
from sqlalchemy.orm import Session

from app.core.database import get_db
from app.core.security import get_current_user
from app.models.user import User
from app.models.customer import Customer

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/customers", tags=["customers"])

MIN_QUERY_LENGTH = 2


def _similarity(query: str, customer: Customer) -> float:
    """Best match ratio of the query against the searchable fields."""
    q = query.lower()
    best = 0.0
    for value in (customer.name, customer.registration_id, customer.contact, customer.installation_address):
        if not value:
            continue
        value = value.lower()
        score = 1.0 if value == q else SequenceMatcher(None, q, value).ratio()
        if q in value:
            score = max(score, len(q) / len(value))
        best = max(best, score)
    return round(best, 3)


@router.get("/search")
def search_customers(
    query: str = Query(..., description="Search by name, address, contact or registration id"),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    q = query.strip()
    if len(q) < MIN_QUERY_LENGTH:
        raise HTTPException(status_code=400, detail=f"Query must be at least {MIN_QUERY_LENGTH} characters")

    search = f"%{q}%"
    # exact, then prefix matches on name or registration id rank ahead of the limit
    q_lower = q.lower()
    rank = case(
        (or_(func.lower(Customer.name) == q_lower, func.lower(Customer.registration_id) == q_lower), 0),
        (
            or_(
                func.lower(Customer.name).like(f"{q_lower}%"),
                func.lower(Customer.registration_id).like(f"{q_lower}%"),
            ),
            1,
        ),
        else_=2,
    )
    customers = (
        db.query(Customer)
        .filter(
            or_(
                Customer.name.ilike(search),
                Customer.installation_address.ilike(search),
                Customer.contact.ilike(search),
                Customer.registration_id.ilike(search),
            )
        )
        .order_by(rank, Customer.name)
        .limit(limit)
        .all()
    )

    results = [
        {
            "id": c.id,
            "registration_id": c.registration_id,
            "customer_name": c.name,
            "installation_address": c.installation_address,
            "city": c.city,
            "state": c.state,
            "customer_contact": c.contact,
            "similarity": _similarity(q, c),
        }
        for c in customers
    ]
    results.sort(key=lambda r: (-r["similarity"], r["customer_name"]))
    return {"customers": results, "total": len(results), "query": q}
