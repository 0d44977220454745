# app/services/payment_service.py
"""
Payment service layer using SQLModel ORM.
Typed access to payment records plus the aggregates used by the monthly cap.
"""
import uuid
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlmodel import Session, select

from ..core.constants import PaymentMethod, PaymentStatus
from ..models.payment import Payment

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


class PaymentService:
    """
    Service layer for Payment operations using SQLModel ORM.
    """

    def __init__(self, session: Session):
        """
        Initialize with a SQLModel session.

        Args:
            session: SQLModel Session instance
        """
        self.session = session

    def get_by_id(self, payment_id: int) -> Optional[Payment]:
        """Get a single payment by ID."""
        return self.session.get(Payment, payment_id)

    def add(self, payment: Payment, commit: bool = True) -> Payment:
        self.session.add(payment)
        if commit:
            self.session.commit()
            self.session.refresh(payment)
        return payment

    def list(self, filters: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Paginated listing, most recent first.

        Supported filters: subscription_id, status, method, created_by,
        start_date / end_date (inclusive, on `date`), page, limit.
        """
        filters = filters or {}
        page = max(int(filters.get("page") or 1), 1)
        limit = min(max(int(filters.get("limit") or DEFAULT_PAGE_SIZE), 1), MAX_PAGE_SIZE)

        conditions = []
        if filters.get("subscription_id"):
            conditions.append(Payment.subscription_id == uuid.UUID(str(filters["subscription_id"])))
        if filters.get("status"):
            conditions.append(Payment.status == PaymentStatus(filters["status"]).value)
        if filters.get("method"):
            conditions.append(Payment.method == PaymentMethod(filters["method"]).value)
        if filters.get("created_by"):
            conditions.append(Payment.created_by == filters["created_by"])
        if filters.get("start_date"):
            conditions.append(Payment.date >= filters["start_date"])
        if filters.get("end_date"):
            conditions.append(Payment.date <= filters["end_date"])

        count_statement = select(func.count()).select_from(Payment)
        statement = select(Payment)
        for condition in conditions:
            count_statement = count_statement.where(condition)
            statement = statement.where(condition)

        total = self.session.exec(count_statement).one()
        statement = (
            statement.order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        items = list(self.session.exec(statement).all())

        return {
            "items": items,
            "total": total,
            "page": page,
            "limit": limit,
            "has_more": page * limit < total,
        }

    def get_by_subscription_id(self, subscription_id: uuid.UUID) -> List[Payment]:
        statement = (
            select(Payment)
            .where(Payment.subscription_id == subscription_id)
            .order_by(Payment.created_at.desc())
        )
        return list(self.session.exec(statement).all())

    def get_pending_by_method(self, method: PaymentMethod) -> List[Payment]:
        statement = (
            select(Payment)
            .where(
                Payment.method == PaymentMethod(method).value,
                Payment.status == PaymentStatus.PENDING.value,
            )
            .order_by(Payment.created_at)
        )
        return list(self.session.exec(statement).all())

    def sum_amounts(
        self,
        subscription_id: uuid.UUID,
        statuses: Iterable[PaymentStatus],
        billing_cycle: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> float:
        """
        Suma de montos de una suscripción en los estados indicados.
        Siempre lee de la base (nunca de un valor cacheado).
        """
        statement = select(func.coalesce(func.sum(Payment.amount), 0.0)).where(
            Payment.subscription_id == subscription_id,
            Payment.status.in_([PaymentStatus(s).value for s in statuses]),
        )
        if billing_cycle is not None:
            statement = statement.where(Payment.billing_cycle == billing_cycle)
        if exclude_id is not None:
            statement = statement.where(Payment.id != exclude_id)
        total = self.session.exec(statement).one()
        return round(float(total or 0), 2)

    def get_stats(
        self, start_date: Optional[str] = None, end_date: Optional[str] = None
    ) -> Dict[str, Any]:
        """Conteos por estado y monto total verificado, opcionalmente por rango de `date`."""
        statement = select(Payment.status, func.count(), func.coalesce(func.sum(Payment.amount), 0.0))
        if start_date:
            statement = statement.where(Payment.date >= start_date)
        if end_date:
            statement = statement.where(Payment.date <= end_date)
        statement = statement.group_by(Payment.status)

        stats = {"total": 0, "pending": 0, "verified": 0, "rejected": 0, "total_amount": 0.0}
        for status, count, amount in self.session.exec(statement).all():
            stats["total"] += count
            if status in stats:
                stats[status] = count
            if status == PaymentStatus.VERIFIED.value:
                stats["total_amount"] = round(float(amount or 0), 2)
        return stats
