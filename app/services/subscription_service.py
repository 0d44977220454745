# app/services/subscription_service.py
"""
Subscription service layer using SQLModel ORM.
Read/write access to subscription records plus the queries used by the
daily billing automation.
"""
import logging
import uuid
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import and_, or_
from sqlmodel import Session, select

from ..core.constants import SubscriptionStatus
from ..models.subscription import Subscription
from ..utils.date_utils import add_months, parse_iso_date, today_in_timezone
from ..utils.money import is_valid_money_string
from .identifier_resolver import IdentifierResolver

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("start_date", "cut_date", "plan", "amount", "status", "kit_number", "country")


def _parse_subscription_id(subscription_id: Any) -> uuid.UUID:
    if isinstance(subscription_id, uuid.UUID):
        return subscription_id
    try:
        return uuid.UUID(str(subscription_id))
    except ValueError:
        raise FileNotFoundError(f"Suscripción {subscription_id} no encontrada.")


def _normalize_iso_date(value: Any, field: str) -> str:
    try:
        return parse_iso_date(value).isoformat()
    except ValueError:
        raise ValueError(f"{field}: fecha ISO inválida (YYYY-MM-DD)")


def _normalize_amount(value: Any) -> str:
    if not is_valid_money_string(value):
        raise ValueError("amount: formato inválido (ej. $50 o $50.00)")
    return value.strip()


def _normalize_status(value: Any) -> str:
    try:
        return SubscriptionStatus(value).value
    except ValueError:
        allowed = ", ".join(s.value for s in SubscriptionStatus)
        raise ValueError(f"status inválido: {value}. Valores permitidos: {allowed}")


class SubscriptionService:
    """
    Service layer for Subscription operations using SQLModel ORM.
    """

    def __init__(self, session: Session):
        self.session = session

    # --- Lectura ---

    def get_by_id(self, subscription_id: Any) -> Optional[Subscription]:
        try:
            key = _parse_subscription_id(subscription_id)
        except FileNotFoundError:
            return None
        return self.session.get(Subscription, key)

    def get_or_raise(self, subscription_id: Any) -> Subscription:
        subscription = self.get_by_id(subscription_id)
        if not subscription:
            raise FileNotFoundError(f"Suscripción {subscription_id} no encontrada.")
        return subscription

    def list(self, limit: Optional[int] = None, start_after: Optional[str] = None) -> List[Subscription]:
        """Suscripciones más recientes primero, paginadas por cursor (id)."""
        statement = select(Subscription)
        if start_after:
            cursor = self.get_by_id(start_after)
            if not cursor:
                raise ValueError("Cursor inválido")
            statement = statement.where(
                or_(
                    Subscription.created_at < cursor.created_at,
                    and_(
                        Subscription.created_at == cursor.created_at,
                        Subscription.id < cursor.id,
                    ),
                )
            )
        statement = statement.order_by(Subscription.created_at.desc(), Subscription.id.desc())
        if limit and limit > 0:
            statement = statement.limit(limit)
        return list(self.session.exec(statement).all())

    def latest_for_client(self, client_id: str) -> Optional[Subscription]:
        statement = (
            select(Subscription)
            .where(Subscription.client_id == client_id)
            .order_by(Subscription.updated_at.desc())
            .limit(1)
        )
        return self.session.exec(statement).first()

    def find_by_cut_date(
        self,
        cut_date: str,
        statuses: Optional[Iterable[SubscriptionStatus]] = None,
        excluded: Optional[Iterable[SubscriptionStatus]] = None,
    ) -> List[Subscription]:
        """Coincidencia exacta de cut_date (comparación de cadenas ISO)."""
        statement = select(Subscription).where(Subscription.cut_date == cut_date)
        statement = self._status_filter(statement, statuses, excluded)
        return list(self.session.exec(statement.order_by(Subscription.id)).all())

    def find_by_cut_date_range(
        self,
        until: str,
        after: Optional[str] = None,
        statuses: Optional[Iterable[SubscriptionStatus]] = None,
        excluded: Optional[Iterable[SubscriptionStatus]] = None,
    ) -> List[Subscription]:
        """after < cut_date <= until. Las cadenas ISO ordenan igual que las fechas."""
        statement = select(Subscription).where(Subscription.cut_date <= until)
        if after:
            statement = statement.where(Subscription.cut_date > after)
        statement = self._status_filter(statement, statuses, excluded)
        return list(self.session.exec(statement.order_by(Subscription.id)).all())

    @staticmethod
    def _status_filter(statement, statuses, excluded):
        if statuses:
            statement = statement.where(Subscription.status.in_([s.value for s in statuses]))
        if excluded:
            statement = statement.where(Subscription.status.not_in([s.value for s in excluded]))
        return statement

    # --- Escritura ---

    def create(self, data: Dict[str, Any]) -> Subscription:
        """
        Create a subscription for an existing client.

        The status is always `active` on creation; any status sent by the
        caller is ignored.
        """
        for field in ("client_id", "start_date", "cut_date", "plan", "amount"):
            if data.get(field) in (None, ""):
                raise ValueError(f"Campo requerido faltante: {field}")

        client = IdentifierResolver(self.session).resolve_client(str(data["client_id"]))
        plan = str(data["plan"]).strip()
        if not plan:
            raise ValueError("plan no puede estar vacío")

        subscription = Subscription(
            client_id=str(client.id),
            start_date=_normalize_iso_date(data["start_date"], "start_date"),
            cut_date=_normalize_iso_date(data["cut_date"], "cut_date"),
            plan=plan,
            amount=_normalize_amount(data["amount"]),
            status=SubscriptionStatus.ACTIVE.value,
            kit_number=data.get("kit_number"),
            country=data.get("country"),
        )
        self.session.add(subscription)
        self.session.commit()
        self.session.refresh(subscription)
        logger.info(f"Suscripción {subscription.id} creada para el cliente {client.id}")
        return subscription

    def update(self, subscription_id: Any, patch: Dict[str, Any]) -> Subscription:
        if not patch:
            raise ValueError("No se enviaron campos para actualizar.")

        subscription = self.get_or_raise(subscription_id)
        for key, value in patch.items():
            if key not in _EDITABLE_FIELDS:
                continue
            if key in ("start_date", "cut_date"):
                value = _normalize_iso_date(value, key)
            elif key == "amount":
                value = _normalize_amount(value)
            elif key == "status":
                value = _normalize_status(value)
            elif key == "plan":
                value = str(value).strip()
                if not value:
                    raise ValueError("plan no puede estar vacío")
            setattr(subscription, key, value)

        subscription.updated_at = datetime.utcnow()
        self.session.add(subscription)
        self.session.commit()
        self.session.refresh(subscription)
        return subscription

    def set_status(
        self, subscription_id: Any, status: SubscriptionStatus, commit: bool = True
    ) -> Subscription:
        subscription = self.get_or_raise(subscription_id)
        subscription.status = SubscriptionStatus(status).value
        subscription.updated_at = datetime.utcnow()
        self.session.add(subscription)
        if commit:
            self.session.commit()
            self.session.refresh(subscription)
        return subscription

    def renew(self, subscription_id: Any) -> Subscription:
        """Adelanta cut_date un mes de calendario y reactiva la suscripción."""
        subscription = self.get_or_raise(subscription_id)
        base_cut = subscription.cut_date or today_in_timezone()
        subscription.cut_date = add_months(base_cut, 1)
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.updated_at = datetime.utcnow()
        self.session.add(subscription)
        self.session.commit()
        self.session.refresh(subscription)
        logger.info(f"Suscripción {subscription.id} renovada hasta {subscription.cut_date}")
        return subscription

    def delete(self, subscription_id: Any) -> None:
        subscription = self.get_or_raise(subscription_id)
        self.session.delete(subscription)
        self.session.commit()
