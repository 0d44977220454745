# app/services/billing_service.py
"""
Payment verification engine.

Gates payment creation against the subscription's monthly cap and, on
verification, decides whether the subscription's cut date rolls forward.
"""

import logging
import re
from datetime import datetime
from typing import Any, Dict, Optional

from sqlmodel import Session

from ..core.config import DEFAULT_CURRENCY, DEFAULT_TIMEZONE
from ..core.constants import (
    EMAIL_REGEX,
    ID_NUMBER_REGEX,
    PAYMENT_MAX_AMOUNT,
    PAYMENT_METHOD_REQUIREMENTS,
    PAYMENT_MIN_AMOUNT,
    PAYMENT_TRANSITIONS,
    PHONE_REGEX,
    REFERENCE_REGEX,
    Currency,
    PaymentMethod,
    PaymentStatus,
    SubscriptionStatus,
)
from ..models.payment import Payment
from ..models.subscription import Subscription
from ..utils.date_utils import add_months, parse_iso_date, today_in_timezone
from ..utils.money import MoneyFormatError, format_money, parse_money
from .payment_service import PaymentService
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

# pending + verified cuentan contra el tope mensual
_CAPPED_STATUSES = (PaymentStatus.PENDING, PaymentStatus.VERIFIED)

_OPTIONAL_TEXT_FIELDS = (
    "reference",
    "payer_email",
    "payer_phone",
    "payer_id_number",
    "bank",
    "receipt_url",
    "notes",
)


class InvalidTransitionError(ValueError):
    """Transición de estado de pago fuera de la tabla permitida."""

    def __init__(self, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(f"Transición de estado inválida: {current} → {target}")


class PaymentCapExceededError(ValueError):
    """El pago haría superar el monto mensual de la suscripción."""

    def __init__(self, monthly_amount: float, existing_total: float, new_amount: float):
        self.monthly_amount = monthly_amount
        self.existing_total = existing_total
        self.remaining = round(max(monthly_amount - existing_total, 0), 2)
        super().__init__(
            f"El pago de {format_money(new_amount)} excede el monto mensual de "
            f"{format_money(monthly_amount)}. Total existente: {format_money(existing_total)}. "
            f"Restante permitido: {format_money(self.remaining)}."
        )


def _sanitize(data: Dict[str, Any]) -> Dict[str, Any]:
    """Elimina claves con None o cadenas vacías."""
    clean = {}
    for key, value in data.items():
        if value is None:
            continue
        if isinstance(value, str):
            value = value.strip()
            if value == "":
                continue
        clean[key] = value
    return clean


def _validate_amount(amount: Any) -> float:
    if isinstance(amount, bool) or not isinstance(amount, (int, float)):
        raise ValueError("El monto debe ser numérico")
    if amount < PAYMENT_MIN_AMOUNT:
        raise ValueError("El monto no puede ser negativo")
    if amount > PAYMENT_MAX_AMOUNT:
        raise ValueError("El monto excede el límite permitido")
    return round(float(amount), 2)


def _validate_method_fields(method: PaymentMethod, data: Dict[str, Any]) -> None:
    missing = [field for field in PAYMENT_METHOD_REQUIREMENTS[method] if not data.get(field)]
    if missing:
        raise ValueError(f"Campos requeridos faltantes para {method.value}: {', '.join(missing)}")

    errors = []
    if data.get("payer_email") and not re.match(EMAIL_REGEX, data["payer_email"]):
        errors.append("Email con formato inválido")
    if data.get("payer_phone") and not re.match(PHONE_REGEX, data["payer_phone"]):
        errors.append("Teléfono con formato inválido (use formato E.164)")
    if data.get("reference") and not re.match(REFERENCE_REGEX, data["reference"]):
        errors.append("Referencia con caracteres inválidos")
    if data.get("payer_id_number") and not re.match(ID_NUMBER_REGEX, data["payer_id_number"]):
        errors.append("Cédula con formato inválido (6-12 dígitos)")
    if data.get("receipt_url") and not data["receipt_url"].startswith(("http://", "https://")):
        errors.append("URL de comprobante inválida")
    if errors:
        raise ValueError("; ".join(errors))


class BillingService:
    """
    Payment lifecycle: create (pending), verify, reject and retry.
    """

    def __init__(self, session: Session):
        """
        Initialize with a SQLModel session.

        Args:
            session: SQLModel Session instance
        """
        self.session = session
        self.payment_service = PaymentService(session)
        self.subscription_service = SubscriptionService(session)

    # --- Helpers ---

    def _get_payment(self, payment_id: int) -> Payment:
        payment = self.payment_service.get_by_id(payment_id)
        if not payment:
            raise FileNotFoundError(f"Pago {payment_id} no encontrado.")
        return payment

    def _get_subscription(self, subscription_id: Any) -> Subscription:
        subscription = self.subscription_service.get_by_id(subscription_id)
        if not subscription:
            raise FileNotFoundError("Suscripción no encontrada")
        return subscription

    @staticmethod
    def _monthly_amount(subscription: Subscription) -> Optional[float]:
        """Monto mensual parseado, o None si no se puede interpretar."""
        try:
            return parse_money(subscription.amount)
        except MoneyFormatError:
            logger.warning(
                f"Monto mensual ilegible en la suscripción {subscription.id}: "
                f"{subscription.amount!r}. Se omite el tope."
            )
            return None

    def _check_cap(
        self,
        subscription: Subscription,
        new_amount: float,
        billing_cycle: Optional[str],
        exclude_id: Optional[int] = None,
    ) -> None:
        monthly = self._monthly_amount(subscription)
        if monthly is None or monthly <= 0:
            return

        existing = self.payment_service.sum_amounts(
            subscription.id, _CAPPED_STATUSES, billing_cycle=billing_cycle, exclude_id=exclude_id
        )
        if round(existing + new_amount, 2) > monthly:
            raise PaymentCapExceededError(monthly, existing, new_amount)

    @staticmethod
    def _check_transition(payment: Payment, target: PaymentStatus) -> None:
        current = PaymentStatus(payment.status)
        if target not in PAYMENT_TRANSITIONS[current]:
            raise InvalidTransitionError(current.value, target.value)

    # --- Creación ---

    def create_payment(self, data: Dict[str, Any], user_id: str) -> Payment:
        """
        Registra un pago en estado `pending`.

        Raises:
            FileNotFoundError: la suscripción no existe.
            PaymentCapExceededError: el pago supera el tope mensual del ciclo.
            ValueError: campos faltantes o con formato inválido.
        """
        if not data.get("subscription_id"):
            raise ValueError("El ID de suscripción es requerido")
        subscription = self._get_subscription(data["subscription_id"])

        try:
            method = PaymentMethod(data.get("method"))
        except ValueError:
            raise ValueError(f"Método de pago inválido: {data.get('method')}")
        try:
            currency = Currency(data.get("currency") or DEFAULT_CURRENCY)
        except ValueError:
            raise ValueError(f"Moneda inválida: {data.get('currency')}")

        amount = _validate_amount(data.get("amount"))
        free = data.get("free")
        if free is True:
            if method != PaymentMethod.FREE:
                raise ValueError('Si free=true, el método debe ser "free"')
            if amount != 0:
                raise ValueError("Si free=true, el monto debe ser 0")
        elif free is False and amount <= 0:
            raise ValueError("Si free=false, el monto debe ser mayor a 0")

        payment_date = data.get("date") or today_in_timezone(DEFAULT_TIMEZONE)
        payment_date = parse_iso_date(payment_date).isoformat()

        billing_cycle = subscription.cut_date
        if free is not True:
            self._check_cap(subscription, amount, billing_cycle)

        fields = _sanitize({key: data.get(key) for key in _OPTIONAL_TEXT_FIELDS})
        if "payer_email" in fields:
            fields["payer_email"] = fields["payer_email"].lower()
        _validate_method_fields(method, fields)

        payment = Payment(
            subscription_id=subscription.id,
            amount=amount,
            currency=currency.value,
            date=payment_date,
            billing_cycle=billing_cycle,
            method=method.value,
            status=PaymentStatus.PENDING.value,
            free=free,
            created_by=user_id,
            **fields,
        )
        self.payment_service.add(payment)
        logger.info(
            f"Pago {payment.id} registrado ({format_money(amount)} {currency.value}) "
            f"para la suscripción {subscription.id}, ciclo {billing_cycle}."
        )
        return payment

    # --- Transiciones ---

    def update_status(
        self,
        payment_id: int,
        status: PaymentStatus,
        user_id: str,
        notes: Optional[str] = None,
    ) -> Payment:
        target = PaymentStatus(status)
        if target == PaymentStatus.VERIFIED:
            return self.verify_payment(payment_id, user_id, notes)
        if target == PaymentStatus.REJECTED:
            return self.reject_payment(payment_id, user_id, notes)
        return self.retry_payment(payment_id, user_id)

    def verify_payment(self, payment_id: int, user_id: str, notes: Optional[str] = None) -> Payment:
        """
        pending -> verified.

        Re-checks the cap against fresh totals, then, in the same commit,
        reactivates the subscription and advances its cut date by one month
        when the verified total of the current cycle reaches the monthly amount.
        """
        payment = self._get_payment(payment_id)
        self._check_transition(payment, PaymentStatus.VERIFIED)
        subscription = self._get_subscription(payment.subscription_id)

        if not payment.free:
            self._check_cap(
                subscription, payment.amount, payment.billing_cycle, exclude_id=payment.id
            )

        payment.status = PaymentStatus.VERIFIED.value
        payment.verified_at = datetime.utcnow()
        payment.verified_by = user_id
        if notes:
            payment.notes = notes
        self.session.add(payment)
        self.session.flush()

        previous_cut = subscription.cut_date
        if self._is_cycle_paid(subscription, payment):
            subscription.cut_date = add_months(subscription.cut_date, 1)
            logger.info(
                f"Ciclo pagado: suscripción {subscription.id} avanza de {previous_cut} "
                f"a {subscription.cut_date}."
            )
        subscription.status = SubscriptionStatus.ACTIVE.value
        subscription.updated_at = datetime.utcnow()
        self.session.add(subscription)

        self.session.commit()
        self.session.refresh(payment)
        logger.info(f"Pago {payment.id} verificado por {user_id}.")
        return payment

    def _is_cycle_paid(self, subscription: Subscription, payment: Payment) -> bool:
        if payment.billing_cycle != subscription.cut_date:
            # pago de un ciclo anterior: reactiva, pero no mueve la fecha de corte
            return False
        monthly = self._monthly_amount(subscription)
        if monthly is None:
            return False
        verified_total = self.payment_service.sum_amounts(
            subscription.id, (PaymentStatus.VERIFIED,), billing_cycle=payment.billing_cycle
        )
        return verified_total >= monthly

    def reject_payment(self, payment_id: int, user_id: str, notes: Optional[str] = None) -> Payment:
        """pending -> rejected. No toca la suscripción."""
        payment = self._get_payment(payment_id)
        self._check_transition(payment, PaymentStatus.REJECTED)

        payment.status = PaymentStatus.REJECTED.value
        if notes:
            payment.notes = notes
        self.session.add(payment)
        self.session.commit()
        self.session.refresh(payment)
        logger.info(f"Pago {payment.id} rechazado por {user_id}.")
        return payment

    def retry_payment(self, payment_id: int, user_id: str) -> Payment:
        """rejected -> pending, sin repetir las validaciones de creación."""
        payment = self._get_payment(payment_id)
        if payment.status != PaymentStatus.REJECTED.value:
            raise InvalidTransitionError(payment.status, PaymentStatus.PENDING.value)

        payment.status = PaymentStatus.PENDING.value
        self.session.add(payment)
        self.session.commit()
        self.session.refresh(payment)
        logger.info(f"Pago {payment.id} reabierto por {user_id}.")
        return payment
