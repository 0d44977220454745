"""
Constantes centralizadas para el sistema.
Elimina "magic strings" y provee tipado fuerte para valores comunes.
"""

from enum import Enum, unique


@unique
class SubscriptionStatus(str, Enum):
    """Estados de una suscripción (conjunto canónico de 5 valores)."""

    ACTIVE = "active"
    ABOUT_TO_EXPIRE = "about_to_expire"
    SUSPENDED = "suspended"
    PAUSED = "paused"
    CANCELLED = "cancelled"


@unique
class PaymentStatus(str, Enum):
    """Estados de un pago."""

    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


@unique
class PaymentMethod(str, Enum):
    """Métodos de pago soportados."""

    FREE = "free"
    BINANCE = "binance"
    ZINLI = "zinli"
    PAGO_MOVIL = "pago_movil"


@unique
class Currency(str, Enum):
    """Monedas aceptadas."""

    USD = "USD"
    VES = "VES"
    USDT = "USDT"


@unique
class UserRole(str, Enum):
    """Roles del proveedor de identidad."""

    ADMIN = "admin"
    STAFF = "staff"
    CLIENT = "client"
    GUEST = "guest"


@unique
class MessageDirection(str, Enum):
    INBOUND = "inbound"
    OUTBOUND = "outbound"


@unique
class MessageStatus(str, Enum):
    """Estados de entrega de un mensaje de WhatsApp."""

    QUEUED = "queued"
    SENT = "sent"
    FAILED = "failed"
    DELIVERED = "delivered"
    READ = "read"
    RECEIVED = "received"


# Transiciones válidas del estado de un pago.
PAYMENT_TRANSITIONS: dict[PaymentStatus, tuple[PaymentStatus, ...]] = {
    PaymentStatus.PENDING: (PaymentStatus.VERIFIED, PaymentStatus.REJECTED),
    PaymentStatus.VERIFIED: (),
    PaymentStatus.REJECTED: (PaymentStatus.PENDING,),
}

# Campos obligatorios por método de pago.
PAYMENT_METHOD_REQUIREMENTS: dict[PaymentMethod, tuple[str, ...]] = {
    PaymentMethod.FREE: (),
    PaymentMethod.BINANCE: ("reference", "payer_email"),
    PaymentMethod.ZINLI: ("reference", "payer_email"),
    PaymentMethod.PAGO_MOVIL: ("payer_phone", "payer_id_number", "bank"),
}

PAYMENT_MIN_AMOUNT = 0
PAYMENT_MAX_AMOUNT = 1_000_000

EMAIL_REGEX = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PHONE_REGEX = r"^\+?[1-9]\d{1,14}$"  # E.164
REFERENCE_REGEX = r"^[a-zA-Z0-9\-_]+$"
ID_NUMBER_REGEX = r"^[0-9]{6,12}$"

# Estados que el pase de suspensión nunca vuelve a tocar.
SUSPENSION_EXCLUDED_STATUSES = (
    SubscriptionStatus.SUSPENDED,
    SubscriptionStatus.CANCELLED,
    SubscriptionStatus.PAUSED,
)

UNKNOWN_CLIENT_ID = "unknown"
