# app/services/message_templates.py
"""
Plantillas de contenido de WhatsApp aprobadas en Twilio.
Las variables se envían posicionalmente: {"1": ..., "2": ...}.
"""
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

REMINDER_3_DAYS = "subscription_reminder_3days_2v"
SUSPENDED_NOTICE = "subscription_suspended_notice_2v"
CUTOFF_DAY = "subscription_cutoff_day_2v"


@dataclass(frozen=True)
class MessageTemplate:
    name: str
    content_sid: str
    variables: Tuple[str, ...]


TEMPLATES: Dict[str, MessageTemplate] = {
    REMINDER_3_DAYS: MessageTemplate(
        REMINDER_3_DAYS, "HXfcc8ae438db9df662a0e1f7d801e946b", ("name", "dueDate")
    ),
    SUSPENDED_NOTICE: MessageTemplate(
        SUSPENDED_NOTICE, "HX9954143348c57d5cfb1daf4b5ab8ee6b", ("name", "subscriptionLabel")
    ),
    CUTOFF_DAY: MessageTemplate(
        CUTOFF_DAY,
        "HX416f989f4eb0c55836464269165eece0",
        ("name", "subscriptionLabel", "cutoffDate"),
    ),
}


def allowed_templates() -> List[str]:
    return list(TEMPLATES)


def get_template(name: str) -> MessageTemplate:
    template = TEMPLATES.get(name)
    if not template:
        raise ValueError(f"Plantilla no encontrada: {name}")
    return template


def get_missing_template_variables(name: str, data: Optional[Dict[str, Any]] = None) -> List[str]:
    data = data or {}
    return [
        key
        for key in get_template(name).variables
        if data.get(key) is None or str(data.get(key)).strip() == ""
    ]


def render_content_variables(name: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    data = data or {}
    return {
        str(index): str(data.get(key) if data.get(key) is not None else "")
        for index, key in enumerate(get_template(name).variables, start=1)
    }


def infer_template_data(name: str, plan: Optional[str], cut_date: Optional[str]) -> Dict[str, str]:
    """Variables deducibles de la suscripción más reciente del cliente."""
    if name == CUTOFF_DAY:
        return {"subscriptionLabel": plan or "", "cutoffDate": cut_date or ""}
    if name == REMINDER_3_DAYS:
        return {"dueDate": cut_date or ""}
    if name == SUSPENDED_NOTICE:
        return {"subscriptionLabel": plan or ""}
    return {}
