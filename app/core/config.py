# app/core/config.py
"""
Configuración centralizada leída desde variables de entorno.
`load_dotenv()` se ejecuta en app/main.py antes de importar este módulo.
"""
import os

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


APP_ENV = os.getenv("APP_ENV", "development")

# --- Automatización (ciclo de facturación) ---
DEFAULT_TIMEZONE = os.getenv("AUTOMATION_TZ", "America/Caracas")
DEFAULT_CRON_EXPRESSION = os.getenv("AUTOMATION_CRON", "0 9 * * *")
AUTOMATION_JOB_DISABLED = _env_bool("AUTOMATION_JOB_DISABLED")
AUTOMATION_CATCH_UP = _env_bool("AUTOMATION_CATCH_UP")

# --- Twilio / WhatsApp ---
TWILIO_ACCOUNT_SID = os.getenv("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = os.getenv("TWILIO_AUTH_TOKEN", "")
TWILIO_FROM_NUMBER = os.getenv("TWILIO_FROM_NUMBER", "")
WHATSAPP_DRY_RUN = _env_bool("WHATSAPP_DRY_RUN")

# --- Pagos ---
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD")
