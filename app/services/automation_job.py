# app/services/automation_job.py
import logging

from sqlmodel import Session

from ..db.engine_sync import sync_engine
from .automation_service import AutomationService, RunOptions

# Configuración del Logger
logger = logging.getLogger("AutomationJob")


def run_daily_automation():
    """
    Ejecuta UNA corrida del ciclo de facturación.
    Esta función es llamada por APScheduler según el cron configurado.
    """
    logger.info("--- EJECUTANDO AUTOMATIZACIÓN DIARIA ---")

    try:
        with Session(sync_engine) as session:
            report = AutomationService(session).run_daily(
                RunOptions(invoked_by="system", reason="scheduled")
            )
            logger.info(
                f"--- FIN DEL PROCESO. procesadas={report.processed_count}, "
                f"notificaciones={report.notifications_sent}, errores={len(report.errors)} ---"
            )
    except Exception as e:
        logger.critical(f"Error crítico en la automatización diaria: {e}", exc_info=True)
