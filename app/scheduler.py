# app/scheduler.py
import logging
import threading
import time
from typing import Any, Callable, Dict, Optional

from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

from .core import config as app_config
from .services.automation_service import SchedulerConfig

logger = logging.getLogger("Scheduler")

JOB_ID = "daily_automation_job"


def job_listener(event):
    """
    Listener para eventos del scheduler.
    Permite logging detallado de la ejecución de jobs.
    """
    if event.exception:
        logger.error(f"Job {event.job_id} falló: {event.exception}")
    else:
        logger.info(f"Job {event.job_id} ejecutado exitosamente")


def load_scheduler_config() -> SchedulerConfig:
    """Lee la configuración guardada (o los valores por defecto) con su propia sesión."""
    from sqlmodel import Session

    from .db.engine_sync import sync_engine
    from .services.automation_service import AutomationService

    with Session(sync_engine) as session:
        return AutomationService(session).get_scheduler_config()


def _default_job():
    from .services.automation_job import run_daily_automation

    run_daily_automation()


class AutomationScheduler:
    """
    Handle único del timer de la automatización diaria.

    restart() is stop() followed by start() under the same lock, so two
    timers never coexist.
    """

    def __init__(
        self,
        job: Optional[Callable[[], Any]] = None,
        config_loader: Optional[Callable[[], SchedulerConfig]] = None,
        disabled: Optional[bool] = None,
    ):
        self._job = job or _default_job
        self._config_loader = config_loader or load_scheduler_config
        self._disabled = disabled
        self._lock = threading.RLock()
        self._scheduler: Optional[BackgroundScheduler] = None
        self._config: Optional[SchedulerConfig] = None

    @property
    def disabled(self) -> bool:
        return app_config.AUTOMATION_JOB_DISABLED if self._disabled is None else self._disabled

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self, config: Optional[SchedulerConfig] = None) -> bool:
        """Programa el job. Devuelve False si quedó deshabilitado."""
        with self._lock:
            if self._scheduler is not None:
                self._stop_locked()

            if self.disabled:
                logger.info("Automatización deshabilitada por AUTOMATION_JOB_DISABLED.")
                return False

            config = config or self._config_loader()
            self._config = config
            if not config.enabled:
                logger.info("Automatización deshabilitada en la configuración guardada.")
                return False

            trigger = CronTrigger.from_crontab(config.cron_expression, timezone=config.time_zone)
            scheduler = BackgroundScheduler(
                timezone=config.time_zone,
                job_defaults={
                    "coalesce": True,  # Si se perdieron ejecuciones, solo ejecuta una vez
                    "max_instances": 1,  # Solo una instancia del mismo job a la vez
                    "misfire_grace_time": 300,  # Tolerar 5 min de retraso
                },
            )
            scheduler.add_listener(job_listener, EVENT_JOB_EXECUTED | EVENT_JOB_ERROR)
            scheduler.add_job(
                self._job,
                trigger=trigger,
                id=JOB_ID,
                name="Daily Billing Automation",
                replace_existing=True,
            )
            scheduler.start()
            self._scheduler = scheduler
            logger.info(
                f"✅ Automatización programada: '{config.cron_expression}' ({config.time_zone})"
            )
            return True

    def stop(self) -> None:
        with self._lock:
            self._stop_locked()

    def _stop_locked(self) -> None:
        if self._scheduler is None:
            return
        try:
            if self._scheduler.running:
                self._scheduler.shutdown(wait=False)
        finally:
            self._scheduler = None
            logger.info("Scheduler detenido")

    def restart(self, config: Optional[SchedulerConfig] = None) -> bool:
        with self._lock:
            self._stop_locked()
            return self.start(config)

    def describe(self) -> Dict[str, Any]:
        with self._lock:
            next_run = None
            if self.is_running:
                job = self._scheduler.get_job(JOB_ID)
                if job and job.next_run_time:
                    next_run = job.next_run_time.isoformat()
            return {
                "running": self.is_running,
                "disabled": self.disabled,
                "cron_expression": self._config.cron_expression if self._config else None,
                "time_zone": self._config.time_zone if self._config else None,
                "enabled": self._config.enabled if self._config else None,
                "next_run_time": next_run,
            }


automation_scheduler = AutomationScheduler()


def run_scheduler():
    """
    Punto de entrada para ejecutar el scheduler como proceso independiente.
    """
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - [Scheduler] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    from .db.engine_sync import create_sync_db_and_tables

    create_sync_db_and_tables()
    logger.info("Inicializando BackgroundScheduler...")
    automation_scheduler.start()

    # Mantener el proceso vivo
    try:
        while True:
            time.sleep(60)
    except (KeyboardInterrupt, SystemExit):
        logger.info("Deteniendo scheduler...")
        automation_scheduler.stop()


if __name__ == "__main__":
    run_scheduler()
