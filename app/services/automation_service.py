# app/services/automation_service.py
"""
Daily billing-cycle automation.

One run walks the subscriptions through four independent passes, all dated
in the configured time zone:

1. reminder      cut_date == today + 3 days, active      -> notify
2. cutoff day    cut_date == today, active               -> notify
3. 1 month late  cut_date == today - 1 month, active     -> about_to_expire
4. 2 months late cut_date == today - 2 months, not in
                 (suspended, cancelled, paused)          -> suspended + notify

A failure on one subscription is recorded in the report and the run goes on.
"""
import logging
import time
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from apscheduler.triggers.cron import CronTrigger
from sqlmodel import Session, select

from ..core.config import AUTOMATION_CATCH_UP, DEFAULT_CRON_EXPRESSION, DEFAULT_TIMEZONE
from ..core.constants import (
    SUSPENSION_EXCLUDED_STATUSES,
    MessageStatus,
    SubscriptionStatus,
)
from ..models.automation_log import AutomationLog
from ..models.subscription import Subscription
from ..utils.date_utils import add_days, add_months, today_in_timezone, validate_timezone
from . import message_templates
from .communications_service import CommunicationsService
from .settings_service import SettingsService
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

CRON_KEY = "automation_cron_expression"
ENABLED_KEY = "automation_enabled"
TIMEZONE_KEY = "automation_timezone"
UPDATED_AT_KEY = "automation_config_updated_at"
CONFIG_KEYS = (CRON_KEY, ENABLED_KEY, TIMEZONE_KEY, UPDATED_AT_KEY)

REMINDER_DAYS_BEFORE = 3
DETAILS_PREVIEW_SIZE = 10
DRY_RUN_MARK = " (dry-run)"


# --- Configuración ---


@dataclass
class SchedulerConfig:
    cron_expression: str = DEFAULT_CRON_EXPRESSION
    enabled: bool = True
    time_zone: str = DEFAULT_TIMEZONE
    last_updated: Optional[str] = None


def validate_cron_expression(expression: str, time_zone: str = DEFAULT_TIMEZONE) -> str:
    """Cron de cinco campos (min hora día mes día-semana) que APScheduler sepa interpretar."""
    expression = (expression or "").strip()
    if len(expression.split()) != 5:
        raise ValueError(f"Expresión cron inválida (se esperan 5 campos): {expression!r}")
    try:
        CronTrigger.from_crontab(expression, timezone=time_zone)
    except ValueError as e:
        raise ValueError(f"Expresión cron inválida: {expression!r} ({e})")
    return expression


# --- Reporte ---


@dataclass
class RunOptions:
    invoked_by: str = "system"
    reason: Optional[str] = None
    dry_run: bool = False
    reference: Optional[datetime] = None  # fija el "ahora" de la corrida
    catch_up: Optional[bool] = None


@dataclass
class RunError:
    subscription_id: Optional[str]
    action: str
    message: str


@dataclass
class ActionDetail:
    subscription_id: str
    actions: List[str] = field(default_factory=list)
    overdue: bool = False
    notes: Optional[List[str]] = None

    def note(self, text: str) -> None:
        if self.notes is None:
            self.notes = []
        self.notes.append(text)


@dataclass
class RunReport:
    run_date: str
    time_zone: str
    dry_run: bool
    processed_count: int = 0
    notifications_sent: int = 0
    subscriptions_cut: int = 0
    subscriptions_activated: int = 0
    errors: List[RunError] = field(default_factory=list)
    action_details: List[ActionDetail] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class NotificationFailed(RuntimeError):
    """El gateway aceptó la llamada pero el mensaje quedó en estado failed."""


class AutomationService:
    def __init__(self, session: Session, communications: Optional[CommunicationsService] = None):
        self.session = session
        self.subscriptions = SubscriptionService(session)
        self.communications = communications or CommunicationsService(session)
        self.settings = SettingsService(session)

    # --- Configuración persistida ---

    def get_scheduler_config(self) -> SchedulerConfig:
        stored = self.settings.get_all_settings()
        enabled_raw = stored.get(ENABLED_KEY)
        return SchedulerConfig(
            cron_expression=stored.get(CRON_KEY) or DEFAULT_CRON_EXPRESSION,
            enabled=True if enabled_raw is None else enabled_raw.lower() == "true",
            time_zone=stored.get(TIMEZONE_KEY) or DEFAULT_TIMEZONE,
            last_updated=stored.get(UPDATED_AT_KEY),
        )

    def update_scheduler_config(
        self,
        cron_expression: Optional[str] = None,
        enabled: Optional[bool] = None,
        time_zone: Optional[str] = None,
    ) -> SchedulerConfig:
        """Valida y guarda los campos enviados; los omitidos conservan su valor."""
        current = self.get_scheduler_config()
        tz = validate_timezone(time_zone) if time_zone is not None else current.time_zone
        cron = validate_cron_expression(
            cron_expression if cron_expression is not None else current.cron_expression, tz
        )
        self.settings.update_settings(
            {
                CRON_KEY: cron,
                ENABLED_KEY: "true" if (current.enabled if enabled is None else enabled) else "false",
                TIMEZONE_KEY: tz,
                UPDATED_AT_KEY: datetime.utcnow().isoformat() + "Z",
            }
        )
        config = self.get_scheduler_config()
        logger.info(
            f"Configuración de automatización actualizada: cron='{config.cron_expression}', "
            f"enabled={config.enabled}, tz={config.time_zone}"
        )
        return config

    def delete_scheduler_config(self) -> SchedulerConfig:
        """Elimina la configuración guardada; vuelven a regir los valores por defecto."""
        deleted = self.settings.delete_settings(CONFIG_KEYS)
        logger.info(f"Configuración de automatización eliminada ({deleted} claves).")
        return self.get_scheduler_config()

    def list_run_logs(self, limit: int = 20) -> List[AutomationLog]:
        statement = (
            select(AutomationLog)
            .order_by(AutomationLog.started_at.desc(), AutomationLog.id.desc())
            .limit(limit)
        )
        return list(self.session.exec(statement).all())

    # --- Corrida diaria ---

    def run_daily(self, options: Optional[RunOptions] = None) -> RunReport:
        options = options or RunOptions()
        started = time.monotonic()
        started_at = datetime.utcnow()

        tz = self.get_scheduler_config().time_zone
        catch_up = AUTOMATION_CATCH_UP if options.catch_up is None else options.catch_up
        today = today_in_timezone(tz, options.reference)
        report = RunReport(run_date=today, time_zone=tz, dry_run=options.dry_run)
        logger.info(
            f"🗓️ Corrida diaria {today} ({tz}) por {options.invoked_by}"
            f"{' [DRY-RUN]' if options.dry_run else ''}{' [catch-up]' if catch_up else ''}"
        )

        one_month_ago = add_months(today, -1)
        two_months_ago = add_months(today, -2)

        self._reminder_pass(add_days(today, REMINDER_DAYS_BEFORE), report)
        self._cutoff_pass(today, report)

        if catch_up:
            about_to_expire = self.subscriptions.find_by_cut_date_range(
                until=one_month_ago, after=two_months_ago, statuses=[SubscriptionStatus.ACTIVE]
            )
            to_suspend = self.subscriptions.find_by_cut_date_range(
                until=two_months_ago, excluded=SUSPENSION_EXCLUDED_STATUSES
            )
        else:
            about_to_expire = self.subscriptions.find_by_cut_date(
                one_month_ago, statuses=[SubscriptionStatus.ACTIVE]
            )
            to_suspend = self.subscriptions.find_by_cut_date(
                two_months_ago, excluded=SUSPENSION_EXCLUDED_STATUSES
            )
        self._about_to_expire_pass(about_to_expire, report)
        self._suspension_pass(to_suspend, report)

        duration_ms = int((time.monotonic() - started) * 1000)
        logger.info(
            f"✅ Corrida {today} terminada en {duration_ms} ms: procesadas={report.processed_count}, "
            f"notificaciones={report.notifications_sent}, suspendidas={report.subscriptions_cut}, "
            f"errores={len(report.errors)}"
        )
        self._write_run_log(report, options, started_at, duration_ms)
        return report

    # --- Pases ---

    def _reminder_pass(self, target: str, report: RunReport) -> None:
        matches = self.subscriptions.find_by_cut_date(target, statuses=[SubscriptionStatus.ACTIVE])
        for subscription in matches:
            detail = self._start(subscription, report, overdue=False)
            self._notify(
                subscription,
                message_templates.REMINDER_3_DAYS,
                {"dueDate": subscription.cut_date},
                "notify-reminder-3days",
                detail,
                report,
            )

    def _cutoff_pass(self, today: str, report: RunReport) -> None:
        matches = self.subscriptions.find_by_cut_date(today, statuses=[SubscriptionStatus.ACTIVE])
        for subscription in matches:
            detail = self._start(subscription, report, overdue=True)
            self._notify(
                subscription,
                message_templates.CUTOFF_DAY,
                {"subscriptionLabel": subscription.plan, "cutoffDate": subscription.cut_date},
                "notify-cutoff-day",
                detail,
                report,
            )

    def _about_to_expire_pass(self, matches: List[Subscription], report: RunReport) -> None:
        for subscription in matches:
            detail = self._start(subscription, report, overdue=True)
            self._transition(
                subscription, SubscriptionStatus.ABOUT_TO_EXPIRE, "mark-about-to-expire", detail, report
            )

    def _suspension_pass(self, matches: List[Subscription], report: RunReport) -> None:
        for subscription in matches:
            detail = self._start(subscription, report, overdue=True)
            if not self._transition(
                subscription, SubscriptionStatus.SUSPENDED, "mark-suspended", detail, report
            ):
                detail.note("notificación omitida: no se pudo suspender")
                continue
            if not report.dry_run:
                report.subscriptions_cut += 1
            self._notify(
                subscription,
                message_templates.SUSPENDED_NOTICE,
                {"subscriptionLabel": subscription.plan},
                "notify-suspended",
                detail,
                report,
            )

    # --- Acciones por suscripción ---

    @staticmethod
    def _start(subscription: Subscription, report: RunReport, overdue: bool) -> ActionDetail:
        report.processed_count += 1
        detail = ActionDetail(subscription_id=str(subscription.id), overdue=overdue)
        report.action_details.append(detail)
        return detail

    def _notify(
        self,
        subscription: Subscription,
        template: str,
        data: Dict[str, Any],
        action: str,
        detail: ActionDetail,
        report: RunReport,
    ) -> None:
        if report.dry_run:
            detail.actions.append(action + DRY_RUN_MARK)
            report.notifications_sent += 1
            return
        try:
            message = self.communications.send_template(subscription.client_id, template, data)
            if message.status == MessageStatus.FAILED.value:
                raise NotificationFailed(message.error or "envío fallido")
        except Exception as e:
            self.session.rollback()
            logger.warning(f"{action} falló para la suscripción {subscription.id}: {e}")
            report.errors.append(RunError(str(subscription.id), action, str(e)))
            return
        detail.actions.append(action)
        report.notifications_sent += 1

    def _transition(
        self,
        subscription: Subscription,
        status: SubscriptionStatus,
        action: str,
        detail: ActionDetail,
        report: RunReport,
    ) -> bool:
        if report.dry_run:
            detail.actions.append(action + DRY_RUN_MARK)
            return True
        try:
            self.subscriptions.set_status(subscription.id, status)
        except Exception as e:
            self.session.rollback()
            logger.error(f"{action} falló para la suscripción {subscription.id}: {e}")
            report.errors.append(RunError(str(subscription.id), action, str(e)))
            return False
        detail.actions.append(action)
        return True

    # --- Registro de corridas ---

    def _write_run_log(
        self, report: RunReport, options: RunOptions, started_at: datetime, duration_ms: int
    ) -> None:
        try:
            self.session.add(
                AutomationLog(
                    run_date=report.run_date,
                    time_zone=report.time_zone,
                    dry_run=report.dry_run,
                    processed_count=report.processed_count,
                    notifications_sent=report.notifications_sent,
                    subscriptions_cut=report.subscriptions_cut,
                    error_count=len(report.errors),
                    started_at=started_at,
                    duration_ms=duration_ms,
                    invoked_by=options.invoked_by or "system",
                    reason=options.reason,
                    details_preview=[asdict(d) for d in report.action_details[:DETAILS_PREVIEW_SIZE]],
                )
            )
            self.session.commit()
        except Exception as e:
            self.session.rollback()
            logger.error(f"No se pudo guardar el registro de la corrida {report.run_date}: {e}")
