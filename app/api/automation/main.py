# app/api/automation/main.py
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlmodel import Session

from ...core.audit import log_action
from ...core.users import require_admin
from ...db.engine_sync import get_sync_session
from ...models.user import User
from ...scheduler import AutomationScheduler, automation_scheduler
from ...services.automation_service import AutomationService, RunOptions
from .models import (
    AutomationLog,
    RunDailyRequest,
    RunReport,
    SchedulerConfigResponse,
    SchedulerConfigUpdate,
)

router = APIRouter()


# --- Dependency Injectors ---
def get_automation_service(session: Session = Depends(get_sync_session)) -> AutomationService:
    return AutomationService(session)


def get_scheduler() -> AutomationScheduler:
    return automation_scheduler


def _config_response(config, scheduler: AutomationScheduler) -> dict:
    return {"config": asdict(config), "scheduler": scheduler.describe()}


@router.post("/automation/run-daily", response_model=RunReport)
def api_run_daily(
    request: Request,
    body: Optional[RunDailyRequest] = None,
    dry_run: bool = Query(False, alias="dryRun"),
    service: AutomationService = Depends(get_automation_service),
    current_user: User = Depends(require_admin),
):
    reason = (body.reason if body else None) or "manual-trigger"
    report = service.run_daily(
        RunOptions(invoked_by=current_user.username, reason=reason, dry_run=dry_run)
    )
    log_action(
        "RUN",
        "automation",
        report.run_date,
        user=current_user,
        request=request,
        details={"dry_run": dry_run, "reason": reason, "errors": len(report.errors)},
    )
    return report.to_dict()


@router.get("/automation/config", response_model=SchedulerConfigResponse)
def api_get_config(
    service: AutomationService = Depends(get_automation_service),
    scheduler: AutomationScheduler = Depends(get_scheduler),
    current_user: User = Depends(require_admin),
):
    return _config_response(service.get_scheduler_config(), scheduler)


@router.put("/automation/config", response_model=SchedulerConfigResponse)
def api_update_config(
    update: SchedulerConfigUpdate,
    request: Request,
    service: AutomationService = Depends(get_automation_service),
    scheduler: AutomationScheduler = Depends(get_scheduler),
    current_user: User = Depends(require_admin),
):
    try:
        config = service.update_scheduler_config(
            cron_expression=update.cron_expression,
            enabled=update.enabled,
            time_zone=update.time_zone,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    scheduler.restart(config)
    log_action(
        "UPDATE",
        "automation_config",
        "scheduler",
        user=current_user,
        request=request,
        details=update.model_dump(exclude_unset=True),
    )
    return _config_response(config, scheduler)


@router.delete("/automation/config", response_model=SchedulerConfigResponse)
def api_delete_config(
    request: Request,
    service: AutomationService = Depends(get_automation_service),
    scheduler: AutomationScheduler = Depends(get_scheduler),
    current_user: User = Depends(require_admin),
):
    config = service.delete_scheduler_config()
    scheduler.restart(config)
    log_action("DELETE", "automation_config", "scheduler", user=current_user, request=request)
    return _config_response(config, scheduler)


@router.get("/automation/logs", response_model=List[AutomationLog])
def api_get_run_logs(
    limit: int = Query(20, ge=1, le=100),
    service: AutomationService = Depends(get_automation_service),
    current_user: User = Depends(require_admin),
):
    return service.list_run_logs(limit)
