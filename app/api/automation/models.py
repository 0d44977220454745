from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict


class RunDailyRequest(BaseModel):
    reason: Optional[str] = None


class RunError(BaseModel):
    subscription_id: Optional[str] = None
    action: str
    message: str


class ActionDetail(BaseModel):
    subscription_id: str
    actions: List[str]
    overdue: bool
    notes: Optional[List[str]] = None


class RunReport(BaseModel):
    run_date: str
    time_zone: str
    dry_run: bool
    processed_count: int
    notifications_sent: int
    subscriptions_cut: int
    subscriptions_activated: int
    errors: List[RunError]
    action_details: List[ActionDetail]


class SchedulerConfigUpdate(BaseModel):
    cron_expression: Optional[str] = None
    enabled: Optional[bool] = None
    time_zone: Optional[str] = None


class SchedulerConfig(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cron_expression: str
    enabled: bool
    time_zone: str
    last_updated: Optional[str] = None


class SchedulerConfigResponse(BaseModel):
    config: SchedulerConfig
    scheduler: dict


class AutomationLog(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    run_date: str
    time_zone: str
    dry_run: bool
    processed_count: int
    notifications_sent: int
    subscriptions_cut: int
    error_count: int
    started_at: datetime
    duration_ms: int
    invoked_by: str
    reason: Optional[str] = None
    details_preview: list
