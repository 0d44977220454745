"""
Run log of the daily billing automation.
"""
from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel


class AutomationLog(SQLModel, table=True):
    __tablename__ = "automation_logs"

    id: Optional[int] = Field(default=None, primary_key=True)
    run_date: str = Field(nullable=False, index=True)
    time_zone: str = Field(nullable=False)
    dry_run: bool = Field(default=False)
    processed_count: int = Field(default=0)
    notifications_sent: int = Field(default=0)
    subscriptions_cut: int = Field(default=0)
    error_count: int = Field(default=0)
    started_at: datetime = Field(default_factory=datetime.utcnow)
    duration_ms: int = Field(default=0)
    invoked_by: str = Field(default="system")
    reason: Optional[str] = Field(default=None)
    details_preview: list = Field(default_factory=list, sa_column=Column(JSON))
