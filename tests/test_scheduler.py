import pytest

from app.scheduler import JOB_ID, AutomationScheduler
from app.services.automation_service import SchedulerConfig


@pytest.fixture
def scheduler():
    calls = []
    handle = AutomationScheduler(
        job=lambda: calls.append("run"),
        config_loader=lambda: SchedulerConfig(cron_expression="0 9 * * *", time_zone="UTC"),
        disabled=False,
    )
    yield handle
    handle.stop()


def test_start_schedules_the_daily_job(scheduler):
    assert scheduler.start() is True
    assert scheduler.is_running

    state = scheduler.describe()
    assert state["running"] is True
    assert state["cron_expression"] == "0 9 * * *"
    assert state["time_zone"] == "UTC"
    assert "T09:00:00" in state["next_run_time"]


def test_restart_replaces_the_timer(scheduler):
    scheduler.start()
    first = scheduler._scheduler

    assert scheduler.restart(SchedulerConfig(cron_expression="30 6 * * *", time_zone="America/Caracas"))
    assert scheduler._scheduler is not first
    assert not first.running
    assert scheduler._scheduler.get_job(JOB_ID) is not None
    assert scheduler.describe()["cron_expression"] == "30 6 * * *"


def test_disabled_config_leaves_no_timer(scheduler):
    scheduler.start()
    assert scheduler.restart(SchedulerConfig(enabled=False)) is False
    assert not scheduler.is_running
    assert scheduler.describe()["enabled"] is False


def test_environment_kill_switch():
    handle = AutomationScheduler(job=lambda: None, config_loader=SchedulerConfig, disabled=True)
    assert handle.start() is False
    assert handle.describe() == {
        "running": False,
        "disabled": True,
        "cron_expression": None,
        "time_zone": None,
        "enabled": None,
        "next_run_time": None,
    }


def test_stop_is_safe_when_not_running(scheduler):
    scheduler.stop()
    scheduler.stop()
    assert not scheduler.is_running
