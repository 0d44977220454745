import pytest
from sqlmodel import select

from app.core.constants import MessageStatus, SubscriptionStatus
from app.models.message import Message
from app.services import message_templates
from app.services.automation_service import (
    AutomationService,
    RunOptions,
    validate_cron_expression,
)
from conftest import REFERENCE_NOW, TODAY


@pytest.fixture
def service(session, communications):
    return AutomationService(session, communications)


@pytest.fixture
def cycle(make_subscription):
    """Una suscripción por pase, con "hoy" = 2026-03-11."""
    return {
        "reminder": make_subscription("2026-03-14"),
        "cutoff": make_subscription(TODAY),
        "one_month": make_subscription("2026-02-11"),
        "two_months": make_subscription("2026-01-11", status=SubscriptionStatus.ABOUT_TO_EXPIRE),
    }


@pytest.fixture
def bystanders(make_subscription):
    return [
        make_subscription("2026-03-14", status=SubscriptionStatus.PAUSED),
        make_subscription(TODAY, status=SubscriptionStatus.SUSPENDED),
        make_subscription("2026-02-11", status=SubscriptionStatus.SUSPENDED),
        make_subscription("2026-01-11", status=SubscriptionStatus.CANCELLED),
        make_subscription("2026-01-11", status=SubscriptionStatus.PAUSED),
        make_subscription("2026-02-10"),
        make_subscription("2026-01-05"),
    ]


def run(service, **kwargs):
    return service.run_daily(RunOptions(reference=REFERENCE_NOW, **kwargs))


def actions_by_id(report):
    return {d.subscription_id: d.actions for d in report.action_details}


def test_full_run(service, cycle, bystanders, session, gateway):
    report = run(service)

    assert report.run_date == TODAY
    assert report.time_zone == "America/Caracas"
    assert report.processed_count == 4
    assert report.notifications_sent == 3
    assert report.subscriptions_cut == 1
    assert report.subscriptions_activated == 0
    assert report.errors == []

    actions = actions_by_id(report)
    assert actions[str(cycle["reminder"].id)] == ["notify-reminder-3days"]
    assert actions[str(cycle["cutoff"].id)] == ["notify-cutoff-day"]
    assert actions[str(cycle["one_month"].id)] == ["mark-about-to-expire"]
    assert actions[str(cycle["two_months"].id)] == ["mark-suspended", "notify-suspended"]

    overdue = {d.subscription_id: d.overdue for d in report.action_details}
    assert overdue[str(cycle["reminder"].id)] is False
    assert overdue[str(cycle["cutoff"].id)] is True

    for sub in cycle.values():
        session.refresh(sub)
    assert cycle["reminder"].status == SubscriptionStatus.ACTIVE.value
    assert cycle["cutoff"].status == SubscriptionStatus.ACTIVE.value
    assert cycle["one_month"].status == SubscriptionStatus.ABOUT_TO_EXPIRE.value
    assert cycle["two_months"].status == SubscriptionStatus.SUSPENDED.value

    for sub in bystanders:
        session.refresh(sub)
    assert [s.status for s in bystanders] == [
        "paused", "suspended", "suspended", "cancelled", "paused", "active", "active",
    ]

    sids = [m["content_sid"] for m in gateway.sent]
    assert sids == [
        message_templates.TEMPLATES[message_templates.REMINDER_3_DAYS].content_sid,
        message_templates.TEMPLATES[message_templates.CUTOFF_DAY].content_sid,
        message_templates.TEMPLATES[message_templates.SUSPENDED_NOTICE].content_sid,
    ]
    assert gateway.sent[0]["variables"]["2"] == "2026-03-14"


def test_second_run_same_day_does_not_resuspend(service, cycle, gateway):
    run(service)
    second = run(service)

    assert second.subscriptions_cut == 0
    ids = {d.subscription_id for d in second.action_details}
    assert str(cycle["two_months"].id) not in ids
    assert str(cycle["one_month"].id) not in ids
    suspended_sid = message_templates.TEMPLATES[message_templates.SUSPENDED_NOTICE].content_sid
    assert [m["content_sid"] for m in gateway.sent].count(suspended_sid) == 1


def test_dry_run_reports_without_mutating(service, cycle, session, gateway):
    report = run(service, dry_run=True)

    assert report.dry_run is True
    assert report.processed_count == 4
    assert report.notifications_sent == 3
    assert report.subscriptions_cut == 0
    assert gateway.sent == []
    assert session.exec(select(Message)).all() == []
    for detail in report.action_details:
        assert all(action.endswith(" (dry-run)") for action in detail.actions)

    for sub in cycle.values():
        session.refresh(sub)
    assert cycle["one_month"].status == SubscriptionStatus.ACTIVE.value
    assert cycle["two_months"].status == SubscriptionStatus.ABOUT_TO_EXPIRE.value


def test_failed_notification_is_recorded_and_run_continues(session, make_client, make_subscription):
    from conftest import FakeGateway
    from app.services.communications_service import CommunicationsService

    unlucky = make_client(phone="+584120001111")
    failing = make_subscription("2026-03-14", client=unlucky)
    other = make_subscription("2026-03-14")
    suspended = make_subscription("2026-01-11", client=make_client(phone="+584120002222"))

    gateway = FakeGateway(fail_for={"+584120001111", "+584120002222"})
    service = AutomationService(session, CommunicationsService(session, gateway))
    report = run(service)

    assert report.processed_count == 3
    assert report.notifications_sent == 1
    assert {(e.subscription_id, e.action) for e in report.errors} == {
        (str(failing.id), "notify-reminder-3days"),
        (str(suspended.id), "notify-suspended"),
    }
    assert actions_by_id(report)[str(other.id)] == ["notify-reminder-3days"]

    # la suspensión se mantiene aunque el aviso falle
    session.refresh(suspended)
    assert suspended.status == SubscriptionStatus.SUSPENDED.value
    assert report.subscriptions_cut == 1

    failed = session.exec(select(Message).where(Message.status == MessageStatus.FAILED.value)).all()
    assert len(failed) == 2


def test_failed_suspension_skips_the_notice(service, cycle, monkeypatch, gateway):
    original = service.subscriptions.set_status

    def flaky_set_status(subscription_id, status, commit=True):
        if status == SubscriptionStatus.SUSPENDED:
            raise RuntimeError("database is locked")
        return original(subscription_id, status, commit)

    monkeypatch.setattr(service.subscriptions, "set_status", flaky_set_status)
    report = run(service)

    detail = next(d for d in report.action_details if d.subscription_id == str(cycle["two_months"].id))
    assert detail.actions == []
    assert detail.notes == ["notificación omitida: no se pudo suspender"]
    assert report.subscriptions_cut == 0
    assert report.errors[0].action == "mark-suspended"
    assert report.errors[0].message == "database is locked"
    assert len(gateway.sent) == 2


def test_catch_up_picks_up_missed_days(service, make_subscription, session):
    missed_suspension = make_subscription("2026-01-05")
    missed_warning = make_subscription("2026-02-01")

    exact = run(service, catch_up=False)
    assert exact.processed_count == 0

    report = run(service, catch_up=True)
    actions = actions_by_id(report)
    assert actions[str(missed_warning.id)] == ["mark-about-to-expire"]
    assert actions[str(missed_suspension.id)] == ["mark-suspended", "notify-suspended"]
    session.refresh(missed_suspension)
    assert missed_suspension.status == SubscriptionStatus.SUSPENDED.value


def test_run_log_is_written(service, cycle):
    run(service, invoked_by="admin", reason="manual-trigger", dry_run=True)

    logs = service.list_run_logs()
    assert len(logs) == 1
    log = logs[0]
    assert log.run_date == TODAY
    assert log.dry_run is True
    assert log.processed_count == 4
    assert log.notifications_sent == 3
    assert log.error_count == 0
    assert log.invoked_by == "admin"
    assert log.reason == "manual-trigger"
    assert len(log.details_preview) == 4


def test_run_log_failure_does_not_fail_the_run(service, cycle, monkeypatch):
    def broken_commit():
        raise RuntimeError("disk full")

    monkeypatch.setattr(service.session, "commit", broken_commit)
    report = run(service, dry_run=True)
    assert report.processed_count == 4


def test_run_uses_the_stored_time_zone(service):
    service.update_scheduler_config(time_zone="Asia/Tokyo")
    report = run(service)
    assert report.time_zone == "Asia/Tokyo"
    assert report.run_date == "2026-03-12"


def test_scheduler_config_roundtrip(service):
    default = service.get_scheduler_config()
    assert default.cron_expression == "0 9 * * *"
    assert default.enabled is True
    assert default.last_updated is None

    updated = service.update_scheduler_config(cron_expression="30 6 * * 1-5", enabled=False)
    assert updated.cron_expression == "30 6 * * 1-5"
    assert updated.enabled is False
    assert updated.time_zone == "America/Caracas"
    assert updated.last_updated.endswith("Z")

    # los campos omitidos conservan su valor
    again = service.update_scheduler_config(time_zone="UTC")
    assert again.cron_expression == "30 6 * * 1-5"
    assert again.enabled is False

    reset = service.delete_scheduler_config()
    assert reset.cron_expression == "0 9 * * *"
    assert reset.enabled is True


@pytest.mark.parametrize("expression", ["", "* * *", "61 9 * * *", "0 9 * * * *", "not a cron"])
def test_invalid_cron_expressions(expression):
    with pytest.raises(ValueError):
        validate_cron_expression(expression)


def test_invalid_update_is_not_persisted(service):
    with pytest.raises(ValueError):
        service.update_scheduler_config(time_zone="Nowhere/Town")
    with pytest.raises(ValueError):
        service.update_scheduler_config(cron_expression="99 99 * * *")
    assert service.get_scheduler_config().last_updated is None
