# backend/tests/test_automation_jobs.py
import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal

from olimpo_gym.automation import jobs
from olimpo_gym.automation.jobs import (
    run_auto_renew_memberships,
    run_check_expired_memberships,
    run_notify_expiring_memberships,
)
from olimpo_gym.automation.scheduler import MembershipScheduler, _guarded
from olimpo_gym.memberships.config import MembershipSettings
from olimpo_gym.memberships.repository import InMemoryMembershipRepository
from olimpo_gym.memberships.schemas import MembershipStatus, MembershipType
from olimpo_gym.memberships.service import MembershipService
from olimpo_gym.users.repository import InMemoryUserRepository
from olimpo_gym.users.schemas import UserProfile


class DummyNotificationService:
    def __init__(self) -> None:
        self.expirations = []
        self.renewals = []

    def send_membership_expiration_notification(self, email, name, expiration_date, membership_type, options=None):
        self.expirations.append(email)
        return True

    def send_membership_renewal_notification(self, email, name, new_expiration_date, membership_type, options=None):
        self.renewals.append(email)
        return True


def _utc(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


def _service_with(*memberships):
    repository = InMemoryMembershipRepository()
    for data in memberships:
        repository.insert(
            {
                "user_id": "user-1",
                "type": MembershipType.MONTHLY,
                "price": Decimal("15000"),
                "start_date": data["end_date"] - timedelta(days=30),
                **data,
            }
        )
    notifications = DummyNotificationService()
    service = MembershipService(
        repository,
        settings=MembershipSettings(),
        notification_service=notifications,
        user_repository=InMemoryUserRepository([UserProfile(id="user-1", email="ana@example.com")]),
    )
    return service, notifications


def test_run_check_expired_memberships_normalizes_naive_now() -> None:
    service, _ = _service_with(
        {"status": MembershipStatus.ACTIVE, "end_date": _utc(2025, 1, 1)},
        {"status": MembershipStatus.ACTIVE, "end_date": _utc(2025, 3, 1)},
    )

    result = run_check_expired_memberships(service=service, now=datetime(2025, 1, 2))

    assert result.checked == 1
    assert len(result.expired_ids) == 1


def test_run_auto_renew_memberships_sends_renewal_notices_by_default() -> None:
    service, notifications = _service_with(
        {"status": MembershipStatus.EXPIRED, "end_date": _utc(2025, 1, 1), "auto_renew": True},
    )

    result = run_auto_renew_memberships(service=service, now=_utc(2025, 1, 5))

    assert len(result.renewed_ids) == 1
    assert notifications.renewals == ["ana@example.com"]


def test_run_notify_expiring_memberships_uses_window() -> None:
    service, notifications = _service_with(
        {"status": MembershipStatus.ACTIVE, "end_date": _utc(2025, 1, 10)},
        {"status": MembershipStatus.ACTIVE, "end_date": _utc(2025, 1, 20)},
    )

    result = run_notify_expiring_memberships(service=service, now=_utc(2025, 1, 6))

    assert result.count == 1
    assert result.notified == 1
    assert notifications.expirations == ["ana@example.com"]

    wider = run_notify_expiring_memberships(service=service, now=_utc(2025, 1, 6), window_days=14)
    assert wider.count == 2


def test_main_dispatches_selected_job(monkeypatch) -> None:
    calls = []
    monkeypatch.setattr(jobs, "run_check_expired_memberships", lambda **kwargs: calls.append(("expire", kwargs)))
    monkeypatch.setattr(jobs, "run_auto_renew_memberships", lambda **kwargs: calls.append(("auto-renew", kwargs)))
    monkeypatch.setattr(jobs, "configure_logging", lambda: None)

    monkeypatch.setattr("sys.argv", ["jobs", "expire"])
    jobs.main()
    monkeypatch.setattr("sys.argv", ["jobs", "auto-renew", "--no-notify"])
    jobs.main()

    assert calls == [("expire", {}), ("auto-renew", {"notify": False})]


def test_scheduler_registers_cron_jobs() -> None:
    scheduler = MembershipScheduler()
    scheduler.configure()
    scheduler.configure()

    jobs_by_id = {job.id: job for job in scheduler.scheduler.get_jobs()}

    assert set(jobs_by_id) == {
        "check_expired_memberships",
        "auto_renew_memberships",
        "notify_expiring_memberships",
    }
    assert "hour='8'" in str(jobs_by_id["check_expired_memberships"].trigger)
    assert "hour='0'" in str(jobs_by_id["auto_renew_memberships"].trigger)
    trigger = str(jobs_by_id["notify_expiring_memberships"].trigger)
    assert "day_of_week='mon'" in trigger
    assert "hour='10'" in trigger


def test_guarded_job_logs_and_swallows_exceptions(caplog) -> None:
    def broken() -> None:
        raise RuntimeError("boom")

    with caplog.at_level(logging.ERROR):
        _guarded("broken", broken)()

    assert any("broken" in r.getMessage() and r.exc_info for r in caplog.records)
