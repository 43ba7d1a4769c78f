"""Pytest configuration and shared fixtures."""

import asyncio
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from models.payment import Payment, PaymentCategory
from models.reminder import Reminder, ReminderType
from services.payment_service import PaymentService
from services.reminder_service import ReminderSynchronizer


class FixedClock:
    """Injectable clock; tests move time by assigning or advancing `now`."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class InMemoryPaymentStore:
    """Payment store keeping rows in their persisted map form."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.fail_put = False
        self.put_calls = 0

    def put(self, payment: Payment) -> Payment:
        self.put_calls += 1
        if self.fail_put:
            raise RuntimeError("database is down")
        self.rows[payment.id] = payment.to_map()
        return payment

    def get(self, payment_id, include_deleted=False):
        row = self.rows.get(payment_id)
        if row is None or (row["is_deleted"] and not include_deleted):
            return None
        return Payment.from_map(row)

    def list_by_owner(self, user_id):
        payments = [
            Payment.from_map(r) for r in self.rows.values()
            if r["user_id"] == user_id and not r["is_deleted"]
        ]
        return sorted(payments, key=lambda p: p.due_date)

    def list_unsynced(self, user_id):
        return [
            Payment.from_map(r) for r in self.rows.values()
            if r["user_id"] == user_id and not r["is_synced"]
        ]

    def list_owners(self):
        return sorted({r["user_id"] for r in self.rows.values()})

    def mark_synced(self, payment_id):
        self.rows[payment_id]["is_synced"] = True
        return True

    def delete(self, payment_id):
        return self.rows.pop(payment_id, None) is not None


class InMemoryReminderStore:
    """Reminder store with switchable failures."""

    def __init__(self):
        self.rows: dict[str, dict] = {}
        self.fail_list = False
        self.fail_delete = False
        self.fail_put = False

    def put(self, reminder: Reminder) -> Reminder:
        self.rows[reminder.id] = reminder.to_map()
        return reminder

    def put_many(self, reminders):
        if self.fail_put:
            raise RuntimeError("reminders table is locked")
        for reminder in reminders:
            self.put(reminder)
        return reminders

    def get(self, reminder_id):
        row = self.rows.get(reminder_id)
        return Reminder.from_map(row) if row else None

    def list_for_payment(self, payment_id):
        if self.fail_list:
            raise RuntimeError("reminders table is unreadable")
        return [Reminder.from_map(r) for r in self.rows.values() if r["payment_id"] == payment_id]

    def list_active(self):
        return [
            Reminder.from_map(r) for r in self.rows.values()
            if r["is_active"] and not r["has_triggered"]
        ]

    def delete_for_payment(self, payment_id):
        if self.fail_delete:
            raise RuntimeError("reminders table is locked")
        doomed = [rid for rid, r in self.rows.items() if r["payment_id"] == payment_id]
        for rid in doomed:
            del self.rows[rid]
        return len(doomed)


class RecordingScheduler:
    """Notification scheduler that records calls instead of delivering."""

    def __init__(self):
        self.pending: dict[int, dict] = {}
        self.calls: list[tuple] = []
        self.fail_schedule = False
        self.fail_cancel = False
        self.delay = 0.0

    async def schedule_at(self, notification_id, when, title, body, payload):
        self.calls.append(("schedule", notification_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_schedule:
            raise RuntimeError("notification permission denied")
        self.pending[notification_id] = {
            "when": when, "title": title, "body": body, "payload": payload,
        }

    async def cancel(self, notification_id):
        self.calls.append(("cancel", notification_id))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_cancel:
            raise RuntimeError("notification service unavailable")
        self.pending.pop(notification_id, None)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(datetime(2024, 1, 1, 10, 0))


@pytest.fixture
def payment_store() -> InMemoryPaymentStore:
    return InMemoryPaymentStore()


@pytest.fixture
def reminder_store() -> InMemoryReminderStore:
    return InMemoryReminderStore()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def synchronizer(reminder_store, scheduler, clock) -> ReminderSynchronizer:
    return ReminderSynchronizer(reminder_store, scheduler, clock=clock, timeout=0.05)


@pytest.fixture
def service(payment_store, synchronizer, clock) -> PaymentService:
    return PaymentService(payment_store, synchronizer, clock=clock)


@pytest.fixture
def make_payment(clock):
    """Factory for valid payments due three days after the fixed clock."""

    def _make(**overrides) -> Payment:
        fields = {
            "user_id": "42",
            "title": "Rent",
            "amount": Decimal("800.00"),
            "due_date": clock.now + timedelta(days=3),
            "category": PaymentCategory.RENT,
            "reminder_types": frozenset(ReminderType),
        }
        fields.update(overrides)
        return Payment(**fields)

    return _make
