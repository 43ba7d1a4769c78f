"""
services/reminder_service.py
----------------------------
Keeps a payment's stored reminders and scheduled notifications consistent
with the payment's current state.

Every sync tears down whatever exists for the payment and rebuilds from the
current field values. Teardown always happens before recreation, and runs for
one payment at a time (see `PaymentLocks`), so at most one active reminder
exists per (payment, reminder type).
"""

import asyncio
import weakref
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from config import NOTIFICATION_TIMEOUT_SECONDS
from exceptions import ReminderNotFoundError
from models.payment import Payment
from models.reminder import Reminder, ReminderType, notification_id_for
from services.lifecycle import generate_reminders
from utils.formatting import render_reminder
from utils.logger import get_logger

logger = get_logger(__name__)

SNOOZE_DURATION = timedelta(hours=1)


class PaymentLocks:
    """
    One asyncio.Lock per payment id.

    Locks are held weakly: an entry disappears once nobody holds or waits
    on it, so the registry does not grow with the number of payments.
    """

    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def get(self, payment_id: str) -> asyncio.Lock:
        lock = self._locks.get(payment_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[payment_id] = lock
        return lock

    def __len__(self) -> int:
        return len(self._locks)


@dataclass
class ReminderSyncReport:
    """Outcome of one synchronization run. Warnings never fail the caller."""

    payment_id: str
    cancelled: int = 0
    scheduled: list[Reminder] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.warnings


class ReminderSynchronizer:
    """
    Reconciles stored reminders and the notification scheduler with a payment.

    Collaborators are injected:
        reminders: store with list_for_payment / put_many / put / get /
            delete_for_payment / list_active.
        scheduler: a NotificationScheduler.
        clock: zero-argument callable returning the current datetime.
        render: builds (title, body) for a reminder of a payment.
    """

    def __init__(
        self,
        reminders,
        scheduler,
        clock: Callable[[], datetime] = datetime.now,
        render: Callable[[Reminder, Payment], tuple[str, str]] = render_reminder,
        locks: PaymentLocks | None = None,
        timeout: float = NOTIFICATION_TIMEOUT_SECONDS,
    ):
        self.reminders = reminders
        self.scheduler = scheduler
        self.clock = clock
        self.render = render
        self.locks = locks or PaymentLocks()
        self.timeout = timeout

    # ── ENTRY POINT ───────────────────────────────────────

    async def on_payment_changed(self, payment: Payment) -> ReminderSyncReport:
        """Synchronize a payment after a committed mutation."""
        async with self.locks.get(payment.id):
            return await self.synchronize_reminders(payment)

    async def synchronize_reminders(self, payment: Payment) -> ReminderSyncReport:
        """
        Tear down and rebuild the reminders of `payment`.

        The caller must hold ``self.locks.get(payment.id)``.

        Returns:
            A report listing the reminders now scheduled and any warnings.
        """
        report = ReminderSyncReport(payment.id)
        await self._teardown(payment, report)

        if payment.is_deleted or payment.is_paid or not payment.reminder_enabled:
            logger.debug(f"No reminders wanted for payment #{payment.id}")
            return report

        reminders = generate_reminders(
            payment.id, payment.due_date, payment.reminder_types, self.clock()
        )
        if not reminders:
            return report

        try:
            self.reminders.put_many(reminders)
        except Exception as e:
            logger.error(f"Failed to store reminders for payment #{payment.id}: {e}")
            report.warnings.append(f"Reminders could not be saved: {e}")
            return report

        for reminder in reminders:
            if await self._schedule(reminder, payment, report):
                report.scheduled.append(reminder)

        logger.info(
            f"Payment #{payment.id}: cancelled {report.cancelled}, "
            f"scheduled {len(report.scheduled)}/{len(reminders)} reminder(s)"
        )
        return report

    # ── OTHER REMINDER ACTIONS ────────────────────────────

    async def reschedule_all(self, payments) -> int:
        """
        Re-issue schedule calls for every stored reminder still pending.

        Used at startup, when the scheduler has lost its in-memory jobs.

        Args:
            payments: Store with ``get(payment_id)`` to resolve owners.

        Returns:
            Number of reminders scheduled.
        """
        now = self.clock()
        count = 0
        for reminder in self.reminders.list_active():
            if not reminder.should_schedule(now):
                continue
            payment = payments.get(reminder.payment_id)
            if payment is None or payment.is_paid or not payment.reminder_enabled:
                continue
            async with self.locks.get(payment.id):
                report = ReminderSyncReport(payment.id)
                if await self._schedule(reminder, payment, report):
                    count += 1
        logger.info(f"Rescheduled {count} pending reminder(s)")
        return count

    def get_reminder(self, reminder_id: str) -> Reminder:
        reminder = self.reminders.get(reminder_id)
        if reminder is None:
            raise ReminderNotFoundError(reminder_id)
        return reminder

    def mark_triggered(self, reminder_id: str) -> None:
        """Record that a reminder's notification fired."""
        reminder = self.reminders.get(reminder_id)
        if reminder is None:
            # Superseded by a later sync before it fired.
            logger.debug(f"Fired reminder #{reminder_id} no longer stored")
            return
        reminder.has_triggered = True
        self.reminders.put(reminder)

    async def snooze(self, reminder_id: str, payment: Payment,
                     duration: timedelta = SNOOZE_DURATION) -> Reminder:
        """
        Push a reminder to ``now + duration`` and schedule it again.

        The caller must hold ``self.locks.get(payment.id)``. The reminder is
        read here, under that lock, so one replaced by a concurrent sync is
        reported missing instead of being written back.

        Uses the same notification id, so the snoozed notification replaces
        the original one.

        Raises:
            ReminderNotFoundError: If the reminder is gone, belongs to another
                payment, or the payment is paid or deleted.
        """
        reminder = self.get_reminder(reminder_id)
        if reminder.payment_id != payment.id or payment.is_paid or payment.is_deleted:
            raise ReminderNotFoundError(reminder_id)

        report = ReminderSyncReport(payment.id)
        await self._cancel(reminder.notification_id, report)
        snoozed = reminder.snoozed(duration, self.clock())
        self.reminders.put(snoozed)
        await self._schedule(snoozed, payment, report)
        for warning in report.warnings:
            logger.warning(f"Snooze of reminder #{reminder.id}: {warning}")
        logger.info(f"Snoozed reminder #{reminder.id} until {snoozed.scheduled_time:%H:%M}")
        return snoozed

    # ── HELPERS ───────────────────────────────────────────

    async def _teardown(self, payment: Payment, report: ReminderSyncReport) -> None:
        """Cancel and delete existing reminders; failures only add warnings."""
        try:
            existing = self.reminders.list_for_payment(payment.id)
            notification_ids = [r.notification_id for r in existing]
        except Exception as e:
            logger.error(f"Failed to list reminders of payment #{payment.id}: {e}")
            report.warnings.append(f"Existing reminders could not be listed: {e}")
            # Ids are deterministic, so every possible one can still be cancelled.
            notification_ids = [notification_id_for(payment.id, t) for t in ReminderType]

        for notification_id in notification_ids:
            if await self._cancel(notification_id, report):
                report.cancelled += 1

        try:
            self.reminders.delete_for_payment(payment.id)
        except Exception as e:
            logger.error(f"Failed to delete reminders of payment #{payment.id}: {e}")
            report.warnings.append(f"Old reminders could not be removed: {e}")

    async def _cancel(self, notification_id: int, report: ReminderSyncReport) -> bool:
        try:
            await asyncio.wait_for(self.scheduler.cancel(notification_id), self.timeout)
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out cancelling notification {notification_id}")
            report.warnings.append(f"Cancelling notification {notification_id} timed out")
        except Exception as e:
            logger.error(f"Failed to cancel notification {notification_id}: {e}")
            report.warnings.append(f"Notification {notification_id} could not be cancelled: {e}")
        return False

    async def _schedule(self, reminder: Reminder, payment: Payment, report: ReminderSyncReport) -> bool:
        title, body = self.render(reminder, payment)
        try:
            await asyncio.wait_for(
                self.scheduler.schedule_at(
                    reminder.notification_id, reminder.scheduled_time, title, body, reminder.payload
                ),
                self.timeout,
            )
            return True
        except asyncio.TimeoutError:
            logger.warning(f"Timed out scheduling reminder #{reminder.id}")
            report.warnings.append(f"Scheduling the {reminder.type.value} reminder timed out")
        except Exception as e:
            logger.error(f"Failed to schedule reminder #{reminder.id}: {e}")
            report.warnings.append(f"The {reminder.type.value} reminder could not be scheduled: {e}")
        return False
