"""
services/payment_service.py
---------------------------
Business logic for creating, editing, paying and deleting payments.

Every mutation follows the same order: validate, persist the payment, then
synchronize its reminders. Validation and storage errors on the payment
itself propagate. Reminder problems come back as warnings on the result and
never undo the mutation.
"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Callable, Optional

from config import GUEST_USER_ID
from exceptions import PaymentNotFoundError, ReminderNotFoundError
from models.payment import Payment, PaymentCategory, PaymentStatus
from models.reminder import Reminder
from services.lifecycle import derive_status, refresh_status
from services.reminder_service import SNOOZE_DURATION, ReminderSynchronizer
from utils.logger import get_logger
from utils.validators import validate_amount, validate_due_date, validate_notes, validate_title

logger = get_logger(__name__)


class PaymentSortOption(str, Enum):
    DUE_DATE = "due_date"
    AMOUNT = "amount"
    TITLE = "title"


_SORT_KEYS = {
    PaymentSortOption.DUE_DATE: lambda p: p.due_date,
    PaymentSortOption.AMOUNT: lambda p: p.amount,
    PaymentSortOption.TITLE: lambda p: p.title.lower(),
}


@dataclass
class PaymentResult:
    """A committed payment plus any non-fatal reminder warnings."""

    payment: Payment
    warnings: list[str] = field(default_factory=list)
    reminders: list[Reminder] = field(default_factory=list)


@dataclass
class PaymentSummary:
    counts: dict
    total_due: Decimal
    total_paid: Decimal
    due_today: int


class PaymentService:
    """
    Orchestrates payment mutations and reads.

    Responsibilities:
        - Validate and persist payments.
        - Serialize mutations per payment id.
        - Trigger reminder synchronization after every committed change.
        - Recompute status on every read.
    """

    def __init__(self, payments, synchronizer: ReminderSynchronizer,
                 clock: Callable[[], datetime] = datetime.now):
        self.payments = payments
        self.synchronizer = synchronizer
        self.clock = clock

    @property
    def locks(self):
        return self.synchronizer.locks

    # ── MUTATIONS ─────────────────────────────────────────

    async def add_payment(self, payment: Payment) -> PaymentResult:
        """
        Validate, store and schedule reminders for a new payment.

        Raises:
            ValidationError: Before anything is written.
        """
        self._validate(payment)
        now = self.clock()
        payment.created_at = now
        payment.updated_at = now
        payment.is_synced = False
        payment.is_deleted = False
        refresh_status(payment, now)

        async with self.locks.get(payment.id):
            self.payments.put(payment)
            logger.info(f"Added payment '{payment.title}' #{payment.id} for user {payment.user_id}")
            report = await self.synchronizer.synchronize_reminders(payment)
        return PaymentResult(payment, report.warnings, report.scheduled)

    async def update_payment(self, payment: Payment, user_id: Optional[str] = None) -> PaymentResult:
        """
        Store new field values for an existing payment.

        All of its reminders are rebuilt, whatever field changed. Owner,
        creation time, the paid flag and the deleted flag come from the
        stored row; only mark_paid / mark_unpaid / delete_payment change them.

        Raises:
            ValidationError: Before anything is written.
            PaymentNotFoundError: If the id is unknown, deleted, or not owned by `user_id`.
        """
        self._validate(payment)
        async with self.locks.get(payment.id):
            existing = self._load(payment.id, user_id)
            now = self.clock()
            payment.user_id = existing.user_id
            payment.created_at = existing.created_at
            payment.is_deleted = existing.is_deleted
            payment.status = derive_status(payment.due_date, existing.is_paid, now)
            payment.updated_at = now
            payment.is_synced = False
            self.payments.put(payment)
            logger.info(f"Updated payment #{payment.id}")
            report = await self.synchronizer.synchronize_reminders(payment)
        return PaymentResult(payment, report.warnings, report.scheduled)

    async def delete_payment(self, payment_id: str, user_id: Optional[str] = None) -> PaymentResult:
        """Soft-delete a payment and tear down its reminders."""
        return await self._change(payment_id, user_id, _soft_delete, "Deleted")

    async def mark_paid(self, payment_id: str, user_id: Optional[str] = None) -> PaymentResult:
        return await self._change(payment_id, user_id, _set_paid, "Marked paid")

    async def mark_unpaid(self, payment_id: str, user_id: Optional[str] = None) -> PaymentResult:
        """Revert to upcoming or overdue, as of now, and rebuild reminders."""
        return await self._change(payment_id, user_id, _set_unpaid, "Marked unpaid")

    async def toggle_paid(self, payment_id: str, user_id: Optional[str] = None) -> PaymentResult:
        """Mark paid if unpaid and vice versa, deciding under the payment lock."""
        return await self._change(payment_id, user_id, _toggle_paid, "Toggled paid flag of")

    async def snooze_reminder(self, reminder_id: str, user_id: Optional[str] = None,
                              duration: timedelta = SNOOZE_DURATION) -> Reminder:
        """
        Raises:
            ReminderNotFoundError: If the reminder is gone, superseded by a
                sync, or belongs to a paid payment.
            PaymentNotFoundError: If its payment is gone or not owned by `user_id`.
        """
        payment_id = self.synchronizer.get_reminder(reminder_id).payment_id
        async with self.locks.get(payment_id):
            payment = self._load(payment_id, user_id)
            if payment.is_paid:
                raise ReminderNotFoundError(reminder_id)
            return await self.synchronizer.snooze(reminder_id, payment, duration)

    async def refresh_statuses(self, user_id: Optional[str] = None) -> int:
        """
        Persist status flips caused by time passing (upcoming -> overdue).

        Args:
            user_id: Limit the sweep to one owner; all owners when None.

        Returns:
            Number of payments whose stored status changed.
        """
        owners = [user_id] if user_id else self.payments.list_owners()
        changed = 0
        for owner in owners:
            for candidate in self.payments.list_by_owner(owner):
                async with self.locks.get(candidate.id):
                    payment = self.payments.get(candidate.id)
                    now = self.clock()
                    if payment is None or not refresh_status(payment, now):
                        continue
                    payment.updated_at = now
                    payment.is_synced = False
                    self.payments.put(payment)
                    changed += 1
        if changed:
            logger.info(f"Status sweep updated {changed} payment(s)")
        return changed

    async def migrate_guest_payments(self, new_user_id: str, guest_id: str = GUEST_USER_ID) -> int:
        """Hand every payment owned by the guest sentinel to a real account."""
        moved = 0
        for payment in self.payments.list_by_owner(guest_id):
            async with self.locks.get(payment.id):
                payment.user_id = new_user_id
                payment.updated_at = self.clock()
                payment.is_synced = False
                self.payments.put(payment)
                moved += 1
        logger.info(f"Migrated {moved} guest payment(s) to user {new_user_id}")
        return moved

    async def sync_payments(self, user_id: Optional[str] = None) -> int:
        """
        Local stand-in for the cloud sync: confirm every pending change.

        Soft-deleted payments are purged once their deletion is confirmed,
        since nothing else needs them for reconciliation.

        Returns:
            Number of payments confirmed.
        """
        owners = [user_id] if user_id else self.payments.list_owners()
        synced = 0
        for owner in owners:
            for payment in self.payments.list_unsynced(owner):
                async with self.locks.get(payment.id):
                    if payment.is_deleted:
                        self.payments.delete(payment.id)
                    else:
                        self.payments.mark_synced(payment.id)
                    synced += 1
        if synced:
            logger.info(f"Synced {synced} payment(s)")
        return synced

    async def reschedule_reminders(self) -> int:
        return await self.synchronizer.reschedule_all(self.payments)

    # ── READS ─────────────────────────────────────────────

    def get_payment(self, payment_id: str, user_id: Optional[str] = None) -> Payment:
        """
        Fetch one payment with its status recomputed for the current time.

        Raises:
            PaymentNotFoundError: If missing, deleted, or owned by someone else.
        """
        payment = self._load(payment_id, user_id)
        refresh_status(payment, self.clock())
        return payment

    def list_payments(
        self,
        user_id: str,
        status: Optional[PaymentStatus] = None,
        category: Optional[PaymentCategory] = None,
        query: Optional[str] = None,
        sort: PaymentSortOption = PaymentSortOption.DUE_DATE,
        ascending: bool = True,
    ) -> list[Payment]:
        """
        List a user's payments, filtered and sorted.

        Statuses are recomputed before filtering, so a payment stored as
        upcoming that is now past due is listed (and filtered) as overdue.
        """
        now = self.clock()
        payments = self.payments.list_by_owner(user_id)
        for payment in payments:
            refresh_status(payment, now)

        if status is not None:
            payments = [p for p in payments if p.status == status]
        if category is not None:
            payments = [p for p in payments if p.category == category]
        if query:
            needle = query.lower()
            payments = [p for p in payments if needle in p.title.lower()]

        return sorted(payments, key=_SORT_KEYS[sort], reverse=not ascending)

    def payments_for_date(self, user_id: str, day: date) -> list[Payment]:
        return [p for p in self.list_payments(user_id) if p.due_date.date() == day]

    def payments_due_today(self, user_id: str) -> list[Payment]:
        today = self.clock().date()
        return [p for p in self.payments_for_date(user_id, today) if not p.is_paid]

    def summary(self, user_id: str) -> PaymentSummary:
        """Counts per status and totals, as shown on the dashboard."""
        payments = self.list_payments(user_id)
        today = self.clock().date()
        counts = {status: 0 for status in PaymentStatus}
        total_due = Decimal("0")
        total_paid = Decimal("0")
        due_today = 0
        for p in payments:
            counts[p.status] += 1
            if p.is_paid:
                total_paid += p.amount
            else:
                total_due += p.amount
                if p.is_due_today(today):
                    due_today += 1
        return PaymentSummary(counts, total_due, total_paid, due_today)

    # ── HELPERS ───────────────────────────────────────────

    def _load(self, payment_id: str, user_id: Optional[str]) -> Payment:
        payment = self.payments.get(payment_id)
        if payment is None or (user_id is not None and payment.user_id != user_id):
            raise PaymentNotFoundError(payment_id)
        return payment

    async def _change(self, payment_id, user_id, change, action: str) -> PaymentResult:
        async with self.locks.get(payment_id):
            payment = self._load(payment_id, user_id)
            now = self.clock()
            change(payment, now)
            payment.updated_at = now
            payment.is_synced = False
            self.payments.put(payment)
            logger.info(f"{action} payment #{payment_id}")
            report = await self.synchronizer.synchronize_reminders(payment)
        return PaymentResult(payment, report.warnings, report.scheduled)

    @staticmethod
    def _validate(payment: Payment) -> None:
        """Check every field first, then write back the normalized values."""
        title = validate_title(payment.title)
        amount = validate_amount(payment.amount)
        notes = validate_notes(payment.notes)
        validate_due_date(payment.due_date)
        payment.title = title
        payment.amount = amount
        payment.notes = notes


def _soft_delete(payment: Payment, now: datetime) -> None:
    payment.is_deleted = True


def _set_paid(payment: Payment, now: datetime) -> None:
    payment.status = PaymentStatus.PAID


def _set_unpaid(payment: Payment, now: datetime) -> None:
    payment.status = derive_status(payment.due_date, False, now)


def _toggle_paid(payment: Payment, now: datetime) -> None:
    if payment.is_paid:
        _set_unpaid(payment, now)
    else:
        _set_paid(payment, now)
