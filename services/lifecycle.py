"""
services/lifecycle.py
---------------------
Pure rules for the payment lifecycle: status derivation and the set of
reminders a payment should have. Nothing here reads or writes storage.
"""

from datetime import datetime

from models.payment import Payment, PaymentStatus
from models.reminder import Reminder, ReminderType


def derive_status(due_date: datetime, explicitly_paid: bool, now: datetime) -> PaymentStatus:
    """
    Compute a payment's status.

    An explicit paid flag always wins. Otherwise the payment is overdue only
    when its due calendar day is strictly before today's; a payment due later
    today is still upcoming.
    """
    if explicitly_paid:
        return PaymentStatus.PAID
    if due_date.date() < now.date():
        return PaymentStatus.OVERDUE
    return PaymentStatus.UPCOMING


def refresh_status(payment: Payment, now: datetime) -> bool:
    """
    Re-derive the cached status in place.

    Returns:
        True if the status changed.
    """
    status = derive_status(payment.due_date, payment.is_paid, now)
    if status == payment.status:
        return False
    payment.status = status
    return True


def generate_reminders(
    payment_id: str,
    due_date: datetime,
    enabled_types,
    now: datetime,
) -> list[Reminder]:
    """
    Build the candidate reminders for a payment.

    Reminders whose scheduled time is not strictly after `now` are dropped;
    nothing fires retroactively.

    Args:
        payment_id: Owning payment.
        due_date: Payment due date.
        enabled_types: Iterable of ReminderType.
        now: Current time.

    Returns:
        Reminders ordered by ReminderType declaration order. Empty when no
        type is enabled or every candidate is already in the past.
    """
    reminders = []
    for reminder_type in ReminderType.ordered(enabled_types):
        scheduled_time = due_date - reminder_type.offset
        if scheduled_time <= now:
            continue
        reminders.append(
            Reminder(
                payment_id=payment_id,
                scheduled_time=scheduled_time,
                type=reminder_type,
                created_at=now,
            )
        )
    return reminders
