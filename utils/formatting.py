"""
utils/formatting.py
-------------------
Presentation metadata for the domain enums and the text of every
user-facing payment and reminder message.
"""

from datetime import date

from telegram.helpers import escape_markdown

from config import DEFAULT_CURRENCY
from models.payment import Payment, PaymentCategory, PaymentFrequency, PaymentStatus
from models.reminder import Reminder, ReminderType

CATEGORY_LABELS = {
    PaymentCategory.RENT: "🏠 Rent",
    PaymentCategory.UTILITIES: "💡 Utilities",
    PaymentCategory.LOAN: "🏦 Loan",
    PaymentCategory.SUBSCRIPTION: "📺 Subscription",
    PaymentCategory.EDUCATION: "🎓 Education",
    PaymentCategory.OTHER: "📦 Other",
}

FREQUENCY_LABELS = {
    PaymentFrequency.ONE_TIME: "One-time",
    PaymentFrequency.WEEKLY: "Weekly",
    PaymentFrequency.MONTHLY: "Monthly",
    PaymentFrequency.YEARLY: "Yearly",
}

STATUS_LABELS = {
    PaymentStatus.UPCOMING: "🟡 Upcoming",
    PaymentStatus.PAID: "🟢 Paid",
    PaymentStatus.OVERDUE: "🔴 Overdue",
}

STATUS_ICONS = {status: label.split(" ")[0] for status, label in STATUS_LABELS.items()}

REMINDER_LABELS = {
    ReminderType.ONE_DAY_BEFORE: "1 day before",
    ReminderType.THREE_HOURS_BEFORE: "3 hours before",
    ReminderType.ON_DUE_DATE: "On due date",
}

_REMINDER_TITLES = {
    ReminderType.ONE_DAY_BEFORE: "📅 Payment Due Tomorrow",
    ReminderType.THREE_HOURS_BEFORE: "⏰ Payment Due Soon",
    ReminderType.ON_DUE_DATE: "🔔 Payment Due Today",
}

_REMINDER_WHEN = {
    ReminderType.ONE_DAY_BEFORE: "is due tomorrow",
    ReminderType.THREE_HOURS_BEFORE: "is due in 3 hours",
    ReminderType.ON_DUE_DATE: "is due today",
}


def category_name(category: PaymentCategory) -> str:
    """Category label without its emoji, for running text."""
    return CATEGORY_LABELS[category].split(" ", 1)[1]


def render_reminder(reminder: Reminder, payment: Payment) -> tuple[str, str]:
    """
    Build the notification title and body for a reminder.

    The amount is never included: notifications can show on a lock screen.
    """
    title = _REMINDER_TITLES[reminder.type]
    body = (
        f'Your {category_name(payment.category)} payment "{payment.title}" '
        f"{_REMINDER_WHEN[reminder.type]}"
    )
    return title, body


def format_amount(payment: Payment) -> str:
    return f"{payment.amount:,.2f} {DEFAULT_CURRENCY}"


def format_payment_line(payment: Payment, today: date) -> str:
    """One-line summary used in payment lists."""
    days = payment.days_until_due(today)
    if payment.is_paid:
        when = "paid"
    elif days == 0:
        when = "today"
    elif days > 0:
        when = f"in {days}d"
    else:
        when = f"{-days}d late"
    return (
        f"{STATUS_ICONS[payment.status]} {escape_markdown(payment.title)}: "
        f"{format_amount(payment)} - {payment.due_date:%Y-%m-%d %H:%M} ({when})\n"
        f"    🔖 `{payment.id}`"
    )


def describe_reminders(payment: Payment) -> str:
    """Enabled reminder types in firing order, or "off"."""
    if not payment.reminder_enabled or not payment.reminder_types:
        return "off"
    return ", ".join(REMINDER_LABELS[t] for t in ReminderType.ordered(payment.reminder_types))


def format_payment_details(payment: Payment) -> str:
    """Multi-line confirmation shown after a payment is saved."""
    lines = [
        f"  📌 Title: {escape_markdown(payment.title)}",
        f"  💶 Amount: {format_amount(payment)}",
        f"  📅 Due: {payment.due_date:%Y-%m-%d %H:%M}",
        f"  🏷️ Category: {CATEGORY_LABELS[payment.category]}",
        f"  🔄 Frequency: {FREQUENCY_LABELS[payment.frequency]}",
        f"  ⏰ Reminders: {describe_reminders(payment)}",
        f"  📊 Status: {STATUS_LABELS[payment.status]}",
    ]
    if payment.notes:
        lines.append(f"  📝 Notes: {escape_markdown(payment.notes)}")
    lines.append(f"  🔖 ID: `{payment.id}`")
    return "\n".join(lines)
