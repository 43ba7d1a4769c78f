"""
handlers/payment_handler.py
---------------------------
Handles payment commands and the buttons attached to delivered reminders.
Delegates all logic to PaymentService (found in ``context.bot_data``).
"""

from dataclasses import replace
from datetime import datetime, time as dt_time

from dateutil import parser as date_parser
from telegram import Update
from telegram.ext import ContextTypes

from exceptions import PaymentNotFoundError, ReminderNotFoundError, ValidationError
from models.payment import (
    DEFAULT_REMINDER_TYPES,
    Payment,
    PaymentCategory,
    PaymentFrequency,
    PaymentStatus,
)
from models.reminder import ReminderType
from services.payment_service import PaymentResult, PaymentService
from utils.formatting import (
    STATUS_LABELS,
    describe_reminders,
    format_amount,
    format_payment_details,
    format_payment_line,
)
from utils.logger import get_logger
from utils.validators import validate_amount, validate_notes, validate_title

logger = get_logger(__name__)

# Time used when the user gives a due date without a time of day.
_DEFAULT_DUE_TIME = dt_time(hour=9, minute=0)

_CATEGORY_ALIASES = {
    **{c.value: c for c in PaymentCategory},
    "bill": PaymentCategory.UTILITIES,
    "bills": PaymentCategory.UTILITIES,
    "sub": PaymentCategory.SUBSCRIPTION,
    "school": PaymentCategory.EDUCATION,
}

_FREQ_ALIASES = {
    **{f.value: f for f in PaymentFrequency},
    "once": PaymentFrequency.ONE_TIME,
    "onetime": PaymentFrequency.ONE_TIME,
    "week": PaymentFrequency.WEEKLY,
    "month": PaymentFrequency.MONTHLY,
    "year": PaymentFrequency.YEARLY,
    "annual": PaymentFrequency.YEARLY,
}

ADD_USAGE = (
    "📝 *Add a payment*\n\n"
    "*Format:*\n"
    "`/add_payment title | amount | due [| category | frequency | notes]`\n\n"
    "*Examples:*\n"
    "• `/add_payment Rent | 800 | 2026-03-01`\n"
    "• `/add_payment Netflix | 15.99 | 2026-03-05 20:00 | subscription | monthly`\n\n"
    "*Categories:* rent, utilities, loan, subscription, education, other\n"
    "*Frequency:* one\\_time, weekly, monthly, yearly\n\n"
    "Reminders default to 1 day before and on the due date; change them with /reminders."
)

_REMINDER_ALIASES = {
    **{t.value: t for t in ReminderType},
    "1d": ReminderType.ONE_DAY_BEFORE,
    "day": ReminderType.ONE_DAY_BEFORE,
    "3h": ReminderType.THREE_HOURS_BEFORE,
    "due": ReminderType.ON_DUE_DATE,
}

_REMINDERS_OFF = {"off", "none", "no"}

REMINDERS_USAGE = (
    "⏰ *Reminder settings*\n\n"
    "`/reminders <payment id> 1d,3h,due`\n"
    "`/reminders <payment id> off` or `on`\n\n"
    "*Types:* 1d (1 day before), 3h (3 hours before), due (on the due date)"
)

_EDITABLE_FIELDS = ("title", "amount", "due", "category", "frequency", "notes", "reminders")

EDIT_USAGE = (
    "✏️ *Edit a payment*\n\n"
    "*Format:*\n"
    "`/edit_payment <payment id> field=value [| field=value ...]`\n\n"
    "*Examples:*\n"
    "• `/edit_payment <id> amount=850`\n"
    "• `/edit_payment <id> title=Car loan | due=2026-04-01 | reminders=1d,due`\n\n"
    "*Fields:* title, amount, due, category, frequency, notes, reminders"
)


def _service(context: ContextTypes.DEFAULT_TYPE) -> PaymentService:
    return context.bot_data["payment_service"]


def _owner(update: Update) -> str:
    return str(update.effective_user.id)


def parse_due_date(text: str, now: datetime) -> datetime:
    """
    Parse a user-supplied due date.

    Missing parts are taken from today at 09:00, so "2026-03-01" means
    09:00 on that day.

    Raises:
        ValidationError: If the text is not a date.
    """
    default = datetime.combine(now.date(), _DEFAULT_DUE_TIME)
    try:
        return date_parser.parse(text, default=default)
    except (ValueError, OverflowError):
        raise ValidationError("due_date", f"'{text}' is not a valid date")


def parse_payment_args(text: str, user_id: str, now: datetime) -> Payment:
    """
    Build a Payment from ``title | amount | due [| category | frequency | notes]``.

    Raises:
        ValidationError: If a part is missing or invalid.
    """
    parts = [p.strip() for p in text.split("|")]
    if len(parts) < 3:
        raise ValidationError("format", "Expected at least: title | amount | due date")

    category = PaymentCategory.OTHER
    if len(parts) >= 4 and parts[3]:
        category = _parse_category(parts[3])

    frequency = PaymentFrequency.ONE_TIME
    if len(parts) >= 5 and parts[4]:
        frequency = _parse_frequency(parts[4])

    return Payment(
        user_id=user_id,
        title=validate_title(parts[0]),
        amount=validate_amount(parts[1]),
        due_date=parse_due_date(parts[2], now),
        category=category,
        frequency=frequency,
        notes=validate_notes(" | ".join(parts[5:]) if len(parts) >= 6 else None),
    )


def _parse_category(text: str) -> PaymentCategory:
    """Unknown categories fall back to OTHER."""
    return _CATEGORY_ALIASES.get(text.strip().lower(), PaymentCategory.OTHER)


def _parse_frequency(text: str) -> PaymentFrequency:
    frequency = _FREQ_ALIASES.get(text.strip().lower().replace("-", "_"))
    if frequency is None:
        raise ValidationError("frequency", f"Unknown frequency '{text.strip()}'")
    return frequency


def parse_reminder_setting(text: str, current: frozenset = DEFAULT_REMINDER_TYPES) -> tuple[bool, frozenset]:
    """
    Parse a reminder setting: ``off``, ``on`` or a comma list like ``1d,3h,due``.

    ``off`` keeps the chosen types so a later ``on`` restores them.

    Returns:
        (reminder_enabled, reminder_types)

    Raises:
        ValidationError: On an unknown reminder type.
    """
    value = text.strip().lower()
    if value in _REMINDERS_OFF:
        return False, frozenset(current)
    if value == "on":
        return True, frozenset(current) or DEFAULT_REMINDER_TYPES

    types = set()
    for item in value.replace(" ", "").split(","):
        reminder_type = _REMINDER_ALIASES.get(item)
        if reminder_type is None:
            raise ValidationError("reminders", f"Unknown reminder '{item}'. Use 1d, 3h or due.")
        types.add(reminder_type)
    return True, frozenset(types)


def apply_payment_edits(payment: Payment, text: str, now: datetime) -> Payment:
    """
    Return a copy of `payment` with ``field=value | field=value`` edits applied.

    The copy keeps the payment id. Status, owner and timestamps are left to
    PaymentService.update_payment.

    Raises:
        ValidationError: On an unknown field, a missing ``=`` or a bad value.
    """
    changes = {}
    for part in text.split("|"):
        if not part.strip():
            continue
        key, sep, value = part.partition("=")
        key = key.strip().lower()
        value = value.strip()
        if not sep or key not in _EDITABLE_FIELDS:
            raise ValidationError(
                "format", f"Expected field=value, field one of: {', '.join(_EDITABLE_FIELDS)}"
            )

        if key == "title":
            changes["title"] = validate_title(value)
        elif key == "amount":
            changes["amount"] = validate_amount(value)
        elif key == "due":
            changes["due_date"] = parse_due_date(value, now)
        elif key == "category":
            changes["category"] = _parse_category(value)
        elif key == "frequency":
            changes["frequency"] = _parse_frequency(value)
        elif key == "notes":
            changes["notes"] = validate_notes(value)
        else:
            enabled, types = parse_reminder_setting(value, payment.reminder_types)
            changes["reminder_enabled"] = enabled
            changes["reminder_types"] = types

    if not changes:
        raise ValidationError("format", "Nothing to change")
    return replace(payment, **changes)


def _with_warnings(text: str, result: PaymentResult) -> str:
    if result.warnings:
        text += "\n\n⚠️ Saved, but some reminders could not be set up."
    return text


async def add_payment_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /add_payment - create a payment and schedule its reminders."""
    if not context.args:
        await update.message.reply_text(ADD_USAGE, parse_mode="Markdown")
        return

    service = _service(context)
    try:
        payment = parse_payment_args(" ".join(context.args), _owner(update), service.clock())
        result = await service.add_payment(payment)
    except ValidationError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return

    reply = f"✅ Payment added:\n{format_payment_details(result.payment)}"
    if result.payment.reminder_enabled and not result.reminders and not result.warnings:
        reply += "\n\nℹ️ Every reminder time has already passed, none were scheduled."
    await update.message.reply_text(_with_warnings(reply, result), parse_mode="Markdown")


async def payments_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """
    Handle /payments [upcoming|overdue|paid] - list the user's payments.
    """
    status = None
    if context.args:
        try:
            status = PaymentStatus(context.args[0].lower())
        except ValueError:
            await update.message.reply_text("⚠️ Status must be one of: upcoming, overdue, paid.")
            return

    service = _service(context)
    payments = service.list_payments(_owner(update), status=status)
    if not payments:
        await update.message.reply_text("📭 No payments found.")
        return

    today = service.clock().date()
    header = f"💳 *{STATUS_LABELS[status]} payments:*" if status else "💳 *Your payments:*"
    lines = [header, ""] + [format_payment_line(p, today) for p in payments]
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


async def summary_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /summary - counts and totals per status."""
    summary = _service(context).summary(_owner(update))
    lines = ["📊 *Payment summary*", ""]
    for status, count in summary.counts.items():
        lines.append(f"{STATUS_LABELS[status]}: {count}")
    lines += [
        "",
        f"💶 Still to pay: {summary.total_due:,.2f}",
        f"✅ Already paid: {summary.total_paid:,.2f}",
        f"📅 Due today: {summary.due_today}",
    ]
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


async def _apply_by_id(update: Update, context: ContextTypes.DEFAULT_TYPE, action: str) -> None:
    """Shared body of /paid, /unpaid and /delete_payment."""
    if not context.args:
        await update.message.reply_text(f"⚠️ Usage: /{action} <payment id>")
        return

    payment_id = context.args[0]
    service = _service(context)
    handlers = {
        "paid": (service.mark_paid, "✅ Marked as paid"),
        "unpaid": (service.mark_unpaid, "↩️ Marked as unpaid"),
        "delete_payment": (service.delete_payment, "🗑️ Deleted"),
    }
    operation, verb = handlers[action]
    try:
        result = await operation(payment_id, _owner(update))
    except PaymentNotFoundError:
        await update.message.reply_text(f"⚠️ Payment {payment_id} not found.")
        return

    p = result.payment
    await update.message.reply_text(
        _with_warnings(f"{verb}: {p.title} ({format_amount(p)}) - {STATUS_LABELS[p.status]}", result)
    )


async def paid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /paid <id>."""
    await _apply_by_id(update, context, "paid")


async def unpaid_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /unpaid <id>."""
    await _apply_by_id(update, context, "unpaid")


async def delete_payment_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /delete_payment <id>."""
    await _apply_by_id(update, context, "delete_payment")


async def edit_payment_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /edit_payment <id> field=value [| field=value ...]."""
    payment_id, _, edits = " ".join(context.args or []).partition(" ")
    if not payment_id or not edits.strip():
        await update.message.reply_text(EDIT_USAGE, parse_mode="Markdown")
        return

    service = _service(context)
    owner = _owner(update)
    try:
        current = service.get_payment(payment_id, owner)
        edited = apply_payment_edits(current, edits, service.clock())
        result = await service.update_payment(edited, owner)
    except PaymentNotFoundError:
        await update.message.reply_text(f"⚠️ Payment {payment_id} not found.")
        return
    except ValidationError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return

    reply = f"✏️ Payment updated:\n{format_payment_details(result.payment)}"
    await update.message.reply_text(_with_warnings(reply, result), parse_mode="Markdown")


async def reminders_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /reminders <id> <1d,3h,due | on | off>."""
    if not context.args or len(context.args) < 2:
        await update.message.reply_text(REMINDERS_USAGE, parse_mode="Markdown")
        return

    payment_id = context.args[0]
    service = _service(context)
    owner = _owner(update)
    try:
        current = service.get_payment(payment_id, owner)
        enabled, types = parse_reminder_setting(" ".join(context.args[1:]), current.reminder_types)
        result = await service.update_payment(
            replace(current, reminder_enabled=enabled, reminder_types=types), owner
        )
    except PaymentNotFoundError:
        await update.message.reply_text(f"⚠️ Payment {payment_id} not found.")
        return
    except ValidationError as e:
        await update.message.reply_text(f"⚠️ {e.message}")
        return

    p = result.payment
    reply = f"⏰ Reminders for {p.title}: {describe_reminders(p)}"
    if p.reminder_enabled:
        reply += f"\n{len(result.reminders)} scheduled."
    await update.message.reply_text(_with_warnings(reply, result))


async def reminder_button(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle the "Mark paid" and "Snooze 1h" buttons on a reminder message."""
    query = update.callback_query
    await query.answer()

    action, _, target = (query.data or "").partition(":")
    service = _service(context)
    owner = _owner(update)
    try:
        if action == "paid":
            result = await service.mark_paid(target, owner)
            await query.edit_message_text(f"✅ {result.payment.title} marked as paid.")
        elif action == "snooze":
            reminder = await service.snooze_reminder(target, owner)
            await query.edit_message_text(f"😴 Snoozed until {reminder.scheduled_time:%H:%M}.")
        else:
            logger.warning(f"Unknown reminder button payload: {query.data}")
    except PaymentNotFoundError:
        await query.edit_message_text("⚠️ This payment no longer exists.")
    except ReminderNotFoundError:
        await query.edit_message_text("⚠️ This reminder is no longer pending.")
