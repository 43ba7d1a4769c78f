"""
services/notification_service.py
--------------------------------
Notification scheduler interface and its Telegram implementation.

The Telegram scheduler keeps one `JobQueue.run_once` job per notification id.
When a job fires it re-resolves the payment from the payload, so a payment
paid or deleted after scheduling never produces a message.
"""

from datetime import datetime
from typing import Callable, Optional

from telegram import InlineKeyboardButton, InlineKeyboardMarkup
from telegram.ext import ContextTypes, JobQueue

from models.reminder import ReminderPayload
from utils.logger import get_logger

logger = get_logger(__name__)


class NotificationScheduler:
    """
    Delivery backend used by the reminder synchronizer.

    Implementations raise on failure. `cancel` of an unknown id is a no-op.
    """

    async def schedule_at(
        self,
        notification_id: int,
        when: datetime,
        title: str,
        body: str,
        payload: ReminderPayload,
    ) -> None:
        raise NotImplementedError

    async def cancel(self, notification_id: int) -> None:
        raise NotImplementedError


def reminder_keyboard(payload: ReminderPayload) -> InlineKeyboardMarkup:
    """Action buttons attached to a delivered reminder."""
    return InlineKeyboardMarkup([[
        InlineKeyboardButton("✅ Mark paid", callback_data=f"paid:{payload.payment_id}"),
        InlineKeyboardButton("😴 Snooze 1h", callback_data=f"snooze:{payload.reminder_id}"),
    ]])


class TelegramNotificationScheduler(NotificationScheduler):
    """
    Schedules reminders as one-shot jobs on the bot's JobQueue.

    Args:
        job_queue: The application's JobQueue.
        payments: Store with ``get(payment_id)``, used at delivery time.
        on_delivered: Called with the reminder id after a message is sent.
    """

    def __init__(self, job_queue: JobQueue, payments,
                 on_delivered: Optional[Callable[[str], None]] = None):
        self.job_queue = job_queue
        self.payments = payments
        self.on_delivered = on_delivered

    @staticmethod
    def job_name(notification_id: int) -> str:
        return f"reminder-{notification_id}"

    async def schedule_at(self, notification_id, when, title, body, payload) -> None:
        name = self.job_name(notification_id)
        self._remove_jobs(name)
        if when.tzinfo is None:
            # Naive datetimes are local wall-clock time.
            when = when.astimezone()
        self.job_queue.run_once(
            self._deliver,
            when=when,
            name=name,
            data={
                "title": title,
                "body": body,
                "payment_id": payload.payment_id,
                "reminder_id": payload.reminder_id,
            },
        )
        logger.debug(f"Scheduled {name} at {when:%Y-%m-%d %H:%M}")

    async def cancel(self, notification_id) -> None:
        removed = self._remove_jobs(self.job_name(notification_id))
        if removed:
            logger.debug(f"Cancelled notification {notification_id}")

    def _remove_jobs(self, name: str) -> int:
        jobs = self.job_queue.get_jobs_by_name(name)
        for job in jobs:
            job.schedule_removal()
        return len(jobs)

    async def _deliver(self, context: ContextTypes.DEFAULT_TYPE) -> None:
        """JobQueue callback: send the reminder to the payment's owner."""
        data = context.job.data
        payload = ReminderPayload(data["payment_id"], data["reminder_id"])

        payment = self.payments.get(payload.payment_id)
        if payment is None or payment.is_paid:
            logger.info(f"Skipping reminder #{payload.reminder_id}: payment no longer pending")
            return

        try:
            chat_id = int(payment.user_id)
        except ValueError:
            logger.warning(f"Payment #{payment.id} has no Telegram owner ({payment.user_id})")
            return

        try:
            await context.bot.send_message(
                chat_id=chat_id,
                text=f"{data['title']}\n\n{data['body']}",
                reply_markup=reminder_keyboard(payload),
            )
            logger.info(f"Sent reminder #{payload.reminder_id} to user {chat_id}")
        except Exception as e:
            logger.error(f"Failed to send reminder #{payload.reminder_id}: {e}")
            return

        if self.on_delivered is not None:
            self.on_delivered(payload.reminder_id)
