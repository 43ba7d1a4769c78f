"""
main.py
-------
Entry point for the Payment Reminder Telegram bot.

Responsibilities:
    - Initialize the database connection pool and schema.
    - Wire repositories, the notification scheduler and services together.
    - Register handlers and the periodic status sweep and sync jobs.
    - Re-arm stored reminders on startup.
"""

from datetime import time as dt_time

from telegram import BotCommand
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
)

from config import STATUS_SWEEP_HOUR, SYNC_INTERVAL_MINUTES, TELEGRAM_BOT_TOKEN
from db.connection import init_pool, close_pool
from db.init_db import create_tables
from handlers.payment_handler import (
    add_payment_command,
    delete_payment_command,
    edit_payment_command,
    paid_command,
    payments_command,
    reminder_button,
    reminders_command,
    summary_command,
    unpaid_command,
)
from handlers.start_handler import start_command, help_command
from repositories.payment_repo import PaymentRepository
from repositories.reminder_repo import ReminderRepository
from services.notification_service import TelegramNotificationScheduler
from services.payment_service import PaymentService
from services.reminder_service import ReminderSynchronizer
from utils.logger import get_logger

logger = get_logger(__name__)


async def sweep_statuses(context) -> None:
    """
    Scheduled job: persist upcoming -> overdue flips.
    Runs daily at STATUS_SWEEP_HOUR.
    """
    try:
        await context.bot_data["payment_service"].refresh_statuses()
    except Exception as e:
        logger.error(f"Status sweep failed: {e}")


async def sync_payments(context) -> None:
    """Scheduled job: confirm pending local changes every SYNC_INTERVAL_MINUTES."""
    try:
        await context.bot_data["payment_service"].sync_payments()
    except Exception as e:
        logger.error(f"Payment sync failed: {e}")


async def on_startup(application: Application) -> None:
    """Register the command menu and re-arm reminders lost on restart."""
    commands = [
        BotCommand("start", "🚀 Start the bot"),
        BotCommand("help", "📖 Show help"),
        BotCommand("add_payment", "➕ Add a payment"),
        BotCommand("edit_payment", "✏️ Edit a payment"),
        BotCommand("reminders", "⏰ Choose reminders for a payment"),
        BotCommand("payments", "💳 List payments"),
        BotCommand("summary", "📊 Totals per status"),
        BotCommand("paid", "✅ Mark a payment paid"),
        BotCommand("unpaid", "↩️ Undo a paid mark"),
        BotCommand("delete_payment", "🗑️ Delete a payment"),
    ]
    await application.bot.set_my_commands(commands)
    logger.info("Bot commands menu registered successfully.")

    service: PaymentService = application.bot_data["payment_service"]
    await service.refresh_statuses()
    await service.reschedule_reminders()


def build_application() -> Application:
    """Build the Telegram application with all dependencies injected."""
    app = Application.builder().token(TELEGRAM_BOT_TOKEN).post_init(on_startup).build()

    payments = PaymentRepository()
    reminders = ReminderRepository()
    scheduler = TelegramNotificationScheduler(app.job_queue, payments)
    synchronizer = ReminderSynchronizer(reminders, scheduler)
    scheduler.on_delivered = synchronizer.mark_triggered
    app.bot_data["payment_service"] = PaymentService(payments, synchronizer)

    app.add_handler(CommandHandler("start", start_command))
    app.add_handler(CommandHandler("help", help_command))
    app.add_handler(CommandHandler("add_payment", add_payment_command))
    app.add_handler(CommandHandler("edit_payment", edit_payment_command))
    app.add_handler(CommandHandler("reminders", reminders_command))
    app.add_handler(CommandHandler("payments", payments_command))
    app.add_handler(CommandHandler("summary", summary_command))
    app.add_handler(CommandHandler("paid", paid_command))
    app.add_handler(CommandHandler("unpaid", unpaid_command))
    app.add_handler(CommandHandler("delete_payment", delete_payment_command))
    app.add_handler(CallbackQueryHandler(reminder_button, pattern=r"^(paid|snooze):"))

    app.job_queue.run_daily(
        sweep_statuses,
        time=dt_time(hour=STATUS_SWEEP_HOUR, minute=0),
        name="status_sweep",
    )
    app.job_queue.run_repeating(
        sync_payments,
        interval=SYNC_INTERVAL_MINUTES * 60,
        first=SYNC_INTERVAL_MINUTES * 60,
        name="payment_sync",
    )
    logger.info(f"Scheduled status sweep ({STATUS_SWEEP_HOUR:02d}:00) + sync every {SYNC_INTERVAL_MINUTES} min")
    return app


def main() -> None:
    """Initialize and run the bot."""

    # ── 1. Database setup ─────────────────────────────────
    logger.info("Initializing database...")
    init_pool()
    create_tables()

    # ── 2. Build and start polling ────────────────────────
    logger.info("Starting Telegram bot...")
    app = build_application()
    logger.info("🚀 Payment Reminder is running! Press Ctrl+C to stop.")
    app.run_polling(drop_pending_updates=True, allowed_updates=["message", "callback_query"])

    # ── 3. Cleanup on shutdown ────────────────────────────
    close_pool()
    logger.info("Payment Reminder stopped.")


if __name__ == "__main__":
    main()
