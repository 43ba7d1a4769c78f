"""
handlers/start_handler.py
--------------------------
Handles /start and /help commands.
"""

from telegram import Update
from telegram.ext import ContextTypes

from utils.logger import get_logger

logger = get_logger(__name__)

HELP_TEXT = """
🤖 *Payment Reminder*
Never miss a bill again 💶

*🔧 Commands:*
/start - Start the bot
/help - Show this help
/add\\_payment - Add a payment (send it alone to see the format)
/edit\\_payment - Edit a payment (send it alone to see the format)
/reminders - Choose reminders for a payment (1d, 3h, due, on, off)
/payments - List payments (optionally: upcoming, overdue, paid)
/summary - Totals per status
/paid - Mark a payment as paid (example: /paid <id>)
/unpaid - Undo a paid mark
/delete\\_payment - Delete a payment

⏰ Reminders arrive 1 day before and on the due date by default.
Use /reminders to change them per payment.
Amounts are never shown in reminders.
"""


async def start_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start command - show welcome message."""
    user = update.effective_user
    logger.info(f"User {user.id} ({user.first_name}) started the bot.")
    await update.message.reply_text(
        f"Hello {user.first_name}! 👋\n"
        f"I'll remind you before your payments are due.\n\n"
        f"Type /help to see every command."
    )


async def help_command(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help command - show all available commands."""
    await update.message.reply_text(HELP_TEXT, parse_mode="Markdown")
