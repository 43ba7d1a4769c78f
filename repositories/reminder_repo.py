"""
repositories/reminder_repo.py
-----------------------------
Data access layer for reminders.
All SQL queries related to the `reminders` table live here.
"""

from typing import Optional

from psycopg2.extras import RealDictCursor, execute_batch

from db.connection import transaction
from models.reminder import Reminder
from utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id", "payment_id", "scheduled_time", "type", "is_active",
    "has_triggered", "notification_id", "created_at",
)
_INSERT_COLUMNS = ", ".join(_COLUMNS)
_PLACEHOLDERS = ", ".join(f"%({c})s" for c in _COLUMNS)
_UPDATES = ", ".join(f"{c} = EXCLUDED.{c}" for c in _COLUMNS if c != "id")


class ReminderRepository:
    """Repository for CRUD operations on the reminders table."""

    _UPSERT_SQL = f"""
        INSERT INTO reminders ({_INSERT_COLUMNS})
        VALUES ({_PLACEHOLDERS})
        ON CONFLICT (id) DO UPDATE SET {_UPDATES};
    """

    # ── CREATE / UPDATE ───────────────────────────────────

    def put(self, reminder: Reminder) -> Reminder:
        """Insert or overwrite a single reminder."""
        with transaction() as conn, conn.cursor() as cur:
            cur.execute(self._UPSERT_SQL, reminder.to_map())
        return reminder

    def put_many(self, reminders: list[Reminder]) -> list[Reminder]:
        """Insert a batch of reminders in one transaction."""
        if not reminders:
            return []
        try:
            with transaction() as conn, conn.cursor() as cur:
                execute_batch(cur, self._UPSERT_SQL, [r.to_map() for r in reminders])
            logger.debug(f"Saved {len(reminders)} reminder(s) for payment #{reminders[0].payment_id}")
            return reminders
        except Exception as e:
            logger.error(f"Failed to save reminders: {e}")
            raise

    # ── READ ──────────────────────────────────────────────

    def get(self, reminder_id: str) -> Optional[Reminder]:
        rows = self._fetch("SELECT * FROM reminders WHERE id = %s;", (reminder_id,))
        return rows[0] if rows else None

    def list_for_payment(self, payment_id: str) -> list[Reminder]:
        """Every reminder of a payment, active or not."""
        sql = "SELECT * FROM reminders WHERE payment_id = %s ORDER BY scheduled_time ASC;"
        return self._fetch(sql, (payment_id,))

    def list_active(self) -> list[Reminder]:
        """Active reminders that have not fired yet, across all payments."""
        sql = """
            SELECT * FROM reminders
            WHERE is_active = TRUE AND has_triggered = FALSE
            ORDER BY scheduled_time ASC;
        """
        return self._fetch(sql, ())

    # ── DELETE ────────────────────────────────────────────

    def delete_for_payment(self, payment_id: str) -> int:
        """
        Delete all reminders of a payment.

        Returns:
            Number of rows removed.
        """
        sql = "DELETE FROM reminders WHERE payment_id = %s;"
        try:
            with transaction() as conn, conn.cursor() as cur:
                cur.execute(sql, (payment_id,))
                return cur.rowcount
        except Exception as e:
            logger.error(f"Failed to delete reminders of payment #{payment_id}: {e}")
            raise

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _fetch(sql: str, params: tuple) -> list[Reminder]:
        with transaction() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            return [Reminder.from_map(row) for row in cur.fetchall()]
