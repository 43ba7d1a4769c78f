"""
repositories/payment_repo.py
----------------------------
Data access layer for payments.
All SQL queries related to the `payments` table live here.
"""

from typing import Optional

from psycopg2.extras import RealDictCursor

from db.connection import transaction
from models.payment import Payment
from utils.logger import get_logger

logger = get_logger(__name__)

_COLUMNS = (
    "id", "user_id", "title", "amount", "due_date", "category", "frequency",
    "notes", "status", "reminder_enabled", "reminder_types", "created_at",
    "updated_at", "is_synced", "is_deleted",
)

_UPSERT_SQL = """
    INSERT INTO payments ({columns})
    VALUES ({placeholders})
    ON CONFLICT (id) DO UPDATE SET {updates};
""".format(
    columns=", ".join(_COLUMNS),
    placeholders=", ".join(f"%({c})s" for c in _COLUMNS),
    updates=", ".join(f"{c} = EXCLUDED.{c}" for c in _COLUMNS if c != "id"),
)


class PaymentRepository:
    """Repository for CRUD operations on the payments table."""

    # ── CREATE / UPDATE ───────────────────────────────────

    def put(self, payment: Payment) -> Payment:
        """
        Insert a payment, or overwrite the stored row with the same id.

        Raises:
            psycopg2.Error: Propagated after rollback; the caller's
                operation fails as a whole.
        """
        try:
            with transaction() as conn, conn.cursor() as cur:
                cur.execute(_UPSERT_SQL, payment.to_map())
            logger.debug(f"Saved payment '{payment.title}' #{payment.id}")
            return payment
        except Exception as e:
            logger.error(f"Failed to save payment #{payment.id}: {e}")
            raise

    def mark_synced(self, payment_id: str) -> bool:
        """Flag a payment as confirmed by the remote store."""
        sql = "UPDATE payments SET is_synced = TRUE WHERE id = %s;"
        with transaction() as conn, conn.cursor() as cur:
            cur.execute(sql, (payment_id,))
            return cur.rowcount > 0

    # ── READ ──────────────────────────────────────────────

    def get(self, payment_id: str, include_deleted: bool = False) -> Optional[Payment]:
        """
        Fetch a single payment by id.

        Args:
            payment_id: Payment id.
            include_deleted: Also return soft-deleted rows (sync reconciliation).
        """
        sql = "SELECT * FROM payments WHERE id = %s"
        if not include_deleted:
            sql += " AND is_deleted = FALSE"
        rows = self._fetch(sql + ";", (payment_id,))
        return rows[0] if rows else None

    def list_by_owner(self, user_id: str) -> list[Payment]:
        """All non-deleted payments of a user, soonest due first."""
        sql = """
            SELECT * FROM payments
            WHERE user_id = %s AND is_deleted = FALSE
            ORDER BY due_date ASC;
        """
        return self._fetch(sql, (user_id,))

    def list_unsynced(self, user_id: str) -> list[Payment]:
        """Payments with local changes not yet confirmed, deleted ones included."""
        sql = "SELECT * FROM payments WHERE user_id = %s AND is_synced = FALSE;"
        return self._fetch(sql, (user_id,))

    def list_owners(self) -> list[str]:
        """Distinct owners of any stored payment, deleted ones included."""
        sql = "SELECT DISTINCT user_id FROM payments;"
        with transaction() as conn, conn.cursor() as cur:
            cur.execute(sql)
            return [row[0] for row in cur.fetchall()]

    # ── DELETE ────────────────────────────────────────────

    def delete(self, payment_id: str) -> bool:
        """Permanently delete a payment; its reminders cascade."""
        sql = "DELETE FROM payments WHERE id = %s;"
        try:
            with transaction() as conn, conn.cursor() as cur:
                cur.execute(sql, (payment_id,))
                deleted = cur.rowcount > 0
            if deleted:
                logger.info(f"Purged payment #{payment_id}")
            return deleted
        except Exception as e:
            logger.error(f"Failed to purge payment #{payment_id}: {e}")
            raise

    # ── HELPERS ───────────────────────────────────────────

    @staticmethod
    def _fetch(sql: str, params: tuple) -> list[Payment]:
        with transaction() as conn, conn.cursor(cursor_factory=RealDictCursor) as cur:
            cur.execute(sql, params)
            return [Payment.from_map(row) for row in cur.fetchall()]
