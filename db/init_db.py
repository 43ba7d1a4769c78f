"""
db/init_db.py
-------------
Creates the database schema (tables) if they do not already exist.
Run this module directly to initialize a fresh database:
    python -m db.init_db

Column names and text encodings mirror `Payment.to_map()` and
`Reminder.to_map()`: enums by value, reminder types comma-joined,
timestamps as ISO-8601 strings.
"""

from db.connection import transaction
from utils.logger import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
-- Payments table: every tracked payment, soft-deleted rows kept for sync
CREATE TABLE IF NOT EXISTS payments (
    id                  TEXT PRIMARY KEY,
    user_id             TEXT NOT NULL,
    title               VARCHAR(100) NOT NULL,
    amount              NUMERIC(12,2) NOT NULL CHECK (amount > 0),
    due_date            TEXT NOT NULL,
    category            VARCHAR(20) NOT NULL,
    frequency           VARCHAR(20) NOT NULL,
    notes               VARCHAR(500),
    status              VARCHAR(10) NOT NULL CHECK (status IN ('upcoming', 'paid', 'overdue')),
    reminder_enabled    BOOLEAN NOT NULL DEFAULT TRUE,
    reminder_types      TEXT NOT NULL DEFAULT '',
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    is_synced           BOOLEAN NOT NULL DEFAULT FALSE,
    is_deleted          BOOLEAN NOT NULL DEFAULT FALSE
);

-- Reminders table: scheduled notifications, owned by their payment
CREATE TABLE IF NOT EXISTS reminders (
    id                  TEXT PRIMARY KEY,
    payment_id          TEXT NOT NULL REFERENCES payments(id) ON DELETE CASCADE,
    scheduled_time      TEXT NOT NULL,
    type                VARCHAR(20) NOT NULL,
    is_active           BOOLEAN NOT NULL DEFAULT TRUE,
    has_triggered       BOOLEAN NOT NULL DEFAULT FALSE,
    notification_id     INTEGER NOT NULL,
    created_at          TEXT NOT NULL
);

-- Indexes for faster queries
CREATE INDEX IF NOT EXISTS idx_payments_user_id ON payments(user_id);
CREATE INDEX IF NOT EXISTS idx_payments_due_date ON payments(due_date);
CREATE INDEX IF NOT EXISTS idx_payments_status ON payments(status);
CREATE INDEX IF NOT EXISTS idx_reminders_payment_id ON reminders(payment_id);
CREATE INDEX IF NOT EXISTS idx_reminders_scheduled_time ON reminders(scheduled_time) WHERE is_active = TRUE;
"""


def create_tables() -> None:
    """
    Execute the schema SQL to create all tables.
    Safe to call multiple times (uses IF NOT EXISTS).
    """
    try:
        with transaction() as conn, conn.cursor() as cur:
            cur.execute(SCHEMA_SQL)
        logger.info("Database schema initialized successfully.")
    except Exception as e:
        logger.error(f"Failed to initialize schema: {e}")
        raise


if __name__ == "__main__":
    from db.connection import init_pool
    init_pool()
    create_tables()
    print("✅ Database schema created successfully.")
