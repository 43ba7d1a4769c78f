"""
models/payment.py
-----------------
Domain model for tracked payments and their closed enumerations.
"""

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from models.reminder import ReminderType


class PaymentCategory(str, Enum):
    RENT = "rent"
    UTILITIES = "utilities"
    LOAN = "loan"
    SUBSCRIPTION = "subscription"
    EDUCATION = "education"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: str) -> "PaymentCategory":
        try:
            return cls(value)
        except ValueError:
            return cls.OTHER


class PaymentFrequency(str, Enum):
    """Recurrence label. Stored for display only, never auto-advanced."""

    ONE_TIME = "one_time"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"

    @property
    def interval_days(self) -> int:
        return {"one_time": 0, "weekly": 7, "monthly": 30, "yearly": 365}[self.value]

    @classmethod
    def from_string(cls, value: str) -> "PaymentFrequency":
        try:
            return cls(value)
        except ValueError:
            return cls.ONE_TIME


class PaymentStatus(str, Enum):
    UPCOMING = "upcoming"
    PAID = "paid"
    OVERDUE = "overdue"

    @classmethod
    def from_string(cls, value: str) -> "PaymentStatus":
        try:
            return cls(value)
        except ValueError:
            return cls.UPCOMING


DEFAULT_REMINDER_TYPES = frozenset({ReminderType.ONE_DAY_BEFORE, ReminderType.ON_DUE_DATE})


@dataclass
class Payment:
    """
    Represents a payment the user wants to be reminded about.

    Attributes:
        user_id: Owner id, or the guest sentinel from config.
        title: Display name (1-100 characters).
        amount: Positive amount, at most 999,999,999.
        due_date: When the payment is due (date and time).
        category: Closed category set.
        frequency: Recurrence label.
        notes: Optional free text (at most 500 characters).
        status: Cached projection of (due_date, paid flag); PAID is only
            ever set by an explicit mark-paid action.
        reminder_enabled: Whether reminders are generated at all.
        reminder_types: Enabled reminder offsets.
        created_at / updated_at: Timestamps; updated_at moves on every mutation.
        is_synced: False until the remote store confirms the latest change.
        is_deleted: Soft-delete marker.
        id: Opaque identifier, assigned at construction.
    """
    user_id: str
    title: str
    amount: Decimal
    due_date: datetime
    category: PaymentCategory = PaymentCategory.OTHER
    frequency: PaymentFrequency = PaymentFrequency.ONE_TIME
    notes: Optional[str] = None
    status: PaymentStatus = PaymentStatus.UPCOMING
    reminder_enabled: bool = True
    reminder_types: frozenset = DEFAULT_REMINDER_TYPES
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    is_synced: bool = False
    is_deleted: bool = False
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    def __post_init__(self):
        if not isinstance(self.amount, Decimal):
            self.amount = Decimal(str(self.amount))
        self.reminder_types = frozenset(self.reminder_types)

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentStatus.PAID

    def days_until_due(self, today: date) -> int:
        """Calendar days until the due date (negative when past)."""
        return (self.due_date.date() - today).days

    def is_due_today(self, today: date) -> bool:
        return self.due_date.date() == today

    # ── Persistence ───────────────────────────────────────

    def to_map(self) -> dict:
        """Flatten to the persisted row layout."""
        return {
            "id": self.id,
            "user_id": self.user_id,
            "title": self.title,
            "amount": str(self.amount),
            "due_date": self.due_date.isoformat(),
            "category": self.category.value,
            "frequency": self.frequency.value,
            "notes": self.notes,
            "status": self.status.value,
            "reminder_enabled": self.reminder_enabled,
            "reminder_types": ",".join(t.value for t in ReminderType.ordered(self.reminder_types)),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "is_synced": self.is_synced,
            "is_deleted": self.is_deleted,
        }

    @classmethod
    def from_map(cls, data: dict) -> "Payment":
        """Rebuild a Payment from a row produced by `to_map`."""
        raw_types = data.get("reminder_types") or ""
        return cls(
            id=data["id"],
            user_id=data["user_id"],
            title=data["title"],
            amount=Decimal(str(data["amount"])),
            due_date=datetime.fromisoformat(data["due_date"]),
            category=PaymentCategory.from_string(data["category"]),
            frequency=PaymentFrequency.from_string(data["frequency"]),
            notes=data.get("notes"),
            status=PaymentStatus.from_string(data["status"]),
            reminder_enabled=bool(data["reminder_enabled"]),
            reminder_types=frozenset(
                ReminderType.from_string(t) for t in raw_types.split(",") if t
            ),
            created_at=datetime.fromisoformat(data["created_at"]),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            is_synced=bool(data["is_synced"]),
            is_deleted=bool(data["is_deleted"]),
        )

    def __str__(self) -> str:
        return f"{self.title}: {self.amount:.2f} ({self.category.value}) - Due: {self.due_date:%Y-%m-%d %H:%M} [{self.status.value}]"
