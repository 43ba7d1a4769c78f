"""
models/reminder.py
------------------
Domain model for scheduled payment reminders.
"""

import hashlib
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import NamedTuple

# Largest id accepted by the notification scheduler (signed 32-bit).
_MAX_NOTIFICATION_ID = 2**31 - 1


class ReminderType(str, Enum):
    """When a reminder fires relative to the payment's due date."""

    ONE_DAY_BEFORE = "one_day_before"
    THREE_HOURS_BEFORE = "three_hours_before"
    ON_DUE_DATE = "on_due_date"

    @property
    def offset(self) -> timedelta:
        return _OFFSETS[self]

    @classmethod
    def from_string(cls, value: str) -> "ReminderType":
        """Parse a stored value, falling back to ON_DUE_DATE."""
        try:
            return cls(value)
        except ValueError:
            return cls.ON_DUE_DATE

    @classmethod
    def ordered(cls, types) -> list["ReminderType"]:
        """Return `types` sorted by declaration order."""
        wanted = set(types)
        return [t for t in cls if t in wanted]


_OFFSETS = {
    ReminderType.ONE_DAY_BEFORE: timedelta(hours=24),
    ReminderType.THREE_HOURS_BEFORE: timedelta(hours=3),
    ReminderType.ON_DUE_DATE: timedelta(0),
}


def notification_id_for(payment_id: str, reminder_type: ReminderType) -> int:
    """
    Derive the scheduler handle for a (payment, reminder type) pair.

    The value is a pure function of its inputs, so scheduling the same pair
    again overwrites the earlier notification instead of duplicating it,
    including across process restarts.

    Returns:
        An integer in ``1 .. 2**31 - 2``.
    """
    key = f"{payment_id}-{reminder_type.value}".encode("utf-8")
    digest = hashlib.sha256(key).digest()
    value = int.from_bytes(digest[:8], "big")
    return value % (_MAX_NOTIFICATION_ID - 1) + 1


class ReminderPayload(NamedTuple):
    """Identifiers handed to the scheduler to re-resolve a fired reminder."""

    payment_id: str
    reminder_id: str


@dataclass
class Reminder:
    """
    A scheduled notification tied to one payment and one offset.

    Attributes:
        payment_id: Owning payment.
        scheduled_time: Due date minus the type's offset.
        type: Which offset this reminder represents.
        is_active: False suppresses the reminder without deleting it.
        has_triggered: True once the notification fired.
        notification_id: Stable scheduler handle, see `notification_id_for`.
        id: Opaque unique identifier.
        created_at: Creation timestamp.
    """
    payment_id: str
    scheduled_time: datetime
    type: ReminderType
    is_active: bool = True
    has_triggered: bool = False
    notification_id: int = 0
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.notification_id:
            self.notification_id = notification_id_for(self.payment_id, self.type)

    @property
    def payload(self) -> ReminderPayload:
        return ReminderPayload(self.payment_id, self.id)

    def should_schedule(self, now: datetime) -> bool:
        """True when the reminder is active, unfired and still in the future."""
        return self.is_active and not self.has_triggered and self.scheduled_time > now

    def snoozed(self, duration: timedelta, now: datetime) -> "Reminder":
        """Return a copy rescheduled to ``now + duration`` and re-armed."""
        return replace(self, scheduled_time=now + duration, has_triggered=False, is_active=True)

    def to_map(self) -> dict:
        return {
            "id": self.id,
            "payment_id": self.payment_id,
            "scheduled_time": self.scheduled_time.isoformat(),
            "type": self.type.value,
            "is_active": self.is_active,
            "has_triggered": self.has_triggered,
            "notification_id": self.notification_id,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_map(cls, data: dict) -> "Reminder":
        return cls(
            id=data["id"],
            payment_id=data["payment_id"],
            scheduled_time=datetime.fromisoformat(data["scheduled_time"]),
            type=ReminderType.from_string(data["type"]),
            is_active=bool(data["is_active"]),
            has_triggered=bool(data["has_triggered"]),
            notification_id=int(data["notification_id"]),
            created_at=datetime.fromisoformat(data["created_at"]),
        )

    def __str__(self) -> str:
        state = "🔔" if self.is_active and not self.has_triggered else "🔕"
        return f"{state} {self.type.value} @ {self.scheduled_time:%Y-%m-%d %H:%M}"
