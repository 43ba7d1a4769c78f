"""
exceptions.py
-------------
Error taxonomy for payment and reminder operations.
"""


class PaymentReminderError(Exception):
    """Base exception for all payment reminder errors."""


class ValidationError(PaymentReminderError):
    """Raised when payment input is rejected before any state is touched."""

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message


class PaymentNotFoundError(PaymentReminderError):
    """Raised when an operation targets a missing or deleted payment."""

    def __init__(self, payment_id: str):
        super().__init__(f"Payment {payment_id} not found")
        self.payment_id = payment_id


class ReminderNotFoundError(PaymentReminderError):
    """Raised when an operation targets a missing reminder."""

    def __init__(self, reminder_id: str):
        super().__init__(f"Reminder {reminder_id} not found")
        self.reminder_id = reminder_id
