"""
notify.py
Parent messages and the links that open them in WhatsApp or the SMS app.
Nothing is sent from here; the driver taps the link.
"""

from __future__ import annotations

from collections import deque
from datetime import date
from decimal import Decimal
from urllib.parse import quote

import utils
from models import Student

REMINDER_TEXT = (
    "Dear Parent, This is to inform you that the school van fee for this month has ended "
    "kindly pay the van fee at your earliest convenience. Thank You."
)


def normalize_phone(phone: str, country_code: str = "91") -> str:
    digits = "".join(ch for ch in str(phone) if ch.isdigit())
    if not digits:
        raise ValueError(f"phone number has no digits: {phone!r}")
    # Local 10-digit mobile numbers need the country prefix for wa.me
    if len(digits) == 10 and country_code:
        digits = country_code + digits
    return digits


def reminder_message() -> str:
    return REMINDER_TEXT


def payment_confirmation_message(amount: Decimal, paid_on: date, currency: str = "₹") -> str:
    return (
        f"Dear Parent, {currency}{utils.format_money(amount)} for school van fee has been received on "
        f"{utils.format_display_date(paid_on)}. Thank you for your Payment."
    )


def fee_update_message(student: Student) -> str:
    return (
        f"Hello, this is your van driver. Fee updated for {student.name}. "
        f"Paid: {utils.format_money(student.paid_fees)}, Pending: {utils.format_money(student.pending_fees)}. Thank you!"
    )


def whatsapp_link(phone: str, message: str, country_code: str = "91") -> str:
    return f"https://wa.me/{normalize_phone(phone, country_code)}?text={quote(message, safe='')}"


def sms_link(phone: str, message: str) -> str:
    # sms: keeps the number as typed, minus formatting
    digits = normalize_phone(phone, country_code="")
    return f"sms:{digits}?body={quote(message, safe='')}"


class ReminderQueue:
    """
    Students waiting for a WhatsApp reminder in the bulk "Remind all" flow.
    Links are opened one at a time, so the queue is drained by hand.
    """

    def __init__(self, students: list[Student] | None = None, country_code: str = "91"):
        self._pending = deque(students or [])
        self.country_code = country_code

    def __len__(self) -> int:
        return len(self._pending)

    @property
    def current(self) -> Student | None:
        return self._pending[0] if self._pending else None

    def next_link(self, message: str | None = None) -> str | None:
        if not self._pending:
            return None
        student = self._pending.popleft()
        return whatsapp_link(student.parent_phone, message or reminder_message(), self.country_code)

    def skip(self) -> Student | None:
        return self._pending.popleft() if self._pending else None
