"""
billing.py
Recurring billing engine: monthly accrual, payments and reconciliation.

Everything here is pure. Functions take values and return new values; the
caller decides what to persist (see store.py).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Iterable

import utils
from models import (
    ZERO,
    AccrualResult,
    AccrualUpdate,
    PaymentEntry,
    PaymentResult,
    PaymentUpdate,
    ReconcileResult,
    Student,
)

logger = logging.getLogger(__name__)


class BillingError(ValueError):
    """Rejected input. Nothing was applied."""

    def __init__(self, field: str, value, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"{field}: {reason} (got {value!r})")


class InvalidDateError(BillingError):
    pass


class InvalidAmountError(BillingError):
    pass


def _checked_date(field: str, value) -> date:
    try:
        return utils.as_date(value)
    except ValueError:
        raise InvalidDateError(field, value, "not a well-formed calendar date") from None


# ---------- Billing clock ----------

def compute_accrual(admission_date, last_billed_date, monthly_fee, today) -> AccrualResult:
    """
    Count the monthly cycles that ended on or before ``today``.

    Each cycle ends on the admission day-of-month (clamped to month end), so
    the checkpoint is always ``admission_date`` plus a whole number of months.
    Calling again with the returned checkpoint and the same ``today`` gives
    zero cycles.
    """
    admission = _checked_date("admission_date", admission_date)
    last_billed = _checked_date("last_billed_date", last_billed_date)
    today = _checked_date("today", today)

    try:
        fee = utils.to_decimal(monthly_fee)
    except ValueError:
        raise InvalidDateError("monthly_fee", monthly_fee, "not a number") from None
    if fee < 0:
        raise InvalidDateError("monthly_fee", monthly_fee, "must not be negative")

    if last_billed < admission:
        raise InvalidDateError("last_billed_date", last_billed_date, "earlier than admission date")
    offset = utils.months_between(admission, last_billed)
    if utils.add_months(admission, offset) != last_billed:
        raise InvalidDateError(
            "last_billed_date", last_billed_date, "not on the admission day-of-month cycle"
        )

    cycles = 0
    while utils.add_months(admission, offset + cycles + 1) <= today:
        cycles += 1

    checkpoint = utils.add_months(admission, offset + cycles) if cycles else last_billed
    return AccrualResult(cycles_elapsed=cycles, new_checkpoint=checkpoint, accrued_amount=fee * cycles)


# ---------- Ledger accrual ----------

def apply_accrual(student: Student, today) -> Student:
    """Returns ``student`` itself when nothing is due, otherwise a billed copy."""
    result = compute_accrual(student.admission_date, student.last_billed_date, student.total_fees, today)
    if result.cycles_elapsed == 0:
        return student
    logger.debug(
        "student %s: %d cycle(s) accrued, %s added, checkpoint %s",
        student.id, result.cycles_elapsed, result.accrued_amount, result.new_checkpoint,
    )
    return replace(
        student,
        pending_fees=student.pending_fees + result.accrued_amount,
        last_billed_date=result.new_checkpoint,
    )


def accrual_update(student: Student) -> AccrualUpdate:
    return AccrualUpdate(id=student.id, pending_fees=student.pending_fees, last_billed_date=student.last_billed_date)


# ---------- Payments ----------

def apply_payment(student: Student, amount, payment_date) -> PaymentResult:
    try:
        paid = utils.to_decimal(amount)
    except ValueError:
        raise InvalidAmountError("amount", amount, "not a number") from None
    if paid <= 0:
        raise InvalidAmountError("amount", amount, "must be greater than 0")
    paid_on = _checked_date("payment_date", payment_date)

    # Overpayment is not carried forward as credit.
    pending = max(ZERO, student.pending_fees - paid)
    history = (PaymentEntry(amount=paid, date=paid_on),) + tuple(student.payment_history)
    updated = replace(
        student,
        paid_fees=student.paid_fees + paid,
        pending_fees=pending,
        payment_history=history,
        last_paid_date=paid_on,
    )
    update = PaymentUpdate(
        id=updated.id,
        paid_fees=updated.paid_fees,
        pending_fees=updated.pending_fees,
        payment_history=updated.payment_history,
        last_paid_date=paid_on,
    )
    return PaymentResult(student=updated, update=update)


# ---------- Reconciliation ----------

def reconcile(students: Iterable[Student], today) -> ReconcileResult:
    """Bill every student up to ``today``. Safe to run any number of times."""
    updated: list[Student] = []
    changed_ids: set[int] = set()
    updates: list[AccrualUpdate] = []
    for s in students:
        billed = apply_accrual(s, today)
        if billed is not s:
            changed_ids.add(billed.id)
            updates.append(accrual_update(billed))
        updated.append(billed)
    return ReconcileResult(updated=updated, changed_ids=changed_ids, updates=updates)


# ---------- Ledger queries ----------

def due_today(students: Iterable[Student], today: date) -> list[Student]:
    """Students whose cycle rolled over today and who still owe money."""
    return [s for s in students if s.last_billed_date == today and s.pending_fees > 0]


def unpaid(students: Iterable[Student]) -> list[Student]:
    return [s for s in students if s.pending_fees > 0]


def totals(students: Iterable[Student]) -> dict[str, Decimal]:
    paid = ZERO
    pending = ZERO
    for s in students:
        paid += s.paid_fees
        pending += s.pending_fees
    return {"paid": paid, "pending": pending}
