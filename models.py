"""
models.py
Domain dataclasses (schools, students, payments) and the billing results
exchanged with the persistence layer.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal

ZERO = Decimal("0")


@dataclass(frozen=True)
class School:
    id: int | None
    name: str


@dataclass(frozen=True)
class PaymentEntry:
    amount: Decimal
    date: date


@dataclass(frozen=True)
class Student:
    id: int | None
    school_id: int
    name: str
    parent_phone: str
    admission_date: date
    last_billed_date: date  # checkpoint: fees accrued up to this date
    total_fees: Decimal  # monthly charge
    paid_fees: Decimal = ZERO
    pending_fees: Decimal = ZERO
    payment_history: tuple[PaymentEntry, ...] = ()  # most recent first
    last_paid_date: date | None = None

    @classmethod
    def new(cls, school_id: int, name: str, parent_phone: str, admission_date: date, total_fees: Decimal) -> "Student":
        """A freshly admitted student: nothing billed, nothing paid."""
        return cls(
            id=None,
            school_id=school_id,
            name=name,
            parent_phone=parent_phone,
            admission_date=admission_date,
            last_billed_date=admission_date,
            total_fees=total_fees,
        )


@dataclass(frozen=True)
class AccrualResult:
    cycles_elapsed: int
    new_checkpoint: date
    accrued_amount: Decimal


@dataclass(frozen=True)
class AccrualUpdate:
    id: int
    pending_fees: Decimal
    last_billed_date: date


@dataclass(frozen=True)
class PaymentUpdate:
    id: int
    paid_fees: Decimal
    pending_fees: Decimal
    payment_history: tuple[PaymentEntry, ...]
    last_paid_date: date


@dataclass(frozen=True)
class PaymentResult:
    student: Student
    update: PaymentUpdate


@dataclass(frozen=True)
class ReconcileResult:
    updated: list[Student]
    changed_ids: set[int] = field(default_factory=set)
    updates: list[AccrualUpdate] = field(default_factory=list)
