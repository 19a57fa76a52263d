"""
utils.py
Calendar dates, validation, exports.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation
import pandas as pd

from models import Student


def today_local() -> date:
    # Local calendar date, no time-of-day or timezone involved.
    return date.today()


def parse_iso(d: str) -> date:
    return date.fromisoformat(d.strip())


def as_date(value) -> date:
    """
    Accept a date or an ISO 'YYYY-MM-DD' string. Datetimes are refused since
    they carry a time of day.
    """
    if isinstance(value, datetime):
        raise ValueError(f"expected a calendar date, got a datetime: {value!r}")
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_iso(value)
    raise ValueError(f"not a calendar date: {value!r}")


def add_months(start: date, months: int) -> date:
    """
    Add months while keeping day in valid range (e.g., Jan 31 + 1 month => Feb 28/29).
    """
    y = start.year + (start.month - 1 + months) // 12
    m = (start.month - 1 + months) % 12 + 1
    # last day of target month
    if m == 12:
        next_month = date(y + 1, 1, 1)
    else:
        next_month = date(y, m + 1, 1)
    last_day = next_month - timedelta(days=1)
    day = min(start.day, last_day.day)
    return date(y, m, day)


def months_between(start: date, end: date) -> int:
    """Whole calendar-month offset between the months of two dates (ignores days)."""
    return (end.year - start.year) * 12 + (end.month - start.month)


def format_display_date(d: date) -> str:
    # Indian short form used in receipts, e.g. 5/3/2024
    return f"{d.day}/{d.month}/{d.year}"


def to_decimal(value) -> Decimal:
    if isinstance(value, bool):
        raise ValueError(f"not a number: {value!r}")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"not a number: {value!r}") from None
    if not amount.is_finite():
        raise ValueError(f"not a finite number: {value!r}")
    return amount


def format_money(amount: Decimal) -> str:
    # Whole rupees print without decimals, as the receipts always did.
    if amount == amount.to_integral_value():
        return str(amount.quantize(Decimal("1")))
    return str(amount.quantize(Decimal("0.01")))


def validate_student_inputs(name: str, parent_phone: str, total_fees, admission_date: str) -> list[str]:
    errors: list[str] = []
    if not name.strip():
        errors.append("Student name is required.")
    if not any(ch.isdigit() for ch in parent_phone):
        errors.append("Parent phone is required.")
    try:
        if to_decimal(total_fees) <= 0:
            errors.append("Monthly fee must be greater than 0.")
    except ValueError:
        errors.append("Monthly fee must be numeric.")
    try:
        parse_iso(admission_date)
    except ValueError:
        errors.append("Admission date must be a valid ISO date (YYYY-MM-DD).")
    return errors


def students_frame(students: list[Student], school_names: dict[int, str] | None = None) -> pd.DataFrame:
    school_names = school_names or {}
    rows = [
        {
            "id": s.id,
            "school": school_names.get(s.school_id, ""),
            "name": s.name,
            "parent_phone": s.parent_phone,
            "admission_date": s.admission_date.isoformat(),
            "last_billed_date": s.last_billed_date.isoformat(),
            "monthly_fee": float(s.total_fees),
            "paid": float(s.paid_fees),
            "pending": float(s.pending_fees),
            "last_paid_date": s.last_paid_date.isoformat() if s.last_paid_date else "",
        }
        for s in students
    ]
    if not rows:
        return pd.DataFrame(columns=[
            "id", "school", "name", "parent_phone", "admission_date", "last_billed_date",
            "monthly_fee", "paid", "pending", "last_paid_date",
        ])
    return pd.DataFrame(rows)


def payments_frame(students: list[Student]) -> pd.DataFrame:
    rows = [
        {"student_id": s.id, "name": s.name, "amount": float(p.amount), "date": p.date.isoformat()}
        for s in students
        for p in s.payment_history
    ]
    if not rows:
        return pd.DataFrame(columns=["student_id", "name", "amount", "date"])
    return pd.DataFrame(rows).sort_values("date", ascending=False, kind="stable").reset_index(drop=True)


def students_to_csv_bytes(students: list[Student], school_names: dict[int, str] | None = None) -> bytes:
    return students_frame(students, school_names).to_csv(index=False).encode("utf-8")


def payments_to_csv_bytes(students: list[Student]) -> bytes:
    return payments_frame(students).to_csv(index=False).encode("utf-8")


def collections_by_month(students: list[Student]) -> pd.DataFrame:
    df = payments_frame(students)
    if df.empty:
        return pd.DataFrame(columns=["month", "collected"])
    df["month"] = df["date"].str.slice(0, 7)
    out = df.groupby("month", as_index=False)["amount"].sum().rename(columns={"amount": "collected"})
    return out.sort_values("month", ascending=False).reset_index(drop=True)
