"""
db.py
SQLite helpers + initialization, and owner-scoped storage of schools/students.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import date
from decimal import Decimal

from config import settings
from models import AccrualUpdate, PaymentEntry, PaymentUpdate, School, Student

logger = logging.getLogger(__name__)

DB_FILE = settings.db_file

# Columns update_student() may touch. id, user_id and admission_date never change.
UPDATABLE_COLUMNS = {
    "school_id",
    "name",
    "parent_phone",
    "last_billed_date",
    "total_fees",
    "paid_fees",
    "pending_fees",
    "payment_history",
    "last_paid_date",
}


@contextmanager
def get_conn():
    conn = sqlite3.connect(DB_FILE, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
        conn.commit()
    finally:
        conn.close()


def execute(sql: str, params: tuple = ()) -> int:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.lastrowid


def fetch_one(sql: str, params: tuple = ()):
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchone()


def fetch_all(sql: str, params: tuple = ()) -> list[sqlite3.Row]:
    with get_conn() as conn:
        cur = conn.execute(sql, params)
        return cur.fetchall()


def _create_tables() -> None:
    execute(
        """
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created_at TEXT NOT NULL
        )
        """
    )

    execute(
        """
        CREATE TABLE IF NOT EXISTS schools (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE
        )
        """
    )

    # Money is TEXT so Decimal values round-trip exactly.
    execute(
        """
        CREATE TABLE IF NOT EXISTS students (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL,
            school_id INTEGER NOT NULL,
            name TEXT NOT NULL,
            parent_phone TEXT NOT NULL,
            admission_date TEXT NOT NULL,
            last_billed_date TEXT NOT NULL,
            total_fees TEXT NOT NULL,
            paid_fees TEXT NOT NULL DEFAULT '0',
            pending_fees TEXT NOT NULL DEFAULT '0',
            payment_history TEXT NOT NULL DEFAULT '[]',
            last_paid_date TEXT,
            FOREIGN KEY(user_id) REFERENCES users(id) ON DELETE CASCADE,
            FOREIGN KEY(school_id) REFERENCES schools(id) ON DELETE CASCADE
        )
        """
    )


def init_db() -> None:
    """
    Initialize the database (safe to call on every start).
    """
    _create_tables()
    logger.info("database ready at %s", DB_FILE)


# ---------- Row mapping ----------

def _history_to_json(history) -> str:
    return json.dumps([{"amount": str(p.amount), "date": p.date.isoformat()} for p in history])


def _history_from_json(raw: str | None) -> tuple[PaymentEntry, ...]:
    items = json.loads(raw or "[]")
    return tuple(PaymentEntry(amount=Decimal(str(i["amount"])), date=date.fromisoformat(i["date"])) for i in items)


def student_from_row(row) -> Student:
    return Student(
        id=row["id"],
        school_id=row["school_id"],
        name=row["name"],
        parent_phone=row["parent_phone"],
        admission_date=date.fromisoformat(row["admission_date"]),
        last_billed_date=date.fromisoformat(row["last_billed_date"]),
        total_fees=Decimal(row["total_fees"]),
        paid_fees=Decimal(row["paid_fees"]),
        pending_fees=Decimal(row["pending_fees"]),
        payment_history=_history_from_json(row["payment_history"]),
        last_paid_date=date.fromisoformat(row["last_paid_date"]) if row["last_paid_date"] else None,
    )


def _to_column(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, tuple):
        return _history_to_json(value)
    return value


# ---------- Schools ----------

def insert_school(user_id: int, name: str) -> School:
    new_id = execute("INSERT INTO schools(user_id, name) VALUES(?, ?)", (user_id, name))
    return School(id=new_id, name=name)


def fetch_schools(user_id: int) -> list[School]:
    rows = fetch_all("SELECT id, name FROM schools WHERE user_id = ? ORDER BY id ASC", (user_id,))
    return [School(id=r["id"], name=r["name"]) for r in rows]


def delete_school(school_id: int) -> None:
    # Students go with their school.
    delete_students_by_school(school_id)
    execute("DELETE FROM schools WHERE id = ?", (school_id,))


# ---------- Students ----------

def insert_student(user_id: int, student: Student) -> Student:
    new_id = execute(
        """
        INSERT INTO students(user_id, school_id, name, parent_phone, admission_date, last_billed_date,
            total_fees, paid_fees, pending_fees, payment_history, last_paid_date)
        VALUES(?,?,?,?,?,?,?,?,?,?,?)
        """,
        (
            user_id,
            student.school_id,
            student.name,
            student.parent_phone,
            student.admission_date.isoformat(),
            student.last_billed_date.isoformat(),
            str(student.total_fees),
            str(student.paid_fees),
            str(student.pending_fees),
            _history_to_json(student.payment_history),
            _to_column(student.last_paid_date),
        ),
    )
    return fetch_student(new_id)


def fetch_student(student_id: int) -> Student | None:
    row = fetch_one("SELECT * FROM students WHERE id = ?", (student_id,))
    return student_from_row(row) if row else None


def fetch_students(user_id: int) -> list[Student]:
    rows = fetch_all("SELECT * FROM students WHERE user_id = ? ORDER BY id ASC", (user_id,))
    return [student_from_row(r) for r in rows]


def update_student(student_id: int, **fields) -> None:
    unknown = set(fields) - UPDATABLE_COLUMNS
    if unknown:
        raise ValueError(f"cannot update column(s): {', '.join(sorted(unknown))}")
    if not fields:
        return
    cols = sorted(fields)
    assignments = ", ".join(f"{c} = ?" for c in cols)
    params = tuple(_to_column(fields[c]) for c in cols) + (student_id,)
    execute(f"UPDATE students SET {assignments} WHERE id = ?", params)


def delete_student(student_id: int) -> None:
    execute("DELETE FROM students WHERE id = ?", (student_id,))


def delete_students_by_school(school_id: int) -> None:
    execute("DELETE FROM students WHERE school_id = ?", (school_id,))


def apply_update(update: AccrualUpdate | PaymentUpdate) -> None:
    if isinstance(update, AccrualUpdate):
        update_student(update.id, pending_fees=update.pending_fees, last_billed_date=update.last_billed_date)
    elif isinstance(update, PaymentUpdate):
        update_student(
            update.id,
            paid_fees=update.paid_fees,
            pending_fees=update.pending_fees,
            payment_history=update.payment_history,
            last_paid_date=update.last_paid_date,
        )
    else:
        raise TypeError(f"unsupported update instruction: {type(update).__name__}")
