"""
store.py
FeeStore: one owner's schools and students, kept in memory and in SQLite.

The billing rules live in billing.py; this class only loads data, hands it to
the engine and writes back whatever the engine says changed.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable

import billing
import db
import utils
from models import School, Student

logger = logging.getLogger(__name__)


class FeeStore:
    def __init__(self, owner_id: int, today: Callable[[], date] = utils.today_local):
        self.owner_id = owner_id
        self._today = today
        self.schools: list[School] = []
        self.students: list[Student] = []
        self.loaded_on: date | None = None

    @property
    def today(self) -> date:
        return self._today()

    # ---------- Load + reconcile ----------

    def load(self) -> set[int]:
        """
        Fetch everything the owner has, bill it up to today and persist what
        changed. Returns the ids of students that were billed.
        """
        today = self.today
        self.schools = db.fetch_schools(self.owner_id)
        students = db.fetch_students(self.owner_id)

        try:
            result = billing.reconcile(students, today)
        except billing.BillingError:
            logger.exception("reconciliation failed for owner %s", self.owner_id)
            raise

        for update in result.updates:
            db.apply_update(update)
        self.students = result.updated
        self.loaded_on = today
        if result.changed_ids:
            logger.info(
                "owner %s: billed %d student(s) up to %s", self.owner_id, len(result.changed_ids), today
            )
        return result.changed_ids

    def needs_reload(self) -> bool:
        # A day boundary was crossed since the last load.
        return self.loaded_on != self.today

    # ---------- Queries ----------

    def school(self, school_id: int) -> School | None:
        return next((s for s in self.schools if s.id == school_id), None)

    def student(self, student_id: int) -> Student | None:
        return next((s for s in self.students if s.id == student_id), None)

    def school_names(self) -> dict[int, str]:
        return {s.id: s.name for s in self.schools}

    def students_for(self, school_id: int, search: str = "") -> list[Student]:
        needle = search.strip().lower()
        return [
            s for s in self.students
            if s.school_id == school_id and (not needle or needle in s.name.lower() or needle in s.parent_phone)
        ]

    def due_today(self) -> list[Student]:
        return billing.due_today(self.students, self.today)

    def unpaid(self, school_id: int | None = None) -> list[Student]:
        pool = self.students if school_id is None else self.students_for(school_id)
        return billing.unpaid(pool)

    # ---------- Mutations ----------

    def add_school(self, name: str) -> School:
        name = name.strip()
        if not name:
            raise ValueError("School name is required.")
        school = db.insert_school(self.owner_id, name)
        self.schools.append(school)
        logger.info("owner %s: added school %s", self.owner_id, school.id)
        return school

    def delete_school(self, school_id: int) -> None:
        db.delete_school(school_id)
        self.schools = [s for s in self.schools if s.id != school_id]
        self.students = [s for s in self.students if s.school_id != school_id]
        logger.info("owner %s: deleted school %s and its students", self.owner_id, school_id)

    def add_student(self, school_id: int, name: str, parent_phone: str, total_fees, admission_date) -> Student:
        if isinstance(admission_date, date):
            admission_date = admission_date.isoformat()
        errors = utils.validate_student_inputs(name, parent_phone, total_fees, admission_date)
        if errors:
            raise ValueError(" ".join(errors))
        if self.school(school_id) is None:
            raise ValueError(f"Unknown school: {school_id}")

        new = Student.new(
            school_id=school_id,
            name=name.strip(),
            parent_phone=parent_phone.strip(),
            admission_date=utils.parse_iso(admission_date),
            total_fees=utils.to_decimal(total_fees),
        )
        student = db.insert_student(self.owner_id, new)
        self.students.append(student)
        logger.info("owner %s: added student %s to school %s", self.owner_id, student.id, school_id)
        return student

    def record_payment(self, student_id: int, amount, payment_date: date | None = None) -> Student:
        # Apply to the stored row, not to whatever this instance last saw.
        current = db.fetch_student(student_id) if self.student(student_id) else None
        if current is None:
            raise LookupError(f"Unknown student: {student_id}")

        try:
            result = billing.apply_payment(current, amount, payment_date or self.today)
        except billing.BillingError as exc:
            logger.warning("payment rejected for student %s: %s", student_id, exc)
            raise

        db.apply_update(result.update)
        self._replace(result.student)
        logger.info("owner %s: recorded payment of %s for student %s", self.owner_id, amount, student_id)
        return result.student

    def delete_student(self, student_id: int) -> None:
        db.delete_student(student_id)
        self.students = [s for s in self.students if s.id != student_id]

    def _replace(self, student: Student) -> None:
        for i, s in enumerate(self.students):
            if s.id == student.id:
                self.students[i] = student
                return
        self.students.append(student)
