from datetime import date
from decimal import Decimal

import pytest

import billing
import db
from store import FeeStore


class Clock:
    def __init__(self, today: date):
        self.today = today

    def __call__(self) -> date:
        return self.today


@pytest.fixture
def clock():
    return Clock(date(2024, 1, 15))


@pytest.fixture
def store(owner_id, clock):
    s = FeeStore(owner_id, today=clock)
    s.load()
    return s


def test_add_student_starts_with_clean_ledger(store):
    school = store.add_school("Green Valley")
    student = store.add_student(school.id, "Asha", "98765 43210", "500", "2024-01-15")

    assert student.id is not None
    assert student.last_billed_date == date(2024, 1, 15)
    assert student.paid_fees == 0
    assert student.pending_fees == 0
    assert student.payment_history == ()
    assert db.fetch_student(student.id) == student


def test_add_student_validates_input(store):
    school = store.add_school("Green Valley")
    with pytest.raises(ValueError):
        store.add_student(school.id, "", "98765", "500", "2024-01-15")
    with pytest.raises(ValueError):
        store.add_student(school.id, "Asha", "98765", "-5", "2024-01-15")
    with pytest.raises(ValueError):
        store.add_student(school.id + 99, "Asha", "98765", "500", "2024-01-15")


def test_load_bills_and_persists_once_per_day(store, clock, owner_id):
    school = store.add_school("Green Valley")
    student = store.add_student(school.id, "Asha", "9876543210", "500", date(2024, 1, 15))

    clock.today = date(2024, 4, 20)
    assert store.needs_reload()
    assert store.load() == {student.id}

    stored = db.fetch_student(student.id)
    assert stored.pending_fees == Decimal("1500")
    assert stored.last_billed_date == date(2024, 4, 15)
    assert not store.needs_reload()

    # A second load on the same day, even from a fresh store, bills nothing.
    other = FeeStore(owner_id, today=clock)
    assert other.load() == set()
    assert other.student(student.id).pending_fees == Decimal("1500")


def test_record_payment_uses_latest_stored_state(store, clock, owner_id):
    school = store.add_school("Green Valley")
    student = store.add_student(school.id, "Asha", "9876543210", "500", date(2024, 1, 15))

    # Another session bills the student; this store still holds the old copy.
    clock.today = date(2024, 3, 15)
    FeeStore(owner_id, today=clock).load()
    assert store.student(student.id).pending_fees == 0

    paid = store.record_payment(student.id, "300")
    assert paid.pending_fees == Decimal("700")
    assert paid.paid_fees == Decimal("300")
    assert paid.last_paid_date == date(2024, 3, 15)
    assert db.fetch_student(student.id) == paid
    assert store.student(student.id) == paid


def test_record_payment_rejects_bad_amount_without_writing(store):
    school = store.add_school("Green Valley")
    student = store.add_student(school.id, "Asha", "9876543210", "500", "2024-01-15")
    with pytest.raises(billing.InvalidAmountError):
        store.record_payment(student.id, "0")
    assert db.fetch_student(student.id).payment_history == ()


def test_record_payment_unknown_student(store):
    with pytest.raises(LookupError):
        store.record_payment(12345, "100")


def test_payment_history_survives_reload(store, owner_id, clock):
    school = store.add_school("Green Valley")
    student = store.add_student(school.id, "Asha", "9876543210", "500", "2024-01-15")
    store.record_payment(student.id, "100", date(2024, 1, 16))
    store.record_payment(student.id, "200.50", date(2024, 1, 17))

    reloaded = FeeStore(owner_id, today=clock)
    reloaded.load()
    history = reloaded.student(student.id).payment_history
    assert [p.amount for p in history] == [Decimal("200.50"), Decimal("100")]
    assert [p.date for p in history] == [date(2024, 1, 17), date(2024, 1, 16)]


def test_delete_school_cascades_to_students(store, owner_id, clock):
    keep = store.add_school("Keep")
    drop = store.add_school("Drop")
    kept = store.add_student(keep.id, "Asha", "9876543210", "500", "2024-01-15")
    store.add_student(drop.id, "Ravi", "9876500000", "400", "2024-01-15")

    store.delete_school(drop.id)

    assert [s.id for s in store.schools] == [keep.id]
    assert [s.id for s in store.students] == [kept.id]
    assert [s.id for s in db.fetch_students(owner_id)] == [kept.id]


def test_owners_only_see_their_own_data(store, fresh_db, clock):
    store.add_school("Mine")
    other_owner = db.execute(
        "INSERT INTO users(email, password_hash, created_at) VALUES(?,?,?)",
        ("other@example.com", "x", "2024-01-01T00:00:00+00:00"),
    )
    other = FeeStore(other_owner, today=clock)
    other.load()
    assert other.schools == []
    assert other.students == []


def test_queries(store, clock):
    school = store.add_school("Green Valley")
    a = store.add_student(school.id, "Asha", "9876543210", "500", "2023-12-15")
    b = store.add_student(school.id, "Ravi", "9876500000", "400", "2024-01-10")

    clock.today = date(2024, 2, 15)
    store.load()

    assert [s.id for s in store.due_today()] == [a.id]
    assert {s.id for s in store.unpaid(school.id)} == {a.id, b.id}
    assert [s.id for s in store.students_for(school.id, "ravi")] == [b.id]
    assert [s.id for s in store.students_for(school.id, "98765432")] == [a.id]


def test_delete_student(store, owner_id):
    school = store.add_school("Green Valley")
    student = store.add_student(school.id, "Asha", "9876543210", "500", "2024-01-15")
    store.delete_student(student.id)
    assert store.students == []
    assert db.fetch_students(owner_id) == []
