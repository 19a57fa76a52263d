from datetime import date, datetime
from decimal import Decimal

import pytest

import utils
from models import PaymentEntry, Student


def test_add_months_clamps_to_month_end():
    assert utils.add_months(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert utils.add_months(date(2023, 1, 31), 1) == date(2023, 2, 28)
    assert utils.add_months(date(2024, 1, 31), 3) == date(2024, 4, 30)
    assert utils.add_months(date(2024, 11, 15), 2) == date(2025, 1, 15)
    assert utils.add_months(date(2024, 5, 15), 0) == date(2024, 5, 15)


def test_months_between_ignores_days():
    assert utils.months_between(date(2023, 11, 30), date(2024, 2, 1)) == 3
    assert utils.months_between(date(2024, 1, 31), date(2024, 1, 1)) == 0


def test_as_date():
    assert utils.as_date("2024-03-05") == date(2024, 3, 5)
    assert utils.as_date(date(2024, 3, 5)) == date(2024, 3, 5)
    with pytest.raises(ValueError):
        utils.as_date(datetime(2024, 3, 5, 10, 0))
    with pytest.raises(ValueError):
        utils.as_date(20240305)


def test_to_decimal():
    assert utils.to_decimal("  250.50 ") == Decimal("250.50")
    assert utils.to_decimal(300) == Decimal("300")
    for bad in ("", "abc", "nan", "inf", False):
        with pytest.raises(ValueError):
            utils.to_decimal(bad)


def test_format_helpers():
    assert utils.format_display_date(date(2024, 3, 5)) == "5/3/2024"
    assert utils.format_money(Decimal("1500.00")) == "1500"
    assert utils.format_money(Decimal("99.5")) == "99.50"


def test_validate_student_inputs():
    assert utils.validate_student_inputs("Asha", "9876543210", "500", "2024-01-15") == []
    errors = utils.validate_student_inputs(" ", "", "0", "2024-13-01")
    assert len(errors) == 4


def _students():
    a = Student(
        id=1, school_id=1, name="Asha", parent_phone="9876543210",
        admission_date=date(2024, 1, 15), last_billed_date=date(2024, 3, 15),
        total_fees=Decimal("500"), paid_fees=Decimal("700"), pending_fees=Decimal("800"),
        payment_history=(PaymentEntry(Decimal("500"), date(2024, 3, 2)), PaymentEntry(Decimal("200"), date(2024, 2, 20))),
        last_paid_date=date(2024, 3, 2),
    )
    b = Student.new(1, "Ravi", "9876500000", date(2024, 2, 1), Decimal("400"))
    return [a, b]


def test_students_csv_has_header_and_rows():
    text = utils.students_to_csv_bytes(_students(), {1: "Green Valley"}).decode("utf-8")
    lines = text.strip().splitlines()
    assert lines[0].startswith("id,school,name,parent_phone")
    assert len(lines) == 3
    assert "Green Valley" in lines[1]


def test_empty_exports_still_have_columns():
    assert list(utils.students_frame([]).columns)[:3] == ["id", "school", "name"]
    assert utils.payments_to_csv_bytes([]).decode("utf-8").strip() == "student_id,name,amount,date"
    assert utils.collections_by_month([]).empty


def test_collections_by_month():
    df = utils.collections_by_month(_students())
    assert df.to_dict("records") == [
        {"month": "2024-03", "collected": 500.0},
        {"month": "2024-02", "collected": 200.0},
    ]
