from dataclasses import replace
from datetime import date
from decimal import Decimal
from urllib.parse import parse_qs, urlparse

import pytest

import notify
from models import Student


def make_student(name="Asha", phone="98765-43210", **kw) -> Student:
    return replace(Student.new(1, name, phone, date(2024, 1, 15), Decimal("500")), **kw)


def test_ten_digit_numbers_get_country_code():
    assert notify.normalize_phone("98765 43210") == "919876543210"
    assert notify.normalize_phone("+91 98765 43210") == "919876543210"
    assert notify.normalize_phone("9876543210", country_code="44") == "449876543210"


def test_phone_without_digits_is_rejected():
    with pytest.raises(ValueError):
        notify.normalize_phone("n/a")


def test_whatsapp_link_encodes_message():
    link = notify.whatsapp_link("98765 43210", "Fee due & thanks")
    parsed = urlparse(link)
    assert parsed.netloc == "wa.me"
    assert parsed.path == "/919876543210"
    assert parse_qs(parsed.query)["text"] == ["Fee due & thanks"]


def test_sms_link_keeps_local_number():
    link = notify.sms_link("98765-43210", "Hello there")
    assert link == "sms:9876543210?body=Hello%20there"


def test_payment_confirmation_message():
    msg = notify.payment_confirmation_message(Decimal("500"), date(2024, 3, 5))
    assert msg == "Dear Parent, ₹500 for school van fee has been received on 5/3/2024. Thank you for your Payment."


def test_fee_update_message():
    s = make_student(paid_fees=Decimal("600"), pending_fees=Decimal("250.5"))
    assert notify.fee_update_message(s) == (
        "Hello, this is your van driver. Fee updated for Asha. Paid: 600, Pending: 250.50. Thank you!"
    )


def test_reminder_queue_drains_in_order():
    a, b = make_student("Asha", "9876543210"), make_student("Ravi", "9876500000")
    queue = notify.ReminderQueue([a, b])
    assert len(queue) == 2
    assert queue.current is a

    link = queue.next_link()
    assert link.startswith("https://wa.me/919876543210?text=Dear%20Parent")
    assert queue.current is b

    assert queue.skip() is b
    assert len(queue) == 0
    assert queue.current is None
    assert queue.next_link() is None
