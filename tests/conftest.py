import os
import sys

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), '..')))

import db  # noqa: E402


@pytest.fixture
def fresh_db(tmp_path, monkeypatch):
    monkeypatch.setattr(db, "DB_FILE", tmp_path / "test.db")
    db.init_db()
    return tmp_path / "test.db"


@pytest.fixture
def owner_id(fresh_db):
    return db.execute(
        "INSERT INTO users(email, password_hash, created_at) VALUES(?,?,?)",
        ("driver@example.com", "x", "2024-01-01T00:00:00+00:00"),
    )
