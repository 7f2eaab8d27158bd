# tests/conftest.py
"""Shared fixtures: a throwaway SQLite store and directory factories."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

# Keep the app-level engine off PostgreSQL while tests import campusgate modules
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("API_KEY", "")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from campusgate.database import create_tables, enable_sqlite_savepoints
from campusgate.models.enums import UserRole
from campusgate.models.user import User
from campusgate.models.vendor import Vendor


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(eng)
    create_tables(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    # One shared in-memory connection: fixture objects must not reload (and open
    # a transaction) behind the back of a request session after commit
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def file_session_factory(tmp_path):
    """Real file store, so two sessions get two connections (concurrency tests)."""
    eng = create_engine(
        f"sqlite:///{tmp_path / 'gate.db'}",
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_savepoints(eng)
    create_tables(bind=eng)
    yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=eng)
    eng.dispose()


def _add(db, obj):
    db.add(obj)
    db.commit()
    return obj


@pytest.fixture
def make_student(db):
    counter = iter(range(1, 100000))

    def _make(name="Test Student", **profile):
        n = next(counter)
        profile.setdefault("student_id", f"ROLL-{n:05d}")
        profile.setdefault("hostel_room", "B-101")
        profile.setdefault("mobile_number", "9000000000")
        return _add(db, User(full_name=name, role=UserRole.STUDENT.value, **profile))
    return _make


@pytest.fixture
def student(make_student):
    return make_student("Asha Rao")


@pytest.fixture
def officer(db):
    return _add(db, User(full_name="Gate Officer", role=UserRole.GATE_STAFF.value))


@pytest.fixture
def council(db):
    return _add(db, User(full_name="Council Member", role=UserRole.COUNCIL.value))


@pytest.fixture
def vendor(db):
    return _add(db, Vendor(name="Ravi Kumar", company_name="Fresh Foods", category="Canteen"))
