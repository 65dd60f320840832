"""
Shared fixtures: an in-memory SQLite database, a TestClient and a few
factories for users, profiles, programs and orders.

Environment is set before any application module is imported.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SMTP_DISABLE"] = "1"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["PAYSTACK_SECRET_KEY"] = "sk_test_webhook_secret"
for _name in ("R2_BUCKET", "R2_ACCESS_KEY", "R2_SECRET_KEY", "R2_ENDPOINT", "R2_PUBLIC_URL"):
    os.environ.pop(_name, None)

from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from db import Base, SessionLocal, engine, init_db
from models import AcademicProfile, Order, Program, ProgramRequirement, User
from models.models_user import ROLE_ADMIN, ROLE_STUDENT
from models.schemas_user import UserOut
from utils.auth_utils import create_token, hash_password

PASSWORD = "s3cret-pass"


@pytest.fixture
def db():
    init_db()
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    from main import app
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def make_user(db, email, role=ROLE_STUDENT, full_name="Ama Mensah") -> User:
    user = User(
        email=email,
        full_name=full_name,
        role=role,
        password_hash=hash_password(PASSWORD),
        is_verified=True,
    )
    db.add(user)
    db.commit()
    return user


def make_profile(db, user, **fields) -> AcademicProfile:
    fields.setdefault("preferred_countries", [])
    profile = AcademicProfile(user_id=user.id, **fields)
    db.add(profile)
    db.commit()
    return profile


def make_program(
    db, title="MSc Data Science", country="United Kingdom", is_active=True, with_requirement=True, **requirement
) -> Program:
    program = Program(title=title, university="University of Leeds", country=country, is_active=is_active)
    if with_requirement:
        requirement.setdefault("test_requirements", [])
        requirement.setdefault("required_documents", [])
        requirement.setdefault("accepted_fields", [])
        requirement.setdefault("eligible_nationalities", [])
        program.requirement = ProgramRequirement(**requirement)
    db.add(program)
    db.commit()
    return program


def make_order(db, user, amount="500.00", kind="consultation", **fields) -> Order:
    order = Order(
        user_id=user.id,
        kind=kind,
        title=fields.pop("title", "Study abroad consultation"),
        amount=Decimal(amount),
        currency=fields.pop("currency", "GHS"),
        contact_email=user.email,
        details={},
        **fields,
    )
    db.add(order)
    db.commit()
    return order


def as_caller(user) -> UserOut:
    return UserOut.model_validate(user)


def auth_header(user) -> dict:
    return {"Authorization": f"Bearer {create_token(user.id)}"}


@pytest.fixture
def student(db):
    return make_user(db, "ama@abroadpass.io")


@pytest.fixture
def other_student(db):
    return make_user(db, "kofi@abroadpass.io", full_name="Kofi Boateng")


@pytest.fixture
def admin(db):
    return make_user(db, "admin@abroadpass.io", role=ROLE_ADMIN, full_name="Ops Admin")
