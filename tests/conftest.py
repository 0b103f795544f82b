import datetime

import pytest

from clinic_app_pkg import create_app, db
from clinic_app_pkg.models import (Appointment, Organization, Patient, Prescription,
                                   User, Visit)
from clinic_app_pkg.utils import create_access_token

PASSWORD = "correct-horse-battery"
BASE_TIME = datetime.datetime(2024, 3, 1, 9, 0, 0)


def _user(user_id, username, role, organization_id, is_active=True, minutes=0):
    user = User(
        id=user_id,
        username=username,
        email=f"{username}@clinic.test",
        first_name=username.capitalize(),
        role=role,
        is_active=is_active,
        organization_id=organization_id,
        created_at=BASE_TIME + datetime.timedelta(minutes=minutes),
    )
    user.set_password(PASSWORD)
    return user


def _seed():
    db.session.add_all([
        Organization(id=5, name="Riverside Clinic", is_active=True, created_at=BASE_TIME),
        Organization(id=6, name="Hillcrest Hospital", is_active=True, created_at=BASE_TIME),
        Organization(id=9, name="Lakeside Practice", is_active=False,
                     created_at=BASE_TIME + datetime.timedelta(hours=2)),
        Organization(id=10, name="Northgate Surgery", is_active=False,
                     created_at=BASE_TIME + datetime.timedelta(hours=3)),
    ])
    db.session.flush()

    db.session.add_all([
        _user(1, "root", "super_admin", None),
        _user(2, "legacyroot", "superadmin", None),
        _user(3, "admin5", "admin", 5),
        _user(4, "doctor5", "doctor", 5),
        _user(5, "nurse5", "nurse", 5),
        _user(6, "doctor6", "doctor", 6),
        _user(7, "admin6", "admin", 6),
        _user(8, "orphanadmin", "admin", None),
        # Pending approval
        _user(20, "newbie5", None, 5, is_active=False, minutes=30),
        _user(21, "inactive5", "nurse", 5, is_active=False, minutes=60),
        _user(22, "newbie6", "", 6, is_active=True, minutes=90),
    ])
    db.session.add_all([
        Patient(id=7, organization_id=5, first_name="Ada", last_name="Lovelace",
                date_of_birth=datetime.date(1985, 12, 10), gender="Female",
                phone="555-0107", email="ada@example.test", address="12 River Road"),
        Patient(id=8, organization_id=6, first_name="Alan", last_name="Turing",
                date_of_birth=datetime.date(1980, 6, 23), gender="Male"),
    ])
    db.session.flush()

    visit = Visit(id=50, patient_id=7, doctor_id=4, organization_id=5,
                  visit_date=BASE_TIME, complaint="cough", status="draft")
    db.session.add(visit)
    db.session.flush()
    db.session.add_all([
        Prescription(id=70, patient_id=7, visit_id=50, organization_id=5, prescribed_by=4,
                     medication_name="Amoxicillin", dosage="500mg", frequency="TID"),
        Prescription(id=71, patient_id=8, visit_id=None, organization_id=6, prescribed_by=6,
                     medication_name="Ibuprofen"),
        Appointment(id=90, patient_id=7, doctor_id=4, organization_id=5,
                    appointment_date=BASE_TIME + datetime.timedelta(days=1),
                    appointment_type="telemedicine"),
    ])
    db.session.commit()


@pytest.fixture()
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        _seed()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def token_for(app):
    """Returns a function issuing a bearer token for a seeded username."""
    def _token(username):
        user = User.query.filter_by(username=username).one()
        return create_access_token(user)
    return _token


@pytest.fixture()
def auth_headers(token_for):
    def _headers(username):
        return {"Authorization": f"Bearer {token_for(username)}"}
    return _headers
