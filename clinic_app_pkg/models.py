from . import db # Imports the db instance from __init__.py
from werkzeug.security import generate_password_hash, check_password_hash
from enum import Enum
import datetime


def _iso(value):
    return value.isoformat() if value else None


# --- Enumerations ---

class Role(str, Enum):
    """Closed set of roles a user can hold."""
    SUPER_ADMIN = 'super_admin'
    SUPERADMIN = 'superadmin' # legacy spelling still present in issued tokens
    ADMIN = 'admin'
    DOCTOR = 'doctor'
    NURSE = 'nurse'
    PHARMACIST = 'pharmacist'
    PHYSIOTHERAPIST = 'physiotherapist'
    LAB_TECHNICIAN = 'lab_technician'
    RECEPTIONIST = 'receptionist'
    USER = 'user'

    @classmethod
    def parse(cls, value):
        """Returns the matching Role or None for unknown/empty values."""
        if not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return None

    @property
    def is_super_admin(self):
        return self in SUPER_ADMIN_ROLES


SUPER_ADMIN_ROLES = frozenset({Role.SUPER_ADMIN, Role.SUPERADMIN})
ADMIN_ROLES = frozenset({Role.ADMIN, Role.SUPER_ADMIN, Role.SUPERADMIN})


class ReferralStatus(str, Enum):
    PENDING = 'pending'
    ACCEPTED = 'accepted'
    REJECTED = 'rejected'
    COMPLETED = 'completed'


class VisitStatus(str, Enum):
    DRAFT = 'draft'
    FINAL = 'final'


# --- Model Definitions ---

class Organization(db.Model):
    __tablename__ = 'organizations'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(120), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "phone": self.phone,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f'<Organization {self.name}>'


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    email = db.Column(db.String(120), unique=True, nullable=True, index=True)
    password_hash = db.Column(db.String(255), nullable=True)
    first_name = db.Column(db.String(100), nullable=True)
    last_name = db.Column(db.String(100), nullable=True)
    # Empty or NULL role means the account still awaits approval
    role = db.Column(db.String(50), nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True, index=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)

    organization = db.relationship('Organization', backref=db.backref('users', lazy='dynamic'))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        if not self.password_hash:
            return False
        return check_password_hash(self.password_hash, password)

    @property
    def is_pending_approval(self):
        return not self.role or not self.is_active

    @property
    def display_name(self):
        return self.first_name or self.username or 'Unknown'

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "email": self.email,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
            "isActive": self.is_active,
            "organizationId": self.organization_id,
            "createdAt": _iso(self.created_at),
        }

    def __repr__(self):
        return f'<User {self.username}>'


class Patient(db.Model):
    __tablename__ = 'patients'
    id = db.Column(db.Integer, primary_key=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True, index=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    gender = db.Column(db.String(20), nullable=True)
    phone = db.Column(db.String(50), nullable=True)
    email = db.Column(db.String(120), nullable=True)
    address = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)

    def __repr__(self):
        return f'<Patient {self.id} - {self.first_name} {self.last_name}>'


class Referral(db.Model):
    __tablename__ = 'referrals'
    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    from_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    to_user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    to_role = db.Column(db.String(50), nullable=False, index=True)
    reason = db.Column(db.Text, nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default=ReferralStatus.PENDING.value, index=True)
    referral_date = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)
    response_date = db.Column(db.DateTime, nullable=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "patientId": self.patient_id,
            "fromUserId": self.from_user_id,
            "toUserId": self.to_user_id,
            "toRole": self.to_role,
            "reason": self.reason,
            "notes": self.notes,
            "status": self.status,
            "referralDate": _iso(self.referral_date),
            "responseDate": _iso(self.response_date),
            "organizationId": self.organization_id,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Referral {self.id} for Patient {self.patient_id} -> {self.to_role}>'


class Visit(db.Model):
    __tablename__ = 'visits'
    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True, index=True)
    visit_date = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)
    blood_pressure = db.Column(db.String(20), nullable=True)
    heart_rate = db.Column(db.Integer, nullable=True)
    temperature = db.Column(db.Float, nullable=True)
    weight = db.Column(db.Float, nullable=True)
    complaint = db.Column(db.Text, nullable=True)
    diagnosis = db.Column(db.Text, nullable=True)
    treatment = db.Column(db.Text, nullable=True)
    follow_up_date = db.Column(db.Date, nullable=True)
    visit_type = db.Column(db.String(50), nullable=False, default='consultation')
    status = db.Column(db.String(20), nullable=False, default=VisitStatus.DRAFT.value, index=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, onupdate=datetime.datetime.utcnow)

    prescriptions = db.relationship('Prescription', backref='visit', lazy='dynamic')

    def to_dict(self):
        return {
            "id": self.id,
            "patientId": self.patient_id,
            "doctorId": self.doctor_id,
            "organizationId": self.organization_id,
            "visitDate": _iso(self.visit_date),
            "bloodPressure": self.blood_pressure,
            "heartRate": self.heart_rate,
            "temperature": self.temperature,
            "weight": self.weight,
            "complaint": self.complaint,
            "diagnosis": self.diagnosis,
            "treatment": self.treatment,
            "followUpDate": _iso(self.follow_up_date),
            "visitType": self.visit_type,
            "status": self.status,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<Visit {self.id} for Patient {self.patient_id} ({self.status})>'


class Prescription(db.Model):
    __tablename__ = 'prescriptions'
    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    visit_id = db.Column(db.Integer, db.ForeignKey('visits.id'), nullable=True, index=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True, index=True)
    prescribed_by = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    medication_name = db.Column(db.String(255), nullable=False)
    dosage = db.Column(db.String(100), nullable=True)
    frequency = db.Column(db.String(100), nullable=True)
    duration = db.Column(db.String(100), nullable=True)
    instructions = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(20), nullable=False, default='active')
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            "id": self.id,
            "patientId": self.patient_id,
            "visitId": self.visit_id,
            "organizationId": self.organization_id,
            "prescribedBy": self.prescribed_by,
            "medicationName": self.medication_name,
            "dosage": self.dosage,
            "frequency": self.frequency,
            "duration": self.duration,
            "instructions": self.instructions,
            "status": self.status,
            "createdAt": _iso(self.created_at),
        }


class Appointment(db.Model):
    __tablename__ = 'appointments'
    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True, index=True)
    appointment_date = db.Column(db.DateTime, nullable=False)
    appointment_type = db.Column(db.String(100), nullable=True) # e.g. "consultation", "telemedicine"
    status = db.Column(db.String(50), nullable=False, default='scheduled')
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False)


class AuditLog(db.Model):
    """Append-only record of actions taken through the API."""
    __tablename__ = 'audit_logs'
    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True)
    organization_id = db.Column(db.Integer, db.ForeignKey('organizations.id'), nullable=True, index=True)
    action = db.Column(db.String(100), nullable=False, index=True)
    entity_type = db.Column(db.String(50), nullable=True)
    entity_id = db.Column(db.String(50), nullable=True)
    details = db.Column(db.JSON, nullable=True)
    ip_address = db.Column(db.String(64), nullable=True)
    user_agent = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f'<AuditLog {self.action} {self.entity_type}:{self.entity_id}>'
