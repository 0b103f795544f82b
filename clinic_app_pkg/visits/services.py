# clinic_app_pkg/visits/services.py
from ..models import Visit, VisitStatus
from ..utils import scope_to_organization

# Optional fields the clinical forms submit as "" when left blank
BLANKABLE_FIELDS = ('heartRate', 'temperature', 'weight', 'followUpDate')

# Client form names -> persisted column names
FIELD_RENAMES = {
    'chiefComplaint': 'complaint',
    'treatmentPlan': 'treatment',
}

# Set by the server, never taken from a request body
PROTECTED_FIELDS = ('id', 'patientId', 'doctorId', 'organizationId', 'status', 'createdAt', 'updatedAt')


def normalize_visit_payload(data):
    """
    Returns a copy of a visit request body with blank optional fields dropped,
    client field names mapped to the persisted ones, and server-owned fields removed.
    """
    cleaned = dict(data or {})
    for field in BLANKABLE_FIELDS:
        if cleaned.get(field) == '':
            del cleaned[field]
    for client_name, column_name in FIELD_RENAMES.items():
        if client_name in cleaned:
            cleaned[column_name] = cleaned.pop(client_name)
    for field in PROTECTED_FIELDS:
        cleaned.pop(field, None)
    return cleaned


def scoped_visit_query(identity, visit_id, patient_id):
    query = Visit.query.filter(Visit.id == visit_id, Visit.patient_id == patient_id)
    return scope_to_organization(query, Visit.organization_id, identity)


def patient_visits_query(identity, patient_id):
    query = Visit.query.filter(Visit.patient_id == patient_id)
    return scope_to_organization(query, Visit.organization_id, identity)


def get_visit_statistics(identity, patient_id):
    visits = patient_visits_query(identity, patient_id).order_by(Visit.visit_date.desc(), Visit.id.desc()).all()
    return {
        "totalVisits": len(visits),
        "completedVisits": sum(1 for v in visits if v.status == VisitStatus.FINAL.value),
        "draftVisits": sum(1 for v in visits if v.status == VisitStatus.DRAFT.value),
        "lastVisit": visits[0].to_dict() if visits else None,
    }
