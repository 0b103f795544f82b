# clinic_app_pkg/integrations/services.py
# Placeholder adapters for external healthcare systems. Each one resolves its
# local records and returns the acknowledgement the real integration would.
import time
from flask import current_app
from ..models import Appointment, Patient, Prescription
from ..utils import scope_to_organization


class IntegrationLookupError(LookupError):
    """A record an integration needs does not exist for the caller."""


def _millis():
    return int(time.time() * 1000)


def _get_scoped(model, record_id, identity):
    query = scope_to_organization(model.query.filter(model.id == record_id), model.organization_id, identity)
    return query.first()


def export_patient_to_fhir(patient_id, identity):
    """Converts a patient to a FHIR R4 Patient resource. Returns None if not found."""
    patient = _get_scoped(Patient, patient_id, identity)
    if not patient:
        return None

    telecom = []
    if patient.phone:
        telecom.append({"system": "phone", "value": patient.phone})
    if patient.email:
        telecom.append({"system": "email", "value": patient.email})

    resource = {
        "resourceType": "Patient",
        "id": str(patient.id),
        "name": [{
            "family": patient.last_name,
            "given": [patient.first_name],
        }],
        "birthDate": patient.date_of_birth.isoformat() if patient.date_of_birth else None,
        "gender": patient.gender.lower() if patient.gender else "unknown",
        "telecom": telecom,
    }
    if patient.address:
        resource["address"] = [{
            "line": [patient.address],
            "city": "",
            "state": "",
            "postalCode": "",
        }]
    return resource


def sync_lab_results(organization_id):
    # Would connect to the organization's Laboratory Information System
    current_app.logger.info(f"Syncing lab results for organization {organization_id}")
    return {
        "success": True,
        "synced": 0,
        "message": "LIS integration ready for configuration",
    }


def submit_electronic_prescription(prescription_id, identity):
    prescription = _get_scoped(Prescription, prescription_id, identity)
    if not prescription:
        raise IntegrationLookupError(f"Prescription {prescription_id} not found")

    current_app.logger.info(f"Submitting e-prescription {prescription_id} to pharmacy network")
    return {
        "success": True,
        "prescriptionId": prescription.id,
        "confirmationNumber": f"EP{_millis()}",
        "message": "E-prescribing integration ready for configuration",
    }


def verify_insurance(patient_id, identity):
    patient = _get_scoped(Patient, patient_id, identity)
    if not patient:
        raise IntegrationLookupError(f"Patient {patient_id} not found")

    current_app.logger.info(f"Verifying insurance for patient {patient_id}")
    return {
        "success": True,
        "patientId": patient.id,
        "status": "verified",
        "coverage": "active",
        "message": "Insurance verification integration ready for configuration",
    }


def create_telemedicine_session(appointment_id, identity):
    appointment = _get_scoped(Appointment, appointment_id, identity)
    if not appointment:
        raise IntegrationLookupError(f"Appointment {appointment_id} not found")

    session_id = f"TM{_millis()}"
    base_url = current_app.config.get('TELEMEDICINE_BASE_URL', '').rstrip('/')
    current_app.logger.info(f"Creating telemedicine session for appointment {appointment_id}")
    return {
        "success": True,
        "appointmentId": appointment.id,
        "sessionId": session_id,
        "joinUrl": f"{base_url}/{session_id}",
        "message": "Telemedicine integration ready for configuration",
    }
