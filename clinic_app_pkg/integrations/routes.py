# clinic_app_pkg/integrations/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from ..utils import token_required, parse_int
from . import services

integrations_bp = Blueprint('integrations_bp', __name__)


def _dispatch(label, error_message, handler, *args):
    """Runs an integration handler; any failure becomes a generic 500."""
    try:
        return handler(*args)
    except Exception as e:
        current_app.logger.error(f"Error in {label}: {e}", exc_info=True)
        return jsonify({"error": error_message}), 500


def _resolve_id(url_value, body_field):
    """
    Takes the identifier from the URL when present, otherwise from the JSON body.
    Returns (value, error_response).
    """
    raw = url_value
    if raw is None:
        data = request.get_json(silent=True) or {}
        raw = data.get(body_field)
        if raw is None or raw == '':
            return None, (jsonify({"error": f"{body_field} is required"}), 400)
    value = parse_int(raw)
    if value is None:
        return None, (jsonify({"error": f"Invalid {body_field}"}), 400)
    return value, None


@integrations_bp.route('/fhir/patient/<string:patient_id>', methods=['GET'])
@token_required
def fhir_patient_export(patient_id):
    def handler():
        resolved = parse_int(patient_id)
        resource = services.export_patient_to_fhir(resolved, g.current_user) if resolved else None
        if not resource:
            return jsonify({"error": "Patient not found"}), 404
        return jsonify(resource), 200
    return _dispatch("FHIR export", "Failed to export FHIR data", handler)


@integrations_bp.route('/fhir/patient/<string:patient_id>', methods=['POST'])
@token_required
def fhir_patient_import(patient_id):
    return jsonify({"message": "FHIR patient data - implementation pending"}), 501


@integrations_bp.route('/integrations/lab-sync', methods=['POST'])
@token_required
def lab_sync():
    def handler():
        organization_id = g.current_user.organization_id
        if not organization_id:
            return jsonify({"error": "Organization ID required"}), 400
        return jsonify(services.sync_lab_results(organization_id)), 200
    return _dispatch("lab sync", "Failed to sync lab data", handler)


@integrations_bp.route('/integrations/e-prescribe', methods=['POST'])
@integrations_bp.route('/integrations/e-prescribe/<string:prescription_id>', methods=['POST'])
@token_required
def e_prescribe(prescription_id=None):
    def handler():
        resolved, error = _resolve_id(prescription_id, 'prescriptionId')
        if error:
            return error
        return jsonify(services.submit_electronic_prescription(resolved, g.current_user)), 200
    return _dispatch("e-prescribing", "Failed to process e-prescription", handler)


@integrations_bp.route('/integrations/verify-insurance', methods=['POST'])
@integrations_bp.route('/integrations/verify-insurance/<string:patient_id>', methods=['POST'])
@token_required
def verify_insurance(patient_id=None):
    def handler():
        resolved, error = _resolve_id(patient_id, 'patientId')
        if error:
            return error
        return jsonify(services.verify_insurance(resolved, g.current_user)), 200
    return _dispatch("insurance verification", "Failed to verify insurance", handler)


@integrations_bp.route('/integrations/telemedicine', methods=['POST'])
@integrations_bp.route('/integrations/telemedicine/<string:appointment_id>', methods=['POST'])
@token_required
def telemedicine_session(appointment_id=None):
    def handler():
        resolved, error = _resolve_id(appointment_id, 'appointmentId')
        if error:
            return error
        return jsonify(services.create_telemedicine_session(resolved, g.current_user)), 200
    return _dispatch("telemedicine session", "Failed to create telemedicine session", handler)
