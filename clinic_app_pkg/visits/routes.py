# clinic_app_pkg/visits/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from pydantic import ValidationError
import datetime
from .. import db
from ..models import Prescription, Role, Visit, VisitStatus
from ..schemas import VisitCreate, VisitUpdate, format_validation_errors
from ..utils import (roles_required, token_required, parse_int,
                     organization_required_response, scope_to_organization)
from ..audit.services import create_audit_log
from .services import (normalize_visit_payload, scoped_visit_query,
                       patient_visits_query, get_visit_statistics)

visits_bp = Blueprint('visits_bp', __name__)

CLINICAL_ROLES = (Role.DOCTOR, Role.NURSE, Role.ADMIN)


def _server_error(message, error):
    body = {"message": message}
    # Leaks internal error text; production turns this off via EXPOSE_ERROR_DETAILS
    if current_app.config.get('EXPOSE_ERROR_DETAILS'):
        body["error"] = str(error)
    return jsonify(body), 500


def _request_data():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


@visits_bp.route('/patients/<int:patient_id>/visits', methods=['POST'])
@roles_required(*CLINICAL_ROLES)
def create_visit(patient_id):
    identity = g.current_user
    if not identity.organization_id:
        return organization_required_response()

    cleaned = normalize_visit_payload(_request_data())
    try:
        payload = VisitCreate.model_validate({
            **cleaned,
            "patientId": patient_id,
            "doctorId": identity.id,
            "organizationId": identity.organization_id,
        })
        visit = Visit(**payload.model_dump(exclude_none=True))
        db.session.add(visit)
        db.session.commit()
        current_app.logger.info(f"Visit {visit.id} created for patient {patient_id} by user {identity.id}")
        return jsonify(visit.to_dict()), 200
    except ValidationError as e:
        current_app.logger.warning(f"Invalid visit data for patient {patient_id}: {e.error_count()} error(s)")
        return jsonify({"message": "Invalid visit data", "errors": format_validation_errors(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Visit creation error: {e}", exc_info=True)
        return _server_error("Failed to create visit", e)


@visits_bp.route('/patients/<int:patient_id>/visits', methods=['GET'])
@token_required
def get_patient_visits(patient_id):
    try:
        visits = patient_visits_query(g.current_user, patient_id) \
            .order_by(Visit.visit_date.desc(), Visit.id.desc()).all()
        return jsonify([v.to_dict() for v in visits]), 200
    except Exception as e:
        current_app.logger.error(f"Error fetching visits for patient {patient_id}: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch visits"}), 500


@visits_bp.route('/patients/<int:patient_id>/visits/stats', methods=['GET'])
@token_required
def get_patient_visit_stats(patient_id):
    try:
        return jsonify(get_visit_statistics(g.current_user, patient_id)), 200
    except Exception as e:
        current_app.logger.error(f"Error computing visit statistics for patient {patient_id}: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch visit statistics"}), 500


@visits_bp.route('/patients/<int:patient_id>/visits/<int:visit_id>', methods=['GET'])
@token_required
def get_visit(patient_id, visit_id):
    try:
        visit = scoped_visit_query(g.current_user, visit_id, patient_id).first()
    except Exception as e:
        current_app.logger.error(f"Error fetching visit {visit_id}: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch visit"}), 500

    if not visit:
        return jsonify({"message": "Visit not found"}), 404
    return jsonify(visit.to_dict()), 200


@visits_bp.route('/patients/<int:patient_id>/visits/<int:visit_id>', methods=['PATCH'])
@roles_required(*CLINICAL_ROLES)
def update_visit(patient_id, visit_id):
    cleaned = normalize_visit_payload(_request_data())
    try:
        payload = VisitUpdate.model_validate(cleaned)
    except ValidationError as e:
        return jsonify({"message": "Invalid visit data", "errors": format_validation_errors(e)}), 400

    try:
        visit = scoped_visit_query(g.current_user, visit_id, patient_id).first()
        if not visit:
            return jsonify({"message": "Visit not found"}), 404

        for field, value in payload.model_dump(exclude_unset=True).items():
            setattr(visit, field, value)
        visit.updated_at = datetime.datetime.utcnow()
        db.session.commit()
        return jsonify(visit.to_dict()), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating visit {visit_id}: {e}", exc_info=True)
        return _server_error("Failed to update visit", e)


@visits_bp.route('/patients/<int:patient_id>/visits/<int:visit_id>/finalize', methods=['POST'])
@roles_required(Role.DOCTOR, Role.ADMIN)
def finalize_visit(patient_id, visit_id):
    identity = g.current_user
    try:
        visit = scoped_visit_query(identity, visit_id, patient_id).first()
        if not visit:
            return jsonify({"message": "Visit not found"}), 404

        visit.status = VisitStatus.FINAL.value
        visit.updated_at = datetime.datetime.utcnow()
        create_audit_log(
            action="VISIT_FINALIZED",
            entity_type="visit",
            entity_id=visit.id,
            organization_id=visit.organization_id,
        )
        db.session.commit()
        current_app.logger.info(f"Visit {visit.id} finalized by user {identity.id}")
        return jsonify({"message": "Visit finalized successfully", "visit": visit.to_dict()}), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error finalizing visit {visit_id}: {e}", exc_info=True)
        return _server_error("Failed to finalize visit", e)


@visits_bp.route('/visits', methods=['GET'])
@token_required
def get_visits():
    identity = g.current_user
    if not identity.organization_id:
        return organization_required_response()

    query = Visit.query.filter(Visit.organization_id == identity.organization_id)

    status = request.args.get('status')
    if status:
        query = query.filter(Visit.status == status)
    for arg_name, column in (('patientId', Visit.patient_id), ('doctorId', Visit.doctor_id)):
        raw = request.args.get(arg_name)
        if raw:
            value = parse_int(raw)
            if value is None:
                return jsonify({"message": f"Invalid {arg_name} filter format."}), 400
            query = query.filter(column == value)

    default_limit = current_app.config.get('VISITS_DEFAULT_LIMIT', 50)
    max_limit = current_app.config.get('VISITS_MAX_LIMIT', 100)
    limit = parse_int(request.args.get('limit'))
    if limit is None or limit < 1:
        limit = default_limit
    limit = min(limit, max_limit)

    try:
        visits = query.order_by(Visit.visit_date.desc(), Visit.id.desc()).limit(limit).all()
        return jsonify([v.to_dict() for v in visits]), 200
    except Exception as e:
        current_app.logger.error(f"Error fetching visits: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch visits"}), 500


@visits_bp.route('/visits/<int:visit_id>/prescriptions', methods=['GET'])
@token_required
def get_visit_prescriptions(visit_id):
    try:
        query = Prescription.query.join(Visit, Prescription.visit_id == Visit.id).filter(Visit.id == visit_id)
        query = scope_to_organization(query, Visit.organization_id, g.current_user)
        prescriptions = query.order_by(Prescription.created_at.desc(), Prescription.id.desc()).all()
        return jsonify([p.to_dict() for p in prescriptions]), 200
    except Exception as e:
        current_app.logger.error(f"Error fetching visit prescriptions: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch visit prescriptions"}), 500
