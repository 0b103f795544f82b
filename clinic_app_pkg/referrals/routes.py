# clinic_app_pkg/referrals/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from pydantic import ValidationError
import datetime
from .. import db
from ..models import Referral, ReferralStatus, Role
from ..schemas import ReferralCreate, format_validation_errors
from ..utils import roles_required, parse_int, organization_required_response, scope_to_organization
from ..audit.services import create_audit_log
from ..sockets import notify_role

referrals_bp = Blueprint('referrals_bp', __name__)

CLINICAL_ROLES = (Role.DOCTOR, Role.NURSE, Role.ADMIN)
VALID_STATUSES = [s.value for s in ReferralStatus]


def _scoped_referral_query(referral_id):
    return scope_to_organization(Referral.query.filter(Referral.id == referral_id), Referral.organization_id, g.current_user)


@referrals_bp.route('/referrals', methods=['POST'])
@roles_required(*CLINICAL_ROLES)
def create_referral():
    identity = g.current_user
    if not identity.organization_id:
        return organization_required_response()

    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    try:
        payload = ReferralCreate.model_validate({
            **data,
            "organizationId": identity.organization_id,
            "fromUserId": identity.id,
        })
        values = payload.model_dump()
        values['status'] = payload.status.value
        referral = Referral(**values)
        db.session.add(referral)
        db.session.commit()
    except ValidationError as e:
        current_app.logger.warning(f"Invalid referral data from user {identity.id}: {e.error_count()} error(s)")
        return jsonify({"message": "Invalid referral data", "errors": format_validation_errors(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error creating referral: {e}", exc_info=True)
        return jsonify({"message": "Failed to create referral"}), 500

    referral_data = referral.to_dict()
    notify_role(referral.organization_id, referral.to_role, 'referral_created', referral_data)
    return jsonify(referral_data), 200


@referrals_bp.route('/referrals', methods=['GET'])
@roles_required(*CLINICAL_ROLES)
def get_referrals():
    identity = g.current_user
    if not identity.organization_id:
        return organization_required_response()

    query = Referral.query.filter(Referral.organization_id == identity.organization_id)

    to_role = request.args.get('toRole')
    status = request.args.get('status')
    if to_role:
        query = query.filter(Referral.to_role == to_role)
    if status:
        query = query.filter(Referral.status == status)

    for arg_name, column in (('fromUserId', Referral.from_user_id), ('patientId', Referral.patient_id)):
        raw = request.args.get(arg_name)
        if raw:
            value = parse_int(raw)
            if value is None:
                return jsonify({"message": f"Invalid {arg_name} filter format."}), 400
            query = query.filter(column == value)

    try:
        referrals = query.order_by(Referral.referral_date.desc(), Referral.id.desc()).all()
        return jsonify([r.to_dict() for r in referrals]), 200
    except Exception as e:
        current_app.logger.error(f"Error fetching referrals: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch referrals"}), 500


@referrals_bp.route('/referrals/<int:referral_id>', methods=['GET'])
@roles_required(*CLINICAL_ROLES)
def get_referral(referral_id):
    identity = g.current_user
    referral = db.session.get(Referral, referral_id)
    if not referral:
        return jsonify({"message": "Referral not found"}), 404

    if not identity.is_super_admin and referral.organization_id != identity.organization_id:
        current_app.logger.warning(
            f"User {identity.id} (org {identity.organization_id}) denied access to referral {referral_id} "
            f"of org {referral.organization_id}"
        )
        return jsonify({"message": "Access denied"}), 403

    return jsonify(referral.to_dict()), 200


@referrals_bp.route('/referrals/<int:referral_id>', methods=['PATCH'])
@roles_required(*CLINICAL_ROLES)
def update_referral(referral_id):
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        data = {}

    status = data.get('status')
    if status and status not in VALID_STATUSES:
        return jsonify({
            "message": "Invalid status. Must be 'pending', 'accepted', 'rejected', or 'completed'"
        }), 400

    has_notes = 'notes' in data
    if has_notes and data['notes'] is not None and not isinstance(data['notes'], str):
        return jsonify({"message": "Invalid notes. Must be a string or null"}), 400
    if not status and not has_notes:
        return jsonify({"message": "No update data provided"}), 400

    try:
        referral = _scoped_referral_query(referral_id).first()
        if not referral:
            return jsonify({"message": "Referral not found"}), 404

        if status and status != referral.status:
            referral.status = status
            if status != ReferralStatus.PENDING.value:
                referral.response_date = datetime.datetime.utcnow()
            if status == ReferralStatus.COMPLETED.value:
                create_audit_log(
                    action="REFERRAL_COMPLETED",
                    entity_type="referral",
                    entity_id=referral.id,
                    organization_id=referral.organization_id,
                )
        if has_notes:
            referral.notes = data.get('notes')
        referral.updated_at = datetime.datetime.utcnow()
        db.session.commit()
        return jsonify(referral.to_dict()), 200
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error updating referral {referral_id}: {e}", exc_info=True)
        return jsonify({"message": "Failed to update referral"}), 500


@referrals_bp.route('/referrals/<int:referral_id>', methods=['DELETE'])
@roles_required(Role.ADMIN)
def delete_referral(referral_id):
    try:
        deleted = _scoped_referral_query(referral_id).delete(synchronize_session=False)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error deleting referral {referral_id}: {e}", exc_info=True)
        return jsonify({"message": "Failed to delete referral"}), 500

    if not deleted:
        return jsonify({"message": "Referral not found"}), 404
    return jsonify({"message": "Referral deleted successfully"}), 200
