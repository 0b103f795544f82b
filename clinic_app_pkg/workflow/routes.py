# clinic_app_pkg/workflow/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from .. import db
from ..models import ADMIN_ROLES, Role
from ..utils import roles_required
from ..audit.services import create_audit_log
from ..sockets import notify_user
from .services import (TaskKind, TaskRef, approve_organization, approve_user,
                       build_task_list, compute_stats)

workflow_bp = Blueprint('workflow_bp', __name__)


@workflow_bp.route('/stats', methods=['GET'])
@roles_required(*ADMIN_ROLES)
def get_workflow_stats():
    try:
        return jsonify(compute_stats(g.current_user)), 200
    except Exception as e:
        current_app.logger.error(f"Error fetching workflow stats: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch workflow stats"}), 500


@workflow_bp.route('/tasks', methods=['GET'])
@roles_required(*ADMIN_ROLES)
def get_workflow_tasks():
    try:
        tasks = build_task_list(
            g.current_user,
            task_type=request.args.get('type'),
            priority=request.args.get('priority'),
            status=request.args.get('status'),
        )
        return jsonify(tasks), 200
    except Exception as e:
        current_app.logger.error(f"Error fetching workflow tasks: {e}", exc_info=True)
        return jsonify({"message": "Failed to fetch workflow tasks"}), 500


@workflow_bp.route('/tasks/<string:task_id>/approve', methods=['POST'])
@roles_required(*ADMIN_ROLES)
def approve_task(task_id):
    identity = g.current_user
    try:
        ref = TaskRef.parse(task_id)
    except ValueError:
        return jsonify({"message": "Invalid task id"}), 400

    data = request.get_json(silent=True) or {}

    if ref.kind is TaskKind.USER:
        role = Role.parse(data.get('role') or Role.USER.value)
        if role is None:
            return jsonify({"message": f"Invalid role '{data.get('role')}'"}), 400
        if role.is_super_admin and not identity.is_super_admin:
            return jsonify({"message": "Forbidden: Insufficient permissions"}), 403
    elif not identity.is_super_admin:
        # Organizations are tenants; only super administrators activate them
        return jsonify({"message": "Forbidden: Insufficient permissions"}), 403

    try:
        if ref.kind is TaskKind.USER:
            updated = approve_user(identity, ref.id, role)
            action, message = "USER_APPROVED", "User approved successfully"
        else:
            updated = approve_organization(ref.id)
            action, message = "ORGANIZATION_APPROVED", "Organization approved successfully"

        if updated:
            create_audit_log(
                action=action,
                entity_type=ref.kind.value,
                entity_id=ref.id,
                details={"notes": data.get('notes'), "role": role.value if ref.kind is TaskKind.USER else None},
            )
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error approving task {task_id}: {e}", exc_info=True)
        return jsonify({"message": "Failed to approve task"}), 500

    if updated:
        current_app.logger.info(f"{action}: {ref.kind.value} {ref.id} by user {identity.id}")
        if ref.kind is TaskKind.USER:
            notify_user(ref.id, 'account_approved', {"userId": ref.id, "role": role.value})
    else:
        current_app.logger.warning(f"Approve for task {task_id} matched no {ref.kind.value} row")

    return jsonify({
        "message": message,
        "taskId": ref.wire_id,
        "ref": ref.to_dict(),
        "type": ref.kind.task_type,
        "updated": updated,
    }), 200


@workflow_bp.route('/tasks/<string:task_id>/reject', methods=['POST'])
@roles_required(*ADMIN_ROLES)
def reject_task(task_id):
    # Rejection does not change any user or organization row yet.
    try:
        ref = TaskRef.parse(task_id)
    except ValueError:
        return jsonify({"message": "Invalid task id"}), 400

    data = request.get_json(silent=True) or {}
    reason = data.get('reason')
    current_app.logger.warning(
        f"Task {task_id} rejected by user {g.current_user.id} (no state change recorded). Reason: {reason}"
    )
    return jsonify({
        "message": "Task rejected successfully",
        "taskId": ref.wire_id,
        "ref": ref.to_dict(),
        "reason": reason,
    }), 200
