# clinic_app_pkg/workflow/services.py
"""
Synthetic workflow tasks.

Tasks are not persisted: each one is built on read from a User or an
Organization row that is still pending approval. A task is identified by a
``TaskRef`` (kind + row id). The legacy integer form used by older clients
encodes the kind in the numeric range: user ids as-is, organization ids
offset by ``ORGANIZATION_TASK_OFFSET``.
"""
import datetime
from dataclasses import dataclass
from enum import Enum

from flask import current_app
from sqlalchemy import or_

from ..models import AuditLog, Organization, User
from ..utils import scope_to_organization

ORGANIZATION_TASK_OFFSET = 100000
# Largest value a 64-bit INTEGER primary key can hold
MAX_ROW_ID = 2 ** 63 - 1

TASK_TYPES = (
    'user_approval',
    'organization_approval',
    'payment_approval',
    'document_approval',
    'role_assignment',
    'system_config',
)
PRIORITIES = ('urgent', 'high', 'medium', 'low')


class TaskKind(str, Enum):
    USER = 'user'
    ORGANIZATION = 'organization'

    @property
    def task_type(self):
        return f"{self.value}_approval"

    @property
    def priority(self):
        return 'high' if self is TaskKind.ORGANIZATION else 'medium'


@dataclass(frozen=True)
class TaskRef:
    kind: TaskKind
    id: int

    @property
    def wire_id(self):
        if self.kind is TaskKind.ORGANIZATION:
            return self.id + ORGANIZATION_TASK_OFFSET
        return self.id

    def to_dict(self):
        return {"kind": self.kind.value, "id": self.id}

    @classmethod
    def parse(cls, raw):
        """
        Accepts ``user:<id>``, ``organization:<id>`` or the legacy integer.
        Raises ValueError for anything else.
        """
        text = str(raw).strip()
        if ':' in text:
            kind_text, _, id_text = text.partition(':')
            kind = TaskKind(kind_text.strip().lower())
            row_id = int(id_text)
        else:
            wire_id = int(text)
            if wire_id >= ORGANIZATION_TASK_OFFSET:
                kind, row_id = TaskKind.ORGANIZATION, wire_id - ORGANIZATION_TASK_OFFSET
            else:
                kind, row_id = TaskKind.USER, wire_id
        if row_id <= 0:
            raise ValueError(f"Task id must be positive, got {row_id}")
        if row_id > MAX_ROW_ID:
            raise ValueError(f"Task id out of range, got {row_id}")
        return cls(kind, row_id)


def _pending_user_filter():
    return or_(User.role.is_(None), User.role == '', User.is_active.is_(False))


def pending_users_query(identity):
    return scope_to_organization(User.query.filter(_pending_user_filter()), User.organization_id, identity)


def pending_organizations_query(identity):
    """Organization approvals are only visible to super administrators."""
    if not identity.is_super_admin:
        return None
    return Organization.query.filter(Organization.is_active.is_(False))


def _user_task(user):
    ref = TaskRef(TaskKind.USER, user.id)
    return {
        "id": ref.wire_id,
        "ref": ref.to_dict(),
        "type": ref.kind.task_type,
        "title": f"Approve User: {user.display_name}",
        "description": f"User {user.username or user.email} needs role assignment or activation",
        "priority": ref.kind.priority,
        "status": "pending",
        "createdAt": user.created_at.isoformat(),
        "createdBy": user.username or user.email,
        "metadata": {
            "userId": user.id,
            "username": user.username,
            "email": user.email,
        },
    }


def _organization_task(org):
    ref = TaskRef(TaskKind.ORGANIZATION, org.id)
    return {
        "id": ref.wire_id,
        "ref": ref.to_dict(),
        "type": ref.kind.task_type,
        "title": f"Approve Organization: {org.name}",
        "description": f"Organization {org.name} is pending activation",
        "priority": ref.kind.priority,
        "status": "pending",
        "createdAt": org.created_at.isoformat(),
        "createdBy": None,
        "metadata": {
            "organizationId": org.id,
            "organizationName": org.name,
        },
    }


def _is_filter_set(value):
    return bool(value) and value != 'all'


def build_task_list(identity, task_type=None, priority=None, status=None):
    """Builds, filters and sorts the synthetic task list for the caller."""
    tasks = []

    if not _is_filter_set(task_type) or task_type == TaskKind.USER.task_type:
        limit = current_app.config.get('WORKFLOW_USER_TASK_LIMIT', 50)
        for user in pending_users_query(identity).order_by(User.created_at.desc()).limit(limit).all():
            tasks.append(_user_task(user))

    if not _is_filter_set(task_type) or task_type == TaskKind.ORGANIZATION.task_type:
        query = pending_organizations_query(identity)
        if query is not None:
            limit = current_app.config.get('WORKFLOW_ORGANIZATION_TASK_LIMIT', 20)
            for org in query.order_by(Organization.created_at.desc()).limit(limit).all():
                tasks.append(_organization_task(org))

    if _is_filter_set(priority):
        tasks = [t for t in tasks if t['priority'] == priority]
    if _is_filter_set(status):
        tasks = [t for t in tasks if t['status'] == status]

    tasks.sort(key=lambda t: datetime.datetime.fromisoformat(t['createdAt']), reverse=True)
    return tasks


def compute_stats(identity):
    pending_users = pending_users_query(identity).count()
    org_query = pending_organizations_query(identity)
    pending_orgs = org_query.count() if org_query is not None else 0

    today = datetime.datetime.combine(datetime.datetime.utcnow().date(), datetime.time.min)
    completed_query = AuditLog.query.filter(
        AuditLog.created_at >= today,
        or_(AuditLog.action.like('%APPROVED%'), AuditLog.action.like('%COMPLETED%'))
    )
    completed_query = scope_to_organization(completed_query, AuditLog.organization_id, identity)

    tasks_by_type = {task_type: 0 for task_type in TASK_TYPES}
    tasks_by_type[TaskKind.USER.task_type] = pending_users
    tasks_by_type[TaskKind.ORGANIZATION.task_type] = pending_orgs

    # Priorities follow the fixed per-kind priority assigned in the task list
    tasks_by_priority = {p: 0 for p in PRIORITIES}
    tasks_by_priority[TaskKind.USER.priority] += pending_users
    tasks_by_priority[TaskKind.ORGANIZATION.priority] += pending_orgs

    return {
        "pendingTasks": pending_users + pending_orgs,
        "completedToday": completed_query.count(),
        "averageProcessingTime": current_app.config.get('WORKFLOW_AVERAGE_PROCESSING_MINUTES', 15),
        "tasksByType": tasks_by_type,
        "tasksByPriority": tasks_by_priority,
        "estimates": {
            "averageProcessingTime": True,
            "tasksByPriority": False,
        },
    }


def approve_user(identity, user_id, role):
    """Activates a pending user. Returns the number of rows updated."""
    query = scope_to_organization(User.query.filter(User.id == user_id), User.organization_id, identity)
    return query.update({User.is_active: True, User.role: role.value}, synchronize_session=False)


def approve_organization(organization_id):
    """Activates a pending organization. Returns the number of rows updated."""
    return Organization.query.filter(Organization.id == organization_id).update(
        {Organization.is_active: True}, synchronize_session=False
    )
