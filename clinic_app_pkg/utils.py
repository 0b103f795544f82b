# clinic_app_pkg/utils.py
import jwt
import datetime
import uuid # For generating JTI
from dataclasses import dataclass
from functools import wraps
from typing import Optional
from flask import request, jsonify, current_app, g
from sqlalchemy import false
from .models import Role


@dataclass(frozen=True)
class Identity:
    """The caller resolved from a bearer token."""
    id: int
    username: Optional[str]
    role: Optional[Role]
    organization_id: Optional[int]

    @property
    def is_super_admin(self):
        return self.role is not None and self.role.is_super_admin

    def to_dict(self):
        return {
            "id": self.id,
            "username": self.username,
            "role": self.role.value if self.role else None,
            "organizationId": self.organization_id,
        }


# --- JWT Helper Functions ---
def create_access_token(user):
    """Creates a new JWT access token carrying the user's role and organization."""
    now = datetime.datetime.now(datetime.timezone.utc)
    payload = {
        'exp': now + datetime.timedelta(minutes=current_app.config.get('JWT_EXPIRATION_MINUTES', 60)),
        'iat': now,
        'sub': str(user.id),
        'jti': str(uuid.uuid4()),
        'username': user.username,
        'role': user.role,
        'organizationId': user.organization_id,
    }
    return jwt.encode(payload, current_app.config['JWT_SECRET_KEY'], algorithm=current_app.config.get('JWT_ALGORITHM', 'HS256'))


def decode_access_token(token):
    """
    Decodes a JWT access token.
    Returns the payload if successful, or an error string if decoding fails.
    """
    key_to_use = current_app.config['JWT_SECRET_KEY']
    algo = current_app.config.get('JWT_ALGORITHM', 'HS256')
    try:
        return jwt.decode(token, key_to_use, algorithms=[algo])
    except jwt.ExpiredSignatureError:
        current_app.logger.info("Token decode failed: ExpiredSignatureError")
        return "Token expired"
    except jwt.InvalidTokenError as e:
        current_app.logger.warning(f"Token decode failed: {e.__class__.__name__} - {e}")
        return "Invalid token format"


def identity_from_payload(payload):
    """Builds an Identity from decoded claims. Returns None if the subject is unusable."""
    try:
        user_id = int(payload.get('sub'))
    except (TypeError, ValueError):
        return None
    organization_id = payload.get('organizationId')
    if organization_id is not None:
        try:
            organization_id = int(organization_id)
        except (TypeError, ValueError):
            organization_id = None
    return Identity(
        id=user_id,
        username=payload.get('username'),
        role=Role.parse(payload.get('role')),
        organization_id=organization_id or None,
    )


def get_identity_from_token():
    auth_header = request.headers.get('Authorization')
    token = None
    if auth_header and auth_header.startswith('Bearer '):
        token = auth_header.split(" ", 1)[1].strip()

    if not token:
        g.authentication_error = "Access token required"
        return None

    payload = decode_access_token(token)
    if isinstance(payload, str): # Error message returned
        g.authentication_error = payload
        return None

    identity = identity_from_payload(payload)
    if identity is None:
        g.authentication_error = "Invalid token format"
    return identity


# --- Auth Gate Decorators ---
def token_required(f):
    """Authentication only: attaches the caller to g.current_user."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = get_identity_from_token()
        if not identity:
            error_message = getattr(g, 'authentication_error', "Authentication required")
            return jsonify({"message": error_message}), 401
        g.current_user = identity
        return f(*args, **kwargs)
    return decorated_function


def roles_required(*allowed_roles):
    """
    Authentication plus a role check against the Role enumeration.
    Super administrators pass every role check.
    """
    allowed = frozenset(Role(r) for r in allowed_roles)

    def decorator(f):
        @token_required
        @wraps(f)
        def decorated_function(*args, **kwargs):
            identity = g.current_user
            if not identity.is_super_admin and identity.role not in allowed:
                current_app.logger.warning(
                    f"Role check failed for user {identity.id} (role={identity.role}) on {request.endpoint}"
                )
                return jsonify({"message": "Forbidden: Insufficient permissions"}), 403
            return f(*args, **kwargs)
        return decorated_function
    return decorator


# --- Request Helpers ---
def parse_int(value):
    """Helper: Parse an int from a path/query/body value, returns None on failure."""
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


def organization_required_response():
    return jsonify({"message": "Organization context required"}), 400


def scope_to_organization(query, column, identity):
    """
    Restricts a query to the caller's organization.
    Super administrators are cross-tenant; callers without an organization see nothing.
    """
    if identity.is_super_admin:
        return query
    if identity.organization_id is None:
        return query.filter(false())
    return query.filter(column == identity.organization_id)
