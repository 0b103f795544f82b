# clinic_app_pkg/sockets.py
from flask_socketio import SocketIO, join_room
from flask import current_app, request
from .utils import decode_access_token, identity_from_payload

# Create the SocketIO instance but don't attach it to the app yet
socketio = SocketIO(cors_allowed_origins="*") # Use a specific origin in production


def user_room(user_id):
    return f"user:{user_id}"


def role_room(organization_id, role):
    role_name = getattr(role, 'value', role)
    return f"org:{organization_id}:{role_name}"


@socketio.on('connect')
def handle_connect(auth=None):
    """
    Handles a new client connection.
    The client must provide a valid JWT to be placed in its user room and,
    when it belongs to an organization, in that organization's room for its role.
    """
    access_token = request.args.get('token')
    if not access_token and isinstance(auth, dict):
        access_token = auth.get('token')
    if not access_token:
        return False # Reject connection if no token is provided

    payload = decode_access_token(access_token)
    if isinstance(payload, str):
        return False # Reject connection if token is invalid

    identity = identity_from_payload(payload)
    if identity is None:
        return False

    join_room(user_room(identity.id))
    if identity.organization_id and identity.role:
        join_room(role_room(identity.organization_id, identity.role))
    current_app.logger.info(f"Socket.IO client connected: user_id {identity.id}")


def notify_user(user_id, event, payload):
    socketio.emit(event, payload, to=user_room(user_id))


def notify_role(organization_id, role, event, payload):
    socketio.emit(event, payload, to=role_room(organization_id, role))
