# clinic_app_pkg/auth/routes.py
from flask import Blueprint, request, jsonify, current_app, g
from ..models import User
from ..utils import create_access_token, token_required

auth_bp = Blueprint('auth_bp', __name__)


@auth_bp.route('/login', methods=['POST'])
def login():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({"message": "Request body must be JSON."}), 400
    username = data.get('username')
    password = data.get('password')
    if not username or not password:
        return jsonify({"message": "Username and password are required."}), 400

    user = User.query.filter_by(username=username).first()
    if not user or not user.check_password(password):
        current_app.logger.warning(f"Failed login attempt for username: {username}")
        return jsonify({"message": "Invalid username or password."}), 401
    if user.is_pending_approval:
        current_app.logger.warning(f"Login attempt by account pending approval: {username}")
        return jsonify({"message": "Account is pending approval."}), 403

    access_token = create_access_token(user)
    current_app.logger.info(f"User '{username}' logged in successfully.")
    return jsonify({
        "accessToken": access_token,
        "user": user.to_dict(),
    }), 200


@auth_bp.route('/me', methods=['GET'])
@token_required
def get_current_user():
    return jsonify(g.current_user.to_dict()), 200
