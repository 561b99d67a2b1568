import logging

from flask import request, jsonify
from flask_login import login_user, logout_user, login_required, current_user

from stackwise.blueprints.auth import auth_bp
from stackwise.models.user import User
from stackwise.utils.serializers import user_to_dict

logger = logging.getLogger(__name__)


def _credentials():
    data = request.get_json(silent=True) or request.form
    username = data.get("username")
    password = data.get("password")
    username = username.strip().lower() if isinstance(username, str) else ""
    password = password if isinstance(password, str) else ""
    return username, password


@auth_bp.post("/login")
def login_post():
    username, password = _credentials()

    user = User.query.filter_by(username=username, is_active=True).first()
    if not user or not user.check_password(password):
        logger.warning("Failed login for %r", username)
        return jsonify({"ok": False, "error": "INVALID_CREDENTIALS", "message": "Invalid credentials"}), 401

    login_user(user)
    return jsonify({"ok": True, "user": user_to_dict(user)})


@auth_bp.get("/logout")
@login_required
def logout():
    logout_user()
    return jsonify({"ok": True})


@auth_bp.get("/me")
@login_required
def me():
    return jsonify({"ok": True, "user": user_to_dict(current_user)})
