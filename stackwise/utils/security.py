# stackwise/utils/security.py
from functools import wraps

from flask import jsonify
from flask_login import current_user


def admin_required(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        if not current_user.is_authenticated:
            return jsonify({"ok": False, "error": "UNAUTHORIZED"}), 401

        role = (getattr(current_user, "role", "") or "").strip().lower()
        if role != "admin":
            return jsonify({"ok": False, "error": "FORBIDDEN", "message": "Admin role required"}), 403

        return fn(*args, **kwargs)
    return wrapper


def current_user_id():
    return current_user.id if current_user.is_authenticated else None
