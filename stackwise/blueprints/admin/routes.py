from flask import request, jsonify
from flask_login import login_required, current_user

from stackwise.blueprints.admin import admin_bp
from stackwise.errors import ValidationError
from stackwise.extensions import db
from stackwise.models.container import Container
from stackwise.models.history import ContainerHistory
from stackwise.models.user import ROLES, User
from stackwise.utils.security import admin_required
from stackwise.utils.serializers import history_to_dict, user_to_dict


def _text(value) -> str:
    return value.strip() if isinstance(value, str) else ""


@admin_bp.get("/users")
@login_required
@admin_required
def users_view():
    users = User.query.order_by(User.id.desc()).all()
    return jsonify({"users": [user_to_dict(u) for u in users]})


@admin_bp.post("/users")
@login_required
@admin_required
def users_create():
    data = request.get_json(silent=True) or request.form
    username = _text(data.get("username")).lower()
    password = data.get("password") if isinstance(data.get("password"), str) else ""
    role = (_text(data.get("role")) or "operator").lower()
    name = _text(data.get("name")) or None

    errors = []
    if not username or len(username) < 3:
        errors.append("Username must be at least 3 characters")
    if role not in ROLES:
        errors.append(f"Role must be one of: {', '.join(ROLES)}")
    if len(password) < 6:
        errors.append("Password must be at least 6 characters")
    if username and User.query.filter_by(username=username).first():
        errors.append("Username already exists")

    if errors:
        raise ValidationError(errors)

    u = User(username=username, name=name, role=role, is_active=True)
    u.set_password(password)
    db.session.add(u)
    db.session.commit()

    return jsonify({"ok": True, "user": user_to_dict(u)}), 201


@admin_bp.post("/users/<int:user_id>/toggle")
@login_required
@admin_required
def users_toggle(user_id: int):
    u = db.get_or_404(User, user_id)

    if u.id == current_user.id:
        return jsonify({"ok": False, "error": "SELF_ACTION", "message": "You cannot deactivate yourself"}), 400

    u.is_active = not u.is_active
    db.session.commit()

    return jsonify({"ok": True, "user": user_to_dict(u)})


@admin_bp.delete("/users/<int:user_id>")
@login_required
@admin_required
def users_delete(user_id: int):
    u = db.get_or_404(User, user_id)

    if u.id == current_user.id:
        return jsonify({"ok": False, "error": "SELF_ACTION", "message": "You cannot delete yourself"}), 400

    # Keep history rows, just detach them
    ContainerHistory.query.filter_by(performed_by=u.id).update({ContainerHistory.performed_by: None})
    db.session.delete(u)
    db.session.commit()

    return jsonify({"ok": True})


@admin_bp.get("/history")
@login_required
@admin_required
def history_view():
    q_user = (request.args.get("user") or "").strip()
    q_action = (request.args.get("action") or "").strip()

    q = (
        db.session.query(ContainerHistory, Container.container_number)
        .join(Container, Container.id == ContainerHistory.container_id)
    )

    if q_user.isdigit():
        q = q.filter(ContainerHistory.performed_by == int(q_user))

    if q_action:
        q = q.filter(ContainerHistory.action.ilike(f"%{q_action}%"))

    rows = q.order_by(ContainerHistory.created_at.desc(), ContainerHistory.id.desc()).limit(500).all()

    payload = []
    for h, number in rows:
        item = history_to_dict(h)
        item["container_number"] = number
        payload.append(item)

    return jsonify({"history": payload})
