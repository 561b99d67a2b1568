from flask import Blueprint

inventory_bp = Blueprint("inventory", __name__)

from stackwise.blueprints.inventory import routes  # noqa: E402,F401
