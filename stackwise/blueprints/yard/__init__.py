from flask import Blueprint

yard_bp = Blueprint("yard", __name__)

from stackwise.blueprints.yard import routes  # noqa: E402,F401
