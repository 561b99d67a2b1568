import logging

import click
from dotenv import load_dotenv
from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError

from stackwise.config import Config
from stackwise.errors import YardError
from stackwise.extensions import db, migrate, login_manager

logger = logging.getLogger(__name__)


def _configure_logging(app: Flask) -> None:
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    logging.getLogger("stackwise").setLevel(level)


def create_app(config_object=None):
    load_dotenv()

    app = Flask(__name__)
    app.config.from_object(config_object or Config)

    _configure_logging(app)

    # Extensions
    db.init_app(app)
    migrate.init_app(app, db)
    login_manager.init_app(app)

    @login_manager.unauthorized_handler
    def unauthorized():
        return jsonify({"ok": False, "error": "UNAUTHORIZED"}), 401

    # =========================
    # Error handling
    # =========================

    @app.errorhandler(YardError)
    def handle_yard_error(err: YardError):
        return jsonify(err.to_dict()), err.status_code

    @app.errorhandler(SQLAlchemyError)
    def handle_store_error(err: SQLAlchemyError):
        db.session.rollback()
        logger.exception("Database error")
        return jsonify({"ok": False, "error": "STORE_ERROR", "message": "Database error"}), 500

    # Models must be imported before blueprints so every table is registered
    from stackwise import models  # noqa: F401

    # Blueprints
    from stackwise.blueprints.auth import auth_bp
    from stackwise.blueprints.yard import yard_bp
    from stackwise.blueprints.admin import admin_bp
    from stackwise.blueprints.inventory import inventory_bp

    app.register_blueprint(inventory_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(yard_bp)
    app.register_blueprint(admin_bp)

    # =========================
    # CLI
    # =========================

    @app.cli.command("create-user")
    @click.argument("username")
    @click.password_option()
    @click.option("--role", type=click.Choice(["admin", "operator"]), default="admin")
    def create_user(username, password, role):
        """Create a login (first admin bootstrap)."""
        from stackwise.models.user import User

        username = username.strip().lower()
        if User.query.filter_by(username=username).first():
            raise click.ClickException(f"User {username} already exists")

        u = User(username=username, role=role, is_active=True)
        u.set_password(password)
        db.session.add(u)
        db.session.commit()
        click.echo(f"User {username} created ({role})")

    # Simple healthcheck
    @app.get("/health")
    def health():
        return {"ok": True}

    return app
