"""Pytest fixtures: app on SQLite in memory, logged-in clients, block factory."""
import pytest

from stackwise import create_app
from stackwise.config import Config
from stackwise.extensions import db
from stackwise.models.user import User
from stackwise.services import yard_logic


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    APP_TZ = "UTC"
    LOG_LEVEL = "WARNING"


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


def _make_user(username, role, password="secret123"):
    u = User(username=username, role=role, is_active=True)
    u.set_password(password)
    db.session.add(u)
    db.session.commit()
    return u


@pytest.fixture
def admin_user(app):
    return _make_user("admin", "admin")


@pytest.fixture
def operator_user(app):
    return _make_user("operator", "operator")


@pytest.fixture
def admin_client(client, admin_user):
    response = client.post("/login", json={"username": "admin", "password": "secret123"})
    assert response.status_code == 200
    return client


@pytest.fixture
def operator_client(client, operator_user):
    response = client.post("/login", json={"username": "operator", "password": "secret123"})
    assert response.status_code == 200
    return client


@pytest.fixture
def make_block(app):
    def _make(name="D", bays=2, rows=2, tiers=2, block_type="regular"):
        return yard_logic.create_block(name, bays, rows, tiers=tiers, block_type=block_type)
    return _make


@pytest.fixture
def place(app):
    counter = {"n": 0}

    def _place(block_id, **overrides):
        counter["n"] += 1
        attrs = {
            "container_number": f"MSCU{counter['n']:07d}",
            "consignee_name": "Acme Imports",
            "type": "20GP",
        }
        attrs.update(overrides)
        return yard_logic.place_container(block_id, attrs)
    return _place
