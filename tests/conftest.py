import copy

import pytest

from app import create_app
from auth import create_user, issue_token
from config import TestConfig
from models import db
from reconciler import Reconciler
from store import SqlAlchemyStore


def make_plot(plot_id, humedad=50, temperatura=20, lluvia=0, sol=70, **overrides):
    plot = {
        "id": plot_id,
        "nombre": "Parcela %s" % plot_id,
        "ubicacion": "Zona Norte",
        "responsable": "Ana Torres",
        "tipo_cultivo": "Maíz",
        "ultimo_riego": "2024-03-01 08:00:00",
        "latitud": 21.06,
        "longitud": -86.84,
        "sensor": {"humedad": humedad, "temperatura": temperatura, "lluvia": lluvia, "sol": sol},
    }
    plot.update(overrides)
    return plot


def make_payload(plots, humedad=60, temperatura=25, lluvia=1, sol=80):
    return {
        "sensores": {"humedad": humedad, "temperatura": temperatura, "lluvia": lluvia, "sol": sol},
        "parcelas": plots,
    }


class FakeTelemetry:
    """Stands in for TelemetryClient.fetch."""

    def __init__(self, payload=None):
        self.payload = payload
        self.error = None
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return copy.deepcopy(self.payload)


@pytest.fixture
def app():
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.drop_all()


@pytest.fixture
def app_ctx(app):
    # requests made while this is pushed would share its g
    with app.app_context():
        yield app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def telemetry(app):
    fake = FakeTelemetry(make_payload([make_plot(1), make_plot(2)]))
    app.extensions["reconciler"].fetch = fake
    return fake


@pytest.fixture
def store(app_ctx):
    return SqlAlchemyStore(db.session)


@pytest.fixture
def reconciler(store):
    return Reconciler(store, degraded_fallback=False)


@pytest.fixture
def admin_headers(app):
    with app.app_context():
        admin = create_user("admin@example.com", "s3cret", "Admin", role="admin")
        return {"Authorization": "Bearer %s" % issue_token(admin)}


@pytest.fixture
def user_headers(app):
    with app.app_context():
        user = create_user("user@example.com", "s3cret", "User")
        return {"Authorization": "Bearer %s" % issue_token(user)}
