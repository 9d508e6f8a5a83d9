from conftest import make_payload, make_plot
from errors import FetchError
from models import GlobalReading, Plot, User


def count(app, model):
    with app.app_context():
        return model.query.count()


def register(client, email="ana@example.com", password="pw123", name="Ana"):
    return client.post("/api/auth/register", json={"email": email, "password": password, "name": name})


# ----------------------
# Auth
# ----------------------
def test_register_login_me(client):
    resp = register(client)
    assert resp.status_code == 201
    assert resp.get_json()["rol"] == "user"
    assert "password_hash" not in resp.get_json()

    resp = client.post("/api/auth/login", json={"email": "ANA@example.com", "password": "pw123"})
    assert resp.status_code == 200
    token = resp.get_json()["token"]

    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer " + token})
    assert resp.status_code == 200
    assert resp.get_json()["email"] == "ana@example.com"


def test_register_validation(app, client):
    assert client.post("/api/auth/register", json={"email": "x@example.com"}).status_code == 400
    assert register(client, email="not-an-email").status_code == 400
    assert register(client).status_code == 201
    assert register(client).status_code == 400
    assert count(app, User) == 1


def test_login_rejects_bad_credentials(client):
    register(client)
    assert client.post("/api/auth/login", json={"email": "ana@example.com", "password": "nope"}).status_code == 401
    assert client.post("/api/auth/login", json={"email": "ghost@example.com", "password": "pw123"}).status_code == 401
    assert client.post("/api/auth/login", json={}).status_code == 400


def test_me_requires_valid_token(client):
    assert client.get("/api/auth/me").status_code == 401
    resp = client.get("/api/auth/me", headers={"Authorization": "Bearer forged.token.value"})
    assert resp.status_code == 401
    assert "error" in resp.get_json()


def test_expired_token_is_rejected(app, client, user_headers):
    app.config["TOKEN_MAX_AGE"] = -1
    assert client.get("/api/auth/me", headers=user_headers).status_code == 401


# ----------------------
# Reconciliation endpoint
# ----------------------
def test_update_data_requires_admin(client, telemetry, user_headers):
    assert client.get("/api/update-data").status_code == 401
    assert client.get("/api/update-data", headers=user_headers).status_code == 403
    assert telemetry.calls == 0


def test_update_data_runs_a_pass(app, client, telemetry, admin_headers):
    resp = client.get("/api/update-data", headers=admin_headers)

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "Base de datos actualizada correctamente"
    assert body["result"]["plots_inserted"] == 2
    assert telemetry.calls == 1
    assert count(app, Plot) == 2


def test_update_data_without_admin_requirement(app, client, telemetry):
    app.config["UPDATE_REQUIRES_ADMIN"] = False
    assert client.get("/api/update-data").status_code == 200


def test_update_data_reports_fetch_failure(app, client, telemetry, admin_headers):
    telemetry.error = FetchError("Telemetry request timed out after 10.0s")

    resp = client.get("/api/update-data", headers=admin_headers)

    assert resp.status_code == 502
    assert "timed out" in resp.get_json()["error"]
    # degraded all-zero row
    assert count(app, GlobalReading) == 1


def test_update_data_reports_malformed_payload(app, client, telemetry, admin_headers):
    telemetry.payload = {"sensores": {"humedad": 1}}
    resp = client.get("/api/update-data", headers=admin_headers)
    assert resp.status_code == 502
    assert count(app, Plot) == 0


# ----------------------
# Read endpoints
# ----------------------
def test_plot_listings_and_history(client, telemetry, admin_headers):
    client.get("/api/update-data", headers=admin_headers)
    telemetry.payload = make_payload([make_plot(1, humedad=75)])
    client.get("/api/update-data", headers=admin_headers)

    active = client.get("/api/parcelas").get_json()
    assert [p["id"] for p in active] == [1]
    assert active[0]["nombre"] == "Parcela 1"
    assert active[0]["ultimo_riego"] == "2024-03-01"

    deleted = client.get("/api/parcelas/eliminadas").get_json()
    assert [p["id"] for p in deleted] == [2]
    assert deleted[0]["is_deleted"] is True

    history = client.get("/api/historico/parcelas/1").get_json()
    assert [r["humedad"] for r in history] == [50.0, 75.0]
    assert client.get("/api/historico/parcelas/99").get_json() == []


def test_dump_and_general_data(client, telemetry, admin_headers):
    resp = client.get("/api/datos-generales")
    assert resp.get_json() == {"actual": None, "historico": []}

    client.get("/api/update-data", headers=admin_headers)

    dump = client.get("/api/dump").get_json()
    assert len(dump["parcelas"]) == 2
    assert len(dump["historico"]) == 2
    assert len(dump["globales"]) == 1

    general = client.get("/api/datos-generales").get_json()
    assert general["actual"]["humedad_global"] == 60.0
    assert len(general["historico"]) == 1


def test_unknown_route_is_json(client):
    resp = client.get("/api/nada")
    assert resp.status_code == 404
    assert "error" in resp.get_json()


# ----------------------
# CLI
# ----------------------
def test_cli_update_data(app, telemetry):
    result = app.test_cli_runner().invoke(args=["update-data"])
    assert result.exit_code == 0
    assert "plots_inserted: 2" in result.output


def test_cli_update_data_failure(app, telemetry):
    telemetry.error = FetchError("down")
    result = app.test_cli_runner().invoke(args=["update-data"])
    assert result.exit_code != 0
    assert "down" in result.output


def test_cli_create_admin(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=["create-admin", "Root@Example.com", "--password", "pw"])
    assert result.exit_code == 0
    with app.app_context():
        assert User.query.filter_by(email="root@example.com").one().role == "admin"

    again = runner.invoke(args=["create-admin", "root@example.com", "--password", "pw"])
    assert again.exit_code != 0
