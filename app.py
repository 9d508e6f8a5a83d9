# app.py
import os

import click
from flask import Blueprint, Flask, current_app, jsonify
from flask_cors import CORS
from werkzeug.exceptions import HTTPException

import config
from auth import admin_required, auth_bp, create_user, login_manager
from errors import FetchError, NormalizationError, ReconcileError
from models import db, User
from reconciler import Reconciler
from store import SqlAlchemyStore
from telemetry import TelemetryClient

api_bp = Blueprint("api", __name__, url_prefix="/api")


# ----------------------
# App setup
# ----------------------
def create_app(config_object=None):
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config_object or config.Config)

    if not app.config.get("SQLALCHEMY_DATABASE_URI"):
        os.makedirs(app.instance_path, exist_ok=True)
        app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'telemetria.db')}"

    db.init_app(app)
    login_manager.init_app(app)
    CORS(app, resources={r"/api/*": {"origins": app.config["CORS_ORIGINS"]}})

    client = TelemetryClient(app.config["TELEMETRY_URL"], app.config["TELEMETRY_TIMEOUT"])
    app.extensions["reconciler"] = Reconciler(
        SqlAlchemyStore(db.session),
        fetch=client.fetch,
        global_policy=app.config["GLOBAL_HISTORY_POLICY"],
        degraded_fallback=app.config["DEGRADED_FALLBACK"],
    )

    app.register_blueprint(api_bp)
    app.register_blueprint(auth_bp)
    register_error_handlers(app)
    register_commands(app)
    return app


def get_reconciler():
    return current_app.extensions["reconciler"]


def get_store():
    return get_reconciler().store


def run_update():
    """One reconciliation pass. Returns (body, status)."""
    try:
        result = get_reconciler().run()
    except (FetchError, NormalizationError) as e:
        current_app.logger.exception("Telemetry snapshot unusable")
        return {"error": str(e)}, 502
    except ReconcileError as e:
        current_app.logger.exception("Reconciliation failed")
        return {"error": str(e)}, 500
    return {"status": "Base de datos actualizada correctamente", "result": result.to_dict()}, 200


# ----------------------
# Routes
# ----------------------
@api_bp.route("/update-data", methods=["GET"])
def update_data():
    if current_app.config["UPDATE_REQUIRES_ADMIN"]:
        return _update_data_admin()
    body, status = run_update()
    return jsonify(body), status


@admin_required
def _update_data_admin():
    body, status = run_update()
    return jsonify(body), status


@api_bp.route("/parcelas", methods=["GET"])
def active_plots():
    return jsonify([p.to_dict() for p in get_store().active_plots()])


@api_bp.route("/parcelas/eliminadas", methods=["GET"])
def deleted_plots():
    return jsonify([p.to_dict() for p in get_store().deleted_plots()])


@api_bp.route("/historico/parcelas/<int:plot_id>", methods=["GET"])
def plot_history(plot_id):
    return jsonify([r.to_dict() for r in get_store().plot_history(plot_id)])


@api_bp.route("/dump", methods=["GET"])
def dump():
    return jsonify(get_store().dump())


@api_bp.route("/datos-generales", methods=["GET"])
def general_data():
    store = get_store()
    latest = store.latest_global_reading()
    return jsonify({
        "actual": latest.to_dict() if latest else None,
        "historico": [g.to_dict() for g in store.global_history()],
    })


# ----------------------
# Errors
# ----------------------
def register_error_handlers(app):
    @app.errorhandler(HTTPException)
    def http_error(e):
        return jsonify({"error": e.description}), e.code

    @app.errorhandler(ReconcileError)
    def reconcile_error(e):
        app.logger.exception("Store failure while serving request")
        return jsonify({"error": str(e)}), 500

    @app.errorhandler(Exception)
    def unexpected_error(e):
        app.logger.exception("Unhandled error")
        return jsonify({"error": str(e)}), 500


# ----------------------
# CLI
# ----------------------
def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create the database tables."""
        db.create_all()
        click.echo("Database created/checked.")

    @app.cli.command("update-data")
    def update_data_command():
        """Run one reconciliation pass against the telemetry endpoint."""
        body, status = run_update()
        if status != 200:
            raise click.ClickException(body["error"])
        click.echo(body["status"])
        for key, value in body["result"].items():
            click.echo(f"  {key}: {value}")

    @app.cli.command("create-admin")
    @click.argument("email")
    @click.option("--name", default="Administrador")
    @click.password_option()
    def create_admin(email, name, password):
        """Create a user with the admin role."""
        if User.query.filter_by(email=email.strip().lower()).first():
            raise click.ClickException("Email already registered")
        user = create_user(email, password, name, role="admin")
        click.echo(f"Admin {user.email} created (id {user.id}).")


# ----------------------
# Run
# ----------------------
if __name__ == "__main__":
    app = create_app()
    with app.app_context():
        db.create_all()
        app.logger.info("Database created/checked.")
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "3001")), debug=True)
