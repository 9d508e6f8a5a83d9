# auth.py
# Bearer-token authentication on top of Flask-Login.
import functools
import re

from flask import Blueprint, current_app, jsonify, request
from flask_login import LoginManager, current_user, login_required
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from models import db, ROLES, User

TOKEN_SALT = "auth-token"
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

login_manager = LoginManager()
auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


# ----------------------
# Tokens
# ----------------------
def _serializer():
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=TOKEN_SALT)


def issue_token(user):
    return _serializer().dumps({"uid": user.id})


def user_from_token(token):
    try:
        data = _serializer().loads(token, max_age=current_app.config["TOKEN_MAX_AGE"])
    except SignatureExpired:
        current_app.logger.info("Rejected expired token")
        return None
    except BadSignature:
        return None
    uid = data.get("uid") if isinstance(data, dict) else None
    if uid is None:
        return None
    return db.session.get(User, uid)


@login_manager.user_loader
def load_user(uid):
    try:
        return db.session.get(User, int(uid))
    except (TypeError, ValueError):
        return None


@login_manager.request_loader
def load_user_from_request(req):
    header = req.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return user_from_token(token.strip())


@login_manager.unauthorized_handler
def unauthorized():
    return jsonify({"error": "Token requerido o inválido"}), 401


def admin_required(view):
    """login_required plus role == admin."""
    @functools.wraps(view)
    @login_required
    def wrapped(*args, **kwargs):
        if not current_user.is_admin:
            return jsonify({"error": "Acceso restringido a administradores"}), 403
        return view(*args, **kwargs)
    return wrapped


def create_user(email, password, name="", role="user"):
    if role not in ROLES:
        raise ValueError("Unknown role %r" % role)
    user = User(
        email=email.strip().lower(),
        password_hash=generate_password_hash(password),
        name=name,
        role=role,
    )
    db.session.add(user)
    db.session.commit()
    return user


# ----------------------
# Routes
# ----------------------
@auth_bp.route("/register", methods=["POST"])
def register():
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")
    name = str(data.get("name") or data.get("nombre") or "").strip()

    if not email or not password or not name:
        return jsonify({"error": "email, password y name son obligatorios"}), 400
    if not EMAIL_RE.match(email):
        return jsonify({"error": "Email inválido"}), 400
    if User.query.filter_by(email=email).first():
        return jsonify({"error": "El email ya está registrado"}), 400

    user = create_user(email, password, name)
    current_app.logger.info("Registered user %s", email)
    return jsonify(user.to_dict()), 201


@auth_bp.route("/login", methods=["POST"])
def login():
    data = request.get_json(silent=True) or {}
    email = str(data.get("email") or "").strip().lower()
    password = str(data.get("password") or "")
    if not email or not password:
        return jsonify({"error": "email y password son obligatorios"}), 400

    user = User.query.filter_by(email=email).first()
    if user is None or not check_password_hash(user.password_hash, password):
        return jsonify({"error": "Credenciales inválidas"}), 401
    return jsonify({"token": issue_token(user), "user": user.to_dict()})


@auth_bp.route("/me", methods=["GET"])
@login_required
def me():
    return jsonify(current_user.to_dict())
