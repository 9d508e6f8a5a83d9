# models/models.py
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin

db = SQLAlchemy()

ROLES = ("user", "admin")


def _iso(value):
    return value.isoformat() if value is not None else None


class User(UserMixin, db.Model):
    __tablename__ = "usuarios"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column("nombre", db.String(100), nullable=False, default="")
    role = db.Column("rol", db.String(20), nullable=False, default="user")  # "user" or "admin"
    created_at = db.Column(db.DateTime, default=db.func.current_timestamp())

    @property
    def is_admin(self):
        return self.role == "admin"

    def to_dict(self):
        # never expose the hash
        return {
            "id": self.id,
            "email": self.email,
            "nombre": self.name,
            "rol": self.role,
            "created_at": _iso(self.created_at),
        }


class GlobalReading(db.Model):
    __tablename__ = "historico_sensores_globales"

    id = db.Column(db.Integer, primary_key=True)
    humidity = db.Column("humedad_global", db.Float, nullable=False, default=0.0)
    temperature = db.Column("temperatura_global", db.Float, nullable=False, default=0.0)
    rainfall = db.Column("lluvia_global", db.Float, nullable=False, default=0.0)
    sunlight = db.Column("sol_global", db.Float, nullable=False, default=0.0)
    recorded_at = db.Column("fecha_registro", db.DateTime, default=db.func.current_timestamp(), index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "humedad_global": self.humidity,
            "temperatura_global": self.temperature,
            "lluvia_global": self.rainfall,
            "sol_global": self.sunlight,
            "fecha_registro": _iso(self.recorded_at),
        }


class Plot(db.Model):
    __tablename__ = "parcelas"

    # assigned by the telemetry source, never generated here
    id = db.Column(db.Integer, primary_key=True, autoincrement=False)
    name = db.Column("nombre", db.String(255), nullable=False, default="")
    location = db.Column("ubicacion", db.String(255), nullable=False, default="")
    responsible_party = db.Column("responsable", db.String(255), nullable=False, default="")
    crop_type = db.Column("tipo_cultivo", db.String(255), nullable=False, default="")
    last_irrigated = db.Column("ultimo_riego", db.Date)
    latitude = db.Column("latitud", db.Float, nullable=False, default=0.0)
    longitude = db.Column("longitud", db.Float, nullable=False, default=0.0)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)

    readings = db.relationship("PlotReading", backref="plot", lazy=True)

    def to_dict(self):
        return {
            "id": self.id,
            "nombre": self.name,
            "ubicacion": self.location,
            "responsable": self.responsible_party,
            "tipo_cultivo": self.crop_type,
            "ultimo_riego": _iso(self.last_irrigated),
            "latitud": self.latitude,
            "longitud": self.longitude,
            "is_deleted": self.is_deleted,
        }


class PlotReading(db.Model):
    __tablename__ = "historico_sensores_parcela"

    id = db.Column(db.Integer, primary_key=True)
    plot_id = db.Column("parcela_id", db.Integer, db.ForeignKey("parcelas.id"), nullable=False, index=True)
    humidity = db.Column("humedad", db.Float, nullable=False, default=0.0)
    temperature = db.Column("temperatura", db.Float, nullable=False, default=0.0)
    rainfall = db.Column("lluvia", db.Float, nullable=False, default=0.0)
    sunlight = db.Column("sol", db.Float, nullable=False, default=0.0)
    recorded_at = db.Column("fecha_registro", db.DateTime, default=db.func.current_timestamp(), index=True)

    def to_dict(self):
        return {
            "id": self.id,
            "parcela_id": self.plot_id,
            "humedad": self.humidity,
            "temperatura": self.temperature,
            "lluvia": self.rainfall,
            "sol": self.sunlight,
            "fecha_registro": _iso(self.recorded_at),
        }
