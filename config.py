# config.py
# Values come from the environment (or a local .env file).
# Never commit real secrets here.
import os

from dotenv import load_dotenv

load_dotenv()


def _flag(name, default):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    # Flask secret key (signs bearer tokens)
    SECRET_KEY = os.getenv("SECRET_KEY", "CHANGE_THIS_TO_A_LONG_RANDOM_STRING")

    # None -> sqlite file in the instance folder (see create_app)
    SQLALCHEMY_DATABASE_URI = os.getenv("DATABASE_URL")
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # External IoT telemetry endpoint
    TELEMETRY_URL = os.getenv("TELEMETRY_URL", "http://moriahmkt.com/iotapp/updated/")
    TELEMETRY_TIMEOUT = float(os.getenv("TELEMETRY_TIMEOUT", "10"))

    # "on_change" or "always"
    GLOBAL_HISTORY_POLICY = os.getenv("GLOBAL_HISTORY_POLICY", "on_change")
    # write an all-zero global reading when a pass fails
    DEGRADED_FALLBACK = _flag("DEGRADED_FALLBACK", True)

    UPDATE_REQUIRES_ADMIN = _flag("UPDATE_REQUIRES_ADMIN", True)
    TOKEN_MAX_AGE = int(os.getenv("TOKEN_MAX_AGE", "86400"))  # seconds

    CORS_ORIGINS = os.getenv("CORS_ORIGINS", "http://localhost:5174").split(",")


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    TELEMETRY_URL = "http://telemetry.test/updated/"
    GLOBAL_HISTORY_POLICY = "on_change"
    DEGRADED_FALLBACK = True
    UPDATE_REQUIRES_ADMIN = True
