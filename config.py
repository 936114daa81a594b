# config.py - central settings, read from the environment / .env
import os

from dotenv import load_dotenv

load_dotenv()


def _env_int(name, default):
    value = os.environ.get(name)
    if value is None or value == "":
        return default
    return int(value)


class AppConfig:
    # Storage
    DATABASE_URL = os.environ.get("DATABASE_URL") or "sqlite:///./db/inventory.db"

    # Session tokens
    AUTH_SECRET_KEY = os.environ.get("AUTH_SECRET_KEY")
    ALGORITHM = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES = _env_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60)

    # Twilio (SMS gateway). Unset = log-only delivery
    TWILIO_ACCOUNT_SID = os.environ.get("TWILIO_ACCOUNT_SID")
    TWILIO_AUTH_TOKEN = os.environ.get("TWILIO_AUTH_TOKEN")
    TWILIO_PHONE_NUMBER = os.environ.get("TWILIO_PHONE_NUMBER")

    # Alerts
    DEFAULT_MINIMUM_THRESHOLD = _env_int("DEFAULT_MINIMUM_THRESHOLD", 2)

    # Verification codes: 1 attempt, no expiry (0) unless configured
    CODE_MAX_ATTEMPTS = _env_int("CODE_MAX_ATTEMPTS", 1)
    CODE_TTL_SECONDS = _env_int("CODE_TTL_SECONDS", 0)

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    @classmethod
    def test_mode(cls):
        cls.DATABASE_URL = "sqlite://"
        cls.AUTH_SECRET_KEY = cls.AUTH_SECRET_KEY or "test-secret-key"
        cls.TWILIO_ACCOUNT_SID = None
        cls.TWILIO_AUTH_TOKEN = None
        cls.TWILIO_PHONE_NUMBER = None
        cls.LOG_LEVEL = "DEBUG"
