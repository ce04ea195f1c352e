import os
from dataclasses import dataclass


def _bool(value: str | None, default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _int(value: str | None, default: int) -> int:
    if value is None or not value.strip():
        return default
    return int(value)


def _default_sqlite_uri() -> str:
    # bookex/ -> proyecto/
    project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    instance_dir = os.path.join(project_root, "instance")
    os.makedirs(instance_dir, exist_ok=True)
    db_path = os.path.join(instance_dir, "bookex.db")
    return "sqlite:///" + db_path


@dataclass(frozen=True)
class BaseConfig:
    SECRET_KEY: str = os.getenv("SECRET_KEY", "dev-change-me")
    SQLALCHEMY_DATABASE_URI: str = os.getenv("DATABASE_URL", _default_sqlite_uri())
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    SESSION_COOKIE_HTTPONLY: bool = True
    SESSION_COOKIE_SAMESITE: str = "Lax"
    SESSION_COOKIE_SECURE: bool = _bool(os.getenv("SESSION_COOKIE_SECURE"), default=False)

    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    # flujo de compra
    OTP_TTL_MINUTES: int = _int(os.getenv("OTP_TTL_MINUTES"), 30)
    OTP_MAX_ATTEMPTS: int = _int(os.getenv("OTP_MAX_ATTEMPTS"), 5)
    DELIVERY_DATE_HORIZON_DAYS: int = _int(os.getenv("DELIVERY_DATE_HORIZON_DAYS"), 30)
    SELLER_BONUS: int = _int(os.getenv("SELLER_BONUS"), 30)
    PLATFORM_FEE: int = _int(os.getenv("PLATFORM_FEE"), 20)

    # canal de email (vacío = desactivado)
    MAIL_API_URL: str = os.getenv("MAIL_API_URL", "https://api.brevo.com/v3/smtp/email")
    MAIL_API_KEY: str = os.getenv("MAIL_API_KEY", "")
    MAIL_FROM: str = os.getenv("MAIL_FROM", "no-reply@bookex.local")
    MAIL_SENDER_NAME: str = os.getenv("MAIL_SENDER_NAME", "BookEx")
    MAIL_TIMEOUT: int = _int(os.getenv("MAIL_TIMEOUT"), 10)


class DevelopmentConfig(BaseConfig):
    DEBUG: bool = True


class ProductionConfig(BaseConfig):
    DEBUG: bool = False


def get_config():
    env = os.getenv("FLASK_ENV", "development").lower()
    if env == "production":
        return ProductionConfig
    return DevelopmentConfig
