"""
NotifyNow Backend Settings
Environment variable management with backward compatibility for legacy names.

Settings are read once at process start by load_settings() and handed to
create_app(); nothing else in the code base reads the environment.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional
from dotenv import load_dotenv
from email_validator import EmailNotValidError, validate_email

# Load environment variables
load_dotenv()


class StartupError(RuntimeError):
    """Raised when the process cannot start with the given configuration"""
    pass


def get_env(new_var: str, old_var: Optional[str] = None, default: Optional[str] = None) -> str:
    """
    Get environment variable with backward compatibility.

    Tries new variable name first (NN_*), falls back to old name if provided,
    then returns default if neither is set.

    Args:
        new_var: New NN_* prefixed variable name
        old_var: Legacy variable name (for backward compatibility)
        default: Default value if neither variable is set

    Returns:
        Environment variable value or default
    """
    value = os.getenv(new_var)
    if value is not None:
        return value

    if old_var is not None:
        value = os.getenv(old_var)
        if value is not None:
            return value

    return default if default is not None else ""


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def build_database_url() -> str:
    """
    Resolve the database URL.

    DATABASE_URL wins; otherwise the legacy DB_HOST/DB_USER/DB_PASS/DB_NAME
    quartet builds a MySQL URL; otherwise a local SQLite file is used.
    """
    url = get_env("NN_DATABASE_URL", "DATABASE_URL")
    if url:
        return url

    host = get_env("NN_DB_HOST", "DB_HOST")
    name = get_env("NN_DB_NAME", "DB_NAME")
    if host and name:
        user = get_env("NN_DB_USER", "DB_USER", "root")
        password = get_env("NN_DB_PASS", "DB_PASS")
        port = get_env("NN_DB_PORT", "DB_PORT", "3306")
        return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}"

    return "sqlite:///./data/notifynow.db"


@dataclass
class Settings:
    """Process-wide configuration, constructed once at startup"""
    jwt_secret: str
    database_url: str = "sqlite:///./data/notifynow.db"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60
    log_level: str = "INFO"
    log_file: Optional[str] = None
    rate_limit_enabled: bool = True
    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    admin_email: Optional[str] = None
    admin_password: Optional[str] = None
    app_host: str = "127.0.0.1"
    app_port: int = 3001


# Service Identification
SERVICE_NAME = "notifynow-api"
SERVICE_VERSION = "1.0.0"


def load_settings() -> Settings:
    """
    Build Settings from the environment.

    Raises:
        StartupError: If the JWT signing secret is not configured, or the
            bootstrap admin address would be rejected at login
    """
    jwt_secret = get_env("NN_JWT_SECRET", "JWT_SECRET")
    if not jwt_secret:
        raise StartupError("JWT_SECRET is not set; refusing to start without a token signing secret")

    admin_email = get_env("NN_ADMIN_EMAIL", "ADMIN_EMAIL") or None
    if admin_email:
        try:
            validate_email(admin_email, check_deliverability=False)
        except EmailNotValidError as e:
            raise StartupError(f"ADMIN_EMAIL {admin_email!r} is not a valid address: {e}")

    origins = get_env("NN_CORS_ORIGINS", "CORS_ORIGINS", "*")

    return Settings(
        jwt_secret=jwt_secret,
        database_url=build_database_url(),
        jwt_expire_minutes=int(get_env("NN_JWT_EXPIRE_MINUTES", "JWT_EXPIRE_MINUTES", "60")),
        log_level=get_env("NN_LOG_LEVEL", "LOG_LEVEL", "INFO"),
        log_file=get_env("NN_LOG_FILE", "LOG_FILE") or None,
        rate_limit_enabled=_as_bool(get_env("NN_RATE_LIMIT_ENABLED", "RATE_LIMIT_ENABLED", "true")),
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
        admin_email=admin_email,
        admin_password=get_env("NN_ADMIN_PASSWORD", "ADMIN_PASSWORD") or None,
        app_host=get_env("NN_APP_HOST", "APP_HOST", "127.0.0.1"),
        app_port=int(get_env("NN_APP_PORT", "PORT", "3001")),
    )
