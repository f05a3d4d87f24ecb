"""
Gastronomique - Configuration
All settings loaded from environment variables with sensible defaults.

The environment is read exactly once, when this module is imported.  The
authentication layer never looks at these module constants directly; it is
handed a frozen ``Settings`` object built by ``load_settings()`` so that the
validator, issuer, verifier and gate can be exercised with injected values.
"""

import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables from .env file
_ = load_dotenv()

# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------
APP_HOST = os.getenv("APP_HOST", "0.0.0.0")
APP_PORT = int(os.getenv("APP_PORT", "8000"))
APP_ENV = os.getenv("APP_ENV", "development")
APP_VERSION = os.getenv("APP_VERSION", "1.0.0")
DEBUG = os.getenv("DEBUG", "true").lower() == "true"

# ---------------------------------------------------------------------------
# Authentication (single admin identity)
# ---------------------------------------------------------------------------
DEFAULT_SECRET = "gastronomique-secret-key-change-in-production"

ADMIN_USERNAME = os.getenv("ADMIN_USERNAME", "admin")
ADMIN_PASSWORD = os.getenv("ADMIN_PASSWORD", "admin123")
JWT_SECRET = os.getenv("JWT_SECRET", DEFAULT_SECRET)

if APP_ENV == "production" and JWT_SECRET == DEFAULT_SECRET:
    raise RuntimeError(
        "JWT_SECRET must be changed from the default value in production. "
        "Set the JWT_SECRET environment variable to a random secret."
    )

SESSION_COOKIE_NAME = "admin_session"
# Fixed 24 hour lifetime for both the token and the cookie
SESSION_MAX_AGE = 60 * 60 * 24

# Secure cookies follow the deployment unless explicitly overridden
_cookie_secure_env = os.getenv("COOKIE_SECURE", "")
COOKIE_SECURE = (
    _cookie_secure_env.lower() == "true"
    if _cookie_secure_env
    else APP_ENV == "production"
)

# User-facing messages (Thai locale)
LOGIN_ERROR_MESSAGE = os.getenv(
    "LOGIN_ERROR_MESSAGE", "Username หรือ Password ไม่ถูกต้อง"
)
GENERIC_ERROR_MESSAGE = os.getenv(
    "GENERIC_ERROR_MESSAGE", "เกิดข้อผิดพลาด กรุณาลองใหม่"
)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------
TEMP_DIR = Path(
    os.getenv("TEMP_DIR", os.path.join(tempfile.gettempdir(), "gastronomique"))
)
DB_PATH = Path(os.getenv("DB_PATH", os.path.join(TEMP_DIR, "gastronomique.db")))

# ---------------------------------------------------------------------------
# Logging - stdout only
# ---------------------------------------------------------------------------
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG")

# ---------------------------------------------------------------------------
# Content listing defaults
# ---------------------------------------------------------------------------
FEATURED_RECIPES_LIMIT = 6
FEATURED_ARTICLES_LIMIT = 4
RECIPE_DIFFICULTIES = ("easy", "medium", "hard")


@dataclass(frozen=True)
class Settings:
    """Immutable authentication settings shared by every request."""

    admin_username: str
    admin_password: str
    secret_key: str
    cookie_name: str = SESSION_COOKIE_NAME
    session_max_age: int = SESSION_MAX_AGE
    cookie_secure: bool = False
    login_error_message: str = LOGIN_ERROR_MESSAGE
    generic_error_message: str = GENERIC_ERROR_MESSAGE

    def __repr__(self) -> str:
        # Never expose the password or the signing secret
        return (
            f"Settings(admin_username={self.admin_username!r}, "
            f"cookie_name={self.cookie_name!r}, "
            f"session_max_age={self.session_max_age}, "
            f"cookie_secure={self.cookie_secure})"
        )


def load_settings(
    admin_username: Optional[str] = None,
    admin_password: Optional[str] = None,
    secret_key: Optional[str] = None,
    cookie_secure: Optional[bool] = None,
) -> Settings:
    """Build the ``Settings`` object from the environment-derived constants.

    Keyword arguments override individual values (handy for tests and
    scripts); anything left as ``None`` falls back to the module constant.
    """
    return Settings(
        admin_username=ADMIN_USERNAME if admin_username is None else admin_username,
        admin_password=ADMIN_PASSWORD if admin_password is None else admin_password,
        secret_key=JWT_SECRET if secret_key is None else secret_key,
        cookie_secure=COOKIE_SECURE if cookie_secure is None else cookie_secure,
    )


def ensure_directories() -> None:
    """Create the local directories needed for the SQLite database."""
    TEMP_DIR.mkdir(parents=True, exist_ok=True)
    DB_PATH.parent.mkdir(parents=True, exist_ok=True)
