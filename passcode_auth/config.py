import os
from dataclasses import dataclass

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str) -> tuple:
    raw_value = os.getenv(name, "")
    return tuple(item.strip() for item in raw_value.split(",") if item.strip())


@dataclass(frozen=True)
class Settings:
    database_url: str = os.getenv(
        "DATABASE_URL", "sqlite+aiosqlite:///./passcode_auth.db"
    )
    database_echo: bool = _env_bool("DATABASE_ECHO", False)
    otp_length: int = int(os.getenv("OTP_LENGTH", "6"))
    otp_ttl_seconds: int = int(os.getenv("OTP_TTL_SECONDS", "300"))
    # "plain" keeps codes readable for server introspection, "hashed" stores salted digests.
    otp_storage: str = os.getenv("OTP_STORAGE", "plain").strip().lower()
    disable_sign_up: bool = _env_bool("OTP_DISABLE_SIGN_UP", False)
    send_verification_on_sign_up: bool = _env_bool(
        "SEND_VERIFICATION_ON_SIGN_UP", False
    )
    auto_sign_in_after_verification: bool = _env_bool(
        "AUTO_SIGN_IN_AFTER_VERIFICATION", False
    )
    revoke_sessions_on_password_reset: bool = _env_bool(
        "REVOKE_SESSIONS_ON_PASSWORD_RESET", False
    )
    session_ttl_seconds: int = int(os.getenv("SESSION_TTL_SECONDS", "604800"))
    session_cookie_name: str = os.getenv(
        "SESSION_COOKIE_NAME", "better-auth.session_token"
    )
    jwt_secret: str = os.getenv("JWT_SECRET", "")
    jwt_algorithm: str = os.getenv("ALGORITHM", "HS256")
    min_password_length: int = int(os.getenv("MIN_PASSWORD_LENGTH", "8"))
    max_password_length: int = int(os.getenv("MAX_PASSWORD_LENGTH", "128"))
    cors_origins: tuple = _env_list("CORS_ORIGINS")


settings = Settings()
