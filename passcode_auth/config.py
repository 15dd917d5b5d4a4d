import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

load_dotenv(override=True)

DEFAULT_SECRET_KEY = "change-this-secret-key-in-production"


def _env_bool(name: str, default: bool = False) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_list(name: str, default: str) -> list[str]:
    raw_value = os.getenv(name, default)
    return [part.strip() for part in raw_value.split(",") if part.strip()]


@dataclass(frozen=True)
class BucketConfig:
    capacity: int
    window_seconds: int


@dataclass(frozen=True)
class Settings:
    env: str = os.getenv("ENV", "development")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    cors_origins: list[str] = field(
        default_factory=lambda: _env_list("CORS_ORIGINS", "http://localhost:5173")
    )

    secret_key: str = os.getenv("SECRET_KEY", DEFAULT_SECRET_KEY)
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")

    otp_code_length: int = int(os.getenv("OTP_CODE_LENGTH", "6"))
    otp_expiration_minutes: int = int(os.getenv("OTP_EXPIRATION_MINUTES", "10"))
    otp_hash_rounds: int = int(os.getenv("OTP_HASH_ROUNDS", "12"))
    otp_debug: bool = _env_bool("OTP_DEBUG", False)

    session_validity_days: int = int(os.getenv("SESSION_VALIDITY_DAYS", "60"))
    session_cookie: str = os.getenv("SESSION_COOKIE", "session_token")
    remember_me_enabled: bool = _env_bool("REMEMBER_ME_ENABLED", True)
    remember_me_cookie: str = os.getenv(
        "REMEMBER_ME_COOKIE", "_passcode_auth_remember_me"
    )

    rate_limiting_enabled: bool = _env_bool("RATE_LIMIT_ENABLED", True)
    otp_request_rate_capacity: int = int(os.getenv("OTP_REQUEST_RATE_CAPACITY", "1"))
    otp_request_rate_window_seconds: int = int(
        os.getenv("OTP_REQUEST_RATE_WINDOW_SECONDS", "60")
    )
    login_attempt_rate_capacity: int = int(
        os.getenv("LOGIN_ATTEMPT_RATE_CAPACITY", "10")
    )
    login_attempt_rate_window_seconds: int = int(
        os.getenv("LOGIN_ATTEMPT_RATE_WINDOW_SECONDS", "600")
    )

    @property
    def otp_issuance_rate(self) -> BucketConfig:
        return BucketConfig(
            self.otp_request_rate_capacity, self.otp_request_rate_window_seconds
        )

    @property
    def login_attempt_rate(self) -> BucketConfig:
        return BucketConfig(
            self.login_attempt_rate_capacity, self.login_attempt_rate_window_seconds
        )

    @property
    def session_validity_seconds(self) -> int:
        return self.session_validity_days * 24 * 60 * 60


def validate_security(current: Settings) -> None:
    """Fail fast when running production with insecure defaults."""
    if current.env.lower() != "production":
        return
    secret = current.secret_key
    if not secret or secret == DEFAULT_SECRET_KEY or len(secret) < 32:
        raise ValueError("SECRET_KEY must be set to a strong value in production.")
    if current.otp_code_length < 6:
        raise ValueError("OTP_CODE_LENGTH must be at least 6 in production.")


settings = Settings()

validate_security(settings)
