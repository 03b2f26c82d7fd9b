from dotenv import load_dotenv
from pydantic import BaseModel, Field
from typing import Optional
import os

# Load .env automatically
load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    # Only an explicit ENVIRONMENT=development returns OTP codes to the caller
    environment: str = Field(default_factory=lambda: os.getenv("ENVIRONMENT", "production"))
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    client_url: str = os.getenv("CLIENT_URL", "http://localhost:5173")

    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./pocketledger.db")
    sql_echo: bool = _env_bool("SQL_ECHO")

    jwt_secret: Optional[str] = os.getenv("JWT_SECRET")
    jwt_algorithm: str = os.getenv("JWT_ALGORITHM", "HS256")
    jwt_expire_days: int = int(os.getenv("JWT_EXPIRE_DAYS", "30"))

    otp_ttl_minutes: int = int(os.getenv("OTP_TTL_MINUTES", "10"))

    twilio_account_sid: Optional[str] = os.getenv("TWILIO_ACCOUNT_SID")
    twilio_auth_token: Optional[str] = os.getenv("TWILIO_AUTH_TOKEN")
    twilio_phone_number: Optional[str] = os.getenv("TWILIO_PHONE_NUMBER")

    upload_dir: str = os.getenv("UPLOAD_DIR", "uploads")
    max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(5 * 1024 * 1024)))

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def twilio_configured(self) -> bool:
        sid = self.twilio_account_sid or ""
        return bool(
            sid.startswith("AC")
            and self.twilio_auth_token
            and self.twilio_phone_number
        )


# Global settings instance
settings = Settings()
