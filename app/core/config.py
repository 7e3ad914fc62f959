from functools import lru_cache
from typing import Annotated

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode


class OtpSettings(BaseModel):
    length: int = Field(6, description="Number of digits in a verification code")
    exp_minutes: int = Field(10, description="Lifetime of a verification code")
    resend_cooldown_seconds: int = Field(60, description="Minimum gap between two issued codes")
    max_attempts: int = Field(5, description="Wrong guesses allowed before the code is burned")


class LoginSecuritySettings(BaseModel):
    max_failures: int = Field(5, description="Consecutive bad passwords before locking")
    lock_minutes: int = Field(10, description="Lock duration once threshold exceeded")


class Settings(BaseSettings):
    api_title: str = "Realty Admin Auth API"
    api_version: str = "1.0.0"
    base_url: str = "http://localhost:5173"
    cors_origins: Annotated[list[str], NoDecode] = []
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./realty_auth.db"
    redis_url: str | None = None

    jwt_access_secret: str = "dev-access-secret"
    jwt_refresh_secret: str = "dev-refresh-secret"
    access_token_minutes: int = 15
    refresh_token_days: int = 7

    enforce_https: bool = False
    hsts_max_age: int = 31536000

    otp: OtpSettings = OtpSettings()
    login_security: LoginSecuritySettings = LoginSecuritySettings()
    password_reset_exp_minutes: int = 30

    # Empty allow-list means open registration.
    allowed_admin_emails: Annotated[list[str], NoDecode] = []
    approver_emails: Annotated[list[str], NoDecode] = []
    send_otp_to_admin_only: bool = False

    mail_sender: str = "no-reply@example.com"
    mail_from_name: str = "Realty Admin"
    mail_host: str = "localhost"
    mail_port: int = 587
    mail_username: str = ""
    mail_password: str = ""
    mail_use_tls: bool = True
    mail_use_ssl: bool = False
    mail_suppress_send: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        env_nested_delimiter = "__"
        extra = "ignore"

    @field_validator("cors_origins", "allowed_admin_emails", "approver_emails", mode="before")
    @classmethod
    def _split_csv(cls, value):
        if value is None:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("allowed_admin_emails", mode="after")
    @classmethod
    def _lower_emails(cls, value: list[str]) -> list[str]:
        return [item.lower() for item in value]


@lru_cache
def get_settings() -> Settings:
    return Settings()
