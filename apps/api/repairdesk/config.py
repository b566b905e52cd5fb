from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_JWT_SECRET = "repairdesk-jwt-secret"
ALLOWED_APP_MODES = {"demo", "pilot", "production"}
MIN_SECRET_LENGTH = 32


class Settings(BaseSettings):
    app_name: str = "Repair Desk Service"

    database_url: str = Field(
        default="sqlite+pysqlite:///./repairdesk.db",
        validation_alias="REPAIRDESK_DATABASE_URL",
    )
    cors_allowed_origins: str = "http://localhost:3000,http://localhost:5173"

    jwt_secret: str = DEFAULT_JWT_SECRET
    allowed_roles: str = "CUSTOMER,TECHNICIAN"
    testing: bool = Field(default=False, validation_alias="REPAIRDESK_TESTING")

    app_mode: str = Field(default="pilot", validation_alias="APP_MODE")
    auto_create_schema: bool = Field(default=False, validation_alias="AUTO_CREATE_SCHEMA")
    require_migrations: bool = Field(default=False, validation_alias="REQUIRE_MIGRATIONS")
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    default_page_size: int = 20
    max_page_size: int = 100
    order_number_max_attempts: int = 5

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")

    @field_validator("app_mode")
    @classmethod
    def validate_app_mode(cls, value: str) -> str:
        mode = value.lower().strip()
        if mode not in ALLOWED_APP_MODES:
            allowed = ", ".join(sorted(ALLOWED_APP_MODES))
            raise ValueError(f"APP_MODE must be one of: {allowed}")
        return mode


settings = Settings()


def is_production_mode() -> bool:
    return settings.app_mode == "production"


def allowed_origins() -> list[str]:
    return [origin.strip() for origin in settings.cors_allowed_origins.split(",") if origin.strip()]


def allowed_roles_list() -> list[str]:
    return [value.strip() for value in settings.allowed_roles.split(",") if value.strip()]


def ensure_secure_runtime_settings() -> None:
    """Fail fast when production-like runtime uses insecure defaults."""
    if settings.testing:
        return
    if settings.jwt_secret == DEFAULT_JWT_SECRET:
        raise RuntimeError(
            "JWT_SECRET must be set to a non-default value when REPAIRDESK_TESTING is false"
        )
    if len(settings.jwt_secret) < MIN_SECRET_LENGTH:
        raise RuntimeError(
            "JWT_SECRET must be at least "
            f"{MIN_SECRET_LENGTH} characters when REPAIRDESK_TESTING is false"
        )
    if is_production_mode() and _is_sqlite_url(settings.database_url):
        raise RuntimeError("REPAIRDESK_DATABASE_URL must not use sqlite in APP_MODE=production")


def _is_sqlite_url(database_url: str) -> bool:
    value = database_url.strip().lower()
    return value.startswith("sqlite")
