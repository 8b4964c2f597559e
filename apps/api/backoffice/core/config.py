"""Application configuration with environment variables."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Environment
    ENV: str = "dev"

    # App Version (format: a.bc.de - major.feature.patch)
    VERSION: str = "0.01.00"

    # Database
    DATABASE_URL: str

    # Session Token (supports key rotation)
    JWT_SECRET: str = "change-this-in-production"
    JWT_SECRET_PREVIOUS: str = ""  # Set during rotation, clear after
    JWT_EXPIRES_HOURS: int = 8

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Frontend (invite links point here)
    FRONTEND_URL: str = "http://localhost:5173"

    # Error Tracking (optional, set in production)
    SENTRY_DSN: str = ""

    # Teacher onboarding
    TEACHER_INVITE_EXPIRY_DAYS: int = 7

    # Family-graph repair heuristics (flag to product owners before hardening)
    FAMILY_MAX_MEMBERS: int = 3
    FAMILY_GROUP_NAME_PREFIX: str = "Семья "
    FAMILY_MEMBERS_PAGE_SIZE: int = 200
    BULK_DELETE_CHUNK_SIZE: int = 1000

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS_ORIGINS into a list."""
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def jwt_secrets(self) -> list[str]:
        """Returns list of valid secrets (current first, then previous if set)."""
        secrets = [self.JWT_SECRET]
        if self.JWT_SECRET_PREVIOUS:
            secrets.append(self.JWT_SECRET_PREVIOUS)
        return secrets

    @property
    def cookie_secure(self) -> bool:
        """Secure cookies only in production."""
        return self.ENV != "dev"

    def invite_link(self, token: str) -> str:
        """Public onboarding URL for a teacher invitation token."""
        return f"{self.FRONTEND_URL.rstrip('/')}/teacher/onboarding/{token}"


settings = Settings()
