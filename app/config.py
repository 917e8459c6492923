from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_PATH = Path(__file__).resolve().parent.parent / ".env.local"


class Settings(BaseSettings):
    # Environment settings
    environment: str = "development"
    debug: bool = False
    LOG_LEVEL: str = "INFO"

    # Auth settings (HS256 session tokens issued by the auth layer)
    JWT_SECRET: str | None = None
    JWT_AUDIENCE: str = "authenticated"
    # Signs the OAuth state parameter; falls back to JWT_SECRET
    OAUTH_STATE_SECRET: str | None = None

    # Google Calendar OAuth settings
    GOOGLE_CLIENT_ID: str | None = None
    GOOGLE_CLIENT_SECRET: str | None = None
    GOOGLE_REDIRECT_URI: str | None = None

    # Microsoft Graph OAuth settings
    MICROSOFT_CLIENT_ID: str | None = None
    MICROSOFT_CLIENT_SECRET: str | None = None
    MICROSOFT_REDIRECT_URI: str | None = None
    MICROSOFT_TENANT_ID: str = "common"

    # Provider HTTP settings
    PROVIDER_REQUEST_TIMEOUT: float = 20.0

    # Completion service settings
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o"
    OPENAI_TIMEOUT_SECONDS: float = 30.0

    # Scheduling
    DEFAULT_TIMEZONE: str = "UTC"

    ENCRYPTION_KEY: str | None = None

    # =================================================================
    # DATABASE SETTINGS - leave DATABASE_URL empty to use in-memory storage
    # =================================================================
    DATABASE_URL: str | None = None
    DB_POOL_MIN_SIZE: int = 2
    DB_POOL_MAX_SIZE: int = 10
    DB_POOL_TIMEOUT: float = 30.0
    DB_POOL_MAX_IDLE: float = 600.0  # 10 minutes
    DB_POOL_MAX_LIFETIME: float = 3600.0  # 1 hour

    model_config = SettingsConfigDict(
        env_file=str(ENV_PATH),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    def office_redirect_uri(self, provider: str) -> str:
        """Get the OAuth redirect URI for a provider with local fallback."""
        configured = {
            "google": self.GOOGLE_REDIRECT_URI,
            "microsoft": self.MICROSOFT_REDIRECT_URI,
        }.get(provider)
        if configured:
            return configured
        # Default for local development
        return "http://localhost:8000/office/callback"

    def oauth_state_secret(self) -> str | None:
        """Secret used to sign OAuth state parameters."""
        return self.OAUTH_STATE_SECRET or self.JWT_SECRET

    def provider_client_credentials(self, provider: str) -> tuple[str | None, str | None]:
        """Return (client_id, client_secret) for a provider kind."""
        if provider == "google":
            return self.GOOGLE_CLIENT_ID, self.GOOGLE_CLIENT_SECRET
        if provider == "microsoft":
            return self.MICROSOFT_CLIENT_ID, self.MICROSOFT_CLIENT_SECRET
        return None, None

    def get_db_pool_config(self) -> dict:
        """
        Get database pool configuration.
        Adjust environment-specific settings based on self.environment.
        """
        config = {
            "min_size": self.DB_POOL_MIN_SIZE,
            "max_size": self.DB_POOL_MAX_SIZE,
            "timeout": self.DB_POOL_TIMEOUT,
            "max_idle": self.DB_POOL_MAX_IDLE,
            "max_lifetime": self.DB_POOL_MAX_LIFETIME,
        }

        if self.environment == "development":
            config.update({"min_size": 1, "max_size": 5, "timeout": 15.0})

        return config


settings = Settings()
