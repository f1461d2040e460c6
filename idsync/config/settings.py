from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List


GOOGLE_SECURETOKEN_JWKS_URL = (
    "https://www.googleapis.com/service_accounts/v1/jwk/securetoken@system.gserviceaccount.com"
)


class Settings(BaseSettings):
    # Supabase (projection store)
    supabase_url: str = ""
    supabase_key: str = ""  # anon key; requests made with it are subject to RLS
    supabase_service_role_key: Optional[str] = None  # Required by the sync handlers
    users_table: str = "users"

    # Identity provider (token verification)
    identity_project_id: str = ""
    identity_issuer: Optional[str] = None  # defaults to https://securetoken.google.com/<project>
    identity_audience: Optional[str] = None  # defaults to the project id
    identity_jwks_url: str = GOOGLE_SECURETOKEN_JWKS_URL
    jwt_clock_skew_seconds: int = 0

    # Lifecycle sync
    sync_max_retries: int = 2
    sync_backoff_base_ms: int = 100
    sync_deadline_ms: int = 5000
    event_webhook_secret: Optional[str] = None

    # App
    app_name: str = "idsync"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def expected_issuer(self) -> str:
        if self.identity_issuer:
            return self.identity_issuer.rstrip("/")
        return f"https://securetoken.google.com/{self.identity_project_id}"

    @property
    def expected_audience(self) -> str:
        return self.identity_audience or self.identity_project_id

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def missing_required(self) -> List[str]:
        """Names of settings the service cannot run without."""
        required = {
            "supabase_url": self.supabase_url,
            "supabase_key": self.supabase_key,
            "supabase_service_role_key": self.supabase_service_role_key,
            "identity_project_id": self.identity_project_id,
        }
        return [name for name, value in required.items() if not value]

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
