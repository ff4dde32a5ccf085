from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional, List, Literal

_PLACEHOLDER_URL = "https://placeholder.supabase.co"
_PLACEHOLDER_KEY = "placeholder-key"


class Settings(BaseSettings):
    # Supabase
    supabase_url: str = ""
    supabase_key: str = ""  # anon key; requests made with it are subject to RLS
    supabase_service_role_key: Optional[str] = None  # Bypasses RLS; required for bootstrap and admin operations

    # Storage backend: "supabase" in deployments, "memory" for local runs and tests
    store_backend: Literal["supabase", "memory"] = "supabase"

    # Reserved super admin identity
    super_admin_email: str = "superadmin@workflowgene.cloud"
    super_admin_first_name: str = "Super"
    super_admin_last_name: str = "Admin"
    reconcile_on_startup: bool = True

    # Auth
    password_reset_redirect_url: str = "http://localhost:5173/reset-password"
    auth_cache_ttl_seconds: int = 60
    memory_auto_confirm_email: bool = True

    # App
    app_name: str = "workflowgene-backend"
    debug: bool = False
    environment: str = "development"  # development | staging | production
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:3000,http://127.0.0.1:5173"
    rate_limit: str = "100/minute"  # slowapi format, e.g. "100/minute"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def get_cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    def is_supabase_configured(self) -> bool:
        return bool(
            self.supabase_url
            and self.supabase_key
            and self.supabase_url != _PLACEHOLDER_URL
            and self.supabase_key != _PLACEHOLDER_KEY
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        env_prefix="",  # No prefix needed
        extra="ignore"
    )


settings = Settings()
