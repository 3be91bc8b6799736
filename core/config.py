from typing import List, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Property Scope API"
    ENV: str = "development"

    # -------------------------------------------------
    # Frontend Domains
    # -------------------------------------------------
    FRONTEND_ORIGINS: List[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Supabase (Primary DB & Auth)
    # -------------------------------------------------
    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_ANON_KEY: Optional[str] = Field(None, env="SUPABASE_ANON_KEY")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")

    # -------------------------------------------------
    # Building access scope
    # -------------------------------------------------
    # Fallback path for principals with no admin grant and no tenancy.
    # Disable in hardened deployments: those principals then see nothing.
    SCOPE_FALLBACK_ENABLED: bool = Field(True, env="SCOPE_FALLBACK_ENABLED")
    SCOPE_FALLBACK_SAMPLE_SIZE: int = Field(50, env="SCOPE_FALLBACK_SAMPLE_SIZE", description="Maximum buildings exposed by the fallback path (default: 50)")

    # Scoped list views
    SCOPE_CACHE_TTL_SECONDS: int = Field(60, env="SCOPE_CACHE_TTL_SECONDS", description="TTL for cached scoped list responses (default: 60)")

    # Resolvers of principals who never sign out
    SCOPE_SESSION_IDLE_SECONDS: int = Field(3600, env="SCOPE_SESSION_IDLE_SECONDS", description="Idle time before a scope session is discarded (default: 3600)")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True

    @property
    def is_production(self) -> bool:
        return self.ENV.lower() == "production"


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
cors_origins = [o.rstrip("/") for o in settings.FRONTEND_ORIGINS if o]
settings.BACKEND_CORS_ORIGINS = sorted(list(set(cors_origins)))
