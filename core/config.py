from typing import List, Literal, Optional
from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    # -------------------------------------------------
    # General
    # -------------------------------------------------
    PROJECT_NAME: str = "Residence Portal API"
    ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # -------------------------------------------------
    # Frontend Domains
    # -------------------------------------------------
    FRONTEND_DOMAIN: Optional[str] = Field(None, env="FRONTEND_DOMAIN")

    FRONTEND_DOMAINS: List[str] = [
        "http://localhost:3000",
    ]

    # -------------------------------------------------
    # CORS (auto-built below)
    # -------------------------------------------------
    BACKEND_CORS_ORIGINS: List[str] = []

    # -------------------------------------------------
    # Storage
    # -------------------------------------------------
    # "memory" keeps everything in-process (local dev / tests)
    STORE_BACKEND: Literal["supabase", "memory"] = "supabase"

    SUPABASE_URL: Optional[str] = Field(None, env="SUPABASE_URL")
    SUPABASE_SERVICE_ROLE_KEY: Optional[str] = Field(None, env="SUPABASE_SERVICE_ROLE_KEY")

    # -------------------------------------------------
    # Checkout / sign-out codes
    # -------------------------------------------------
    # Shared PIN for checking a day guest out at the gate
    GUEST_CHECKOUT_PIN: str = Field("1005", env="GUEST_CHECKOUT_PIN")

    # Fixed sleepover sign-out code. When unset, a random code is
    # generated for every approved sleepover.
    SLEEPOVER_SECURITY_CODE: Optional[str] = Field(None, env="SLEEPOVER_SECURITY_CODE")
    SECURITY_CODE_LENGTH: int = Field(4, env="SECURITY_CODE_LENGTH", description="Digits in generated sleepover codes")

    # -------------------------------------------------
    # Notifications
    # -------------------------------------------------
    NOTIFY_ON_SUBMIT: bool = Field(False, env="NOTIFY_ON_SUBMIT", description="Send a confirmation notification when a request is submitted")
    NOTIFY_WEBHOOK_URL: Optional[str] = Field(None, env="NOTIFY_WEBHOOK_URL")

    # -------------------------------------------------
    # Analytics
    # -------------------------------------------------
    ANALYTICS_TIMEZONE: str = Field("UTC", env="ANALYTICS_TIMEZONE")
    DASHBOARD_CACHE_TTL: int = Field(30, env="DASHBOARD_CACHE_TTL", description="Seconds a dashboard snapshot is reused")

    # -------------------------------------------------
    # Model Config
    # -------------------------------------------------
    class Config:
        case_sensitive = True


# Instantiate settings
settings = Settings()

# -------------------------------------------------
# Build CORS list dynamically after loading settings
# -------------------------------------------------
cors_origins = []

# 1) add the deployed frontend domain
if settings.FRONTEND_DOMAIN:
    domain = settings.FRONTEND_DOMAIN
    if not domain.startswith("http"):
        domain = f"https://{domain}"
    cors_origins.append(domain.rstrip("/"))

# 2) add static frontend domains
cors_origins.extend([d.rstrip("/") for d in settings.FRONTEND_DOMAINS])

# 3) remove duplicates
settings.BACKEND_CORS_ORIGINS = sorted(list(set(cors_origins)))
