"""
Runtime configuration — single source of truth for environment-driven settings.

Import from here in routes, workers and collaborators rather than calling
os.getenv at the point of use.  Pricing and staffing constants live in
app.services.service_catalog.
"""
import os

# ── Database ──────────────────────────────────────────────────────────────────
DATABASE_URL: str = os.getenv("DATABASE_URL", "")

# ── Logging ───────────────────────────────────────────────────────────────────
LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json").lower()   # "json" | "text"

# ── HTTP ──────────────────────────────────────────────────────────────────────
_CORS_DEFAULT = "http://localhost:3000,http://127.0.0.1:3000"
CORS_ORIGINS: list = [
    o.strip() for o in os.getenv("CORS_ORIGINS", _CORS_DEFAULT).split(",") if o.strip()
]

# ── Background work ───────────────────────────────────────────────────────────
CELERY_BROKER_URL: str = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND: str = os.getenv("CELERY_RESULT_BACKEND", "redis://localhost:6379/1")

NOTIFICATIONS_ENABLED: bool = os.getenv("NOTIFICATIONS_ENABLED", "false").lower() in ("1", "true", "yes")
NOTIFICATION_WEBHOOK_URL: str = os.getenv("NOTIFICATION_WEBHOOK_URL", "")

# ── Short links ───────────────────────────────────────────────────────────────
# With no API configured, links are built locally from the base URL.
SHORT_LINK_BASE_URL: str = os.getenv("SHORT_LINK_BASE_URL", "http://localhost:3000").rstrip("/")
SHORT_LINK_API_URL: str = os.getenv("SHORT_LINK_API_URL", "")
SHORT_LINK_TIMEOUT_S: float = float(os.getenv("SHORT_LINK_TIMEOUT_S", "5"))

APP_VERSION = "1.0.0"
