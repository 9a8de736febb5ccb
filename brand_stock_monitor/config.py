"""Configuration loader.

Reads environment variables and `.env` to configure the service.  Values are
collected into a single immutable :class:`Settings` object at startup and
passed explicitly to every component.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Mapping, Optional

from dotenv import load_dotenv

PROJECT_ROOT = Path(__file__).resolve().parents[1]

REQUIRED_VARS = (
    "SHOPIFY_SHOP",
    "SHOPIFY_ACCESS_TOKEN",
    "SHOPIFY_WEBHOOK_SECRET",
    "EMAIL_FROM",
    "EMAIL_TO",
)


class ConfigError(RuntimeError):
    """Raised when a required setting is missing."""

    def __init__(self, missing: List[str]):
        self.missing = list(missing)
        super().__init__(f"Missing configuration: {', '.join(self.missing)}")


def _get_env(env: Mapping[str, str], name: str, default: Optional[str] = None) -> Optional[str]:
    value = env.get(name)
    if value is None or value.strip() == "":
        return default
    return value.strip()


def _parse_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.lower() in ("1", "true", "yes")


def _parse_int(value: Optional[str], default: int) -> int:
    try:
        return int(value) if value is not None else default
    except ValueError:
        return default


def _parse_float(value: Optional[str], default: float) -> float:
    try:
        return float(value) if value is not None else default
    except ValueError:
        return default


def _get_list(env: Mapping[str, str], name: str) -> list[str]:
    raw = _get_env(env, name, "") or ""
    return [s.strip() for s in raw.split(",") if s.strip()]


def _resolve_path(value: Optional[str], default_name: str) -> Path:
    path = Path(value) if value else PROJECT_ROOT / default_name
    return path if path.is_absolute() else PROJECT_ROOT / path


@dataclass(frozen=True)
class Settings:
    # ---- Shopify -------------------------------------------------------------
    shopify_shop: str = ""
    shopify_access_token: str = ""
    shopify_webhook_secret: str = ""
    shopify_api_version: str = "2025-10"
    # Safety cap on followed `rel="next"` pages per vendor.
    shopify_max_pages: int = 10

    # ---- Email ---------------------------------------------------------------
    email_from: str = ""
    email_from_name: str = "Shopify Inventory Monitor"
    email_to: List[str] = field(default_factory=list)
    sendgrid_api_key: Optional[str] = None
    smtp_host: Optional[str] = None
    smtp_port: int = 587  # 587 (STARTTLS) or 465 (SSL)
    smtp_use_tls: bool = True
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None

    # ---- Monitoring ----------------------------------------------------------
    monitored_brands: List[str] = field(default_factory=list)
    brands_file: Path = PROJECT_ROOT / "brands.json"
    state_file: Path = PROJECT_ROOT / "notification_state.json"
    settings_password: str = "admin123"
    # Delay before resolving a webhook, lets Shopify's inventory index settle.
    webhook_settle_seconds: float = 3.0

    # ---- HTTP ----------------------------------------------------------------
    http_timeout_seconds: float = 30.0
    # 1 means a single attempt, i.e. no retries.
    http_retry_attempts: int = 1
    host: str = "0.0.0.0"
    port: int = 8080
    public_url: Optional[str] = None

    # ---- Logging -------------------------------------------------------------
    log_file: Path = PROJECT_ROOT / "inventory_monitor.log"
    log_level: str = "INFO"

    @property
    def shop_base_url(self) -> str:
        shop = self.shopify_shop.rstrip("/")
        if shop and not shop.startswith(("http://", "https://")):
            shop = f"https://{shop}"
        return shop

    @property
    def admin_api_url(self) -> str:
        return f"{self.shop_base_url}/admin/api/{self.shopify_api_version}"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_host and self.smtp_username and self.smtp_password)


def load_settings(env: Optional[Mapping[str, str]] = None, *, dotenv: bool = True) -> Settings:
    """Build :class:`Settings` from *env* (defaults to ``os.environ``).

    When *dotenv* is true, variables from ``.env`` in the project root are
    loaded into the process environment first (existing values win).
    """
    if env is None:
        if dotenv:
            load_dotenv(dotenv_path=PROJECT_ROOT / ".env")
        env = os.environ

    return Settings(
        shopify_shop=_get_env(env, "SHOPIFY_SHOP", "") or "",
        shopify_access_token=_get_env(env, "SHOPIFY_ACCESS_TOKEN", "") or "",
        shopify_webhook_secret=_get_env(env, "SHOPIFY_WEBHOOK_SECRET", "") or "",
        shopify_api_version=_get_env(env, "SHOPIFY_API_VERSION", "2025-10") or "2025-10",
        shopify_max_pages=max(1, _parse_int(_get_env(env, "SHOPIFY_MAX_PAGES"), 10)),
        email_from=_get_env(env, "EMAIL_FROM", "") or "",
        email_from_name=_get_env(env, "EMAIL_FROM_NAME", "Shopify Inventory Monitor") or "",
        email_to=_get_list(env, "EMAIL_TO"),
        sendgrid_api_key=_get_env(env, "SENDGRID_API_KEY"),
        smtp_host=_get_env(env, "SMTP_HOST"),
        smtp_port=_parse_int(_get_env(env, "SMTP_PORT"), 587),
        smtp_use_tls=_parse_bool(_get_env(env, "SMTP_USE_TLS"), True),
        smtp_username=_get_env(env, "SMTP_USERNAME"),
        smtp_password=_get_env(env, "SMTP_PASSWORD"),
        monitored_brands=_get_list(env, "MONITORED_BRANDS"),
        brands_file=_resolve_path(_get_env(env, "BRANDS_FILE"), "brands.json"),
        state_file=_resolve_path(_get_env(env, "STATE_FILE"), "notification_state.json"),
        settings_password=_get_env(env, "SETTINGS_PASSWORD", "admin123") or "admin123",
        webhook_settle_seconds=_parse_float(_get_env(env, "WEBHOOK_SETTLE_SECONDS"), 3.0),
        http_timeout_seconds=_parse_float(_get_env(env, "HTTP_TIMEOUT_SECONDS"), 30.0),
        http_retry_attempts=max(1, _parse_int(_get_env(env, "HTTP_RETRY_ATTEMPTS"), 1)),
        host=_get_env(env, "HOST", "0.0.0.0") or "0.0.0.0",
        port=_parse_int(_get_env(env, "PORT"), 8080),
        public_url=_get_env(env, "PUBLIC_URL"),
        log_file=_resolve_path(_get_env(env, "LOG_FILE"), "inventory_monitor.log"),
        log_level=(_get_env(env, "LOG_LEVEL", "INFO") or "INFO").upper(),
    )


# ---- Validation --------------------------------------------------------------

def missing_settings(settings: Settings) -> list[str]:
    values = {
        "SHOPIFY_SHOP": settings.shopify_shop,
        "SHOPIFY_ACCESS_TOKEN": settings.shopify_access_token,
        "SHOPIFY_WEBHOOK_SECRET": settings.shopify_webhook_secret,
        "EMAIL_FROM": settings.email_from,
        "EMAIL_TO": settings.email_to,
    }
    return [name for name in REQUIRED_VARS if not values[name]]


def validate(settings: Settings) -> None:
    """Validate required configuration parameters."""
    missing = missing_settings(settings)
    if missing:
        raise ConfigError(missing)


# ---- Redaction ---------------------------------------------------------------

def _mask(value: Optional[str], keep: int = 10) -> str:
    if not value:
        return "NOT SET"
    return value[:keep] + "..."


def _hidden(value: Optional[str]) -> str:
    return "SET (hidden)" if value else "NOT SET"


def redacted(settings: Settings) -> dict:
    """Return a JSON-friendly dump of *settings* with secrets masked."""
    return {
        "shopify": {
            "shop": settings.shopify_shop,
            "api_version": settings.shopify_api_version,
            "access_token": _mask(settings.shopify_access_token),
            "webhook_secret": _hidden(settings.shopify_webhook_secret),
        },
        "email": {
            "from": settings.email_from,
            "to": ", ".join(settings.email_to),
            "sendgrid_api_key": _mask(settings.sendgrid_api_key),
            "smtp_host": settings.smtp_host or "NOT SET",
            "smtp_username": settings.smtp_username or "NOT SET",
            "smtp_password": _hidden(settings.smtp_password),
        },
        "settings_password": _hidden(settings.settings_password),
        "webhook_settle_seconds": settings.webhook_settle_seconds,
    }


__all__ = [
    "ConfigError",
    "REQUIRED_VARS",
    "Settings",
    "load_settings",
    "missing_settings",
    "validate",
    "redacted",
]
