from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parent
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return int(v)


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys, default=None)
    if v is None:
        return default
    return float(v)


def _get_list(*keys: str, default: str) -> list[str]:
    v = _get_env(*keys, default=default) or ""
    return [item.strip() for item in v.split(",") if item.strip()]


@dataclass(frozen=True)
class Settings:
    database_url: str
    database_name: str
    secret_key: str
    access_token_expire_minutes: int
    admin_email: str
    upload_dir: str
    assets_url: str
    delivery_fee: float
    currency: str
    notification_url: str
    smtp_host: str
    smtp_port: int
    smtp_user: str
    smtp_password: str
    mail_from: str
    admin_notify_email: str
    log_level: str
    cors_origins: list[str] = field(default_factory=lambda: ["*"])

    @property
    def smtp_enabled(self) -> bool:
        return bool(self.smtp_host and self.admin_notify_email)


def load_settings() -> Settings:
    return Settings(
        database_url=_get_env("DATABASE_URL", "MONGO_URL", default="mongodb://localhost:27017") or "",
        database_name=_get_env("DATABASE_NAME", "MONGO_DB", default="clickstore") or "clickstore",
        secret_key=_get_env("SECRET_KEY", default="dev-secret-key-change") or "",
        access_token_expire_minutes=_get_int("ACCESS_TOKEN_EXPIRE_MINUTES", default=60 * 24),
        admin_email=(_get_env("ADMIN_EMAIL", default="") or "").lower(),
        upload_dir=_get_env("UPLOAD_DIR", default=str(ROOT_DIR / "uploads")) or "",
        assets_url=(_get_env("ASSETS_URL", default="/assets") or "/assets").rstrip("/"),
        delivery_fee=_get_float("DELIVERY_FEE", default=8),
        currency=_get_env("CURRENCY", default="Dt") or "Dt",
        notification_url=_get_env("NOTIFICATION_URL", default="") or "",
        smtp_host=_get_env("SMTP_HOST", default="") or "",
        smtp_port=_get_int("SMTP_PORT", default=587),
        smtp_user=_get_env("SMTP_USER", default="") or "",
        smtp_password=_get_env("SMTP_PASSWORD", default="") or "",
        mail_from=_get_env("MAIL_FROM", "SMTP_USER", default="") or "",
        admin_notify_email=_get_env("ADMIN_NOTIFY_EMAIL", default="") or "",
        log_level=(_get_env("LOG_LEVEL", default="INFO") or "INFO").upper(),
        cors_origins=_get_list("CORS_ORIGINS", default="*"),
    )


settings = load_settings()


def configure_logging(level: str | None = None) -> None:
    logging.basicConfig(
        level=level or settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
