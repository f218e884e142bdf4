import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

load_dotenv()


def _clean_env(value):
    if not value:
        return None
    cleaned = value.strip().strip("'\"")
    return cleaned or None


def _int_env(name, default):
    value = _clean_env(os.getenv(name))
    try:
        return int(value) if value else default
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str] = None
    spreadsheet_id: Optional[str] = None
    credentials_path: Optional[str] = None
    notify_recipients: List[str] = field(default_factory=list)
    notice_window_days: int = 3
    default_horizon_days: int = 30
    app_name: str = "Sistema de Controle Financeiro"
    log_level: str = "INFO"
    port: int = 8080


def get_settings():
    recipients = _clean_env(os.getenv("NOTIFY_RECIPIENTS")) or ""
    return Settings(
        api_key=_clean_env(os.getenv("API_KEY")),
        spreadsheet_id=_clean_env(os.getenv("LEDGER_SPREADSHEET_ID")),
        credentials_path=_clean_env(os.getenv("GOOGLE_APPLICATION_CREDENTIALS")),
        notify_recipients=[r.strip() for r in recipients.split(",") if r.strip()],
        notice_window_days=_int_env("NOTICE_WINDOW_DAYS", 3),
        default_horizon_days=_int_env("DEFAULT_HORIZON_DAYS", 30),
        app_name=_clean_env(os.getenv("APP_NAME")) or "Sistema de Controle Financeiro",
        log_level=(_clean_env(os.getenv("LOG_LEVEL")) or "INFO").upper(),
        port=_int_env("PORT", 8080),
    )
