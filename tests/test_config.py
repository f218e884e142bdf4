from finance_control.config import get_settings


def test_settings_strip_quotes_and_split_recipients(monkeypatch):
    monkeypatch.setenv("API_KEY", '"secret"')
    monkeypatch.setenv("LEDGER_SPREADSHEET_ID", "  'sheet-1' ")
    monkeypatch.setenv("NOTIFY_RECIPIENTS", "ana@example.com, ,bruno@example.com")

    settings = get_settings()

    assert settings.api_key == "secret"
    assert settings.spreadsheet_id == "sheet-1"
    assert settings.notify_recipients == ["ana@example.com", "bruno@example.com"]


def test_invalid_numbers_fall_back_to_defaults(monkeypatch):
    monkeypatch.setenv("NOTICE_WINDOW_DAYS", "three")
    monkeypatch.setenv("DEFAULT_HORIZON_DAYS", "60")
    monkeypatch.delenv("PORT", raising=False)

    settings = get_settings()

    assert settings.notice_window_days == 3
    assert settings.default_horizon_days == 60
    assert settings.port == 8080


def test_empty_values_are_unset(monkeypatch):
    monkeypatch.setenv("API_KEY", "  ")
    monkeypatch.delenv("NOTIFY_RECIPIENTS", raising=False)
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = get_settings()

    assert settings.api_key is None
    assert settings.notify_recipients == []
    assert settings.log_level == "DEBUG"


def test_store_opens_sheets_with_configured_credentials(monkeypatch):
    from finance_control import main
    from finance_control.core import ledger

    seen = []
    monkeypatch.setenv("GOOGLE_APPLICATION_CREDENTIALS", "/keys/service-account.json")
    monkeypatch.setattr(ledger, "get_sheets_service", lambda path: seen.append(path) or object())

    main.get_store()._ensure_service()

    assert seen == ["/keys/service-account.json"]
