from unittest import mock

import run
from storebot.config import Settings


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("GATEWAY_TIMEOUT_SECONDS", "3.5")
    monkeypatch.setenv("ADMIN_NOTIFICATION_EMAILS", '["ops@example.com", "cfo@example.com"]')

    settings = Settings(_env_file=None)

    assert settings.GATEWAY_TIMEOUT_SECONDS == 3.5
    assert settings.ADMIN_NOTIFICATION_EMAILS == ["ops@example.com", "cfo@example.com"]
    assert settings.model_config["case_sensitive"] is True


def test_settings_keys_are_case_sensitive(monkeypatch):
    monkeypatch.setenv("webhook_history_limit", "3")
    assert Settings(_env_file=None).WEBHOOK_HISTORY_LIMIT == 20


def test_launcher_prints_notification_url(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["run.py", "--port", "9000", "--public-url", "https://bot.example.com/"])
    with mock.patch.object(run.uvicorn, "run") as uvicorn_run:
        run.main()

    out = capsys.readouterr().out
    assert "https://bot.example.com/api/payments/mercadopago/webhook" in out
    uvicorn_run.assert_called_once()
    assert uvicorn_run.call_args[0][0] == "storebot.main:app"
    assert uvicorn_run.call_args[1]["port"] == 9000
