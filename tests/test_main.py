import pytest
import sentry_sdk

from expense_ocr import main


def test_sentry_skipped_without_dsn(monkeypatch):
    calls = []
    monkeypatch.setattr(sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))

    main.init_sentry(None)
    main.init_sentry("")

    assert calls == []


def test_sentry_disables_openai_agents_integration(monkeypatch):
    calls = []
    monkeypatch.setattr(sentry_sdk, "init", lambda **kwargs: calls.append(kwargs))

    main.init_sentry("https://key@sentry.example/1")

    assert len(calls) == 1
    assert calls[0]["dsn"] == "https://key@sentry.example/1"
    assert calls[0]["send_default_pii"] is False
    openai_agents = pytest.importorskip("sentry_sdk.integrations.openai_agents")
    assert calls[0]["disabled_integrations"] == [openai_agents.OpenAIAgentsIntegration]
