"""SmtpNotifier tests — the SMTP call itself is replaced."""

import pytest

from survey_engine.notifier import SmtpNotifier, SmtpSettings


@pytest.mark.asyncio
async def test_disabled_without_host(monkeypatch, prompts):
    notifier = SmtpNotifier(SmtpSettings(), prompts)
    sent = []
    monkeypatch.setattr(notifier, "_send", lambda *args: sent.append(args))

    await notifier.notify_completion(to="a@b.org", preset_title="T", preset_slug="s", completed_count=1)

    assert not notifier.settings.enabled
    assert sent == []


@pytest.mark.asyncio
async def test_sends_rendered_mail(monkeypatch, prompts):
    settings = SmtpSettings(host="smtp.test", site_url="https://survey.test/")
    notifier = SmtpNotifier(settings, prompts)
    sent = []
    monkeypatch.setattr(notifier, "_send", lambda *args: sent.append(args))

    await notifier.notify_completion(
        to="owner@teamsurvey.org", preset_title="Team survey", preset_slug="abc123", completed_count=3,
    )

    assert len(sent) == 1
    to, subject, html, text = sent[0]
    assert to == "owner@teamsurvey.org"
    assert subject.endswith("Team survey")
    assert "https://survey.test/presets/abc123/manage" in html
    assert "Completed responses so far: 3" in text


def test_from_env(monkeypatch):
    monkeypatch.setenv("SMTP_HOST", "mail.test")
    monkeypatch.setenv("SMTP_PORT", "2525")
    notifier = SmtpNotifier.from_env()
    assert notifier.settings.enabled
    assert notifier.settings.port == 2525
