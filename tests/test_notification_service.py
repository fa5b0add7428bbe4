from __future__ import annotations

import logging
from dataclasses import replace

from psychiki.core.mailer import SMTPMailer
from psychiki.services.notification_service import CodeNotifier, InlineDispatcher, ThreadedDispatcher

from conftest import RecordingMailer


class ExplodingMailer:
    def send(self, to, subject, body, html_body=None):
        raise RuntimeError("relay on fire")


def test_delivery_message_mentions_code_and_window(settings):
    mailer = RecordingMailer()
    assert CodeNotifier(mailer, settings).deliver("a@example.com", "123456", "Your Verification Code")
    to, subject, body = mailer.sent[0]
    assert (to, subject) == ("a@example.com", "Your Verification Code")
    assert body == "Your verification code is 123456. It will expire in 10 minutes."


def test_failed_delivery_logs_fallback_code(settings, caplog):
    notifier = CodeNotifier(RecordingMailer(ok=False), settings)
    with caplog.at_level(logging.WARNING, logger="psychiki.services.notification_service"):
        assert notifier.deliver("a@example.com", "123456", "subject") is False
    assert "[VERIFICATION CODE FOR a@example.com]: 123456" in caplog.text


def test_fallback_hides_code_in_prod(settings, caplog):
    notifier = CodeNotifier(RecordingMailer(ok=False), replace(settings, app_env="prod"))
    with caplog.at_level(logging.WARNING, logger="psychiki.services.notification_service"):
        notifier.deliver("a@example.com", "123456", "subject")
    assert "123456" not in caplog.text
    assert "a@example.com" in caplog.text


def test_raising_mailer_does_not_propagate(settings):
    assert CodeNotifier(ExplodingMailer(), settings).deliver("a@example.com", "123456", "subject") is False


def test_send_code_goes_through_dispatcher(settings):
    jobs = []

    class Capture:
        def submit(self, fn, *args):
            jobs.append((fn, args))

    mailer = RecordingMailer()
    CodeNotifier(mailer, settings, Capture()).send_code("a@example.com", "654321")
    assert mailer.sent == []
    fn, args = jobs[0]
    fn(*args)
    assert mailer.sent[0][0] == "a@example.com"


def test_threaded_dispatcher_runs_job(settings):
    mailer = RecordingMailer()
    dispatcher = ThreadedDispatcher(max_workers=1)
    CodeNotifier(mailer, settings, dispatcher).send_code("a@example.com", "654321")
    dispatcher.shutdown()
    assert len(mailer.sent) == 1


def test_inline_dispatcher_is_default(settings):
    assert isinstance(CodeNotifier(RecordingMailer(), settings).dispatcher, InlineDispatcher)


def test_smtp_mailer_without_configuration_returns_false(settings):
    assert SMTPMailer(replace(settings, smtp_host="")).send("a@example.com", "subject", "body") is False


def test_threaded_dispatcher_survives_restart(settings):
    mailer = RecordingMailer()
    dispatcher = ThreadedDispatcher(max_workers=1)
    notifier = CodeNotifier(mailer, settings, dispatcher)
    notifier.send_code("a@example.com", "111111")
    dispatcher.shutdown()
    notifier.send_code("b@example.com", "222222")
    dispatcher.shutdown()
    dispatcher.shutdown()
    assert [to for to, _, _ in mailer.sent] == ["a@example.com", "b@example.com"]
