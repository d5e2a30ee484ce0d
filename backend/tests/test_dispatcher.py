"""Tests for channel dispatch, fallback and providers."""

import smtplib
import uuid
from unittest.mock import MagicMock, patch

import httpx
import pytest

from portal.notifications.dispatcher import Channel, Dispatcher, Recipient
from portal.notifications.errors import DispatchReason, NotConfigured, SendFailed
from portal.notifications.providers import (
    NoopEmailProvider,
    NoopSmsProvider,
    SmtpEmailProvider,
    TwilioSmsProvider,
    decrypt_value,
    encrypt_value,
    get_email_provider,
    get_sms_provider,
)
from portal.notifications.templates import Message

MESSAGE = Message(subject="Hello", text="Hello there", html="<p>Hello there</p>", sms="Hello")


def _recipient(**kwargs) -> Recipient:
    kwargs.setdefault("id", str(uuid.uuid4()))
    kwargs.setdefault("name", "Ana Lopez")
    kwargs.setdefault("email", "ana@example.com")
    kwargs.setdefault("phone", "5551234567")
    return Recipient(**kwargs)


class TestRecipientFromVolunteer:
    def test_normalizes_contact_fields(self, make_volunteer):
        v = make_volunteer(email=" ana@example.com ", phone="+1 (555) 123-4567")
        r = Recipient.from_volunteer(v)
        assert r.email == "ana@example.com"
        assert r.phone == "5551234567"
        assert r.email_enabled and r.sms_enabled

    def test_invalid_contact_fields_dropped(self, make_volunteer):
        v = make_volunteer(email="not-an-email", phone="12345")
        r = Recipient.from_volunteer(v)
        assert r.email is None
        assert r.phone is None

    def test_prefs_applied(self, make_volunteer):
        v = make_volunteer(notification_prefs={"emailAlerts": True, "smsAlerts": False})
        r = Recipient.from_volunteer(v)
        assert r.sms_enabled is False
        assert r.email_enabled is True

    def test_channels_require_opt_in(self, make_volunteer):
        r = Recipient.from_volunteer(make_volunteer(notification_prefs={}))
        assert r.sms_enabled is False
        assert r.email_enabled is False

    def test_no_text_without_sms_opt_in(self, make_volunteer, dispatcher, fake_email, fake_sms):
        v = make_volunteer(notification_prefs={})

        result = dispatcher.send(Recipient.from_volunteer(v), MESSAGE, Channel.SMS)

        assert not result.sent
        assert result.reason == DispatchReason.OPTED_OUT
        assert fake_sms.sent == []
        assert fake_email.sent == []

    def test_email_only_opt_in_never_texts(self, make_volunteer, dispatcher, fake_email, fake_sms):
        v = make_volunteer(notification_prefs={"emailAlerts": True})

        result = dispatcher.send(Recipient.from_volunteer(v), MESSAGE, Channel.SMS)

        assert result.channel == Channel.EMAIL
        assert fake_sms.sent == []


class TestDispatcherSend:
    def test_preferred_channel_used(self, dispatcher, fake_email, fake_sms):
        result = dispatcher.send(_recipient(), MESSAGE, Channel.SMS)
        assert result.sent
        assert result.channel == Channel.SMS
        assert fake_sms.sent == [("5551234567", "Hello")]
        assert fake_email.sent == []

    def test_sms_opt_out_falls_back_to_email(self, dispatcher, fake_email, fake_sms):
        result = dispatcher.send(_recipient(sms_enabled=False), MESSAGE, Channel.SMS)
        assert result.sent
        assert result.channel == Channel.EMAIL
        assert fake_sms.sent == []
        assert fake_email.sent == [("ana@example.com", "Hello")]

    def test_no_phone_falls_back_to_email(self, dispatcher, fake_email):
        result = dispatcher.send(_recipient(phone=None), MESSAGE, Channel.SMS)
        assert result.channel == Channel.EMAIL

    def test_opted_out_everywhere(self, dispatcher, fake_email, fake_sms):
        result = dispatcher.send(_recipient(sms_enabled=False, email_enabled=False), MESSAGE, Channel.SMS)
        assert not result.sent
        assert result.reason == DispatchReason.OPTED_OUT
        assert result.attempted is False
        assert fake_email.sent == [] and fake_sms.sent == []

    def test_no_contact_method(self, dispatcher):
        result = dispatcher.send(_recipient(email=None, phone=None), MESSAGE)
        assert result.reason == DispatchReason.NO_CONTACT_METHOD
        assert result.attempted is False

    def test_provider_failure_falls_back(self, fake_email, failing_sms):
        d = Dispatcher(email=fake_email, sms=failing_sms)
        result = d.send(_recipient(), MESSAGE, Channel.SMS)
        assert result.sent
        assert result.channel == Channel.EMAIL
        assert result.errors == ["sms: send_failed"]

    def test_all_providers_fail(self, failing_email, failing_sms):
        d = Dispatcher(email=failing_email, sms=failing_sms)
        result = d.send(_recipient(), MESSAGE)
        assert not result.sent
        assert result.reason == DispatchReason.SEND_FAILED
        assert result.attempted is True

    def test_send_failed_outranks_opt_out(self, failing_email, fake_sms):
        d = Dispatcher(email=failing_email, sms=fake_sms)
        result = d.send(_recipient(sms_enabled=False), MESSAGE)
        assert result.reason == DispatchReason.SEND_FAILED

    def test_unconfigured_providers(self):
        d = Dispatcher(email=NoopEmailProvider(), sms=NoopSmsProvider())
        result = d.send(_recipient(), MESSAGE)
        assert not result.sent
        assert result.reason == DispatchReason.NOT_CONFIGURED
        assert result.attempted is False

    def test_unexpected_provider_error_is_contained(self):
        sms = MagicMock()
        sms.configured = True
        sms.send.side_effect = RuntimeError("boom")
        d = Dispatcher(email=NoopEmailProvider(), sms=sms)
        result = d.send(_recipient(), MESSAGE, Channel.SMS)
        assert not result.sent
        assert result.reason == DispatchReason.SEND_FAILED

    def test_long_sms_truncated(self, dispatcher, fake_sms):
        long = Message(subject="s", text="t", html="h", sms="x" * 500)
        dispatcher.send(_recipient(), long, Channel.SMS)
        assert len(fake_sms.sent[0][1]) == 320


class TestEncryptDecrypt:
    def test_roundtrip(self):
        plaintext = "my-secret-smtp-password"
        encrypted = encrypt_value(plaintext)
        assert encrypted != plaintext
        assert decrypt_value(encrypted) == plaintext

    def test_encrypted_starts_with_gAAAAA(self):
        assert encrypt_value("test").startswith("gAAAAA")


class TestProviderFactories:
    def test_email_unconfigured_without_credentials(self):
        with patch("portal.notifications.providers.settings") as s:
            s.smtp_user = ""
            s.smtp_password = ""
            provider = get_email_provider()
        assert provider.configured is False
        with pytest.raises(NotConfigured):
            provider.send("a@example.com", "s", "h", "t")

    def test_sms_unconfigured_without_credentials(self):
        with patch("portal.notifications.providers.settings") as s:
            s.twilio_account_sid = ""
            s.twilio_auth_token = ""
            s.twilio_from_number = ""
            provider = get_sms_provider()
        assert provider.configured is False

    def test_sms_configured(self):
        with patch("portal.notifications.providers.settings") as s:
            s.twilio_account_sid = "AC123"
            s.twilio_auth_token = "token"
            s.twilio_from_number = "+15550000000"
            s.dispatch_timeout_seconds = 5.0
            provider = get_sms_provider()
        assert isinstance(provider, TwilioSmsProvider)


class TestSmtpEmailProvider:
    def test_sends_with_starttls(self):
        provider = SmtpEmailProvider("smtp.example.com", 587, "bot@example.com", "pw", "Clinic", 5.0)
        with patch("portal.notifications.providers.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            provider.send("ana@example.com", "Hello", "<p>hi</p>", "hi")
        smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=5.0)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot@example.com", "pw")
        server.send_message.assert_called_once()

    def test_decrypts_encrypted_password(self):
        provider = SmtpEmailProvider("smtp.example.com", 587, "bot@example.com", encrypt_value("pw"), "Clinic", 5.0)
        with patch("portal.notifications.providers.smtplib.SMTP") as smtp_cls:
            server = smtp_cls.return_value.__enter__.return_value
            provider.send("ana@example.com", "Hello", "<p>hi</p>", "hi")
        server.login.assert_called_once_with("bot@example.com", "pw")

    def test_smtp_error_becomes_send_failed(self):
        provider = SmtpEmailProvider("smtp.example.com", 587, "bot@example.com", "pw", "Clinic", 5.0)
        with patch("portal.notifications.providers.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, "busy")):
            with pytest.raises(SendFailed):
                provider.send("ana@example.com", "Hello", "<p>hi</p>", "hi")


class TestTwilioSmsProvider:
    def test_posts_e164_number(self):
        provider = TwilioSmsProvider("AC123", "token", "+15550000000", 5.0)
        with patch("portal.notifications.providers.httpx.post") as post:
            post.return_value = MagicMock(status_code=201)
            provider.send("5551234567", "hi")
        args, kwargs = post.call_args
        assert args[0].endswith("/Accounts/AC123/Messages.json")
        assert kwargs["data"]["To"] == "+15551234567"
        assert kwargs["timeout"] == 5.0

    def test_http_error_becomes_send_failed(self):
        provider = TwilioSmsProvider("AC123", "token", "+15550000000", 5.0)
        with patch("portal.notifications.providers.httpx.post", side_effect=httpx.ConnectTimeout("timeout")):
            with pytest.raises(SendFailed):
                provider.send("5551234567", "hi")
