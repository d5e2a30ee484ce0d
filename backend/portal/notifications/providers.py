"""Email (SMTP) and SMS (Twilio) channel providers.

Each provider is independently configurable; an unconfigured provider raises
``NotConfigured`` instead of failing silently. Credentials may be stored
encrypted with Fernet (AES-128-CBC) derived from SECRET_KEY.
"""

import base64
import hashlib
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Protocol

import httpx
from cryptography.fernet import Fernet

from ..config import settings
from .errors import NotConfigured, SendFailed

logger = logging.getLogger(__name__)

TWILIO_API = "https://api.twilio.com/2010-04-01"


# ── Credential encryption ─────────────────────────────────────────────


def _derive_fernet_key(secret: str) -> bytes:
    """Derive a Fernet key from the app SECRET_KEY using SHA-256."""
    digest = hashlib.sha256(secret.encode()).digest()
    return base64.urlsafe_b64encode(digest)


def encrypt_value(plaintext: str) -> str:
    """Encrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.encrypt(plaintext.encode()).decode()


def decrypt_value(ciphertext: str) -> str:
    """Decrypt a string value using the app's SECRET_KEY."""
    f = Fernet(_derive_fernet_key(settings.secret_key))
    return f.decrypt(ciphertext.encode()).decode()


def _reveal(value: str) -> str:
    # Fernet tokens start with 'gAAAAA'
    if value.startswith("gAAAAA"):
        return decrypt_value(value)
    return value


# ── Provider interfaces ───────────────────────────────────────────────


class EmailProvider(Protocol):
    configured: bool

    def send(self, to: str, subject: str, html: str, text: str) -> None: ...


class SmsProvider(Protocol):
    configured: bool

    def send(self, to: str, body: str) -> None: ...


class NoopEmailProvider:
    configured = False

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        raise NotConfigured("email provider not configured")


class NoopSmsProvider:
    configured = False

    def send(self, to: str, body: str) -> None:
        raise NotConfigured("sms provider not configured")


# ── SMTP ──────────────────────────────────────────────────────────────


class SmtpEmailProvider:
    configured = True

    def __init__(self, host: str, port: int, user: str, password: str, sender_name: str, timeout: float) -> None:
        self._host = host
        self._port = port
        self._user = user
        self._password = password
        self._sender_name = sender_name
        self._timeout = timeout

    def _build(self, to: str, subject: str, html: str, text: str) -> MIMEMultipart:
        """Multipart message with the usual anti-spam headers."""
        msg = MIMEMultipart("alternative")
        msg["From"] = formataddr((self._sender_name, self._user))
        msg["To"] = to
        msg["Reply-To"] = self._user
        msg["Date"] = formatdate(localtime=True)
        msg["Message-ID"] = make_msgid(domain=self._user.split("@")[-1] if "@" in self._user else "local")
        msg["Subject"] = subject
        msg.attach(MIMEText(text, "plain", "utf-8"))
        msg.attach(MIMEText(html, "html", "utf-8"))
        return msg

    def send(self, to: str, subject: str, html: str, text: str) -> None:
        msg = self._build(to, subject, html, text)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as server:
                server.ehlo()
                server.starttls()
                server.ehlo()
                server.login(self._user, _reveal(self._password))
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            raise SendFailed(f"smtp: {exc}") from exc


# ── Twilio ────────────────────────────────────────────────────────────


class TwilioSmsProvider:
    configured = True

    def __init__(self, account_sid: str, auth_token: str, from_number: str, timeout: float) -> None:
        self._sid = account_sid
        self._token = auth_token
        self._from = from_number
        self._timeout = timeout

    def send(self, to: str, body: str) -> None:
        """``to`` is the canonical 10-digit number; Twilio wants E.164."""
        try:
            response = httpx.post(
                f"{TWILIO_API}/Accounts/{self._sid}/Messages.json",
                data={"To": f"+1{to}", "From": self._from, "Body": body},
                auth=(self._sid, _reveal(self._token)),
                timeout=self._timeout,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SendFailed(f"twilio: HTTP {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise SendFailed(f"twilio: {exc}") from exc


# ── Factories ─────────────────────────────────────────────────────────


def get_email_provider() -> EmailProvider:
    if not settings.smtp_user or not settings.smtp_password:
        logger.debug("SMTP not configured, email channel disabled")
        return NoopEmailProvider()
    return SmtpEmailProvider(
        settings.smtp_host,
        settings.smtp_port,
        settings.smtp_user,
        settings.smtp_password,
        settings.email_from_name,
        settings.dispatch_timeout_seconds,
    )


def get_sms_provider() -> SmsProvider:
    if not (settings.twilio_account_sid and settings.twilio_auth_token and settings.twilio_from_number):
        logger.debug("Twilio not configured, sms channel disabled")
        return NoopSmsProvider()
    return TwilioSmsProvider(
        settings.twilio_account_sid,
        settings.twilio_auth_token,
        settings.twilio_from_number,
        settings.dispatch_timeout_seconds,
    )
