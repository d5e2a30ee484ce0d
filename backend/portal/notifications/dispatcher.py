"""Channel selection with fallback and opt-out honoring.

``Dispatcher.send`` tries the preferred channel, then the other one. Opt-outs
are checked before a provider is touched. It never raises: every outcome is
reported through ``DispatchResult``.
"""

import enum
import logging
from dataclasses import dataclass, field

from ..volunteers.models import Volunteer
from ..volunteers.service import normalize_phone, pref_enabled
from .errors import DispatchError, DispatchReason, NoContactMethod, NotConfigured, OptedOut, SendFailed
from .providers import EmailProvider, SmsProvider, get_email_provider, get_sms_provider
from .templates import Message

logger = logging.getLogger(__name__)


class Channel(enum.StrEnum):
    EMAIL = "email"
    SMS = "sms"


# Most actionable reason first when every channel fails.
_REASON_PRIORITY = [
    DispatchReason.SEND_FAILED,
    DispatchReason.NOT_CONFIGURED,
    DispatchReason.OPTED_OUT,
    DispatchReason.NO_CONTACT_METHOD,
]


@dataclass(frozen=True)
class Recipient:
    id: str
    name: str
    email: str | None
    phone: str | None  # canonical 10 digits
    email_enabled: bool = True
    sms_enabled: bool = True

    @classmethod
    def from_volunteer(cls, volunteer: Volunteer) -> "Recipient":
        email = (volunteer.email or "").strip()
        return cls(
            id=str(volunteer.id),
            name=volunteer.name or "",
            email=email if "@" in email else None,
            phone=normalize_phone(volunteer.phone),
            email_enabled=pref_enabled(volunteer, "emailAlerts"),
            sms_enabled=pref_enabled(volunteer, "smsAlerts"),
        )


@dataclass
class DispatchResult:
    sent: bool
    channel: Channel | None = None
    reason: DispatchReason | None = None
    attempted: bool = False  # a provider call was made
    errors: list[str] = field(default_factory=list)


class Dispatcher:
    def __init__(self, email: EmailProvider | None = None, sms: SmsProvider | None = None) -> None:
        self.email = email if email is not None else get_email_provider()
        self.sms = sms if sms is not None else get_sms_provider()

    def send(self, recipient: Recipient, message: Message, preferred_channel: Channel = Channel.EMAIL) -> DispatchResult:
        order = [preferred_channel] + [c for c in Channel if c != preferred_channel]
        reasons: list[DispatchReason] = []
        result = DispatchResult(sent=False)

        for channel in order:
            try:
                self._send_via(channel, recipient, message, result)
            except DispatchError as exc:
                reasons.append(exc.reason)
                result.errors.append(f"{channel}: {exc.reason}")
                if exc.reason == DispatchReason.SEND_FAILED:
                    logger.warning("Dispatch to %s via %s failed: %s", recipient.id, channel, exc)
                else:
                    logger.debug("Dispatch to %s via %s skipped: %s", recipient.id, channel, exc.reason)
                continue
            except Exception:
                logger.exception("Unexpected error dispatching to %s via %s", recipient.id, channel)
                reasons.append(DispatchReason.SEND_FAILED)
                result.errors.append(f"{channel}: {DispatchReason.SEND_FAILED}")
                continue

            result.sent = True
            result.channel = channel
            logger.info("Sent %r to %s via %s", message.subject, recipient.id, channel)
            return result

        result.reason = next(r for r in _REASON_PRIORITY if r in reasons)
        return result

    def _send_via(self, channel: Channel, recipient: Recipient, message: Message, result: DispatchResult) -> None:
        if channel == Channel.SMS:
            if not recipient.phone:
                raise NoContactMethod("no usable phone number")
            if not recipient.sms_enabled:
                raise OptedOut("sms alerts disabled")
            if not self.sms.configured:
                raise NotConfigured("sms provider not configured")
            result.attempted = True
            try:
                self.sms.send(recipient.phone, message.sms_body)
            except DispatchError:
                raise
            except Exception as exc:
                raise SendFailed(str(exc)) from exc
            return

        if not recipient.email:
            raise NoContactMethod("no usable email address")
        if not recipient.email_enabled:
            raise OptedOut("email alerts disabled")
        if not self.email.configured:
            raise NotConfigured("email provider not configured")
        result.attempted = True
        try:
            self.email.send(recipient.email, message.subject, message.html, message.text)
        except DispatchError:
            raise
        except Exception as exc:
            raise SendFailed(str(exc)) from exc
