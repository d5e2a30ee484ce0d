"""Dispatch error taxonomy.

Providers and the dispatcher raise these internally; the dispatcher turns
them into a ``DispatchResult`` so nothing escapes into a workflow batch.
"""

import enum


class DispatchReason(enum.StrEnum):
    NOT_CONFIGURED = "not_configured"
    OPTED_OUT = "opted_out"
    SEND_FAILED = "send_failed"
    NO_CONTACT_METHOD = "no_contact_method"


class DispatchError(Exception):
    reason: DispatchReason = DispatchReason.SEND_FAILED


class NotConfigured(DispatchError):
    reason = DispatchReason.NOT_CONFIGURED


class OptedOut(DispatchError):
    reason = DispatchReason.OPTED_OUT


class SendFailed(DispatchError):
    reason = DispatchReason.SEND_FAILED


class NoContactMethod(DispatchError):
    reason = DispatchReason.NO_CONTACT_METHOD
