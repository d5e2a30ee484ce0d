"""Tests for message builders."""

from datetime import UTC, date, datetime

from portal.notifications import templates
from portal.notifications.templates import SMS_MAX, Message, format_when


class TestFormatting:
    def test_format_when_uses_local_time(self):
        # 16:00 UTC is 09:00 PDT
        assert format_when(datetime(2026, 10, 20, 16, 0, tzinfo=UTC)) == "Tuesday, October 20 at 9:00 AM"

    def test_format_when_missing(self):
        assert format_when(None) == "the scheduled time"

    def test_first_name_default(self):
        assert templates.first_name(None) == "Volunteer"
        assert templates.first_name("  ") == "Volunteer"
        assert templates.first_name("Ana Lopez") == "Ana"


class TestBuilders:
    def test_missing_fields_never_render_none(self):
        messages = [
            templates.shift_reminder(None, None, None, None, None),
            templates.thank_you(None, None, None),
            templates.new_opportunity(None, None, None, None, None),
            templates.compliance_expiry(None, None, None, None),
            templates.event_reminder("7d", None, None, None, None),
            templates.smo_cycle_open(None, None, None),
            templates.smo_removed(None, None),
            templates.debrief(None, None, None),
        ]
        for message in messages:
            for part in (message.subject, message.text, message.html, message.sms):
                assert "None" not in part

    def test_html_escapes_dynamic_values(self):
        message = templates.event_reminder("24h", "<b>Ana</b>", "Fair & Clinic", None, None)
        assert "<b>Ana</b>" not in message.html
        assert "&lt;b&gt;Ana&lt;/b&gt;" in message.html
        assert "Fair &amp; Clinic" in message.html
        assert message.subject == "Fair & Clinic is tomorrow"

    def test_thank_you_hours(self):
        message = templates.thank_you("Ana", "Health Fair", 4.5)
        assert "4.5 hours" in message.text

    def test_compliance_days_left(self):
        message = templates.compliance_expiry("Ana", "CPR certification", date(2026, 10, 29), 10)
        assert "10 days" in message.text
        assert message.subject == "Action needed: CPR certification expires Thursday, October 29"


class TestSmsBody:
    def test_falls_back_to_text(self):
        assert Message(subject="s", text="plain", html="h").sms_body == "plain"

    def test_truncated_to_limit(self):
        body = Message(subject="s", text="t", html="h", sms="x" * 400).sms_body
        assert len(body) == SMS_MAX
        assert body.endswith("…")
