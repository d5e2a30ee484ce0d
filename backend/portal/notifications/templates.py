"""Message builders for every workflow.

Every interpolated field has a safe default so a missing upstream value
renders as readable text instead of "None". Dynamic values are HTML-escaped
in the HTML part only.
"""

from dataclasses import dataclass
from datetime import date, datetime
from html import escape

from ..config import settings
from ..timeutils import as_utc, local_zone

SMS_MAX = 320


@dataclass(frozen=True)
class Message:
    subject: str
    text: str
    html: str
    sms: str = ""

    @property
    def sms_body(self) -> str:
        body = self.sms or self.text
        return body if len(body) <= SMS_MAX else body[: SMS_MAX - 1] + "…"


def _v(value, default: str) -> str:
    if value is None:
        return default
    value = str(value).strip()
    return value or default


def first_name(name: str | None) -> str:
    return _v(name, "Volunteer").split()[0]


def format_when(value: datetime | None) -> str:
    """'Saturday, March 21 at 8:00 AM' in the organisation timezone."""
    if value is None:
        return "the scheduled time"
    local = as_utc(value).astimezone(local_zone())
    hour = local.hour % 12 or 12
    return f"{local:%A, %B} {local.day} at {hour}:{local:%M} {local:%p}"


def format_day(value: date | None) -> str:
    if value is None:
        return "the scheduled date"
    return f"{value:%A, %B} {value.day}"


def _layout(title: str, paragraphs: list[str], rows: list[tuple[str, str]] | None = None) -> str:
    """Inline-styled HTML shell (email clients ignore stylesheets)."""
    body = "".join(
        f'<p style="margin:0 0 16px; color:#374151; font-size:15px; line-height:1.6;">{p}</p>'
        for p in paragraphs
    )
    table = ""
    if rows:
        cells = "".join(
            f'<tr><td style="padding:6px 0; color:#6b7280; font-size:13px; width:110px;">{escape(k)}</td>'
            f'<td style="padding:6px 0; color:#111827; font-size:14px; font-weight:600;">{escape(v)}</td></tr>'
            for k, v in rows
        )
        table = (
            '<table role="presentation" width="100%" cellpadding="0" cellspacing="0" '
            'style="background-color:#f9fafb; border-radius:6px; margin:16px 0;">'
            f'<tr><td style="padding:16px 20px;"><table role="presentation" width="100%">{cells}</table></td></tr>'
            "</table>"
        )
    org = escape(settings.org_name)
    return f"""\
<!DOCTYPE html>
<html lang="en">
<head><meta charset="utf-8"><title>{escape(title)}</title></head>
<body style="margin:0; padding:0; background-color:#f4f4f5; font-family:Arial,Helvetica,sans-serif;">
  <table role="presentation" width="100%" cellpadding="0" cellspacing="0" style="background-color:#f4f4f5;">
    <tr><td align="center" style="padding:24px 16px;">
      <table role="presentation" width="600" cellpadding="0" cellspacing="0"
             style="background-color:#ffffff; border-radius:8px;">
        <tr><td style="background-color:#233dff; padding:20px 32px; border-radius:8px 8px 0 0;">
          <h1 style="margin:0; color:#ffffff; font-size:20px; font-weight:600;">{escape(title)}</h1>
        </td></tr>
        <tr><td style="padding:32px;">{body}{table}</td></tr>
        <tr><td style="padding:16px 32px; border-top:1px solid #e5e7eb;">
          <p style="margin:0; color:#9ca3af; font-size:11px; line-height:1.5;">
            Sent automatically by {org}. Manage notification preferences in your volunteer profile.
          </p>
        </td></tr>
      </table>
    </td></tr>
  </table>
</body>
</html>"""


def _text(lines: list[str]) -> str:
    return "\n".join(lines + ["", "--", settings.org_name, "This message was sent automatically."]) + "\n"


# ── Shifts (w1, w2) ───────────────────────────────────────────────────


def shift_reminder(name: str | None, event_title: str | None, role: str | None, starts_at, location: str | None) -> Message:
    who = first_name(name)
    title = _v(event_title, "your upcoming event")
    role = _v(role, "Volunteer")
    when = format_when(starts_at)
    where = _v(location, "the posted location")
    return Message(
        subject=f"Reminder: your shift tomorrow at {title}",
        text=_text([f"Hi {who},", "", f"This is a reminder of your {role} shift at {title}.", f"When: {when}", f"Where: {where}"]),
        html=_layout(
            "Shift Reminder",
            [f"Hi {escape(who)}, this is a reminder of your shift tomorrow."],
            [("Event", title), ("Role", role), ("When", when), ("Where", where)],
        ),
        sms=f"{settings.org_name}: Hi {who}, reminder of your {role} shift at {title} on {when} ({where}).",
    )


def thank_you(name: str | None, event_title: str | None, hours: float | None) -> Message:
    who = first_name(name)
    title = _v(event_title, "our recent event")
    hours_txt = f"{hours:g}" if hours else "several"
    return Message(
        subject=f"Thank you for volunteering at {title}",
        text=_text([
            f"Hi {who},",
            "",
            f"Thank you for your shift at {title}.",
            f"You contributed {hours_txt} hours of service to our community.",
        ]),
        html=_layout(
            "Thank You",
            [
                f"Hi {escape(who)}, thank you for your shift at <strong>{escape(title)}</strong>.",
                "Every hour you give makes care possible for someone who needs it.",
            ],
            [("Event", title), ("Hours", hours_txt)],
        ),
    )


# ── New opportunities (w3) ────────────────────────────────────────────


def new_opportunity(name: str | None, title: str | None, starts_at, location: str | None, skills: list | None) -> Message:
    who = first_name(name)
    title = _v(title, "a new volunteer opportunity")
    when = format_when(starts_at)
    where = _v(location, "location to be announced")
    skills_txt = ", ".join(str(s) for s in skills or []) or "all volunteers welcome"
    link = f"{settings.portal_url}/opportunities"
    return Message(
        subject=f"Urgent: volunteers needed for {title}",
        text=_text([f"Hi {who},", "", f"{title} needs volunteers with your skills.", f"When: {when}", f"Where: {where}", f"Sign up: {link}"]),
        html=_layout(
            "New Opportunity",
            [f"Hi {escape(who)}, a high-priority opportunity matches your skills."],
            [("Event", title), ("When", when), ("Where", where), ("Skills", skills_txt)],
        ),
        sms=f"{settings.org_name}: {title} on {when} needs volunteers. Sign up: {link}",
    )


# ── Recognition (w4) ──────────────────────────────────────────────────


def birthday(name: str | None, bonus_xp: int, level_title: str | None) -> Message:
    who = first_name(name)
    level = _v(level_title, "Volunteer")
    return Message(
        subject=f"Happy birthday, {who}!",
        text=_text([f"Happy birthday, {who}!", "", f"We added {bonus_xp} bonus Impact XP to your profile.", f"Current level: {level}"]),
        html=_layout(
            "Happy Birthday!",
            [f"Happy birthday, {escape(who)}! Thank you for everything you do."],
            [("Bonus XP", str(bonus_xp)), ("Level", level)],
        ),
    )


# ── Compliance (w5) ───────────────────────────────────────────────────


def compliance_expiry(name: str | None, label: str | None, expires_on: date | None, days_left: int | None) -> Message:
    who = first_name(name)
    label = _v(label, "A compliance item")
    day = format_day(expires_on)
    left = f"{days_left} days" if days_left is not None else "soon"
    return Message(
        subject=f"Action needed: {label} expires {day}",
        text=_text([f"Hi {who},", "", f"Your {label} expires on {day} ({left}).", "Please renew it to stay eligible for shifts."]),
        html=_layout(
            "Compliance Expiry Warning",
            [f"Hi {escape(who)}, please renew before it expires to stay eligible for shifts."],
            [("Item", label), ("Expires", day), ("Time left", left)],
        ),
    )


# ── Event cadence (w6) ────────────────────────────────────────────────

_STAGE_LEADS = {
    "7d": "is one week away",
    "72h": "is in three days",
    "24h": "is tomorrow",
    "3h_sms": "starts in a few hours",
}


def event_reminder(stage: str, name: str | None, title: str | None, starts_at, location: str | None) -> Message:
    who = first_name(name)
    title = _v(title, "Your event")
    lead = _STAGE_LEADS.get(stage, "is coming up")
    when = format_when(starts_at)
    where = _v(location, "the posted location")
    return Message(
        subject=f"{title} {lead}",
        text=_text([f"Hi {who},", "", f"{title} {lead}.", f"When: {when}", f"Where: {where}"]),
        html=_layout(
            "Event Reminder",
            [f"Hi {escape(who)}, <strong>{escape(title)}</strong> {lead}."],
            [("When", when), ("Where", where)],
        ),
        sms=f"{settings.org_name}: {title} {lead} - {when} at {where}. Reply STOP to opt out.",
    )


# ── SMO cycle (w7) ────────────────────────────────────────────────────


def smo_cycle_open(name: str | None, training_date: date | None, service_date: date | None) -> Message:
    who = first_name(name)
    training = format_day(training_date)
    service = format_day(service_date)
    link = f"{settings.portal_url}/smo"
    return Message(
        subject=f"Street Medicine Outreach registration is open ({service})",
        text=_text([f"Hi {who},", "", "Registration for this month's Street Medicine Outreach is open.", f"Training: {training}", f"Outreach: {service}", f"Register: {link}"]),
        html=_layout(
            "SMO Registration Open",
            [f"Hi {escape(who)}, registration for this month's Street Medicine Outreach is open."],
            [("Training", training), ("Outreach", service)],
        ),
    )


def smo_training_reminder(name: str | None, training_at, location: str | None) -> Message:
    who = first_name(name)
    when = format_when(training_at)
    where = _v(location, "the posted location")
    return Message(
        subject="Reminder: SMO training is tomorrow",
        text=_text([f"Hi {who},", "", "Your Street Medicine Outreach training is tomorrow.", f"When: {when}", f"Where: {where}", "Attendance is required to keep your spot."]),
        html=_layout(
            "SMO Training Tomorrow",
            [f"Hi {escape(who)}, attendance at training is required to keep your outreach spot."],
            [("When", when), ("Where", where)],
        ),
        sms=f"{settings.org_name}: SMO training is tomorrow, {when}. Attendance is required to keep your spot.",
    )


def smo_removed(name: str | None, service_date: date | None) -> Message:
    who = first_name(name)
    service = format_day(service_date)
    return Message(
        subject="Your SMO registration was released",
        text=_text([f"Hi {who},", "", f"We did not record your attendance at training, so your spot for {service} was released.", "You are welcome to register for next month's cycle."]),
        html=_layout(
            "SMO Registration Released",
            [
                f"Hi {escape(who)}, we did not record your attendance at training, so your spot for {escape(service)} was released.",
                "You are welcome to register for next month's cycle.",
            ],
        ),
    )


def smo_promoted(name: str | None, service_date: date | None) -> Message:
    who = first_name(name)
    service = format_day(service_date)
    return Message(
        subject="You're in! A spot opened for SMO",
        text=_text([f"Hi {who},", "", f"A spot opened up and you have been moved from the waitlist to the roster for {service}."]),
        html=_layout(
            "You're on the Roster",
            [f"Hi {escape(who)}, a spot opened up and you have been moved from the waitlist to the roster."],
            [("Outreach", service)],
        ),
        sms=f"{settings.org_name}: a spot opened up - you're confirmed for SMO on {service}.",
    )


# ── Debrief (w8) ──────────────────────────────────────────────────────


def debrief(name: str | None, title: str | None, opportunity_id: str | None) -> Message:
    who = first_name(name)
    title = _v(title, "today's event")
    link = f"{settings.portal_url}/debrief/{_v(opportunity_id, '')}".rstrip("/")
    return Message(
        subject=f"How did {title} go?",
        text=_text([f"Hi {who},", "", f"Thanks for serving at {title}. Please take two minutes to share your debrief:", link]),
        html=_layout(
            "Post-Event Debrief",
            [
                f"Hi {escape(who)}, thanks for serving at <strong>{escape(title)}</strong>.",
                f'Please take two minutes to share your debrief: <a href="{escape(link)}">{escape(link)}</a>',
            ],
        ),
    )
