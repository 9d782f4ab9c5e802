"""
Static HTML email templates.

Each builder returns an EmailContent with subject, HTML and plain-text
bodies. All interpolated values are HTML-escaped.
"""

from datetime import date
from html import escape
from typing import NamedTuple


class EmailContent(NamedTuple):
    subject: str
    html: str
    text: str


BRAND_COLOR = "#0F766E"


def _layout(heading: str, paragraphs: list[str], cta_label: str | None = None, cta_url: str | None = None) -> str:
    body = "".join(f"<p style=\"margin:0 0 16px;line-height:1.5\">{p}</p>" for p in paragraphs)
    button = ""
    if cta_label and cta_url:
        button = (
            f"<p style=\"margin:24px 0\"><a href=\"{escape(cta_url)}\" "
            f"style=\"background:{BRAND_COLOR};color:#ffffff;padding:12px 20px;"
            f"border-radius:6px;text-decoration:none;display:inline-block\">"
            f"{escape(cta_label)}</a></p>"
        )
    return (
        "<!DOCTYPE html><html><body style=\"font-family:Arial,sans-serif;color:#1f2937;"
        "background:#f9fafb;margin:0;padding:24px\">"
        "<div style=\"max-width:560px;margin:0 auto;background:#ffffff;border-radius:8px;padding:32px\">"
        f"<h1 style=\"font-size:22px;color:{BRAND_COLOR};margin:0 0 24px\">{escape(heading)}</h1>"
        f"{body}{button}"
        "<p style=\"font-size:12px;color:#6b7280;margin-top:32px\">Homezy - Home services across the UAE</p>"
        "</div></body></html>"
    )


def _text(paragraphs: list[str], cta_url: str | None = None) -> str:
    lines = list(paragraphs)
    if cta_url:
        lines.append(cta_url)
    return "\n\n".join(lines)


# ============================================================================
# Direct leads
# ============================================================================


def direct_lead_received(
    professional_name: str,
    homeowner_name: str,
    lead_title: str,
    category: str,
    respond_by: str,
    lead_url: str,
) -> EmailContent:
    paragraphs = [
        f"Hi {professional_name},",
        f"{homeowner_name} sent a {category} request directly to you: \"{lead_title}\".",
        f"You have until {respond_by} to accept or decline. After that the request "
        "opens to other professionals on the marketplace.",
    ]
    return EmailContent(
        subject=f"New direct request: {lead_title}",
        html=_layout("You have a new direct request", [escape(p) for p in paragraphs], "View request", lead_url),
        text=_text(paragraphs, lead_url),
    )


def direct_lead_reminder(
    professional_name: str,
    lead_title: str,
    time_remaining: str,
    lead_url: str,
    final: bool = False,
) -> EmailContent:
    if final:
        subject = f"Final reminder: {time_remaining} left to respond to {lead_title}"
        heading = "Last chance to respond"
    else:
        subject = f"Reminder: {time_remaining} left to respond to {lead_title}"
        heading = "A homeowner is waiting for your response"
    paragraphs = [
        f"Hi {professional_name},",
        f"You have about {time_remaining} left to respond to the direct request \"{lead_title}\".",
        "If you don't respond in time, the request will be shared with other professionals.",
    ]
    return EmailContent(
        subject=subject,
        html=_layout(heading, [escape(p) for p in paragraphs], "Respond now", lead_url),
        text=_text(paragraphs, lead_url),
    )


def direct_lead_accepted(
    homeowner_name: str, professional_name: str, lead_title: str, lead_url: str
) -> EmailContent:
    paragraphs = [
        f"Hi {homeowner_name},",
        f"Good news! {professional_name} accepted your request \"{lead_title}\" "
        "and will send you a quote shortly.",
    ]
    return EmailContent(
        subject=f"{professional_name} accepted your request",
        html=_layout("Your request was accepted", [escape(p) for p in paragraphs], "View request", lead_url),
        text=_text(paragraphs, lead_url),
    )


def direct_lead_declined(
    homeowner_name: str, professional_name: str, lead_title: str, lead_url: str
) -> EmailContent:
    paragraphs = [
        f"Hi {homeowner_name},",
        f"{professional_name} isn't able to take on \"{lead_title}\" right now.",
        "We've shared your request with other verified professionals on the "
        "marketplace, so you'll start receiving quotes soon.",
    ]
    return EmailContent(
        subject=f"Update on your request: {lead_title}",
        html=_layout("Your request is now on the marketplace", [escape(p) for p in paragraphs], "View request", lead_url),
        text=_text(paragraphs, lead_url),
    )


def direct_lead_converted(
    homeowner_name: str, professional_name: str, lead_title: str, lead_url: str
) -> EmailContent:
    paragraphs = [
        f"Hi {homeowner_name},",
        f"{professional_name} didn't respond to \"{lead_title}\" within 24 hours.",
        "Your request is now visible to other verified professionals, so you'll "
        "start receiving quotes soon.",
    ]
    return EmailContent(
        subject="Your request is now open to more professionals",
        html=_layout("Your request is now on the marketplace", [escape(p) for p in paragraphs], "View request", lead_url),
        text=_text(paragraphs, lead_url),
    )


# ============================================================================
# Service reminders
# ============================================================================


def service_reminder(
    homeowner_name: str,
    reminder_title: str,
    category: str,
    due_date: date,
    days_before_due: int,
    property_name: str,
    reminders_url: str,
) -> EmailContent:
    when = "tomorrow" if days_before_due == 1 else f"in {days_before_due} days"
    paragraphs = [
        f"Hi {homeowner_name},",
        f"Your {category} service \"{reminder_title}\" for {property_name} is due {when} "
        f"({due_date.strftime('%d %B %Y')}).",
        "Request quotes from verified professionals now to get it done on time.",
    ]
    return EmailContent(
        subject=f"Reminder: {reminder_title} is due {when}",
        html=_layout("Service reminder", [escape(p) for p in paragraphs], "Get quotes", reminders_url),
        text=_text(paragraphs, reminders_url),
    )


# ============================================================================
# Trade licenses
# ============================================================================


def trade_license_expiry_warning(
    professional_name: str, business_name: str, expiry_date: date, days_until_expiry: int, settings_url: str
) -> EmailContent:
    paragraphs = [
        f"Hi {professional_name},",
        f"The trade license for {business_name} expires on {expiry_date.strftime('%d %B %Y')} "
        f"({days_until_expiry} days from today).",
        "Upload your renewed license to keep receiving leads without interruption.",
    ]
    return EmailContent(
        subject=f"Your trade license expires in {days_until_expiry} days",
        html=_layout("Trade license expiring soon", [escape(p) for p in paragraphs], "Update license", settings_url),
        text=_text(paragraphs, settings_url),
    )


def trade_license_expired(
    professional_name: str, business_name: str, expiry_date: date, days_since_expiry: int, settings_url: str
) -> EmailContent:
    day_word = "day" if days_since_expiry == 1 else "days"
    paragraphs = [
        f"Hi {professional_name},",
        f"The trade license for {business_name} expired on {expiry_date.strftime('%d %B %Y')} "
        f"({days_since_expiry} {day_word} ago).",
        "Your profile may be restricted until you upload a valid license.",
    ]
    return EmailContent(
        subject="Action required: your trade license has expired",
        html=_layout("Trade license expired", [escape(p) for p in paragraphs], "Upload license", settings_url),
        text=_text(paragraphs, settings_url),
    )


def admin_trade_license_alert(
    admin_name: str,
    business_name: str,
    professional_email: str,
    expiry_date: date,
    expired: bool,
    days: int,
    admin_url: str,
) -> EmailContent:
    if expired:
        status = f"expired {days} day(s) ago"
        subject = f"Trade license expired: {business_name}"
    else:
        status = f"expires in {days} day(s)"
        subject = f"Trade license expiring: {business_name}"
    paragraphs = [
        f"Hi {admin_name},",
        f"The trade license for {business_name} ({professional_email}) {status} "
        f"(expiry date {expiry_date.isoformat()}).",
    ]
    return EmailContent(
        subject=subject,
        html=_layout("Trade license alert", [escape(p) for p in paragraphs], "Review professional", admin_url),
        text=_text(paragraphs, admin_url),
    )
