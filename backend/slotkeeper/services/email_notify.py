"""
Send booking confirmations by email via SMTP (Google Gmail or other).
Set SMTP_USER, SMTP_PASSWORD (and optionally NOTIFY_FROM) in .env. Use a Gmail App Password.

Fire-and-forget: called after the booking has committed. A failure here is logged and never
undoes the booking.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

from slotkeeper.config import settings

logger = logging.getLogger(__name__)


def _from_address() -> str:
    if settings.notify_from:
        return settings.notify_from
    if settings.smtp_user:
        return f"Bookings <{settings.smtp_user}>"
    return "Bookings <noreply@localhost>"


def build_confirmation_message(booking: dict[str, Any], *, from_email: str | None = None) -> MIMEMultipart:
    """Plain-text + HTML confirmation for one booking dict (ConfirmedBooking.to_dict())."""
    seats = booking.get("quantity") or 1
    lines = [
        f"Hi {booking.get('first_name') or 'there'},",
        "",
        "Your booking is confirmed.",
        "",
        f"Reference: {booking.get('reference_code')}",
        f"Starts:    {booking.get('start_time')}",
        f"Ends:      {booking.get('end_time')}",
        f"Seats:     {seats}",
    ]
    if booking.get("notes"):
        lines.append(f"Notes:     {booking['notes']}")
    lines += ["", "Keep the reference handy if you need to contact us."]
    body = "\n".join(lines)
    msg = MIMEMultipart("alternative")
    msg["Subject"] = f"Booking confirmed: {booking.get('reference_code')}"
    msg["From"] = (from_email or "").strip() or _from_address()
    msg["To"] = booking.get("email") or ""
    msg.attach(MIMEText(body, "plain"))
    msg.attach(MIMEText(f"<pre style='font-family:sans-serif'>{body}</pre>", "html"))
    return msg


def send_booking_confirmation_email(booking: dict[str, Any]) -> bool:
    """
    Email the confirmation to booking["email"].
    Returns True if sent, False if skipped (SMTP not configured) or failed.
    """
    to_email = (booking.get("email") or "").strip()
    if not to_email:
        return False
    if not settings.smtp_user or not settings.smtp_password:
        logger.debug("SMTP_USER or SMTP_PASSWORD not set; skipping confirmation email")
        return False
    msg = build_confirmation_message(booking)
    try:
        with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=10) as server:
            server.starttls()
            server.login(settings.smtp_user, settings.smtp_password)
            server.sendmail(settings.smtp_user, [to_email], msg.as_string())
        logger.info("Confirmation email sent to %s for %s", to_email, booking.get("reference_code"))
        return True
    except Exception as e:
        logger.exception("Failed to send confirmation email for %s: %s", booking.get("reference_code"), e)
        return False


def dispatch_booking_confirmed(booking: dict[str, Any]) -> None:
    """Background task entry point. Swallows and logs everything so the response is unaffected."""
    try:
        send_booking_confirmation_email(booking)
    except Exception as e:
        logger.warning("Booking confirmation dispatch failed for %s: %s", booking.get("reference_code"), e)
