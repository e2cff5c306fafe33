import logging
from typing import List

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template.loader import render_to_string
from django.utils.html import strip_tags

logger = logging.getLogger(__name__)


def admin_recipients() -> List[str]:
    # Comma-separated list via settings; fall back to the sending mailbox
    raw = getattr(settings, "PAYMENTS_ADMIN_EMAILS", "") or getattr(settings, "EMAIL_HOST_USER", "")
    emails = [e.strip() for e in (raw or "").split(",") if e and e.strip()]
    seen = set()
    uniq: List[str] = []
    for e in emails:
        if e.lower() not in seen:
            seen.add(e.lower())
            uniq.append(e)
    return uniq


def send_email(to, subject: str, html_body: str) -> bool:
    """Send one HTML email. Returns False instead of raising."""
    recipients = [to] if isinstance(to, str) else list(to or [])
    recipients = [r for r in recipients if r]
    if not getattr(settings, "EMAIL_ENABLED", False):
        logger.warning("Email not configured - skipping email to %s", recipients)
        return False
    if not recipients:
        return False
    try:
        msg = EmailMultiAlternatives(subject, strip_tags(html_body), settings.DEFAULT_FROM_EMAIL, recipients)
        msg.attach_alternative(html_body, "text/html")
        msg.send()
    except Exception:
        logger.exception("Failed to send email %r to %s", subject, recipients)
        return False
    logger.info("Email %r sent to %s", subject, recipients)
    return True


def _subject(subject: str, test_mode: bool) -> str:
    return f"[TEST] {subject}" if test_mode else subject


def _context(order) -> dict:
    return {
        "order": order,
        "customer": order.customer,
        "test_mode": order.test_mode,
    }


def send_payment_request_emails(*, order) -> None:
    """Customer gets the payment link; admins get a heads-up."""
    ctx = _context(order)
    send_email(
        order.customer.email,
        _subject("Complete Your Franchise Registration Payment", order.test_mode),
        render_to_string("emails/payment_request_customer.html", ctx),
    )
    admins = admin_recipients()
    if admins:
        send_email(
            admins,
            _subject(f"New Payment Request (₹{order.amount})", order.test_mode),
            render_to_string("emails/payment_request_admin.html", ctx),
        )


def send_payment_success_emails(*, order) -> None:
    ctx = _context(order)
    send_email(
        order.customer.email,
        _subject("Payment Successful - Franchise Registration", order.test_mode),
        render_to_string("emails/payment_success_customer.html", ctx),
    )
    admins = admin_recipients()
    if admins:
        send_email(
            admins,
            _subject(f"Payment Completed - {order.order_id}", order.test_mode),
            render_to_string("emails/payment_success_admin.html", ctx),
        )
