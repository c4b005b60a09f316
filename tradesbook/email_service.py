"""
Email Service using platform SMTP (preferred) or Resend (fallback)
Provides notification emails built from MJML templates
"""

import logging
import smtplib
import ssl
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import (
    ADMIN_NOTIFICATION_EMAIL,
    EMAIL_FROM_ADDRESS,
    RESEND_API_KEY,
    SMTP_HOST,
    SMTP_PASSWORD,
    SMTP_PORT,
    SMTP_USE_TLS,
    SMTP_USERNAME,
)
from .email_templates import (
    admin_booking_notification_template,
    booking_confirmation_template,
    installer_new_lead_template,
    lead_purchased_template,
    refund_processed_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def send_via_smtp(to: list[str], subject: str, html_content: str, from_address: str) -> dict:
    """Send email via the platform SMTP relay"""
    try:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = from_address
        msg["To"] = ", ".join(to)
        msg.attach(MIMEText(html_content, "html"))

        if SMTP_PORT == 465:
            context = ssl.create_default_context()
            server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, context=context, timeout=30)
        else:
            server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=30)

        with server:
            if SMTP_PORT != 465 and SMTP_USE_TLS:
                server.starttls(context=ssl.create_default_context())
            if SMTP_USERNAME:
                server.login(SMTP_USERNAME, SMTP_PASSWORD or "")
            server.sendmail(from_address.split("<")[-1].rstrip(">"), to, msg.as_string())

        logger.info(f"✅ SMTP email sent successfully via {SMTP_HOST}")
        return {"id": f"smtp-{datetime.utcnow().timestamp()}", "success": True}

    except Exception as e:
        logger.error(f"❌ SMTP send failed: {e}")
        raise Exception(f"SMTP failed: {str(e)}") from e


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
        if isinstance(result, dict):
            if result.get("errors"):
                logger.warning(f"MJML compilation warnings: {result['errors']}")
            return result.get("html", "")
        html = getattr(result, "html", None)
        return html if html is not None else str(result)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise Exception(f"Failed to compile MJML template: {str(e)}") from e


async def send_email(to: Union[str, list[str]], subject: str, mjml_content: str) -> dict:
    """
    Send an email using platform SMTP (if configured) or Resend (fallback)

    Raises:
        Exception: If no email service is configured or delivery fails
    """
    html_content = compile_mjml_to_html(mjml_content)
    recipients = [to] if isinstance(to, str) else to

    if SMTP_HOST:
        try:
            logger.info(f"📧 Sending email via SMTP: {SMTP_HOST}")
            return send_via_smtp(recipients, subject, html_content, EMAIL_FROM_ADDRESS)
        except Exception as e:
            logger.warning(f"⚠️ SMTP failed, falling back to Resend: {e}")

    if not RESEND_API_KEY:
        logger.error("❌ No email service configured - RESEND_API_KEY missing and no SMTP")
        raise Exception("Email service not configured")

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise Exception(f"Failed to send email: {str(e)}") from e


# ============================================
# Notification senders
# ============================================


async def send_booking_confirmation(to: str, booking, qr_tracking_url: str) -> dict:
    return await send_email(
        to=to,
        subject=f"Booking Confirmed - {booking.qr_code} | tradesbook.ie",
        mjml_content=booking_confirmation_template(booking, qr_tracking_url),
    )


async def send_new_lead_notification(to: str, installer_name: str, booking, lead_fee: float) -> dict:
    return await send_email(
        to=to,
        subject=f"New Installation Lead - {booking.service_type} | tradesbook.ie",
        mjml_content=installer_new_lead_template(installer_name, booking, lead_fee),
    )


async def send_lead_purchased_email(to: str, booking, installer) -> dict:
    """Tell the customer which installer took their job"""
    return await send_email(
        to=to,
        subject=f"Your Installer Is Confirmed - {booking.qr_code}",
        mjml_content=lead_purchased_template(booking, installer),
    )


async def send_admin_booking_notification(booking) -> dict:
    return await send_email(
        to=ADMIN_NOTIFICATION_EMAIL,
        subject=f"New Booking Created - {booking.qr_code}",
        mjml_content=admin_booking_notification_template(booking),
    )


async def send_refund_processed_email(to: str, installer_name: str, qr_code: str, amount: float, reason: str) -> dict:
    return await send_email(
        to=to,
        subject="Lead Refund Processed | tradesbook.ie",
        mjml_content=refund_processed_template(installer_name, qr_code, amount, reason),
    )


async def send_quietly(sender, *args, **kwargs) -> Optional[dict]:
    """Run a notification sender from a background task; delivery failures are logged, never raised"""
    try:
        return await sender(*args, **kwargs)
    except Exception as e:
        logger.error(f"❌ Notification {sender.__name__} failed: {e}")
        return None
