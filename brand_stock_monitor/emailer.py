"""Email notifier.

Sends inventory alerts to the configured distribution list.  SendGrid's v3
API is used when ``SENDGRID_API_KEY`` is set; otherwise SMTP (STARTTLS on
587, SSL elsewhere).  Sending never raises: every outcome is returned as a
``{"success": ..., ...}`` dict.
"""

from __future__ import annotations

import html
import logging
import re
import smtplib
import ssl
from datetime import datetime, timezone
from email.message import EmailMessage
from typing import Iterable, List, Optional, Sequence

import requests

from .config import Settings
from .stock import StockVerdict
from .utils import HTTPError, get_http_session, request

logger = logging.getLogger(__name__)

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"

_EMAIL_RE = re.compile(r"^[^@\s,;<>]+@[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]*[A-Za-z0-9])?)+$")
_SUBJECT_EMOJI_RE = re.compile("[\U0001F6A8✅\U0001F9EA⚠️]")

_HTML_TEMPLATE = """<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Arial, sans-serif; line-height: 1.6; color: #333; max-width: 600px; margin: 0 auto; padding: 20px;">
    <div style="background: #f8f9fa; padding: 20px; border-radius: 8px; margin-bottom: 20px;">
        <h2 style="margin: 0; color: #212529;">{heading}</h2>
    </div>
    <div style="background: white; padding: 20px; border-radius: 8px; border: 1px solid #dee2e6;">
        <pre style="font-family: 'Courier New', monospace; white-space: pre-wrap; margin: 0; font-size: 14px;">{body}</pre>
    </div>
    <div style="margin-top: 20px; padding-top: 20px; border-top: 1px solid #dee2e6; font-size: 12px; color: #6c757d;">
        <p>This is an automated notification from your Shopify Brand Inventory Monitor.</p>
        <p>Please do not reply to this email.</p>
    </div>
</body>
</html>"""


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def is_valid_email(address: str) -> bool:
    return bool(address) and len(address) <= 254 and _EMAIL_RE.match(address) is not None


def valid_recipients(addresses: Iterable[str]) -> List[str]:
    """Return the well-formed addresses from *addresses*, in order."""
    out: List[str] = []
    for address in addresses:
        address = (address or "").strip()
        if not address:
            continue
        if is_valid_email(address):
            out.append(address)
        else:
            logger.warning("Skipping invalid email recipient: %r", address)
    return out


def render_html(subject: str, body_text: str) -> str:
    heading = _SUBJECT_EMOJI_RE.sub("", subject).strip()
    return _HTML_TEMPLATE.format(heading=html.escape(heading), body=html.escape(body_text))


# ---- Message builders --------------------------------------------------------

def build_out_of_stock_message(vendor: str, verdict: StockVerdict, first_check: bool = False) -> tuple[str, str]:
    subject = f"\U0001F6A8 ALL {vendor} Products OUT OF STOCK"
    lines = [
        f'All {verdict.total_products} products for "{vendor}" are now out of stock.',
        "",
        "⚠️ ACTION REQUIRED: Hide this brand from your brand page.",
        "",
        f"Brand: {vendor}",
        f"Total Products: {verdict.total_products}",
        f"Out of Stock: {verdict.oos_products}",
    ]
    if first_check:
        lines.append("Note: This is the first check for this brand")
    lines += ["", f"Timestamp: {_now()}"]
    return subject, "\n".join(lines)


def build_back_in_stock_message(vendor: str, verdict: StockVerdict) -> tuple[str, str]:
    subject = f"✅ {vendor} Products BACK IN STOCK"
    body = "\n".join([
        f'Good news! {verdict.in_stock_products} product(s) for "{vendor}" are back in stock.',
        "",
        "✅ ACTION REQUIRED: Show this brand on your brand page.",
        "",
        f"Brand: {vendor}",
        f"Total Products: {verdict.total_products}",
        f"In Stock: {verdict.in_stock_products}",
        f"Out of Stock: {verdict.oos_products}",
        "",
        f"Timestamp: {_now()}",
    ])
    return subject, body


def build_summary_message(oos_brands: Sequence[tuple[str, int]], total_brands: int) -> tuple[str, str]:
    """Consolidated message for a manual check; *oos_brands* holds ``(brand, total_products)``."""
    count = len(oos_brands)
    rule = "=" * 50
    lines = [
        f"Manual inventory check completed. Found {count} brand(s) completely out of stock:",
        "",
        "⚠️ BRANDS OUT OF STOCK:",
        rule,
        "",
    ]
    for index, (brand, total) in enumerate(oos_brands, start=1):
        lines += [f"{index}. {brand}", f"   Total Products: {total}", "   Status: ALL OUT OF STOCK", ""]
    lines += [
        rule,
        f"Total Brands Monitored: {total_brands}",
        f"Brands Out of Stock: {count}",
        f"Brands In Stock: {total_brands - count}",
        "",
        "⚠️ ACTION REQUIRED: Hide these brands from your brand page.",
        "",
        f"Timestamp: {_now()}",
    ]
    return f"\U0001F6A8 Manual Check: {count} Brand(s) Out of Stock", "\n".join(lines)


def build_test_message(settings: Settings, method: str) -> tuple[str, str]:
    body = (
        "This is a test email to verify your email configuration is working.\n\n"
        f"Method: {method}\n"
        f"From: {settings.email_from}\n"
        f"To: {', '.join(settings.email_to)}\n"
        f"Timestamp: {_now()}\n\n"
        "If you're seeing this, your email setup is working correctly!"
    )
    return "\U0001F9EA Test Email from Shopify Monitor", body


# ---- Dispatcher --------------------------------------------------------------

class EmailDispatcher:
    """Formats and sends one email through the configured transport."""

    def __init__(self, settings: Settings, session: Optional[requests.Session] = None):
        self.settings = settings
        self._session = session

    @property
    def method(self) -> Optional[str]:
        if self.settings.sendgrid_api_key:
            return "sendgrid"
        if self.settings.smtp_configured:
            return "smtp"
        return None

    def send(self, subject: str, body_text: str) -> dict:
        logger.info("Attempting to send email: %s", subject)
        method = self.method
        if method is None:
            logger.error("No email service configured; set SENDGRID_API_KEY or SMTP_HOST/SMTP_USERNAME/SMTP_PASSWORD")
            return {"success": False, "error": "No email service configured"}

        recipients = valid_recipients(self.settings.email_to)
        if not recipients:
            logger.error("No valid email recipients configured")
            return {"success": False, "error": "No valid email recipients"}

        logger.info("Sending to %d recipient(s): %s", len(recipients), ", ".join(recipients))
        html_body = render_html(subject, body_text)
        if method == "sendgrid":
            error = self._send_sendgrid(subject, html_body, recipients)
        else:
            error = self._send_smtp(subject, body_text, html_body, recipients)

        if error:
            return {"success": False, "error": error}
        logger.info("Email sent successfully to %d recipient(s): %s", len(recipients), subject)
        return {"success": True, "method": method, "recipients": len(recipients)}

    def sendgrid_payload(self, subject: str, html_body: str, recipients: Sequence[str]) -> dict:
        return {
            "personalizations": [{"to": [{"email": r} for r in recipients]}],
            "from": {"email": self.settings.email_from, "name": self.settings.email_from_name},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_body}],
            "tracking_settings": {
                "click_tracking": {"enable": False},
                "open_tracking": {"enable": False},
            },
            "categories": ["inventory-alert"],
        }

    def _send_sendgrid(self, subject: str, html_body: str, recipients: Sequence[str]) -> Optional[str]:
        session = self._session or get_http_session()
        try:
            resp = request(
                session,
                "POST",
                SENDGRID_URL,
                attempts=1,
                json=self.sendgrid_payload(subject, html_body, recipients),
                headers={"Authorization": f"Bearer {self.settings.sendgrid_api_key}"},
                timeout=self.settings.http_timeout_seconds,
            )
        except HTTPError as e:
            logger.error("SendGrid request failed: %s", e)
            return str(e)
        finally:
            if self._session is None:
                session.close()

        if resp.status_code != 202:
            logger.error("SendGrid error: %s", resp.text)
            return resp.text or f"SendGrid returned status {resp.status_code}"
        return None

    def _send_smtp(self, subject: str, body_text: str, html_body: str, recipients: Sequence[str]) -> Optional[str]:
        s = self.settings
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"{s.email_from_name} <{s.email_from}>" if s.email_from_name else s.email_from
        msg["To"] = ", ".join(recipients)
        msg.set_content(body_text)
        msg.add_alternative(html_body, subtype="html")

        host, port = s.smtp_host, int(s.smtp_port)
        timeout = s.http_timeout_seconds
        try:
            if s.smtp_use_tls and port == 587:
                with smtplib.SMTP(host, port, timeout=timeout) as server:
                    server.ehlo()
                    server.starttls(context=ssl.create_default_context())
                    server.login(s.smtp_username, s.smtp_password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP_SSL(host, port, context=ssl.create_default_context(), timeout=timeout) as server:
                    server.login(s.smtp_username, s.smtp_password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.exception("Failed to send email via SMTP")
            return str(e) or e.__class__.__name__
        return None


__all__ = [
    "EmailDispatcher",
    "build_back_in_stock_message",
    "build_out_of_stock_message",
    "build_summary_message",
    "build_test_message",
    "is_valid_email",
    "render_html",
    "valid_recipients",
]
