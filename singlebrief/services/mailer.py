# singlebrief/services/mailer.py
import asyncio
import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from pathlib import Path
from typing import Any, Optional

import httpx
from fastapi.templating import Jinja2Templates

from singlebrief.settings.config import settings

logger = logging.getLogger(__name__)

TEMPLATE_DIR = Path(__file__).resolve().parents[1] / "templates"
templates = Jinja2Templates(directory=str(TEMPLATE_DIR))


class EmailDeliveryError(RuntimeError):
    pass


def render_email(name: str, ctx: dict) -> tuple[str, str]:
    """Render templates/email/<name>.html and .txt with the same context."""
    html = templates.get_template(f"email/{name}.html").render(ctx)
    text = templates.get_template(f"email/{name}.txt").render(ctx)
    return html, text


def _smtp_send(to_email: str, subject: str, text_body: str, html_body: Optional[str], from_addr: str,
               reply_to: Optional[str] = None) -> None:
    """
    Blocking SMTP send. Uses STARTTLS/SSL based on settings; logs in if SMTP_USERNAME is provided.
    Keeps From == authenticated user for Gmail-like relays; puts branded address in Reply-To.
    """
    _, bare_from = parseaddr(from_addr)
    if settings.SMTP_USERNAME and bare_from.lower() != settings.SMTP_USERNAME.lower():
        if not reply_to:
            reply_to = from_addr
        from_addr = settings.SMTP_USERNAME  # enforce From == authenticated user
        bare_from = settings.SMTP_USERNAME

    msg = MIMEMultipart("alternative")
    msg["From"] = from_addr
    msg["To"] = to_email
    msg["Subject"] = subject
    if reply_to:
        msg["Reply-To"] = reply_to

    msg.attach(MIMEText(text_body or "", "plain", "utf-8"))
    if html_body:
        msg.attach(MIMEText(html_body, "html", "utf-8"))

    host = settings.SMTP_HOST
    port = int(settings.SMTP_PORT or 587)

    if settings.SMTP_USE_SSL:
        context = ssl.create_default_context()
        with smtplib.SMTP_SSL(host, port, context=context, timeout=30) as s:
            if settings.SMTP_USERNAME:
                s.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD or "")
            s.sendmail(bare_from, [to_email], msg.as_string())
    else:
        with smtplib.SMTP(host, port, timeout=30) as s:
            s.ehlo()
            if settings.SMTP_USE_TLS:
                s.starttls(context=ssl.create_default_context())
                s.ehlo()
            if settings.SMTP_USERNAME:
                s.login(settings.SMTP_USERNAME, settings.SMTP_PASSWORD or "")
            s.sendmail(bare_from, [to_email], msg.as_string())


async def _resend_send(to_email: str, subject: str, text_body: str, html_body: Optional[str],
                       from_addr: str) -> dict[str, Any]:
    if not settings.RESEND_API_KEY:
        raise EmailDeliveryError("RESEND_API_KEY is not configured")
    payload = {
        "from": from_addr,
        "to": [to_email],
        "subject": subject,
        "text": text_body or "",
    }
    if html_body:
        payload["html"] = html_body
    headers = {"Authorization": f"Bearer {settings.RESEND_API_KEY}"}
    async with httpx.AsyncClient(timeout=30) as client:
        r = await client.post(settings.RESEND_API_URL, json=payload, headers=headers)
        r.raise_for_status()
        return r.json()


async def send_email(
    to_email: str,
    subject: str,
    text_body: str,
    html_body: Optional[str] = None,
    from_addr: Optional[str] = None,
) -> dict[str, Any]:
    """
    Send one email through the configured transport.
    Returns the provider payload; raises EmailDeliveryError on any failure.
    """
    transport = (settings.EMAIL_TRANSPORT or "resend").lower()
    sender = from_addr or settings.EMAIL_FROM

    if transport == "dummy":
        logger.info("DUMMY EMAIL (not sent) to=%s subject=%r\n%s", to_email, subject, text_body)
        return {"id": f"dummy:{to_email}"}

    try:
        if transport == "smtp":
            await asyncio.to_thread(_smtp_send, to_email, subject, text_body, html_body, sender)
            return {"id": f"smtp:{to_email}"}
        return await _resend_send(to_email, subject, text_body, html_body, sender)
    except (smtplib.SMTPException, OSError, httpx.HTTPError, ValueError) as e:
        raise EmailDeliveryError(f"{transport} delivery to {to_email} failed: {e}") from e


async def send_many(recipients: list[str], subject: str, text_body: str,
                    html_body: Optional[str] = None) -> list[dict[str, Any]]:
    """Send the same message to each recipient; one result record per address."""
    async def _one(email: str) -> dict[str, Any]:
        try:
            response = await send_email(email, subject, text_body, html_body)
        except EmailDeliveryError as e:
            logger.warning("Failed to send email to %s: %s", email, e)
            return {"email": email, "success": False, "error": str(e)}
        logger.info("Email sent successfully to %s", email)
        return {"email": email, "success": True, "response": response}

    return list(await asyncio.gather(*(_one(e) for e in recipients)))


__all__ = ["EmailDeliveryError", "render_email", "send_email", "send_many", "templates"]
