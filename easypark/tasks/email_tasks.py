"""Outgoing email tasks."""

import logging

import httpx

from easypark.config import settings
from easypark.tasks.broker import broker

logger = logging.getLogger(__name__)

RESEND_API_URL = "https://api.resend.com/emails"


def reset_email_html(reset_link: str) -> str:
    minutes = settings.PASSWORD_RESET_TOKEN_TTL_MINUTES
    return (
        "<p>We received a request to reset your EasyPark password.</p>"
        f'<p><a href="{reset_link}">Reset your password</a></p>'
        f"<p>This link expires in {minutes} minutes. "
        "If you did not request a reset you can ignore this email.</p>"
    )


@broker.task
async def send_password_reset_email_task(email: str, reset_link: str) -> dict:
    """Deliver a password reset link through Resend, or log it when unconfigured."""
    if not settings.RESEND_API_KEY or not settings.RESET_PASSWORD_FROM_EMAIL:
        logger.info("Email delivery not configured; reset link for %s: %s", email, reset_link)
        return {"status": "logged"}

    async with httpx.AsyncClient(timeout=10.0) as client:
        response = await client.post(
            RESEND_API_URL,
            headers={"Authorization": f"Bearer {settings.RESEND_API_KEY}"},
            json={
                "from": settings.RESET_PASSWORD_FROM_EMAIL,
                "to": [email],
                "subject": "Reset your EasyPark password",
                "html": reset_email_html(reset_link),
            },
        )
    if response.status_code >= 400:
        logger.error("Resend rejected reset email for %s: %s %s", email, response.status_code, response.text)
        response.raise_for_status()
    logger.info("Password reset email sent to %s", email)
    return {"status": "sent"}


async def enqueue_password_reset_email(email: str, reset_link: str) -> None:
    """Hand the email to the worker, or send it inline when the broker is disabled."""
    if settings.TASK_BROKER_ENABLED:
        await send_password_reset_email_task.kiq(email, reset_link)
    else:
        await send_password_reset_email_task(email, reset_link)
