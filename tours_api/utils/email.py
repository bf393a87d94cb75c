"""
Outgoing email over SMTP.

Only used for password reset messages. Credentials come from settings
(EMAIL_HOST, EMAIL_PORT, EMAIL_USERNAME, EMAIL_PASSWORD, EMAIL_FROM).
"""

import logging
import smtplib
from email.message import EmailMessage

from tours_api.config import settings

logger = logging.getLogger(__name__)


def send_email(to: str, subject: str, message: str) -> None:
    """
    Send a plain-text email.

    Args:
        to: Recipient address
        subject: Subject line
        message: Plain-text body

    Raises:
        smtplib.SMTPException / OSError: If the message could not be delivered
            to the SMTP server
    """
    email = EmailMessage()
    email["From"] = settings.EMAIL_FROM
    email["To"] = to
    email["Subject"] = subject
    email.set_content(message)

    with smtplib.SMTP(settings.EMAIL_HOST, settings.EMAIL_PORT, timeout=10) as smtp:
        if settings.EMAIL_PORT != 25:
            smtp.starttls()
        if settings.EMAIL_USERNAME:
            smtp.login(settings.EMAIL_USERNAME, settings.EMAIL_PASSWORD)
        smtp.send_message(email)

    logger.info(f"Email '{subject}' sent")
