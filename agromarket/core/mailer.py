import logging
import smtplib
from email.message import EmailMessage
from typing import Optional

from fastapi import Request, status
from starlette.concurrency import run_in_threadpool

from . import config
from .errors import AppError

logger = logging.getLogger(__name__)


class SMTPMailer:
    """Send plain-text mail through an SMTP relay (Gmail by default)."""

    def __init__(
        self,
        host: Optional[str] = None,
        port: Optional[int] = None,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: Optional[str] = None,
        use_tls: Optional[bool] = None,
    ):
        self.host = host or config.SMTP_HOST
        self.port = port or config.SMTP_PORT
        self.username = username if username is not None else config.SMTP_USER
        self.password = password if password is not None else config.SMTP_PASSWORD
        self.sender = sender or config.EMAIL_FROM
        self.use_tls = config.SMTP_USE_TLS if use_tls is None else use_tls

    def _send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=10) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send(self, to: str, subject: str, text: str) -> None:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = to
        message["Subject"] = subject
        message.set_content(text)
        try:
            await run_in_threadpool(self._send, message)
        except Exception as e:
            logger.error(f"Failed to send email to {to}: {str(e)}")
            raise AppError("Email sending failed", status.HTTP_500_INTERNAL_SERVER_ERROR)
        logger.info(f"Sent '{subject}' email to {to}")


def get_mailer(request: Request):
    return request.app.state.mailer
