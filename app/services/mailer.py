"""
Share invitations over SMTP.

smtplib is blocking, so delivery runs in the threadpool. With no SMTP_HOST
configured the message is only logged, which keeps local development usable.
"""

import logging
import smtplib
import ssl
from datetime import date
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from html import escape
from typing import List, Optional

from fastapi.concurrency import run_in_threadpool

from app.config import SMTP_HOST, SMTP_PORT, SMTP_USERNAME, SMTP_PASSWORD, SMTP_USE_TLS, MAIL_FROM
from app.services.errors import MailDeliveryError

logger = logging.getLogger(__name__)


def build_share_invitation(
    recipients: List[str],
    owner_name: str,
    itinerary_title: str,
    itinerary_date: date,
    share_link: str,
    password: str,
    message: Optional[str] = None,
    sender: str = MAIL_FROM,
) -> MIMEMultipart:
    day = itinerary_date.strftime("%A, %B %d, %Y")
    subject = f"{owner_name} shared an itinerary with you: {itinerary_title}"

    text_lines = [
        f"{owner_name} has shared a location itinerary with you.",
        "",
        f"{itinerary_title} - {day}",
        "",
    ]
    if message:
        text_lines += [message, ""]
    text_lines += [
        f"View it here: {share_link}",
        f"Password: {password}",
    ]

    note = f"<p style=\"font-style: italic;\">{escape(message)}</p>" if message else ""
    html = f"""\
<html>
  <body style="font-family: sans-serif; color: #333;">
    <p><strong>{escape(owner_name)}</strong> has shared a location itinerary with you.</p>
    <h2 style="margin-bottom: 0;">{escape(itinerary_title)}</h2>
    <p style="margin-top: 4px;">{day}</p>
    {note}
    <p><a href="{escape(share_link)}">Open the itinerary</a></p>
    <p>Password: <code>{escape(password)}</code></p>
  </body>
</html>
"""

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = sender
    msg["To"] = ", ".join(recipients)
    msg.attach(MIMEText("\n".join(text_lines), "plain"))
    msg.attach(MIMEText(html, "html"))
    return msg


class Mailer:

    def __init__(
        self,
        host: Optional[str] = SMTP_HOST,
        port: int = SMTP_PORT,
        username: Optional[str] = SMTP_USERNAME,
        password: Optional[str] = SMTP_PASSWORD,
        use_tls: bool = SMTP_USE_TLS,
        sender: str = MAIL_FROM,
        timeout: float = 10,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def _deliver(self, msg: MIMEMultipart, recipients: List[str]) -> None:
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, context=ssl.create_default_context(), timeout=self.timeout)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if self.use_tls and self.port != 465:
                server.starttls(context=ssl.create_default_context())
            if self.username and self.password:
                server.login(self.username, self.password)
            server.sendmail(self.sender, recipients, msg.as_string())
        finally:
            server.quit()

    async def send_share_invitation(
        self,
        recipients: List[str],
        owner_name: str,
        itinerary_title: str,
        itinerary_date: date,
        share_link: str,
        password: str,
        message: Optional[str] = None,
    ) -> None:
        """
        Send one invitation to all `recipients`.

        Raises:
            MailDeliveryError: the SMTP exchange failed for any reason.
        """
        msg = build_share_invitation(
            recipients, owner_name, itinerary_title, itinerary_date, share_link, password, message, self.sender
        )
        if not self.host:
            logger.info(f"SMTP not configured; share invitation for '{itinerary_title}' to {recipients} not sent")
            return

        try:
            await run_in_threadpool(self._deliver, msg, recipients)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send share invitation to {recipients}: {e}")
            raise MailDeliveryError("Failed to send share notification email") from e
        logger.info(f"Share invitation for '{itinerary_title}' sent to {len(recipients)} recipient(s)")


def get_mailer() -> Mailer:
    return Mailer()
