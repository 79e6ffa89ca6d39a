# authsvc/infra/mail/smtp_notifier.py
from __future__ import annotations

import smtplib
from dataclasses import dataclass
from email.mime.text import MIMEText
from uuid import UUID

from authsvc.services._shared.ports import EmailDirectory, Notifier

WARNING_SUBJECT = "Warning"


@dataclass(slots=True)
class SMTPWarningNotifier(Notifier):
    """
    Deliver warnings as plain-text email to the user's address.

    The address is resolved through ``users`` on every call. Any failure
    (unknown user, connection, authentication, rejected recipient) is raised
    to the caller.
    """

    users: EmailDirectory
    host: str
    port: int = 25
    sender: str = "no-reply@localhost"
    username: str | None = None
    password: str | None = None
    use_tls: bool = False
    timeout: float = 10.0

    def send_warning(self, user_id: UUID, message: str) -> None:
        recipient = self.users.get_email(user_id)

        msg = MIMEText(message, "plain", "utf-8")
        msg["Subject"] = WARNING_SUBJECT
        msg["From"] = self.sender
        msg["To"] = recipient

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username and self.password:
                server.login(self.username, self.password)
            server.send_message(msg)
