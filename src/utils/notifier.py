"""User notifications (email).

Delivery runs on the background pool. When ``SMTP_HOST`` is not configured the
message is only logged. Delivery failures are logged and never retried.
"""

import logging
import smtplib
from email.message import EmailMessage
from enum import Enum
from typing import Any, Dict, Optional, Tuple

import config
from utils import background

logger = logging.getLogger(__name__)


class EventKind(str, Enum):
    VERIFY_EMAIL = "VERIFY_EMAIL"
    APPLICATION_SUBMITTED = "APPLICATION_SUBMITTED"
    APPLICATION_APPROVED = "APPLICATION_APPROVED"
    APPLICATION_REJECTED = "APPLICATION_REJECTED"
    ROLE_CHANGED = "ROLE_CHANGED"
    MEMBER_REMOVED = "MEMBER_REMOVED"


def _render(event_kind: EventKind, name: str, payload: Dict[str, Any]) -> Tuple[str, str]:
    class_name = payload.get("class_name", "")
    if event_kind == EventKind.VERIFY_EMAIL:
        url = f"{config.FRONTEND_BASE_URL}/api/auth/verify-email?token={payload.get('token', '')}"
        return (
            "Please verify your email address",
            f"Hi {name},\n\nThanks for registering. Open the link below to verify your email:\n\n"
            f"{url}\n\nThe link expires in {config.VERIFICATION_TOKEN_EXPIRE_HOURS} hours.\n",
        )
    if event_kind == EventKind.APPLICATION_SUBMITTED:
        return (
            f"New join request for {class_name}",
            f"Hi {name},\n\n{payload.get('applicant', 'A user')} asked to join {class_name}.\n"
            f"Reason: {payload.get('reason') or '-'}\n",
        )
    if event_kind == EventKind.APPLICATION_APPROVED:
        return (
            f"You joined {class_name}",
            f"Hi {name},\n\nYour request to join {class_name} was approved.\n",
        )
    if event_kind == EventKind.APPLICATION_REJECTED:
        return (
            f"Your request to join {class_name}",
            f"Hi {name},\n\nYour request to join {class_name} was declined.\n",
        )
    if event_kind == EventKind.ROLE_CHANGED:
        return (
            f"Your role in {class_name} changed",
            f"Hi {name},\n\nYour role in {class_name} is now {payload.get('role')}.\n",
        )
    return (
        f"You were removed from {class_name}",
        f"Hi {name},\n\nYou are no longer a member of {class_name}.\n",
    )


class Notifier:
    """Sends notification emails without blocking the caller."""

    def notify(self, event_kind: EventKind, user, payload: Optional[Dict[str, Any]] = None) -> None:
        """Queue a notification for ``user``.

        Args:
            event_kind: What happened.
            user: Recipient ``UserModel``; its address is read on the calling
                thread so the session may close before delivery.
            payload: Event specific values used in the message body.
        """
        if user is None or not user.email:
            logger.warning("Skipping %s notification: recipient has no email", event_kind.value)
            return
        name = user.display_name or user.username
        subject, body = _render(event_kind, name, payload or {})
        background.submit(self._deliver, user.email, subject, body)

    def _deliver(self, recipient: str, subject: str, body: str) -> None:
        if not config.SMTP_HOST:
            logger.info("Mail delivery disabled, would send '%s' to %s", subject, recipient)
            return

        message = EmailMessage()
        message["From"] = config.MAIL_FROM
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        try:
            with smtplib.SMTP(config.SMTP_HOST, config.SMTP_PORT, timeout=10) as smtp:
                if config.SMTP_USE_TLS:
                    smtp.starttls()
                if config.SMTP_USERNAME:
                    smtp.login(config.SMTP_USERNAME, config.SMTP_PASSWORD or "")
                smtp.send_message(message)
            logger.info("Email '%s' sent to %s", subject, recipient)
        except (smtplib.SMTPException, OSError):
            logger.exception("Failed to send email '%s' to %s", subject, recipient)
