import logging

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from app.core.config import Settings

logger = logging.getLogger(__name__)


def build_mail_config(settings: Settings) -> ConnectionConfig:
    return ConnectionConfig(
        MAIL_USERNAME=settings.mail_username,
        MAIL_PASSWORD=settings.mail_password,
        MAIL_FROM=settings.mail_sender,
        MAIL_PORT=settings.mail_port,
        MAIL_SERVER=settings.mail_host,
        MAIL_FROM_NAME=settings.mail_from_name,
        MAIL_STARTTLS=settings.mail_use_tls,
        MAIL_SSL_TLS=settings.mail_use_ssl,
        USE_CREDENTIALS=bool(settings.mail_username),
        SUPPRESS_SEND=int(settings.mail_suppress_send),
    )


class Notifier:
    """Best-effort outbound mail. ``send`` reports failure instead of raising."""

    def __init__(self, mailer: FastMail):
        self.mailer = mailer

    @classmethod
    def from_settings(cls, settings: Settings) -> "Notifier":
        return cls(FastMail(build_mail_config(settings)))

    async def send(self, to: str | list[str], subject: str, html: str) -> bool:
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            logger.warning("Mail %r dropped: no recipients", subject)
            return False
        message = MessageSchema(
            subject=subject, recipients=recipients, body=html, subtype=MessageType.html
        )
        try:
            await self.mailer.send_message(message)
        except Exception as exc:
            # Mail never blocks the auth flow; callers adjust their message instead.
            logger.warning("Mail %r to %s failed: %s", subject, ", ".join(recipients), exc)
            return False
        logger.info("Mail %r sent to %s", subject, ", ".join(recipients))
        return True
