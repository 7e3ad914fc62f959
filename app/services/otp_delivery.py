"""Who receives a freshly issued verification code.

The choice is made once at startup: either the registrant verifies their own
address, or a fixed list of approvers receives the code and relays it, which
gates activation behind a human without a separate approval workflow.
"""
import logging

from app.core.config import Settings
from app.models.user import User
from app.services.email import Notifier
from app.utils.email_templates import render_admin_approval, render_otp

logger = logging.getLogger(__name__)


class NotifyRegistrant:
    subject = "Verify your email"

    def __init__(self, settings: Settings):
        self.minutes = settings.otp.exp_minutes

    async def deliver(self, notifier: Notifier, user: User, code: str) -> bool:
        return await notifier.send(user.email, self.subject, render_otp(code, self.minutes))

    def registered_message(self, delivered: bool) -> str:
        if delivered:
            return "Registered. OTP sent."
        return 'Registered. OTP could not be sent right now. Use "Resend OTP".'

    def resent_message(self, delivered: bool) -> str:
        return "OTP resent" if delivered else "OTP could not be sent right now. Try again shortly."


class NotifyApprovers:
    subject = "New Admin Registration Approval"

    def __init__(self, settings: Settings):
        self.minutes = settings.otp.exp_minutes
        self.base_url = settings.base_url
        self.approvers = list(settings.approver_emails)

    async def deliver(self, notifier: Notifier, user: User, code: str) -> bool:
        html = render_admin_approval(
            email=user.email,
            username=user.username,
            code=code,
            minutes=self.minutes,
            base_url=self.base_url,
        )
        return await notifier.send(self.approvers, self.subject, html)

    def registered_message(self, delivered: bool) -> str:
        if delivered:
            return "Registered. Awaiting admin approval."
        return "Registered. Admin approval pending (email send failed; try resend)."

    def resent_message(self, delivered: bool) -> str:
        return "Approval OTP resent to admin" if delivered else "OTP could not be sent right now. Try again shortly."


OtpDelivery = NotifyRegistrant | NotifyApprovers


def select_otp_delivery(settings: Settings) -> OtpDelivery:
    if settings.send_otp_to_admin_only and settings.approver_emails:
        logger.info("Verification codes go to %d approver(s)", len(settings.approver_emails))
        return NotifyApprovers(settings)
    if settings.send_otp_to_admin_only:
        logger.warning("SEND_OTP_TO_ADMIN_ONLY is set but APPROVER_EMAILS is empty; mailing registrants")
    return NotifyRegistrant(settings)
