import pytest
from fastapi_mail import FastMail

from app.core.config import Settings
from app.models.user import User
from app.services.email import Notifier, build_mail_config
from app.services.otp_delivery import NotifyApprovers, NotifyRegistrant, select_otp_delivery

pytestmark = pytest.mark.asyncio


class BrokenMailer:
    async def send_message(self, message):
        raise ConnectionRefusedError("smtp down")


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, mail_suppress_send=True, **overrides)


async def test_notifier_sends_through_fastapi_mail():
    mailer = FastMail(build_mail_config(_settings()))
    notifier = Notifier(mailer)

    with mailer.record_messages() as outbox:
        assert await notifier.send("alice@x.com", "Verify your email", "<p>hi</p>") is True

    assert len(outbox) == 1
    assert outbox[0]["Subject"] == "Verify your email"
    assert "alice@x.com" in outbox[0]["To"]


async def test_notifier_swallows_transport_failure():
    notifier = Notifier(BrokenMailer())
    assert await notifier.send(["a@x.com"], "Password Reset", "<p>x</p>") is False


async def test_notifier_without_recipients():
    notifier = Notifier(BrokenMailer())
    assert await notifier.send([], "Subject", "<p>x</p>") is False


async def test_strategy_selection():
    assert isinstance(select_otp_delivery(_settings()), NotifyRegistrant)
    assert isinstance(
        select_otp_delivery(_settings(send_otp_to_admin_only=True, approver_emails=["ops@x.com"])),
        NotifyApprovers,
    )
    # Admin-only mode without anyone to approve falls back to the registrant.
    assert isinstance(select_otp_delivery(_settings(send_otp_to_admin_only=True)), NotifyRegistrant)


async def test_approval_mail_carries_registrant_details(notifier):
    strategy = NotifyApprovers(_settings(approver_emails=["ops@x.com"], base_url="https://admin.x.com"))
    user = User(id="u1", username="alice", email="alice@x.com")

    assert await strategy.deliver(notifier, user, "123456") is True
    html = notifier.outbox[-1]["html"]
    assert "alice@x.com" in html
    assert "123456" in html
    assert "https://admin.x.com/verify-email?email=alice%40x.com" in html
