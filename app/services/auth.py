"""Authentication and session lifecycle.

``AuthService`` is the only place with business rules; the ledgers it calls
are plain persistence. One instance serves one request and holds no state
beyond its collaborators, so everything that must survive a request is
committed to the database before the method returns or raises.

Per user the lifecycle is::

    registered (unverified) --verify--> verified --login--> session(s)

with a transient lock after repeated bad passwords.
"""
import datetime as dt
import logging
from typing import Callable
from urllib.parse import quote

import jwt
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import Settings
from app.core.errors import (
    Conflict,
    DuplicateKeyError,
    Forbidden,
    Locked,
    RateLimited,
    Unauthorized,
    ValidationError,
    unauthorized_uniform,
)
from app.core.redis import otp_issue_lock
from app.models.user import User
from app.schemas.auth import LoginOut, MessageOut, RegisterOut, TokenPair, UserProfile, UserPublic
from app.services import credentials, otp as otp_ledger, password_reset as reset_ledger
from app.services import refresh_tokens as refresh_ledger
from app.services.codes import generate_numeric_code, generate_opaque_token, matches_hash, sha256_hex
from app.services.email import Notifier
from app.services.otp_delivery import OtpDelivery
from app.services.password import hash_password, needs_rehash, verify_password
from app.services.tokens import CLAIM_KEYS, TokenSigner, claims_for
from app.utils.email_templates import render_password_reset
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

FORGOT_PASSWORD_MESSAGE = "If email exists a reset link was sent"
INVALID_RESET_MESSAGE = "Invalid or expired token"
REVOKED_REFRESH_MESSAGE = "Refresh token revoked or invalid"


def public_user(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        email=user.email,
        username=user.username,
        fullName=user.full_name,
        role=user.role,
    )


class AuthService:
    def __init__(
        self,
        db: AsyncSession,
        settings: Settings,
        notifier: Notifier,
        otp_delivery: OtpDelivery,
        *,
        signer: TokenSigner | None = None,
        redis_conn: Redis | None = None,
        clock: Callable[[], dt.datetime] = utcnow,
    ):
        self.db = db
        self.settings = settings
        self.notifier = notifier
        self.otp_delivery = otp_delivery
        self.signer = signer or TokenSigner(settings)
        self.redis = redis_conn
        self.clock = clock

    # -- registration & verification ---------------------------------------

    async def register(
        self, *, username: str | None, email: str | None, password: str | None, full_name: str | None = None
    ) -> RegisterOut:
        if not username or not email or not password:
            raise ValidationError("username, email and password are required")

        allowed = self.settings.allowed_admin_emails
        if allowed and credentials.normalize_email(email) not in allowed:
            raise Forbidden("Registration not allowed for this email")

        if await credentials.exists(self.db, email=email, username=username):
            raise Conflict("User already exists")

        try:
            user = await credentials.create(
                self.db,
                username=username,
                email=email,
                password_hash=hash_password(password),
                full_name=full_name,
            )
            await self.db.commit()
        except DuplicateKeyError as exc:
            raise Conflict("User already exists") from exc
        logger.info("Registered user %s", user.id)

        try:
            delivered = await self._issue_otp(user)
        except RateLimited:
            delivered = False
        if not delivered:
            logger.warning("Verification code for new user %s was not delivered", user.id)
        return RegisterOut(message=self.otp_delivery.registered_message(delivered), email=user.email)

    async def resend_otp(self, email: str) -> MessageOut:
        user = await credentials.find_by_email(self.db, email)
        if user is None:
            return MessageOut(message="If account exists, OTP resent")
        if user.email_verified:
            return MessageOut(message="Email already verified")
        delivered = await self._issue_otp(user)
        return MessageOut(message=self.otp_delivery.resent_message(delivered))

    async def _issue_otp(self, user: User) -> bool:
        otp_settings = self.settings.otp
        async with otp_issue_lock(self.redis, user.id):
            now = self.clock()
            recent = await otp_ledger.find_latest_unused(self.db, user.id)
            if recent is not None:
                age = (now - recent.created_at).total_seconds()
                if age < otp_settings.resend_cooldown_seconds:
                    raise RateLimited("Please wait before requesting another OTP")

            await otp_ledger.invalidate_all_unused(self.db, user.id)
            code = generate_numeric_code(otp_settings.length)
            await otp_ledger.create(
                self.db,
                user_id=user.id,
                code_hash=sha256_hex(code),
                expires_at=now + dt.timedelta(minutes=otp_settings.exp_minutes),
                created_at=now,
            )
            await self.db.commit()

        logger.info("Issued verification code for user %s", user.id)
        return await self.otp_delivery.deliver(self.notifier, user, code)

    async def verify_email(self, email: str, code: str) -> MessageOut:
        user = await credentials.find_by_email(self.db, email)
        if user is None:
            raise unauthorized_uniform()
        if user.email_verified:
            return MessageOut(message="Already verified")

        otp = await otp_ledger.find_latest_unused(self.db, user.id)
        if otp is None:
            raise ValidationError("OTP not found")
        if otp.expires_at < self.clock():
            raise ValidationError("OTP expired")

        if otp.attempts >= self.settings.otp.max_attempts:
            otp.used = True
            await otp_ledger.save(self.db, otp)
            await self.db.commit()
            raise RateLimited("Too many attempts. Request new OTP.")

        if not matches_hash(code, otp.code_hash):
            otp.attempts += 1
            await otp_ledger.save(self.db, otp)
            await self.db.commit()
            raise ValidationError("Invalid OTP")

        otp.used = True
        await otp_ledger.save(self.db, otp)
        user.email_verified = True
        await credentials.save(self.db, user)
        await self.db.commit()
        logger.info("Email verified for user %s", user.id)
        return MessageOut(message="Email verified")

    # -- sessions -----------------------------------------------------------

    async def login(self, email_or_username: str, password: str) -> LoginOut:
        user = await credentials.find_by_email_or_username(self.db, email_or_username)
        if user is None:
            raise unauthorized_uniform()
        if not user.is_active:
            raise Forbidden("Account disabled")

        now = self.clock()
        if user.is_locked(now):
            raise Locked("Account temporarily locked. Try later.")

        if not verify_password(password, user.password_hash):
            await self._record_failed_login(user, now)
            raise unauthorized_uniform()

        # A correct password clears the counters even if the login is refused below.
        user.reset_login_security(now)
        if not user.email_verified:
            await credentials.save(self.db, user)
            await self.db.commit()
            raise Forbidden("Email not verified")

        if needs_rehash(user.password_hash):
            user.password_hash = hash_password(password)
        user.last_login = now
        await credentials.save(self.db, user)

        access_token, refresh_token = self.signer.issue_pair(claims_for(user))
        await self._store_refresh(user.id, refresh_token, now)
        await self.db.commit()
        logger.info("User %s logged in", user.id)
        return LoginOut(accessToken=access_token, refreshToken=refresh_token, user=public_user(user))

    async def _record_failed_login(self, user: User, now: dt.datetime) -> None:
        policy = self.settings.login_security
        user.login_failure_count = (user.login_failure_count or 0) + 1
        user.login_last_attempt_at = now
        if user.login_failure_count >= policy.max_failures:
            user.login_locked_until = now + dt.timedelta(minutes=policy.lock_minutes)
            user.login_failure_count = 0
            logger.warning("User %s locked for %d minutes after repeated failures", user.id, policy.lock_minutes)
        await credentials.save(self.db, user)
        await self.db.commit()

    async def _store_refresh(self, user_id: str, refresh_token: str, now: dt.datetime):
        return await refresh_ledger.create(
            self.db,
            user_id=user_id,
            token_hash=sha256_hex(refresh_token),
            expires_at=now + dt.timedelta(days=self.settings.refresh_token_days),
            created_at=now,
        )

    async def refresh(self, refresh_token: str | None) -> TokenPair:
        if not refresh_token:
            raise ValidationError("Missing refreshToken")
        try:
            decoded = self.signer.decode_refresh(refresh_token)
        except jwt.PyJWTError as exc:
            raise Unauthorized("Invalid refresh token") from exc

        user_id = decoded["sub"]
        existing = await refresh_ledger.find_active(self.db, sha256_hex(refresh_token), user_id)
        if existing is None:
            logger.warning("Refresh rejected for user %s: token revoked, rotated or unknown", user_id)
            raise Unauthorized(REVOKED_REFRESH_MESSAGE)

        now = self.clock()
        if existing.expires_at < now:
            await refresh_ledger.revoke_if_active(self.db, existing.id)
            await self.db.commit()
            raise Unauthorized("Refresh token expired")

        if not await refresh_ledger.revoke_if_active(self.db, existing.id):
            # Lost the race against a concurrent exchange of the same token.
            await self.db.rollback()
            logger.warning("Concurrent refresh of the same token for user %s", user_id)
            raise Unauthorized(REVOKED_REFRESH_MESSAGE)

        claims = {key: decoded.get(key) for key in CLAIM_KEYS}
        access_token, new_refresh = self.signer.issue_pair(claims)
        replacement = await self._store_refresh(user_id, new_refresh, now)
        await refresh_ledger.link_replacement(self.db, existing.id, replacement.id)
        await self.db.commit()
        return TokenPair(accessToken=access_token, refreshToken=new_refresh)

    async def logout(self, refresh_token: str | None) -> MessageOut:
        if refresh_token:
            token = await refresh_ledger.find_by_hash(self.db, sha256_hex(refresh_token))
            if token is not None:
                token.revoked = True
                await refresh_ledger.save(self.db, token)
                await self.db.commit()
        return MessageOut(message="Logged out")

    async def current_user(self, access_token: str) -> UserProfile:
        try:
            decoded = self.signer.decode_access(access_token)
        except jwt.PyJWTError as exc:
            raise Unauthorized("Invalid or expired token") from exc
        user = await credentials.find_by_id(self.db, decoded["sub"])
        if user is None or not user.is_active:
            raise Unauthorized("Invalid or expired token")
        return UserProfile(
            **public_user(user).model_dump(),
            emailVerified=user.email_verified,
            contactNumber=user.contact_number,
            lastLogin=user.last_login,
        )

    # -- password reset -----------------------------------------------------

    async def forgot_password(self, email: str) -> MessageOut:
        user = await credentials.find_by_email(self.db, email)
        if user is None:
            return MessageOut(message=FORGOT_PASSWORD_MESSAGE)

        now = self.clock()
        raw = generate_opaque_token()
        await reset_ledger.create(
            self.db,
            user_id=user.id,
            token_hash=sha256_hex(raw),
            expires_at=now + dt.timedelta(minutes=self.settings.password_reset_exp_minutes),
            created_at=now,
        )
        await self.db.commit()

        link = f"{self.settings.base_url}/admin/reset-password?token={raw}&email={quote(user.email)}"
        if not await self.notifier.send(user.email, "Password Reset", render_password_reset(link)):
            logger.warning("Password reset mail for user %s was not delivered", user.id)
        return MessageOut(message=FORGOT_PASSWORD_MESSAGE)

    async def reset_password(self, email: str, token: str, new_password: str) -> MessageOut:
        user = await credentials.find_by_email(self.db, email)
        if user is None:
            raise ValidationError(INVALID_RESET_MESSAGE)
        reset = await reset_ledger.find_valid(self.db, user.id, sha256_hex(token), self.clock())
        if reset is None or not await reset_ledger.mark_used(self.db, reset.id):
            await self.db.rollback()
            raise ValidationError(INVALID_RESET_MESSAGE)

        user.password_hash = hash_password(new_password)
        await credentials.save(self.db, user)
        revoked = await refresh_ledger.revoke_all_for_user(self.db, user.id)
        await self.db.commit()
        logger.info("Password reset for user %s; %d session(s) revoked", user.id, revoked)
        return MessageOut(message="Password updated")
