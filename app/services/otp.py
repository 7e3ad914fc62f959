import datetime as dt

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.otp import OtpCode


async def find_latest_unused(db: AsyncSession, user_id: str) -> OtpCode | None:
    result = await db.execute(
        select(OtpCode)
        .where(OtpCode.user_id == user_id, OtpCode.used.is_(False))
        .order_by(OtpCode.created_at.desc())
        .limit(1)
    )
    return result.scalar_one_or_none()


async def invalidate_all_unused(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        update(OtpCode)
        .where(OtpCode.user_id == user_id, OtpCode.used.is_(False))
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def create(
    db: AsyncSession,
    *,
    user_id: str,
    code_hash: str,
    expires_at: dt.datetime,
    created_at: dt.datetime,
) -> OtpCode:
    otp = OtpCode(user_id=user_id, code_hash=code_hash, expires_at=expires_at, created_at=created_at)
    db.add(otp)
    await db.flush()
    return otp


async def save(db: AsyncSession, otp: OtpCode) -> OtpCode:
    db.add(otp)
    await db.flush()
    return otp


async def purge_expired(db: AsyncSession, before: dt.datetime) -> int:
    result = await db.execute(delete(OtpCode).where(OtpCode.expires_at < before))
    return result.rowcount
