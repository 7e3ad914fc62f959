import datetime as dt

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.password_reset import PasswordResetToken


async def create(
    db: AsyncSession,
    *,
    user_id: str,
    token_hash: str,
    expires_at: dt.datetime,
    created_at: dt.datetime,
) -> PasswordResetToken:
    reset = PasswordResetToken(
        user_id=user_id, token_hash=token_hash, expires_at=expires_at, created_at=created_at
    )
    db.add(reset)
    await db.flush()
    return reset


async def _find_unused(db: AsyncSession, user_id: str, token_hash: str) -> PasswordResetToken | None:
    result = await db.execute(
        select(PasswordResetToken).where(
            PasswordResetToken.user_id == user_id,
            PasswordResetToken.token_hash == token_hash,
            PasswordResetToken.used.is_(False),
        )
    )
    return result.scalars().first()


async def find_valid(
    db: AsyncSession, user_id: str, token_hash: str, now: dt.datetime
) -> PasswordResetToken | None:
    reset = await _find_unused(db, user_id, token_hash)
    if reset is None or reset.expires_at < now:
        return None
    return reset


async def mark_used(db: AsyncSession, reset_id: str) -> bool:
    """Consume a reset row; False when another request consumed it first."""
    result = await db.execute(
        update(PasswordResetToken)
        .where(PasswordResetToken.id == reset_id, PasswordResetToken.used.is_(False))
        .values(used=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def purge_expired(db: AsyncSession, before: dt.datetime) -> int:
    result = await db.execute(delete(PasswordResetToken).where(PasswordResetToken.expires_at < before))
    return result.rowcount
