"""Refresh token ledger.

Rows are keyed by the SHA-256 of the issued token. A row is exchanged at most
once: rotation revokes it with a conditional update and points ``replaced_by``
at its successor, so a chain can be walked after the fact.
"""
import datetime as dt

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.refresh_token import RefreshToken


async def create(
    db: AsyncSession,
    *,
    user_id: str,
    token_hash: str,
    expires_at: dt.datetime,
    created_at: dt.datetime,
) -> RefreshToken:
    token = RefreshToken(
        user_id=user_id, token_hash=token_hash, expires_at=expires_at, created_at=created_at
    )
    db.add(token)
    await db.flush()
    return token


async def find_active(db: AsyncSession, token_hash: str, user_id: str) -> RefreshToken | None:
    result = await db.execute(
        select(RefreshToken).where(
            RefreshToken.token_hash == token_hash,
            RefreshToken.user_id == user_id,
            RefreshToken.revoked.is_(False),
        )
    )
    return result.scalars().first()


async def find_by_hash(db: AsyncSession, token_hash: str) -> RefreshToken | None:
    result = await db.execute(select(RefreshToken).where(RefreshToken.token_hash == token_hash))
    return result.scalars().first()


async def revoke_if_active(db: AsyncSession, token_id: str) -> bool:
    """Revoke one row; True only for the caller that flipped it."""
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == token_id, RefreshToken.revoked.is_(False))
        .values(revoked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def link_replacement(db: AsyncSession, token_id: str, replacement_id: str) -> None:
    await db.execute(
        update(RefreshToken)
        .where(RefreshToken.id == token_id)
        .values(replaced_by=replacement_id)
        .execution_options(synchronize_session=False)
    )


async def revoke_all_for_user(db: AsyncSession, user_id: str) -> int:
    result = await db.execute(
        update(RefreshToken)
        .where(RefreshToken.user_id == user_id, RefreshToken.revoked.is_(False))
        .values(revoked=True)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


async def save(db: AsyncSession, token: RefreshToken) -> RefreshToken:
    db.add(token)
    await db.flush()
    return token


async def rotation_chain(db: AsyncSession, token_id: str) -> list[RefreshToken]:
    chain: list[RefreshToken] = []
    seen: set[str] = set()
    current_id: str | None = token_id
    while current_id and current_id not in seen:
        seen.add(current_id)
        token = await db.get(RefreshToken, current_id)
        if token is None:
            break
        chain.append(token)
        current_id = token.replaced_by
    return chain


async def purge_expired(db: AsyncSession, before: dt.datetime) -> int:
    result = await db.execute(delete(RefreshToken).where(RefreshToken.expires_at < before))
    return result.rowcount
