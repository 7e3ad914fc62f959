from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.errors import DuplicateKeyError
from app.models.user import ADMIN_ROLE, User


def normalize_email(email: str) -> str:
    return email.strip().lower()


async def find_by_email_or_username(db: AsyncSession, value: str) -> User | None:
    value = value.strip()
    result = await db.execute(
        select(User).where(or_(User.email == value.lower(), User.username == value))
    )
    return result.scalars().first()


async def find_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def find_by_id(db: AsyncSession, user_id: str) -> User | None:
    return await db.get(User, user_id)


async def exists(db: AsyncSession, *, email: str, username: str) -> bool:
    result = await db.execute(
        select(User.id).where(or_(User.email == normalize_email(email), User.username == username.strip()))
    )
    return result.first() is not None


async def create(
    db: AsyncSession,
    *,
    username: str,
    email: str,
    password_hash: str,
    full_name: str | None = None,
) -> User:
    user = User(
        username=username.strip(),
        email=normalize_email(email),
        password_hash=password_hash,
        full_name=full_name.strip() if full_name else None,
        role=ADMIN_ROLE,
        email_verified=False,
    )
    db.add(user)
    try:
        await db.flush()
    except IntegrityError as exc:
        await db.rollback()
        raise DuplicateKeyError(str(exc.orig)) from exc
    return user


async def save(db: AsyncSession, user: User) -> User:
    db.add(user)
    await db.flush()
    return user
