from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.db import get_db
from app.core.errors import Unauthorized
from app.services.auth import AuthService

bearer = HTTPBearer(auto_error=False)


async def get_auth_service(request: Request, db: AsyncSession = Depends(get_db)) -> AuthService:
    state = request.app.state
    return AuthService(
        db,
        state.settings,
        state.notifier,
        state.otp_delivery,
        signer=state.signer,
        redis_conn=state.redis,
        clock=state.clock,
    )


async def bearer_token(credentials: HTTPAuthorizationCredentials | None = Depends(bearer)) -> str:
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise Unauthorized("Unauthorized")
    return credentials.credentials
