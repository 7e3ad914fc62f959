import datetime as dt
import uuid

import jwt

from app.core.config import Settings

ALGORITHM = "HS256"
CLAIM_KEYS = ("sub", "email", "role", "username", "fullName")


class TokenSigner:
    def __init__(self, settings: Settings):
        self.access_secret = settings.jwt_access_secret
        self.refresh_secret = settings.jwt_refresh_secret
        self.access_ttl = dt.timedelta(minutes=settings.access_token_minutes)
        self.refresh_ttl = dt.timedelta(days=settings.refresh_token_days)

    @staticmethod
    def _sign(claims: dict, secret: str, ttl: dt.timedelta) -> str:
        now = dt.datetime.now(dt.timezone.utc)
        payload = {
            **{key: claims.get(key) for key in CLAIM_KEYS},
            # jti keeps two tokens minted in the same second distinct.
            "jti": str(uuid.uuid4()),
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, secret, algorithm=ALGORITHM)

    def sign_access(self, claims: dict) -> str:
        return self._sign(claims, self.access_secret, self.access_ttl)

    def sign_refresh(self, claims: dict) -> str:
        return self._sign(claims, self.refresh_secret, self.refresh_ttl)

    def issue_pair(self, claims: dict) -> tuple[str, str]:
        return self.sign_access(claims), self.sign_refresh(claims)

    def decode_access(self, token: str) -> dict:
        return jwt.decode(token, self.access_secret, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]})

    def decode_refresh(self, token: str) -> dict:
        return jwt.decode(token, self.refresh_secret, algorithms=[ALGORITHM], options={"require": ["sub", "exp"]})


def claims_for(user) -> dict:
    return {
        "sub": user.id,
        "email": user.email,
        "role": user.role,
        "username": user.username,
        "fullName": user.full_name,
    }
