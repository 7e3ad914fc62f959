import datetime as dt

from pydantic import BaseModel, EmailStr, Field


class RegisterIn(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    email: EmailStr
    password: str = Field(min_length=8)
    fullName: str | None = None


class EmailIn(BaseModel):
    email: EmailStr


class VerifyEmailIn(BaseModel):
    email: EmailStr
    otp: str = Field(min_length=1, max_length=12)


class LoginIn(BaseModel):
    emailOrUsername: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshIn(BaseModel):
    refreshToken: str | None = None


class ResetPasswordIn(BaseModel):
    email: EmailStr
    token: str = Field(min_length=1)
    newPassword: str = Field(min_length=8)


class MessageOut(BaseModel):
    message: str


class RegisterOut(MessageOut):
    email: EmailStr


class UserPublic(BaseModel):
    id: str
    email: EmailStr
    username: str
    fullName: str | None = None
    role: str


class UserProfile(UserPublic):
    emailVerified: bool
    contactNumber: str | None = None
    lastLogin: dt.datetime | None = None


class TokenPair(BaseModel):
    accessToken: str
    refreshToken: str


class LoginOut(TokenPair):
    user: UserPublic
