from fastapi import APIRouter, Depends, status

from app.api.deps import bearer_token, get_auth_service
from app.schemas.auth import (
    EmailIn,
    LoginIn,
    LoginOut,
    MessageOut,
    RefreshIn,
    RegisterIn,
    RegisterOut,
    ResetPasswordIn,
    TokenPair,
    UserProfile,
    VerifyEmailIn,
)
from app.services.auth import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=RegisterOut, status_code=status.HTTP_201_CREATED)
async def register(req: RegisterIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.register(
        username=req.username, email=req.email, password=req.password, full_name=req.fullName
    )


@router.post("/resend-otp", response_model=MessageOut)
async def resend_otp(req: EmailIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.resend_otp(req.email)


@router.post("/verify-email", response_model=MessageOut)
async def verify_email(req: VerifyEmailIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.verify_email(req.email, req.otp)


@router.post("/login", response_model=LoginOut)
async def login(req: LoginIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.login(req.emailOrUsername, req.password)


@router.post("/refresh", response_model=TokenPair)
async def refresh(req: RefreshIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.refresh(req.refreshToken)


@router.post("/logout", response_model=MessageOut)
async def logout(req: RefreshIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.logout(req.refreshToken)


@router.post("/forgot-password", response_model=MessageOut)
async def forgot_password(req: EmailIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.forgot_password(req.email)


@router.post("/reset-password", response_model=MessageOut)
async def reset_password(req: ResetPasswordIn, auth: AuthService = Depends(get_auth_service)):
    return await auth.reset_password(req.email, req.token, req.newPassword)


@router.get("/me", response_model=UserProfile)
async def me(token: str = Depends(bearer_token), auth: AuthService = Depends(get_auth_service)):
    return await auth.current_user(token)
