"""Login, registration, token refresh and password management endpoints."""
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import (
    get_async_session,
    get_reset_code_notifier,
    get_settings,
    get_token_service,
    require_principal,
)
from core.auth import extract_bearer_token
from core.config import Settings
from models.member import Member
from schemas.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    MemberResponse,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
    VerifyResponse,
)
from services import member_service, password_reset_service
from services.exceptions import (
    AuthenticationRequiredError,
    AuthorizationDeniedError,
    ConflictError,
    MemberExistsError,
    NotFoundError,
    RenewalError,
)
from services.password_reset_service import ResetCodeNotifier
from services.token_service import TokenService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _token_response(token_service: TokenService, token: str) -> TokenResponse:
    return TokenResponse(token=token, expires_at=token_service.expires_at(token))


@router.post("/login", response_model=TokenResponse)
async def login(
    data: LoginRequest,
    db: AsyncSession = Depends(get_async_session),
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """Exchange email and password for an access token."""
    member = await member_service.authenticate_credentials(db, data.email, data.password)
    if member is None:
        raise AuthenticationRequiredError("Invalid email or password")
    return _token_response(token_service, token_service.issue(member.id, member.email))


@router.post("/register", response_model=MemberResponse, status_code=201)
async def register(
    data: RegisterRequest,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> MemberResponse:
    """Create a member account in the API users group."""
    try:
        member = await member_service.register_member(
            db,
            email=data.email,
            password=data.password,
            group_code=settings.api_users_group,
            first_name=data.first_name,
            surname=data.surname,
        )
    except MemberExistsError as e:
        raise ConflictError("A member with this email already exists") from e
    return MemberResponse.model_validate(member)


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    request: Request,
    token_service: TokenService = Depends(get_token_service),
) -> TokenResponse:
    """
    Re-sign the presented token with a fresh expiry.

    Unlike the automatic X-Renewed-Token renewal, this always issues a new token.
    """
    token = extract_bearer_token(request.headers.get("Authorization"))
    if token is None:
        raise AuthenticationRequiredError()
    try:
        renewed = token_service.renew(token)
    except RenewalError as e:
        raise AuthenticationRequiredError("Invalid or expired token") from e
    return _token_response(token_service, renewed)


@router.get("/verify", response_model=VerifyResponse)
async def verify(
    member: Member = Depends(require_principal),
) -> VerifyResponse:
    """Return the member behind the presented token."""
    return VerifyResponse(member=MemberResponse.model_validate(member))


@router.post("/forgot-password", response_model=MessageResponse)
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_async_session),
    notifier: ResetCodeNotifier = Depends(get_reset_code_notifier),
) -> MessageResponse:
    """Issue a password reset code and hand it to the notifier."""
    member = await member_service.get_member_by_email(db, data.email)
    if member is None:
        raise NotFoundError("Member not found")
    reset_request = await password_reset_service.create_reset_request(db, member)
    await notifier.send_reset_code(member, reset_request.code)
    return MessageResponse(message="Password reset code sent")


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """Set a new password using a reset code."""
    member = await password_reset_service.reset_password(
        db,
        code=data.code,
        password=data.password,
        expiry_minutes=settings.password_reset_expiry_minutes,
    )
    if member is None:
        raise NotFoundError("Invalid or expired reset code")
    return MessageResponse(message="Password has been reset")


@router.post("/change-password", response_model=MessageResponse)
async def change_password(
    data: ChangePasswordRequest,
    member: Member = Depends(require_principal),
    db: AsyncSession = Depends(get_async_session),
) -> MessageResponse:
    """Change the current member's password."""
    changed = await member_service.change_password(
        db, member, data.old_password, data.new_password,
    )
    if not changed:
        raise AuthorizationDeniedError("Current password is incorrect")
    return MessageResponse(message="Password changed")
