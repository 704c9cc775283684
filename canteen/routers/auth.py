"""
Authentication router — signup and login endpoints.

These are the only public (unauthenticated) endpoints in the API.
Everything else requires a valid JWT token.

Endpoints:
  POST /auth/signup  — Register a student and get a token
  POST /auth/login   — Authenticate and get a token

Plaintext passwords and PINs exist only in memory during request
processing; they are hashed before any database operation and never logged.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from canteen.database import get_db
from canteen.schemas.auth import LoginRequest, SignupRequest, SignupResponse, TokenResponse
from canteen.services import auth_service

router = APIRouter()


@router.post(
    "/signup",
    response_model=SignupResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a new student",
)
async def signup(
    request: SignupRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new student account with an empty wallet.

    - **email**: Must be a valid email format and not already registered
    - **password**: Minimum 8 characters
    - **pin**: 4-6 digits, used to authorize payments and transfers
    """
    account, token = await auth_service.signup(
        db=db,
        name=request.name,
        email=request.email,
        password=request.password,
        pin=request.pin,
    )

    return SignupResponse(
        account_id=account.id,
        email=account.email,
        role=account.role.value,
        token=token,
    )


@router.post(
    "/login",
    response_model=TokenResponse,
    summary="Authenticate and get a token",
)
async def login(
    request: LoginRequest,
    db: AsyncSession = Depends(get_db),
):
    """
    Authenticate with email and password.

        Authorization: Bearer <token>
    """
    _, token = await auth_service.login(
        db=db,
        email=request.email,
        password=request.password,
    )
    return TokenResponse(token=token)
