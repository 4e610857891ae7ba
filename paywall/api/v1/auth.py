"""Sign-up, sign-in and refresh routes plus auth dependencies (get_current_user, require_admin)."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from paywall.api.deps import get_token_authority
from paywall.models.user import ROLE_ADMIN
from paywall.schemas.auth import (
    AuthResponse,
    RefreshRequest,
    SignInRequest,
    SignUpRequest,
    TokenPayload,
)
from paywall.services.errors import (
    AlreadyExists,
    GatewayFailure,
    RoleMissing,
    Unauthorized,
)
from paywall.services.tokens import TokenAuthority

router = APIRouter()
security = HTTPBearer(auto_error=False)


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def signup(
    body: SignUpRequest,
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
) -> AuthResponse:
    """Register a new user with the default role; returns a token pair."""
    try:
        return authority.register(body.email, body.password, body.full_name)
    except (AlreadyExists, RoleMissing) as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message) from e
    except GatewayFailure as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=e.message) from e


@router.post("/signin", response_model=AuthResponse)
def signin(
    body: SignInRequest,
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
) -> AuthResponse:
    """
    Authenticate with email and password; returns access and refresh tokens.
    Include the access token in the Authorization header as: Bearer <access_token>
    """
    try:
        return authority.authenticate(body.email, body.password)
    except Unauthorized as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


@router.post("/refresh", response_model=AuthResponse)
def refresh(
    body: RefreshRequest,
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
) -> AuthResponse:
    """Exchange a refresh token for a new pair. The old refresh token stops working."""
    try:
        return authority.rotate(body.refresh_token)
    except Unauthorized as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
    authority: Annotated[TokenAuthority, Depends(get_token_authority)],
) -> TokenPayload:
    """Dependency: require a valid Bearer access token. Raises 401 if missing or invalid."""
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return authority.validate_access(credentials.credentials)
    except Unauthorized as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


def require_admin(
    current_user: Annotated[TokenPayload, Depends(get_current_user)],
) -> TokenPayload:
    """Dependency: require an authenticated user with role 'admin'. Raises 403 otherwise."""
    if current_user.role != ROLE_ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return current_user


@router.get("/me", response_model=TokenPayload)
def me(current_user: Annotated[TokenPayload, Depends(get_current_user)]) -> TokenPayload:
    """Claims of the presented access token."""
    return current_user
