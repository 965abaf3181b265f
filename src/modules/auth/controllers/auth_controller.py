from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from config import get_settings
from database import get_db
from modules.auth.services.auth_service import AuthService
from modules.auth.schemas.auth_schemas import LoginRequest, TokenResponse, UserResponse
from modules.documents.models.user import User

router = APIRouter(prefix="/auth", tags=["authentication"])
bearer = HTTPBearer()


def unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    """Owner behind the bearer token; every /documents route depends on it"""
    user = AuthService.get_current_user(db, credentials.credentials)
    if user is None:
        raise unauthorized("Invalid or expired token")
    return user


@router.post("/login", response_model=TokenResponse)
def login(login_data: LoginRequest, db: Session = Depends(get_db)):
    user = AuthService.authenticate_user(db, login_data.email, login_data.password)
    if user is None:
        raise unauthorized("Incorrect email or password")

    return TokenResponse(
        access_token=AuthService.create_access_token(user.id),
        expires_in=get_settings().access_token_expire_minutes * 60,
        user_id=user.id,
        user_name=user.name,
    )


@router.get("/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)):
    return current_user
