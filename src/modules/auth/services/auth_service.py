import logging
from datetime import datetime, timedelta, timezone
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from config import get_settings
from modules.documents.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


class AuthService:
    """
    Identity side of the app. Document services only ever see the owner id
    carried in the token subject.
    """

    @staticmethod
    def get_password_hash(password: str) -> str:
        return pwd_context.hash(password)

    @staticmethod
    def find_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email.strip().lower()).first()

    @staticmethod
    def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
        """Usuario activo cuyo hash coincide con la contraseña, o None"""
        user = AuthService.find_user_by_email(db, email)
        if user is None or not user.is_active or not pwd_context.verify(password, user.password_hash):
            logger.info("Rejected login for %s", email)
            return None
        return user

    @staticmethod
    def create_access_token(user_id: int, expires_delta: Optional[timedelta] = None) -> str:
        settings = get_settings()
        expires_delta = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)
        claims = {"sub": str(user_id), "exp": datetime.now(timezone.utc) + expires_delta}
        return jwt.encode(claims, settings.secret_key, algorithm=settings.jwt_algorithm)

    @staticmethod
    def decode_user_id(token: str) -> Optional[int]:
        """Owner id from a bearer token; None when it is forged, expired or malformed."""
        settings = get_settings()
        try:
            payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
            return int(payload["sub"])
        except (JWTError, KeyError, TypeError, ValueError):
            return None

    @staticmethod
    def get_current_user(db: Session, token: str) -> Optional[User]:
        user_id = AuthService.decode_user_id(token)
        if user_id is None:
            return None
        user = db.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user

    @staticmethod
    def ensure_user(db: Session, name: str, email: str, password: str) -> User:
        """Crea el usuario si todavía no existe uno con ese email"""
        user = AuthService.find_user_by_email(db, email)
        if user is None:
            user = User(
                name=name,
                email=email.strip().lower(),
                password_hash=AuthService.get_password_hash(password),
                is_active=True,
            )
            db.add(user)
            db.commit()
            db.refresh(user)
            logger.info("Created user %s", user.email)
        return user
