# freshcart/auth.py
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session
from .errors import AuthError, ConflictError, InternalError
from .models import User
from .schemas import LoginRequest, SignupRequest, TokenResponse, UserOut
from .security import create_access_token, decode_access_token, get_password_hash, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/auth", tags=["auth"])


class AuthService:
    """Signup and login against the users table. Both return a signed 7-day token."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def _get_by_email(self, email: str):
        result = await self.session.execute(select(User).where(User.email == email))
        return result.scalar_one_or_none()

    async def signup(self, name: str, email: str, password: str, phone: str) -> str:
        try:
            if await self._get_by_email(email) is not None:
                raise ConflictError("Email already exists")

            user = User(
                name=name,
                email=email,
                password_hash=get_password_hash(password),
                phone=phone,
            )
            self.session.add(user)
            await self.session.commit()
            await self.session.refresh(user)
        except ConflictError:
            logger.info("signup rejected, email already registered: %s", email)
            raise
        except IntegrityError:
            # параллельная регистрация проскочила проверку выше, сработал уникальный индекс
            await self.session.rollback()
            logger.info("signup rejected by unique index: %s", email)
            raise ConflictError("Email already exists")
        except Exception as e:
            await self._safe_rollback()
            logger.exception("signup failed for %s", email)
            raise InternalError("Signup failed") from e

        logger.info("user %s signed up", user.id)
        return create_access_token(user.id)

    async def login(self, email: str, password: str) -> str:
        try:
            user = await self._get_by_email(email)
            if user is None or not verify_password(password, user.password_hash):
                raise AuthError()
        except AuthError:
            logger.warning("failed login for %s", email)
            raise
        except Exception as e:
            await self._safe_rollback()
            logger.exception("login failed for %s", email)
            raise InternalError("Login failed") from e

        logger.info("user %s logged in", user.id)
        return create_access_token(user.id)

    async def get_user(self, user_id: int):
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def _safe_rollback(self) -> None:
        try:
            await self.session.rollback()
        except SQLAlchemyError:
            logger.warning("rollback failed", exc_info=True)


def get_auth_service(session: AsyncSession = Depends(get_session)) -> AuthService:
    return AuthService(session)


# ✅ Регистрация
@router.post("/signup", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def signup(payload: SignupRequest, service: AuthService = Depends(get_auth_service)):
    token = await service.signup(payload.name, payload.email, payload.password, payload.phone)
    return TokenResponse(token=token)


# ✅ Логин
@router.post("/login", response_model=TokenResponse)
async def login(payload: LoginRequest, service: AuthService = Depends(get_auth_service)):
    token = await service.login(payload.email, payload.password)
    return TokenResponse(token=token)


# ✅ Проверка токена
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/login")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    service: AuthService = Depends(get_auth_service),
):
    payload = decode_access_token(token)
    subject = payload.get("sub") if payload else None
    if not subject or not str(subject).isdigit():
        raise HTTPException(status_code=401, detail="Invalid token")

    try:
        user = await service.get_user(int(subject))
    except SQLAlchemyError as e:
        logger.exception("user lookup failed")
        raise InternalError("Could not load user") from e
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


@router.get("/me", response_model=UserOut)
async def get_me(current_user: User = Depends(get_current_user)):
    return current_user
