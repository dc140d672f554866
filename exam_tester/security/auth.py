"""
exam_tester/security/auth.py
Bearer token verification and role guards

Tokens are HS256 JWTs carrying the user id (sub), the role and
type=access. Issuing tokens to end users is handled elsewhere;
create_access_token exists for the developer CLI and tests.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, ExpiredSignatureError, jwt
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from exam_tester.config.settings import settings
from exam_tester.database import get_db
from exam_tester.errors import ErrorCode, ForbiddenError, UnauthorizedError
from exam_tester.orm.user import User
from exam_tester.security.principal import Admin, Principal, Student, Teacher, principal_from_user

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


# ================= TOKEN UTILS =================

def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token with user id and role"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user.id),
        "role": user.role.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """
    Decode and validate JWT token.

    Raises:
        UnauthorizedError: expired, malformed or wrong token type
    """
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired", code=ErrorCode.AUTH_EXPIRED)
    except JWTError:
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)
    return payload


# ================= AUTH DEPENDENCIES =================

async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db),
) -> Principal:
    """
    Resolve the request's principal from the bearer token.
    Returns 401 if the token is missing, invalid, or no longer matches the user.
    """
    if credentials is None or not credentials.credentials:
        raise UnauthorizedError("Not authorized, no token")

    payload = decode_token(credentials.credentials)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if user is None or not user.is_active:
        raise UnauthorizedError("Not authorized, user not found", code=ErrorCode.AUTH_INVALID)

    if payload.get("role") != user.role.value:
        logger.warning(f"Token role {payload.get('role')} does not match user {user.id} role {user.role.value}")
        raise UnauthorizedError("Not authorized, role changed", code=ErrorCode.AUTH_INVALID)

    return principal_from_user(user)


# ================= ROLE GUARDS =================

def _role_required(principal: Principal, allowed: tuple, label: str) -> None:
    if not isinstance(principal, allowed):
        logger.warning(f"Access denied: {type(principal).__name__} {principal.id} needs {label}")
        raise ForbiddenError(
            f"Only {label} can perform this action",
            code=ErrorCode.ROLE_REQUIRED,
            details={"current_role": type(principal).__name__.lower()}
        )


async def require_student(principal: Principal = Depends(get_current_principal)) -> Student:
    _role_required(principal, (Student,), "students")
    return principal


async def require_teacher(principal: Principal = Depends(get_current_principal)) -> Teacher:
    _role_required(principal, (Teacher,), "teachers")
    return principal


async def require_staff(principal: Principal = Depends(get_current_principal)) -> Principal:
    _role_required(principal, (Teacher, Admin), "teachers or admins")
    return principal
