# sarpras/core/security.py
from datetime import datetime, timedelta, timezone
from typing import Optional, List

from bson import ObjectId
from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from loguru import logger
from passlib.context import CryptContext

from sarpras.core.authority import Actor
from sarpras.core.config import SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES
from sarpras.models.enum import UserRole
from sarpras.models.user import User

# Konteks password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/auth/token")


# --- Password Functions ---
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


# --- Token Functions ---
def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Buat JWT. ``sub`` berisi id user (string ObjectId), bukan username."""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def decode_subject(token: str) -> Optional[str]:
    """Kembalikan klaim ``sub`` dari token yang valid, atau None."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.warning(f"Token decode failed: {e}")
        return None
    return payload.get("sub")


# --- Current User ---
async def get_current_user(request: Request, token: str = Depends(oauth2_scheme)) -> User:
    """Ambil user dari ``request.state.user_id`` (diisi AuthMiddleware) atau dari token.

    User SELALU dibaca ulang dari database sehingga perubahan role/status
    berlaku pada request berikutnya tanpa menunggu token kedaluwarsa.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    user_id: Optional[str] = getattr(request.state, "user_id", None)
    if not user_id:
        logger.debug("user_id not found in request state, decoding token in dependency.")
        user_id = decode_subject(token)

    if not user_id or not ObjectId.is_valid(user_id):
        raise credentials_exception

    user = await User.get(ObjectId(user_id))
    if user is None:
        logger.warning(f"User '{user_id}' from token not found in database.")
        raise credentials_exception
    return user


async def get_current_active_user(current_user: User = Depends(get_current_user)) -> User:
    if current_user.disabled:
        logger.warning(f"Access denied for disabled user '{current_user.username}'.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")
    return current_user


async def get_current_actor(current_user: User = Depends(get_current_active_user)) -> Actor:
    """Konteks aktor yang dikirim eksplisit ke workflow."""
    return Actor(id=current_user.id, role=current_user.role, username=current_user.username)


# --- Role Checking Dependencies ---
def require_role(required_role: UserRole):
    """Factory dependency: user harus punya role ``required_role``."""
    async def role_checker(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role != required_role:
            logger.warning(
                f"SECURITY: User '{current_user.username}' with role '{current_user.role.value}' "
                f"attempted action requiring role '{required_role.value}'."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Operation not permitted. Required role: {required_role.value}"
            )
        return current_user
    return role_checker


def require_roles(required_roles: List[UserRole]):
    """Factory dependency: user harus punya salah satu dari ``required_roles``."""
    async def roles_checker(current_user: User = Depends(get_current_active_user)) -> User:
        if current_user.role not in required_roles:
            logger.warning(
                f"SECURITY: User '{current_user.username}' with role '{current_user.role.value}' "
                f"attempted action requiring one of roles: {[r.value for r in required_roles]}."
            )
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Operation not permitted. Required roles: {[r.value for r in required_roles]}"
            )
        return current_user
    return roles_checker


require_admin = require_role(UserRole.ADMIN)
require_reviewer = require_roles([UserRole.ADMIN, UserRole.HEADMASTER])
