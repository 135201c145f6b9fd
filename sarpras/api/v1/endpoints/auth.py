# sarpras/api/v1/endpoints/auth.py
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from loguru import logger
from pymongo.errors import DuplicateKeyError

from sarpras.core.config import ACCESS_TOKEN_EXPIRE_MINUTES
from sarpras.core.rate_limiter import limiter, LOGIN_RATE_LIMIT
from sarpras.core.security import (
    create_access_token,
    verify_password,
    get_current_active_user,
    get_password_hash,
)
from sarpras.models.enum import UserRole
from sarpras.models.token import Token
from sarpras.models.user import User

router = APIRouter(tags=["Authentication"])


# --- Endpoint /token ---
@router.post("/token", response_model=Token)
@limiter.limit(LOGIN_RATE_LIMIT)
async def login_for_access_token(request: Request, form_data: OAuth2PasswordRequestForm = Depends()):
    user = await User.find_one(User.username == form_data.username)
    if not user or not verify_password(form_data.password, user.hashed_password):
        logger.warning(f"SECURITY: failed login for username '{form_data.username}'.")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if user.disabled:
        logger.warning(f"SECURITY: login attempt by disabled user '{user.username}'.")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Inactive user")

    access_token = create_access_token(
        data={"sub": str(user.id), "role": user.role.value},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    logger.info(f"User '{user.username}' ({user.role.value}) logged in.")
    return Token(access_token=access_token)


# --- Endpoint /register ---
@router.post("/register", response_model=User.Response, status_code=status.HTTP_201_CREATED)
async def register_user(user_in: User.Create):
    """Registrasi mandiri. Akun baru selalu ber-role ``Pengguna``."""
    if await User.find_one(User.username == user_in.username):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")
    if user_in.email and await User.find_one(User.email == user_in.email):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")

    user_obj = User(
        **user_in.model_dump(exclude={"password"}),
        hashed_password=get_password_hash(user_in.password),
        disabled=False,
        role=UserRole.USER,
    )
    try:
        await user_obj.insert()
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username or email already registered")
    logger.info(f"New user registered: '{user_obj.username}' ({user_obj.instansi.value}).")
    return user_obj.to_response()


# --- Endpoint /users/me ---
@router.get("/users/me", response_model=User.Response)
async def read_users_me(current_user: User = Depends(get_current_active_user)):
    return current_user.to_response()
