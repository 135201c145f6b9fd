# sarpras/api/v1/endpoints/users.py
from typing import List, Optional
from datetime import datetime, timezone

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, status, Path, Body, Query, Request
from loguru import logger

from sarpras.core.rate_limiter import limiter
from sarpras.core.security import require_admin
from sarpras.models.enum import UserRole
from sarpras.models.user import User

router = APIRouter(
    tags=["Users - Admin"],
    dependencies=[Depends(require_admin)]
)


async def get_user_or_404(user_id: str) -> User:
    if not ObjectId.is_valid(user_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid user ID format.")
    user = await User.get(ObjectId(user_id))
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"User with ID '{user_id}' not found")
    return user


# --- GET / --- (List all users)
@router.get("/", response_model=List[User.Response], summary="List All Users (Admin Only)")
@limiter.limit("30/minute")
async def read_users(
    request: Request,
    role: Optional[UserRole] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
):
    filters = {"role": role.value} if role else {}
    users = await User.find(filters, skip=skip, limit=limit).sort("+username").to_list()
    return [u.to_response() for u in users]


# --- GET /{user_id} ---
@router.get("/{user_id}", response_model=User.Response, summary="Get User Details (Admin Only)")
async def read_user(user_id: str = Path(..., description="The ID of the user to retrieve")):
    user = await get_user_or_404(user_id)
    return user.to_response()


# --- PATCH /{user_id} --- (Ubah role / status aktif)
@router.patch("/{user_id}", response_model=User.Response, summary="Update User Role/Status (Admin Only)")
@limiter.limit("20/hour")
async def update_user(
    request: Request,
    user_id: str = Path(...),
    user_in: User.AdminUpdate = Body(...),
    current_admin: User = Depends(require_admin),
):
    user_to_update = await get_user_or_404(user_id)
    update_data = user_in.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="No update data provided.")
    if user_to_update.id == current_admin.id and (
        update_data.get("disabled") is True or update_data.get("role", UserRole.ADMIN) != UserRole.ADMIN
    ):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Admins cannot demote or disable themselves.")

    if "role" in update_data:
        update_data["role"] = update_data["role"].value
    update_data["updated_at"] = datetime.now(timezone.utc)
    await user_to_update.update({"$set": update_data})
    logger.info(f"Admin '{current_admin.username}' updated user '{user_to_update.username}': {user_in.model_dump(exclude_unset=True)}")

    updated_user = await get_user_or_404(user_id)
    return updated_user.to_response()


# --- DELETE /{user_id} ---
@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, summary="Delete User (Admin Only)")
@limiter.limit("10/hour")
async def delete_user(
    request: Request,
    user_id: str = Path(...),
    current_admin: User = Depends(require_admin),
):
    """Hapus akun. Admin tidak bisa menghapus akunnya sendiri.

    Permintaan milik user yang dihapus tetap disimpan untuk jejak audit.
    """
    user_to_delete = await get_user_or_404(user_id)
    if user_to_delete.id == current_admin.id:
        logger.warning(f"SECURITY: Admin '{current_admin.username}' attempted to delete own account.")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account.")
    await user_to_delete.delete()
    logger.info(f"Admin '{current_admin.username}' deleted user '{user_to_delete.username}' ({user_id}).")
    return None
