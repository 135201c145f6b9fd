# sarpras/api/v1/endpoints/notifications.py
from typing import List

from bson import ObjectId
from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from pymongo import DESCENDING

from sarpras.core.security import get_current_active_user
from sarpras.models.notification import Notification
from sarpras.models.user import User

router = APIRouter(tags=["Notifications"])


@router.get("/", response_model=List[Notification.Response])
async def list_my_notifications(
    unread_only: bool = Query(False),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    current_user: User = Depends(get_current_active_user),
):
    filters = {"recipient_user_id": current_user.id}
    if unread_only:
        filters["is_read"] = False
    notifications = await Notification.find(
        filters, skip=skip, limit=limit, sort=[("created_at", DESCENDING)]
    ).to_list()
    return [n.to_response() for n in notifications]


@router.patch("/{notification_id}/read", response_model=Notification.Response)
async def mark_notification_read(
    notification_id: str = Path(...),
    current_user: User = Depends(get_current_active_user),
):
    if not ObjectId.is_valid(notification_id):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid notification ID format.")
    # Notifikasi milik user lain diperlakukan sebagai tidak ada
    notification = await Notification.find_one(
        {"_id": ObjectId(notification_id), "recipient_user_id": current_user.id}
    )
    if not notification:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Notification not found.")
    if not notification.is_read:
        await notification.update({"$set": {"is_read": True}})
        notification.is_read = True
    return notification.to_response()


@router.post("/read-all")
async def mark_all_notifications_read(current_user: User = Depends(get_current_active_user)):
    result = await Notification.get_motor_collection().update_many(
        {"recipient_user_id": current_user.id, "is_read": False},
        {"$set": {"is_read": True}},
    )
    return {"updated": result.modified_count}
