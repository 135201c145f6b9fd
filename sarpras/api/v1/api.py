# sarpras/api/v1/api.py
from fastapi import APIRouter

from sarpras.api.v1.endpoints import (
    auth,
    users,
    items,
    consumable_requests,
    borrow_requests,
    return_requests,
    notifications,
    maintenance,
)

api_router_v1 = APIRouter(prefix="/api/v1")

api_router_v1.include_router(auth.router, prefix="/auth")
api_router_v1.include_router(users.router, prefix="/users")
api_router_v1.include_router(items.router, prefix="/items")
api_router_v1.include_router(consumable_requests.router, prefix="/consumable-requests")
api_router_v1.include_router(borrow_requests.router, prefix="/borrow-requests")
api_router_v1.include_router(return_requests.router, prefix="/return-requests")
api_router_v1.include_router(notifications.router, prefix="/notifications")
api_router_v1.include_router(maintenance.router, prefix="/maintenance")
