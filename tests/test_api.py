# tests/test_api.py
from datetime import date, timedelta

import pytest
from bson import ObjectId
from httpx import AsyncClient, ASGITransport

from sarpras.core.security import create_access_token, get_password_hash
from sarpras.main import app
from sarpras.models.enum import ItemType, UserRole
from sarpras.models.item import Item
from sarpras.models.notification import Notification
from sarpras.models.user import User

from factories import make_item, make_user, item_quantity

API = "/api/v1"


@pytest.fixture
async def client():
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id)})
    return {"Authorization": f"Bearer {token}"}


# --- Auth ---

async def test_register_and_login(client):
    response = await client.post(f"{API}/auth/register", json={
        "username": "budi",
        "first_name": "Budi",
        "last_name": "Santoso",
        "instansi": "SMPIT",
        "password": "rahasia123",
    })
    assert response.status_code == 201
    body = response.json()
    assert body["role"] == "Pengguna"
    assert "hashed_password" not in body

    duplicate = await client.post(f"{API}/auth/register", json={
        "username": "budi", "first_name": "Budi", "instansi": "SMPIT", "password": "rahasia123",
    })
    assert duplicate.status_code == 400

    login = await client.post(f"{API}/auth/token", data={"username": "budi", "password": "rahasia123"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get(f"{API}/auth/users/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "budi"


async def test_wrong_password_is_401(client):
    user = User(
        username="siti", first_name="Siti", hashed_password=get_password_hash("benar123"), role=UserRole.USER,
    )
    await user.insert()

    response = await client.post(f"{API}/auth/token", data={"username": "siti", "password": "salah"})
    assert response.status_code == 401


async def test_protected_routes_need_token(client):
    assert (await client.get(f"{API}/items/")).status_code == 401
    response = await client.get(f"{API}/items/", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == 401


async def test_disabled_user_is_forbidden(client):
    user = await make_user("nonaktif", UserRole.USER, disabled=True)
    response = await client.get(f"{API}/items/", headers=auth_headers(user))
    assert response.status_code == 403


async def test_role_is_read_from_store_not_token(client):
    user = await make_user("guru", UserRole.USER)
    item = await make_item("Markers", 10, ItemType.CONSUMABLE)
    created = await client.post(
        f"{API}/consumable-requests/", json={"item_id": str(item.id), "quantity": 1}, headers=auth_headers(user),
    )
    request_id = created.json()["id"]

    # Token yang mengklaim role lain tidak memberi otoritas
    forged = create_access_token({"sub": str(user.id), "role": "Kepala Sekolah"})
    response = await client.post(
        f"{API}/consumable-requests/{request_id}/transition",
        json={"target_status": "ApprovedByHeadmaster"},
        headers={"Authorization": f"Bearer {forged}"},
    )
    assert response.status_code == 403
    assert response.json()["error"] == "AuthError"


# --- Items ---

async def test_item_admin_crud_and_adjust(client):
    admin = await make_user("admin", UserRole.ADMIN)
    guru = await make_user("guru", UserRole.USER)

    created = await client.post(
        f"{API}/items/", json={"name": "Kertas A4", "quantity": 5, "type": "consumable"}, headers=auth_headers(admin),
    )
    assert created.status_code == 201
    item_id = created.json()["id"]

    forbidden = await client.post(
        f"{API}/items/", json={"name": "Lain", "quantity": 1, "type": "consumable"}, headers=auth_headers(guru),
    )
    assert forbidden.status_code == 403

    adjusted = await client.post(
        f"{API}/items/{item_id}/adjust", json={"delta": 3, "movement_type": "IN", "reason": "Pembelian"},
        headers=auth_headers(admin),
    )
    assert adjusted.status_code == 200
    assert adjusted.json()["quantity"] == 8

    too_much = await client.post(
        f"{API}/items/{item_id}/adjust", json={"delta": -20, "reason": "Hilang"}, headers=auth_headers(admin),
    )
    assert too_much.status_code == 409
    assert too_much.json()["error"] == "InsufficientStockError"

    movements = await client.get(f"{API}/items/{item_id}/movements", headers=auth_headers(admin))
    assert [m["delta"] for m in movements.json()] == [3]

    listed = await client.get(f"{API}/items/", params={"search": "kertas"}, headers=auth_headers(guru))
    assert [i["id"] for i in listed.json()] == [item_id]

    deleted = await client.delete(f"{API}/items/{item_id}", headers=auth_headers(admin))
    assert deleted.status_code == 204
    assert (await client.get(f"{API}/items/{item_id}", headers=auth_headers(guru))).status_code == 404


async def test_item_type_locked_while_requests_open(client):
    admin = await make_user("admin", UserRole.ADMIN)
    guru = await make_user("guru", UserRole.USER)
    item = await make_item("Spidol", 5, ItemType.CONSUMABLE)
    await client.post(
        f"{API}/consumable-requests/", json={"item_id": str(item.id), "quantity": 1}, headers=auth_headers(guru),
    )

    response = await client.patch(
        f"{API}/items/{item.id}", json={"type": "returnable"}, headers=auth_headers(admin),
    )
    assert response.status_code == 409
    assert (await Item.get(item.id)).type == ItemType.CONSUMABLE


# --- Requests ---

async def test_borrow_flow_over_http(client):
    admin = await make_user("admin", UserRole.ADMIN)
    kepsek = await make_user("kepsek", UserRole.HEADMASTER)
    guru = await make_user("guru", UserRole.USER)
    paper = await make_item("Paper", 5, ItemType.RETURNABLE)
    start = date.today()

    created = await client.post(f"{API}/borrow-requests/", json={
        "item_id": str(paper.id),
        "quantity": 3,
        "borrow_start_date": start.isoformat(),
        "due_date": (start + timedelta(days=3)).isoformat(),
        "notes": "Rapat wali murid",
    }, headers=auth_headers(guru))
    assert created.status_code == 201
    body = created.json()
    request_id = body["id"]
    assert body["status"] == "Pending"
    assert body["permitted_transitions"] == []

    as_kepsek = await client.get(f"{API}/borrow-requests/{request_id}", headers=auth_headers(kepsek))
    assert as_kepsek.json()["permitted_transitions"] == ["Disetujui", "Ditolak"]

    transitions = await client.get(f"{API}/borrow-requests/{request_id}/transitions", headers=auth_headers(admin))
    assert transitions.json() == {"current_status": "Pending", "permitted_transitions": []}

    step = await client.post(
        f"{API}/borrow-requests/{request_id}/transition",
        json={"target_status": "Disetujui"}, headers=auth_headers(kepsek),
    )
    assert step.status_code == 200
    step = await client.post(
        f"{API}/borrow-requests/{request_id}/transition",
        json={"target_status": "Diproses"}, headers=auth_headers(admin),
    )
    assert step.json()["status"] == "Diproses"
    assert step.json()["remaining_quantity"] == 3
    assert await item_quantity(paper) == 2

    returned = await client.post(f"{API}/return-requests/", json={
        "borrow_request_id": request_id, "quantity": 3, "condition_description": "Baik",
    }, headers=auth_headers(guru))
    assert returned.status_code == 201
    approved = await client.post(
        f"{API}/return-requests/{returned.json()['id']}/transition",
        json={"target_status": "Disetujui"}, headers=auth_headers(admin),
    )
    assert approved.status_code == 200
    assert await item_quantity(paper) == 5

    borrow = await client.get(f"{API}/borrow-requests/{request_id}", headers=auth_headers(guru))
    assert borrow.json()["status"] == "Dikembalikan"

    history = await client.get(f"{API}/borrow-requests/{request_id}/history", headers=auth_headers(admin))
    assert [h["to_status"] for h in history.json()] == ["Pending", "Disetujui", "Diproses", "Dikembalikan"]
    assert (await client.get(f"{API}/borrow-requests/{request_id}/history", headers=auth_headers(guru))).status_code == 403


async def test_error_mapping(client):
    admin = await make_user("admin", UserRole.ADMIN)
    guru = await make_user("guru", UserRole.USER)
    other = await make_user("staf", UserRole.USER)
    markers = await make_item("Markers", 2, ItemType.CONSUMABLE)

    too_many = await client.post(
        f"{API}/consumable-requests/", json={"item_id": str(markers.id), "quantity": 5}, headers=auth_headers(guru),
    )
    assert too_many.status_code == 400
    assert too_many.json()["error"] == "ValidationError"

    not_positive = await client.post(
        f"{API}/consumable-requests/", json={"item_id": str(markers.id), "quantity": 0}, headers=auth_headers(guru),
    )
    assert not_positive.status_code == 422

    for_someone_else = await client.post(
        f"{API}/consumable-requests/",
        json={"item_id": str(markers.id), "quantity": 1, "requester_id": str(other.id)},
        headers=auth_headers(guru),
    )
    assert for_someone_else.status_code == 403

    created = await client.post(
        f"{API}/consumable-requests/", json={"item_id": str(markers.id), "quantity": 1}, headers=auth_headers(guru),
    )
    request_id = created.json()["id"]

    skip = await client.post(
        f"{API}/consumable-requests/{request_id}/transition",
        json={"target_status": "Approved"}, headers=auth_headers(admin),
    )
    assert skip.status_code == 409
    assert skip.json()["error"] == "InvalidTransitionError"
    assert skip.json()["current_status"] == "Pending"

    missing = await client.get(f"{API}/consumable-requests/{ObjectId()}", headers=auth_headers(admin))
    assert missing.status_code == 404

    # Pengguna lain tidak bisa melihat permintaan ini
    hidden = await client.get(f"{API}/consumable-requests/{request_id}", headers=auth_headers(other))
    assert hidden.status_code == 404


async def test_due_date_before_start_is_422(client):
    guru = await make_user("guru", UserRole.USER)
    paper = await make_item("Paper", 5, ItemType.RETURNABLE)
    start = date.today()

    response = await client.post(f"{API}/borrow-requests/", json={
        "item_id": str(paper.id),
        "quantity": 1,
        "borrow_start_date": start.isoformat(),
        "due_date": (start - timedelta(days=1)).isoformat(),
    }, headers=auth_headers(guru))
    assert response.status_code == 422


# --- Notifications ---

async def test_notifications_mark_read(client):
    kepsek = await make_user("kepsek", UserRole.HEADMASTER)
    guru = await make_user("guru", UserRole.USER)
    markers = await make_item("Markers", 5, ItemType.CONSUMABLE)
    for _ in range(2):
        await client.post(
            f"{API}/consumable-requests/", json={"item_id": str(markers.id), "quantity": 1}, headers=auth_headers(guru),
        )

    inbox = await client.get(f"{API}/notifications/", params={"unread_only": True}, headers=auth_headers(kepsek))
    assert len(inbox.json()) == 2

    first_id = inbox.json()[0]["id"]
    # Notifikasi orang lain tidak bisa diubah
    assert (await client.patch(f"{API}/notifications/{first_id}/read", headers=auth_headers(guru))).status_code == 404

    marked = await client.patch(f"{API}/notifications/{first_id}/read", headers=auth_headers(kepsek))
    assert marked.json()["is_read"] is True

    all_read = await client.post(f"{API}/notifications/read-all", headers=auth_headers(kepsek))
    assert all_read.json() == {"updated": 1}
    assert await Notification.find({"recipient_user_id": kepsek.id, "is_read": False}).count() == 0


# --- Users & maintenance ---

async def test_admin_user_management(client):
    admin = await make_user("admin", UserRole.ADMIN)
    guru = await make_user("guru", UserRole.USER)

    promoted = await client.patch(
        f"{API}/users/{guru.id}", json={"role": "Kepala Sekolah"}, headers=auth_headers(admin),
    )
    assert promoted.status_code == 200
    assert promoted.json()["role"] == "Kepala Sekolah"

    self_delete = await client.delete(f"{API}/users/{admin.id}", headers=auth_headers(admin))
    assert self_delete.status_code == 400

    deleted = await client.delete(f"{API}/users/{guru.id}", headers=auth_headers(admin))
    assert deleted.status_code == 204
    assert await User.get(guru.id) is None

    listing = await client.get(f"{API}/users/", headers=auth_headers(guru))
    assert listing.status_code == 401


async def test_truncate_activity_refused_while_on_loan(client):
    admin = await make_user("admin", UserRole.ADMIN)
    kepsek = await make_user("kepsek", UserRole.HEADMASTER)
    guru = await make_user("guru", UserRole.USER)
    paper = await make_item("Paper", 5, ItemType.RETURNABLE)
    start = date.today()

    created = await client.post(f"{API}/borrow-requests/", json={
        "item_id": str(paper.id), "quantity": 1,
        "borrow_start_date": start.isoformat(), "due_date": start.isoformat(),
    }, headers=auth_headers(guru))
    request_id = created.json()["id"]
    await client.post(f"{API}/borrow-requests/{request_id}/transition",
                      json={"target_status": "Disetujui"}, headers=auth_headers(kepsek))
    await client.post(f"{API}/borrow-requests/{request_id}/transition",
                      json={"target_status": "Diproses"}, headers=auth_headers(admin))

    refused = await client.delete(f"{API}/maintenance/activity", headers=auth_headers(admin))
    assert refused.status_code == 409

    await client.post(f"{API}/borrow-requests/{request_id}/transition",
                      json={"target_status": "Dikembalikan"}, headers=auth_headers(admin))
    truncated = await client.delete(f"{API}/maintenance/activity", headers=auth_headers(admin))
    assert truncated.status_code == 200
    assert truncated.json()["deleted"]["borrow_requests"] == 1
    assert await item_quantity(paper) == 5
