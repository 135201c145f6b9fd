# tests/factories.py
from datetime import date, timedelta

from sarpras.core.authority import Actor
from sarpras.models.enum import UserRole, ItemType, Instansi
from sarpras.models.item import Item
from sarpras.models.user import User


async def make_user(username: str, role: UserRole, disabled: bool = False) -> User:
    user = User(
        username=username,
        first_name=username.capitalize(),
        instansi=Instansi.SDIT,
        hashed_password="not-a-real-hash",
        role=role,
        disabled=disabled,
    )
    await user.insert()
    return user


def actor_of(user: User) -> Actor:
    return Actor(id=user.id, role=user.role, username=user.username)


async def make_item(name: str, quantity: int, item_type: ItemType) -> Item:
    item = Item(name=name, quantity=quantity, type=item_type)
    await item.insert()
    return item


async def item_quantity(item: Item) -> int:
    fresh = await Item.get(item.id)
    return fresh.quantity


def borrow_dates(days: int = 7):
    start = date.today()
    return start, start + timedelta(days=days)
