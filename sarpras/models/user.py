# sarpras/models/user.py
from typing import Optional
from beanie import Document
from pydantic import BaseModel, Field, EmailStr
from pymongo import IndexModel, ASCENDING, DESCENDING
from datetime import datetime

from .enum import UserRole, Instansi
from .item import utcnow


class User(Document):
    username: str
    email: Optional[EmailStr] = None
    first_name: str = ""
    last_name: str = ""
    position: Optional[str] = None  # Jabatan
    instansi: Optional[Instansi] = None
    hashed_password: str
    disabled: bool = Field(default=False)  # False=Aktif, True=Nonaktif
    role: UserRole = Field(default=UserRole.USER)

    # Timestamps
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    class Settings:
        name = "users"
        indexes = [
            IndexModel([("username", ASCENDING)], name="username_unique_index", unique=True),
            IndexModel([("email", ASCENDING)], name="email_unique_index", unique=True, sparse=True),
            IndexModel([("role", ASCENDING)], name="role_index"),
            IndexModel([("disabled", ASCENDING)], name="user_disabled_index"),
            IndexModel([("updated_at", DESCENDING)], name="user_updated_at_index"),
        ]

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or self.username

    # --- Pydantic Schemas ---
    class Response(BaseModel):
        id: str
        username: str
        email: Optional[EmailStr] = None
        first_name: str
        last_name: str
        position: Optional[str] = None
        instansi: Optional[Instansi] = None
        disabled: bool
        role: UserRole
        created_at: datetime
        updated_at: datetime

        class Config:
            use_enum_values = True

    class Create(BaseModel):
        username: str = Field(..., min_length=3, max_length=50)
        email: Optional[EmailStr] = None
        first_name: str = Field(..., min_length=2)
        last_name: str = ""
        position: Optional[str] = None
        instansi: Instansi
        password: str = Field(..., min_length=6)

    class AdminUpdate(BaseModel):
        role: Optional[UserRole] = None
        disabled: Optional[bool] = None

    def to_response(self) -> "User.Response":
        data = self.model_dump(exclude={"id", "hashed_password", "revision_id"})
        return User.Response(id=str(self.id), **data)
