# create_admin.py
"""Bootstrap akun Admin atau Kepala Sekolah pertama.

Registrasi lewat API selalu membuat akun ``Pengguna``; akun dengan otoritas
persetujuan dibuat dengan skrip ini (atau diubah role-nya oleh Admin).
"""
import argparse
import asyncio
import sys
from getpass import getpass

from sarpras.core.security import get_password_hash
from sarpras.db.database import init_db, get_client
from sarpras.models.enum import UserRole, Instansi
from sarpras.models.user import User

ROLE_CHOICES = {
    "admin": UserRole.ADMIN,
    "kepsek": UserRole.HEADMASTER,
}


def prompt_non_empty(label: str) -> str:
    while True:
        value = input(label).strip()
        if value:
            return value
        print("Value cannot be empty.")


def prompt_password() -> str:
    while True:
        password = getpass("Enter password (min 6 chars): ")
        if len(password) < 6:
            print("Password must be at least 6 characters.")
            continue
        if password == getpass("Confirm password: "):
            return password
        print("Passwords do not match. Please try again.")


def prompt_instansi() -> Instansi:
    options = ", ".join(i.value for i in Instansi)
    while True:
        raw = input(f"Enter instansi ({options}): ").strip().upper()
        try:
            return Instansi(raw)
        except ValueError:
            print(f"Unknown instansi '{raw}'.")


async def create_initial_user(role: UserRole) -> int:
    print(f"--- Create Initial {role.value} User ---")
    await init_db()

    username = prompt_non_empty(f"Enter {role.value} username: ")
    if await User.find_one(User.username == username):
        print(f"Error: Username '{username}' already exists.")
        return 1

    password = prompt_password()
    first_name = prompt_non_empty("Enter first name: ")
    last_name = input("Enter last name (optional): ").strip()
    email = input("Enter email (optional, press Enter to skip): ").strip() or None
    position = input("Enter position/jabatan (optional): ").strip() or None
    instansi = prompt_instansi()

    user = User(
        username=username,
        email=email,
        first_name=first_name,
        last_name=last_name,
        position=position,
        instansi=instansi,
        hashed_password=get_password_hash(password),
        role=role,
        disabled=False,
    )
    await user.insert()
    print(f"{role.value} user '{username}' created successfully!")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create the first Admin or Kepala Sekolah account.")
    parser.add_argument("--role", choices=sorted(ROLE_CHOICES), default="admin")
    args = parser.parse_args()
    try:
        return asyncio.run(create_initial_user(ROLE_CHOICES[args.role]))
    finally:
        client = get_client()
        if client is not None:
            client.close()
            print("Database connection closed.")


if __name__ == "__main__":
    sys.exit(main())
