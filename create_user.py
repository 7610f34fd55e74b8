import asyncio
from datetime import datetime
from database import users_collection
from constants import Roles
from utils.security import hash_password


async def add_user(email: str, name: str, password: str, role: str):
    email = email.strip().lower()
    existing = await users_collection.find_one({"email": email})
    if existing:
        print(f"User {email} already exists.")
        return

    await users_collection.insert_one({
        "name": name,
        "email": email,
        "password_hash": hash_password(password),
        "role": role,
        "manager_id": None,
        "theme": "light",
        "created_at": datetime.now(),
    })
    print(f"✅ Successfully added {role}: {email}")

if __name__ == "__main__":
    import argparse
    parser = argparse.ArgumentParser(description='Create a user directly in the database (bootstraps the first admin)')
    parser.add_argument('email', type=str, help='Login email')
    parser.add_argument('password', type=str, help='Initial password')
    parser.add_argument('--name', type=str, default='Admin User', help='User name')
    parser.add_argument('--role', type=str, default=Roles.ADMIN, choices=[Roles.ADMIN, Roles.MANAGER, Roles.USER])

    args = parser.parse_args()
    if len(args.password) < 6:
        parser.error("password must be at least 6 characters")

    asyncio.run(add_user(args.email, args.name, args.password, args.role))
