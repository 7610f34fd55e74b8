from fastapi import APIRouter, HTTPException, Depends, status
from typing import Optional
from datetime import datetime
from database import users_collection
from models.user import UserModel, RegisterRequest, LoginRequest
from routes.deps import create_access_token, get_current_user, get_optional_user
from constants import Roles
from utils.security import hash_password, verify_password
from logging_config import get_logger

router = APIRouter(prefix="/api/auth", tags=["Authentication"])
logger = get_logger("auth")


def _auth_response(user: UserModel) -> dict:
    access_token = create_access_token(data={"sub": user.id, "role": user.role})
    return {
        "success": True,
        "token": access_token,
        "token_type": "bearer",
        "user": user.model_dump(mode="json"),
    }


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(payload: RegisterRequest, current_user: Optional[UserModel] = Depends(get_optional_user)):
    """
    Create an account.
    - Plain 'user' accounts are open registration
    - 'admin' / 'manager' accounts can only be created by an admin
    """
    if payload.role != Roles.USER and (current_user is None or current_user.role != Roles.ADMIN):
        logger.warning("Privileged registration denied", extra={"data": {"email": payload.email, "role": payload.role}})
        raise HTTPException(status_code=403, detail="Only admins can create admin or manager accounts")

    if await users_collection.find_one({"email": payload.email}):
        raise HTTPException(status_code=400, detail="User already exists")

    doc = {
        "name": payload.name,
        "email": payload.email,
        "password_hash": hash_password(payload.password),
        "role": payload.role,
        "manager_id": None,
        "theme": "light",
        "created_at": datetime.now(),
    }
    result = await users_collection.insert_one(doc)
    doc["_id"] = result.inserted_id

    user = UserModel.from_document(doc)
    logger.info("User registered", extra={"data": {"user_id": user.id, "role": user.role}})
    return _auth_response(user)


@router.post("/login")
async def login(payload: LoginRequest):
    user_doc = await users_collection.find_one({"email": payload.email})
    if not user_doc or not verify_password(payload.password, user_doc.get("password_hash", "")):
        logger.warning("Login failed: invalid credentials", extra={"data": {"email": payload.email}})
        raise HTTPException(status_code=401, detail="Invalid credentials")

    await users_collection.update_one({"_id": user_doc["_id"]}, {"$set": {"last_login": datetime.now()}})
    user = UserModel.from_document(user_doc)
    logger.info("Login successful", extra={"data": {"user_id": user.id, "role": user.role}})
    return _auth_response(user)


@router.get("/me")
async def me(current_user: UserModel = Depends(get_current_user)):
    return {"success": True, **current_user.model_dump(mode="json")}
