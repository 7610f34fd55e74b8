from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime
from database import users_collection
from models.user import UserModel, UserUpdate, ProfileUpdate
from routes.deps import get_current_user, require_admin
from constants import Roles
from utils.serializers import parse_object_id, success
from logging_config import get_logger

router = APIRouter(prefix="/api/users", tags=["Users"])
logger = get_logger("users")

# Never return password hashes
SAFE_PROJECTION = {"password_hash": 0}


@router.get("")
async def list_users(current_user: UserModel = Depends(require_admin)):
    users = await users_collection.find({}, SAFE_PROJECTION).sort("name", 1).to_list(None)
    return success(users)


@router.put("/profile/update")
async def update_profile(payload: ProfileUpdate, current_user: UserModel = Depends(get_current_user)):
    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not update_data:
        raise HTTPException(status_code=400, detail="Nothing to update")

    oid = parse_object_id(current_user.id, "user ID")
    update_data["updated_at"] = datetime.now()
    await users_collection.update_one({"_id": oid}, {"$set": update_data})
    user = await users_collection.find_one({"_id": oid}, SAFE_PROJECTION)

    logger.info("Profile updated", extra={"data": {"fields": list(update_data.keys())}})
    return success(user, message="Profile updated successfully")


@router.get("/{user_id}")
async def get_user(user_id: str, current_user: UserModel = Depends(get_current_user)):
    if current_user.role != Roles.ADMIN and current_user.id != user_id:
        raise HTTPException(status_code=403, detail="Not authorized to view this user")

    user = await users_collection.find_one({"_id": parse_object_id(user_id, "user ID")}, SAFE_PROJECTION)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return success(user)


@router.put("/{user_id}")
async def update_user(user_id: str, payload: UserUpdate, current_user: UserModel = Depends(require_admin)):
    oid = parse_object_id(user_id, "user ID")
    if not await users_collection.find_one({"_id": oid}, {"_id": 1}):
        raise HTTPException(status_code=404, detail="User not found")

    update_data = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "email" in update_data:
        update_data["email"] = update_data["email"].strip().lower()
        clash = await users_collection.find_one({"email": update_data["email"], "_id": {"$ne": oid}}, {"_id": 1})
        if clash:
            raise HTTPException(status_code=400, detail="Email is already in use")
    if "manager_id" in update_data:
        update_data["manager_id"] = parse_object_id(update_data["manager_id"], "manager ID")

    update_data["updated_at"] = datetime.now()
    await users_collection.update_one({"_id": oid}, {"$set": update_data})
    user = await users_collection.find_one({"_id": oid}, SAFE_PROJECTION)

    logger.info("User updated", extra={"data": {"user_id": user_id, "fields": list(update_data.keys())}})
    return success(user)


@router.delete("/{user_id}")
async def delete_user(user_id: str, current_user: UserModel = Depends(require_admin)):
    if user_id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")

    result = await users_collection.delete_one({"_id": parse_object_id(user_id, "user ID")})
    if result.deleted_count == 0:
        raise HTTPException(status_code=404, detail="User not found")

    logger.info("User deleted", extra={"data": {"user_id": user_id}})
    return success(message="User deleted successfully")
