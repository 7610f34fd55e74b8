from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from datetime import datetime, timedelta, timezone
from typing import Optional
from bson import ObjectId
from database import users_collection
from models.user import UserModel
from constants import Roles, ELEVATED_ROLES
from logging_config import get_logger, user_id_var, user_role_var
from config import config

logger = get_logger("auth")

# Config from central config
SECRET_KEY = config.SECRET_KEY
ALGORITHM = config.ALGORITHM
ACCESS_TOKEN_EXPIRE_MINUTES = config.ACCESS_TOKEN_EXPIRE_MINUTES

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Signed HS256 token; callers put the user id in `sub` and the role in `role`."""
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    return jwt.encode({**data, "exp": expire}, SECRET_KEY, algorithm=ALGORITHM)

async def _resolve_user(token: str) -> UserModel:
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None or not ObjectId.is_valid(user_id):
            logger.warning("Token decoded but 'sub' claim missing or malformed")
            raise credentials_exception
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        raise credentials_exception

    user = await users_collection.find_one({"_id": ObjectId(user_id)}, {"password_hash": 0})
    if user is None:
        logger.warning("Token valid but user not found in DB", extra={"data": {"user_id": user_id}})
        raise credentials_exception

    current_user = UserModel.from_document(user)
    user_id_var.set(current_user.id)
    user_role_var.set(current_user.role)
    return current_user

async def get_current_user(token: str = Depends(oauth2_scheme)) -> UserModel:
    return await _resolve_user(token)

async def get_optional_user(token: Optional[str] = Depends(optional_oauth2_scheme)) -> Optional[UserModel]:
    """Caller if a bearer token was sent, else None. A bad token still fails."""
    if not token:
        return None
    return await _resolve_user(token)


# ─── Centralized RBAC Helpers ────────────────────────────────────────────────

def require_role(*allowed_roles):
    """Dependency that checks if the current user has one of the allowed roles."""
    async def checker(current_user: UserModel = Depends(get_current_user)):
        if current_user.role not in allowed_roles:
            logger.warning(
                f"Access denied: requires {allowed_roles}",
                extra={"data": {"user_id": current_user.id, "role": current_user.role}}
            )
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return current_user
    return checker


require_elevated = require_role(*ELEVATED_ROLES)
require_admin = require_role(Roles.ADMIN)
