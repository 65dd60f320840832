import logging
import jwt
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from db import get_db
from models.models_user import User
from models.schemas_user import UserOut
from utils.auth_utils import decode_token
from utils.errors import Forbidden, Unauthorized

logger = logging.getLogger("auth")


def auth_user(authorization: str | None = Header(default=None), db: Session = Depends(get_db)) -> UserOut:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise Unauthorized("Missing token")
    token = authorization.split(" ", 1)[1]
    try:
        data = decode_token(token)
    except jwt.PyJWTError as e:
        logger.warning("Token decode failed: %s", e)
        raise Unauthorized("Invalid token")
    user = db.get(User, data.get("sub"))
    if not user or not user.is_active:
        logger.warning("No active user for token subject %s", data.get("sub"))
        raise Unauthorized("Invalid token")
    return UserOut.model_validate(user)


def admin_user(current: UserOut = Depends(auth_user)) -> UserOut:
    if not current.is_admin:
        raise Forbidden("Admin access required")
    return current
