from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.core.clock import Clock, system_clock
from app.core.errors import Unauthorized
from app.core.security import decode_token
from app.models.user import User
from app.services.payment_service import build_gateway
from app.services.xendit_client import XenditClient

bearer = HTTPBearer(auto_error=False)

def get_current_user(
    creds: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: Session = Depends(get_db),
) -> User:
    if not creds:
        raise Unauthorized()
    try:
        payload = decode_token(creds.credentials)
    except (JWTError, ValueError):
        raise Unauthorized()
    user_id = payload.get("sub")
    user = db.get(User, user_id) if user_id else None
    if not user or not user.is_active:
        raise Unauthorized()
    return user

def get_clock() -> Clock:
    """Overridden in tests with ``fixed_clock``."""
    return system_clock

def get_gateway() -> XenditClient:
    return build_gateway()
