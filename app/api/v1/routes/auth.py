from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.schemas.auth import LoginRequest, TokenOut, UserOut
from app.models.user import User
from app.core.errors import Unauthorized
from app.core.security import verify_password, create_access_token
from app.api.deps import get_current_user

router = APIRouter(tags=["auth"])

@router.post("/auth/login", response_model=TokenOut)
def login(body: LoginRequest, db: Session = Depends(get_db)):
    user = db.scalars(select(User).where(User.email == body.email.strip().lower())).first()
    if not user or not user.is_active:
        raise Unauthorized("Invalid credentials")
    if not verify_password(body.password, user.password_hash):
        raise Unauthorized("Invalid credentials")
    return TokenOut(access_token=create_access_token(user.id))

@router.get("/auth/me", response_model=UserOut)
def me(me: User = Depends(get_current_user)):
    return UserOut(id=me.id, email=me.email, name=me.name or "", phone=me.phone or "")
