# File: civictrack/routers/auth.py

import logging
from datetime import datetime, timezone

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from civictrack.core.errors import Conflict, Forbidden, Unauthenticated
from civictrack.core.security import hash_password, verify_password, make_tokens, get_current_user
from civictrack.db.session import get_db
from civictrack.models.user import User, UserRole
from civictrack.schemas.auth import RegisterIn, LoginIn, TokenPair

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=TokenPair, status_code=201)
def register(body: RegisterIn, db: Session = Depends(get_db)):
    email = body.email.lower()
    if db.query(User).filter(User.email == email).first():
        raise Conflict("Email already registered")

    user = User(
        email=email,
        name=body.name.strip(),
        hashed_password=hash_password(body.password),
        role=UserRole.user,
        is_banned=False,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    logger.info("Registered user %s", user.id)

    # Sign-in immediately
    return make_tokens(user.email, user.role.value)

@router.post("/login", response_model=TokenPair)
def login(body: LoginIn, db: Session = Depends(get_db)):
    user = db.query(User).filter(User.email == body.email.lower()).first()
    if not user or not user.hashed_password:
        raise Unauthenticated("Invalid email or password")
    if not verify_password(body.password, user.hashed_password):
        raise Unauthenticated("Invalid email or password")
    if user.is_banned:
        raise Forbidden("Your account has been banned. Please contact support.")
    user.last_login = datetime.now(timezone.utc)
    db.commit()
    return make_tokens(user.email, user.role.value)

@router.get("/me")
def me(current: User = Depends(get_current_user)):
    return {
        "id": current.id,
        "email": current.email,
        "name": current.name,
        "role": current.role.value,
        "is_banned": current.is_banned,
    }
