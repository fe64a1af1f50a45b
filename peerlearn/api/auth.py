from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, constr
from typing import Literal
from sqlalchemy.orm import Session
from sqlalchemy import select
from peerlearn.core.auth import create_token, hash_password, verify_password
from peerlearn.core.config import settings
from peerlearn.core.database import get_db
from peerlearn.models.orm import User
from peerlearn.api.users import user_out

router = APIRouter()

class Register(BaseModel):
    name: constr(min_length=1, max_length=120)
    email: constr(min_length=3, max_length=255)
    password: constr(min_length=settings.PASSWORD_MIN_LENGTH)
    role: Literal["learner", "trainer", "both"] = "learner"

class Login(BaseModel):
    email: str
    password: str

def _token_response(user: User) -> dict:
    return {"access_token": create_token(user.id), "token_type": "bearer", "user": user_out(user, private=True)}

@router.post("/register", status_code=201)
def register(payload: Register, db: Session = Depends(get_db)):
    email = payload.email.strip().lower()
    if "@" not in email:
        raise HTTPException(400, "Please add a valid email")
    if db.scalar(select(User).where(User.email == email)):
        raise HTTPException(400, "User already exists")
    user = User(name=payload.name.strip(), email=email, password_hash=hash_password(payload.password),
                role=payload.role, is_trainer=payload.role in ("trainer", "both"))
    db.add(user); db.commit(); db.refresh(user)
    return _token_response(user)

@router.post("/login")
def login(payload: Login, db: Session = Depends(get_db)):
    user = db.scalar(select(User).where(User.email == payload.email.strip().lower()))
    if not user or not verify_password(payload.password, user.password_hash):
        raise HTTPException(401, "Invalid email or password")
    return _token_response(user)
