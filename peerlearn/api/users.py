from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from typing import List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select
from peerlearn.core.auth import get_current_user
from peerlearn.core.database import get_db
from peerlearn.models.orm import User, Hub, HubMember

router = APIRouter()

def user_brief(user: Optional[User]) -> Optional[dict]:
    if user is None:
        return None
    return {"id": user.id, "name": user.name, "avatar": user.avatar}

def user_out(user: User, private: bool = False) -> dict:
    out = {
        "id": user.id, "name": user.name, "avatar": user.avatar, "bio": user.bio, "role": user.role,
        "skills_to_teach": user.skills_to_teach or [], "skills_to_learn": user.skills_to_learn or [],
        "is_trainer": user.is_trainer, "points": user.points, "level": user.level, "badges": user.badges or [],
        "average_rating": user.average_rating, "total_ratings": user.total_ratings,
    }
    if user.is_trainer:
        out["trainer_profile"] = {
            "domain": user.domains or [], "experience": user.experience,
            "pricing": {"hourly_rate": user.hourly_rate, "programs": user.programs or []},
            "total_students": user.total_students, "total_sessions": user.total_sessions,
        }
    if private:
        out["email"] = user.email
    return out

class SkillIn(BaseModel):
    skill: str
    level: Optional[str] = None

class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    bio: Optional[str] = None
    avatar: Optional[str] = None
    skills_to_teach: Optional[List[SkillIn]] = None
    skills_to_learn: Optional[List[str]] = None

class TrainerProfileIn(BaseModel):
    domain: List[str] = []
    experience: int = 0
    hourly_rate: float = 0.0
    programs: List[dict] = []

class BecomeTrainer(BaseModel):
    trainer_profile: Optional[TrainerProfileIn] = None

@router.get("/profile")
def get_profile(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hubs = db.execute(select(Hub).join(HubMember, HubMember.hub_id == Hub.id).where(HubMember.user_id == user.id)).scalars().all()
    out = user_out(user, private=True)
    out["learner_hubs"] = [{"id": h.id, "name": h.name, "cover_image": h.cover_image, "total_members": h.total_members} for h in hubs]
    return out

@router.put("/profile")
def update_profile(payload: ProfileUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = payload.model_dump(exclude_none=True)
    for field in ("name", "bio", "avatar", "skills_to_teach", "skills_to_learn"):
        if data.get(field):
            setattr(user, field, data[field])
    db.commit(); db.refresh(user)
    return user_out(user, private=True)

@router.post("/become-trainer")
def become_trainer(payload: BecomeTrainer, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    profile = payload.trainer_profile or TrainerProfileIn()
    user.is_trainer = True
    user.role = "both" if user.role == "learner" else user.role
    user.domains, user.experience = profile.domain, profile.experience
    user.hourly_rate, user.programs = profile.hourly_rate, profile.programs
    db.commit(); db.refresh(user)
    return user_out(user, private=True)

@router.get("/{user_id}")
def get_user(user_id: int, db: Session = Depends(get_db)):
    user = db.get(User, user_id)
    if not user: raise HTTPException(404, "User not found")
    return user_out(user)
