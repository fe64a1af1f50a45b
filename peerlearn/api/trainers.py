from datetime import date
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, conint
from typing import List, Literal, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from peerlearn.core.auth import get_current_user, require_trainer
from peerlearn.core.config import settings
from peerlearn.core.database import get_db
from peerlearn.models.orm import Rating, User
from peerlearn.services.availability import validate_availability, available_slots
from peerlearn.api.users import user_out
from peerlearn.api.ratings import rating_out

router = APIRouter()

SORTS = {
    "rating": (User.average_rating.desc(),),
    "price-low": (User.hourly_rate.asc(),),
    "price-high": (User.hourly_rate.desc(),),
    "students": (User.total_students.desc(),),
}

class TrainerProfileUpdate(BaseModel):
    domain: Optional[List[str]] = None
    experience: Optional[conint(ge=0)] = None
    hourly_rate: Optional[float] = None
    programs: Optional[List[dict]] = None
    bio: Optional[str] = None

class RecurringRule(BaseModel):
    day_of_week: conint(ge=0, le=6)
    start_time: str = "09:00"
    end_time: str = "17:00"
    session_durations: List[conint(gt=0)] = [60]
    enabled: bool = False

class AvailabilityException(BaseModel):
    date: str
    type: Literal["available", "blocked"]
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    session_durations: Optional[List[conint(gt=0)]] = None
    reason: Optional[str] = None

class AvailabilityIn(BaseModel):
    timezone: Optional[str] = None
    recurring: List[RecurringRule] = []
    exceptions: List[AvailabilityException] = []

def load_trainer(db: Session, trainer_id: int) -> User:
    trainer = db.get(User, trainer_id)
    if not trainer or not trainer.is_trainer:
        raise HTTPException(404, "Trainer not found")
    return trainer

@router.get("")
def search_trainers(domain: Optional[str] = None, min_rating: Optional[float] = None, max_price: Optional[float] = None,
                    search: Optional[str] = None, sort: Literal["rating", "price-low", "price-high", "students"] = "rating",
                    db: Session = Depends(get_db)):
    stmt = select(User).where(User.is_trainer.is_(True))
    if min_rating is not None: stmt = stmt.where(User.average_rating >= min_rating)
    if max_price is not None: stmt = stmt.where(User.hourly_rate <= max_price)
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(User.name.ilike(like), User.bio.ilike(like)))
    trainers = db.scalars(stmt.order_by(*SORTS[sort], User.id)).all()
    # domains is a JSON list, filtered here to stay portable across backends
    if domain:
        trainers = [t for t in trainers if domain in (t.domains or [])]
    return [user_out(t) for t in trainers[:settings.HUB_LIST_LIMIT]]

@router.put("/profile")
def update_trainer_profile(payload: TrainerProfileUpdate, user: User = Depends(require_trainer), db: Session = Depends(get_db)):
    data = payload.model_dump(exclude_none=True)
    if "domain" in data:
        user.domains = data.pop("domain")
    for field, value in data.items():
        setattr(user, field, value)
    db.commit(); db.refresh(user)
    return user_out(user, private=True)

@router.get("/availability/me")
def my_availability(user: User = Depends(require_trainer)):
    return user.availability or validate_availability({})

@router.put("/availability/me")
def update_availability(payload: AvailabilityIn, user: User = Depends(require_trainer), db: Session = Depends(get_db)):
    user.availability = validate_availability(payload.model_dump(exclude_none=True))
    db.commit(); db.refresh(user)
    return user.availability

@router.get("/{trainer_id}")
def trainer_profile(trainer_id: int, db: Session = Depends(get_db)):
    trainer = load_trainer(db, trainer_id)
    recent = db.scalars(select(Rating).where(Rating.trainer_id == trainer.id)
                        .order_by(Rating.created_at.desc(), Rating.id.desc()).limit(10)).all()
    return {"trainer": user_out(trainer), "ratings": [rating_out(r) for r in recent]}

@router.get("/{trainer_id}/programs")
def trainer_programs(trainer_id: int, db: Session = Depends(get_db)):
    return load_trainer(db, trainer_id).programs or []

@router.get("/{trainer_id}/availability")
def trainer_availability(trainer_id: int, db: Session = Depends(get_db)):
    return load_trainer(db, trainer_id).availability or validate_availability({})

@router.get("/{trainer_id}/available-slots")
def trainer_slots(trainer_id: int, date: date, duration: Optional[conint(gt=0)] = None, db: Session = Depends(get_db)):
    trainer = load_trainer(db, trainer_id)
    return {"date": date.isoformat(), "slots": available_slots(db, trainer.id, trainer.availability or {}, date, duration)}
