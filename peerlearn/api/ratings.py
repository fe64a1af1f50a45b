import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, conint, constr
from typing import Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from peerlearn.core.auth import get_current_user
from peerlearn.core.database import get_db
from peerlearn.models.orm import Rating, TrainingSession, User
from peerlearn.api.users import user_brief

logger = logging.getLogger(__name__)
router = APIRouter()

class Categories(BaseModel):
    knowledge: Optional[conint(ge=1, le=5)] = None
    communication: Optional[conint(ge=1, le=5)] = None
    patience: Optional[conint(ge=1, le=5)] = None
    helpfulness: Optional[conint(ge=1, le=5)] = None

class RatingIn(BaseModel):
    session_id: int
    rating: conint(ge=1, le=5)
    review: Optional[constr(max_length=500)] = None
    categories: Categories = Categories()

def rating_out(r: Rating) -> dict:
    return {"id": r.id, "trainer_id": r.trainer_id, "learner": user_brief(r.learner), "session_id": r.session_id,
            "rating": r.rating, "review": r.review, "categories": r.categories or {}, "created_at": r.created_at}

def refresh_trainer_rating(db: Session, trainer: User) -> None:
    avg, count = db.execute(select(func.avg(Rating.rating), func.count(Rating.id)).where(Rating.trainer_id == trainer.id)).one()
    trainer.average_rating = round(float(avg or 0.0), 1)
    trainer.total_ratings = int(count or 0)

@router.post("", status_code=201)
def create_rating(payload: RatingIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = db.get(TrainingSession, payload.session_id)
    if not s or s.status != "completed":
        raise HTTPException(400, "Can only rate completed sessions")
    took_part = s.learner_id == user.id or any(p.user_id == user.id for p in s.participants)
    if not took_part:
        raise HTTPException(403, "You did not take part in this session")
    if db.scalar(select(Rating).where(Rating.learner_id == user.id, Rating.session_id == s.id)):
        raise HTTPException(400, "Already rated this session")
    rating = Rating(trainer_id=s.trainer_id, learner_id=user.id, session_id=s.id, rating=payload.rating,
                    review=payload.review, categories=payload.categories.model_dump(exclude_none=True))
    db.add(rating)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        raise HTTPException(400, "Already rated this session")
    refresh_trainer_rating(db, s.trainer)
    db.commit(); db.refresh(rating)
    logger.info("user %s rated trainer %s %s/5", user.id, s.trainer_id, payload.rating)
    return rating_out(rating)

@router.get("/trainer/{trainer_id}")
def trainer_ratings(trainer_id: int, db: Session = Depends(get_db)):
    stmt = select(Rating).where(Rating.trainer_id == trainer_id).order_by(Rating.created_at.desc(), Rating.id.desc())
    return [rating_out(r) for r in db.scalars(stmt)]
