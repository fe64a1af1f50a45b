import logging
import secrets
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, conint, constr
from typing import List, Literal, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select
from peerlearn.core.auth import get_current_user
from peerlearn.core.config import settings
from peerlearn.core.database import get_db
from peerlearn.models.orm import Activity, ActivityQuestion, Hub, Participation, User
from peerlearn.services.availability import to_utc_naive
from peerlearn.services.leaderboard import activity_leaderboard
from peerlearn.services.scoring import record_participation
from peerlearn.api.users import user_brief

logger = logging.getLogger(__name__)
router = APIRouter()

ActivityType = Literal["contest", "quiz", "challenge", "workshop", "webinar", "meeting"]
MEETING_TYPES = ("workshop", "webinar", "meeting")

class QuestionIn(BaseModel):
    question: constr(min_length=1)
    options: List[str] = []
    correct_answer: conint(ge=0)
    points: conint(ge=0) = 10

class ActivityCreate(BaseModel):
    title: constr(min_length=1, max_length=200)
    description: Optional[str] = None
    type: ActivityType
    hub_id: int
    start_date: datetime
    end_date: Optional[datetime] = None
    duration: Optional[int] = None
    max_participants: Optional[int] = None
    questions: List[QuestionIn] = []
    rewards: dict = {}

class ParticipateIn(BaseModel):
    answers: List[Optional[int]] = []

def participation_out(p: Participation) -> dict:
    return {"user": user_brief(p.user), "score": p.score, "answers": p.answers or [], "completed_at": p.completed_at}

def activity_out(a: Activity, detail: bool = False) -> dict:
    out = {
        "id": a.id, "title": a.title, "description": a.description, "type": a.type,
        "hub": {"id": a.hub.id, "name": a.hub.name, "cover_image": a.hub.cover_image} if a.hub else None,
        "created_by": user_brief(a.creator), "start_date": a.start_date, "end_date": a.end_date,
        "duration": a.duration, "meeting_link": a.meeting_link, "max_participants": a.max_participants,
        "rewards": a.rewards or {}, "status": a.status, "total_participants": len(a.participants),
    }
    if detail:
        # correct answers stay server side
        out["questions"] = [{"question": q.question, "options": q.options or [], "points": q.points} for q in a.questions]
        out["participants"] = [participation_out(p) for p in a.participants]
    return out

def load_activity(db: Session, activity_id: int) -> Activity:
    activity = db.get(Activity, activity_id)
    if not activity: raise HTTPException(404, "Activity not found")
    return activity

@router.get("")
def list_activities(hub_id: Optional[int] = None, type: Optional[ActivityType] = None,
                    status: Optional[str] = None, db: Session = Depends(get_db)):
    stmt = select(Activity)
    if hub_id is not None: stmt = stmt.where(Activity.hub_id == hub_id)
    if type: stmt = stmt.where(Activity.type == type)
    if status: stmt = stmt.where(Activity.status == status)
    return [activity_out(a) for a in db.scalars(stmt.order_by(Activity.start_date, Activity.id))]

@router.post("", status_code=201)
def create_activity(payload: ActivityCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hub = db.get(Hub, payload.hub_id)
    if not hub: raise HTTPException(404, "Hub not found")
    if not hub.member(user.id):
        raise HTTPException(403, "Not a member of this hub")
    for i, q in enumerate(payload.questions):
        if q.options and q.correct_answer >= len(q.options):
            raise HTTPException(400, f"Question {i} has no option {q.correct_answer}")
    activity = Activity(
        title=payload.title, description=payload.description, type=payload.type, hub_id=hub.id,
        created_by=user.id, start_date=to_utc_naive(payload.start_date),
        end_date=to_utc_naive(payload.end_date) if payload.end_date else None,
        duration=payload.duration, max_participants=payload.max_participants, rewards=payload.rewards,
    )
    if payload.type in MEETING_TYPES:
        activity.meeting_link = f"{settings.MEETING_URL_BASE}{secrets.token_hex(5)}"
    for q in payload.questions:
        activity.questions.append(ActivityQuestion(**q.model_dump()))
    db.add(activity); db.commit(); db.refresh(activity)
    logger.info("user %s created %s activity %s in hub %s", user.id, activity.type, activity.id, hub.id)
    return activity_out(activity, detail=True)

@router.get("/{activity_id}")
def get_activity(activity_id: int, db: Session = Depends(get_db)):
    return activity_out(load_activity(db, activity_id), detail=True)

@router.post("/{activity_id}/participate")
def participate(activity_id: int, payload: ParticipateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    activity = load_activity(db, activity_id)
    participation = record_participation(db, activity, user, payload.answers)
    return {"message": "Activity completed", "score": participation.score}

@router.get("/{activity_id}/leaderboard")
def leaderboard(activity_id: int, db: Session = Depends(get_db)):
    activity = load_activity(db, activity_id)
    return [participation_out(p) for p in activity_leaderboard(activity, settings.ACTIVITY_LEADERBOARD_SIZE)]
