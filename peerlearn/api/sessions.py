import logging
import random
import time
from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, conint, constr
from typing import List, Literal, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from peerlearn.core.auth import get_current_user
from peerlearn.core.config import settings
from peerlearn.core.database import get_db
from peerlearn.models.orm import TrainingSession, SessionParticipant, Hub, User, utcnow
from peerlearn.services.availability import find_conflict, to_utc_naive
from peerlearn.api.users import user_brief

logger = logging.getLogger(__name__)
router = APIRouter()

SessionType = Literal["one-on-one", "group"]

class SoloRequest(BaseModel):
    trainer_id: int
    requested_slot: datetime
    duration: conint(gt=0) = 60
    title: constr(min_length=1, max_length=200)
    description: constr(min_length=1)

class RejectIn(BaseModel):
    reason: Optional[str] = None

class SuggestIn(BaseModel):
    suggested_slots: List[datetime] = []

class SessionCreate(BaseModel):
    trainer_id: int
    title: constr(min_length=1, max_length=200)
    description: Optional[str] = None
    type: SessionType = "one-on-one"
    scheduled_at: datetime
    duration: conint(gt=0) = 60
    hub_id: Optional[int] = None
    price: float = 0.0
    max_participants: Optional[conint(gt=0)] = None

class CompleteIn(BaseModel):
    notes: Optional[str] = None
    recording_url: Optional[str] = None

def session_out(s: TrainingSession) -> dict:
    return {
        "id": s.id, "title": s.title, "description": s.description, "type": s.type,
        "trainer": user_brief(s.trainer), "learner": user_brief(s.learner), "hub_id": s.hub_id,
        "scheduled_at": s.scheduled_at, "duration": s.duration, "requested_slot": s.requested_slot,
        "status": s.status, "rejection_reason": s.rejection_reason,
        "suggested_alternatives": s.suggested_alternatives or [], "meeting_link": s.meeting_link,
        "price": s.price, "payment_status": s.payment_status, "max_participants": s.max_participants,
        "participants": [{"user_id": p.user_id, "joined_at": p.joined_at, "attended": p.attended} for p in s.participants],
        "notes": s.notes, "recording_url": s.recording_url, "completed_at": s.completed_at, "created_at": s.created_at,
    }

def meeting_link() -> str:
    return f"{settings.MEETING_URL_BASE}{random.randint(100000000, 999999999)}"

def load_session(db: Session, session_id: int) -> TrainingSession:
    s = db.get(TrainingSession, session_id)
    if not s: raise HTTPException(404, "Session not found")
    return s

def load_trainer(db: Session, trainer_id: int) -> User:
    trainer = db.get(User, trainer_id)
    if not trainer or not trainer.is_trainer:
        raise HTTPException(404, "Trainer not found")
    return trainer

def pending_for_trainer(db: Session, session_id: int, trainer: User) -> TrainingSession:
    s = db.scalar(select(TrainingSession).where(
        TrainingSession.id == session_id, TrainingSession.trainer_id == trainer.id, TrainingSession.status == "pending"))
    if not s: raise HTTPException(404, "Session request not found")
    return s

def ensure_free(db: Session, trainer_id: int, start: datetime, duration: int, exclude_id: Optional[int] = None) -> None:
    clash = find_conflict(db, trainer_id, start, duration, exclude_id)
    if clash is not None:
        raise HTTPException(400, f"Trainer already has a session at this time (session {clash.id})")

# ---- learner

@router.get("")
def list_sessions(status: Optional[str] = None, type: Optional[SessionType] = None,
                  role: Optional[Literal["trainer", "learner"]] = None,
                  user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stmt = select(TrainingSession)
    if role == "trainer":
        stmt = stmt.where(TrainingSession.trainer_id == user.id)
    elif role == "learner":
        stmt = stmt.where(TrainingSession.learner_id == user.id)
    else:
        joined = select(SessionParticipant.session_id).where(SessionParticipant.user_id == user.id)
        stmt = stmt.where(or_(TrainingSession.trainer_id == user.id, TrainingSession.learner_id == user.id,
                              TrainingSession.id.in_(joined)))
    if type: stmt = stmt.where(TrainingSession.type == type)
    if status: stmt = stmt.where(TrainingSession.status == status)
    return [session_out(s) for s in db.scalars(stmt.order_by(TrainingSession.scheduled_at))]

@router.get("/requests/pending")
def my_pending_requests(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stmt = select(TrainingSession).where(TrainingSession.learner_id == user.id, TrainingSession.status == "pending")
    return [session_out(s) for s in db.scalars(stmt.order_by(TrainingSession.created_at.desc(), TrainingSession.id.desc()))]

@router.post("/solo/request", status_code=201)
def request_solo(payload: SoloRequest, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    trainer = load_trainer(db, payload.trainer_id)
    slot = to_utc_naive(payload.requested_slot)
    if slot < utcnow():
        raise HTTPException(400, "Cannot request past time slots")
    s = TrainingSession(
        type="one-on-one", trainer_id=trainer.id, learner_id=user.id, title=payload.title,
        description=payload.description, requested_slot=slot, scheduled_at=slot, duration=payload.duration,
        status="pending", price=round((trainer.hourly_rate or 0) * payload.duration / 60, 2),
    )
    db.add(s); db.commit(); db.refresh(s)
    logger.info("user %s requested session %s with trainer %s", user.id, s.id, trainer.id)
    return {"message": "Session request sent successfully", "session": session_out(s)}

@router.delete("/requests/{session_id}")
def cancel_request(session_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = db.scalar(select(TrainingSession).where(
        TrainingSession.id == session_id, TrainingSession.learner_id == user.id, TrainingSession.status == "pending"))
    if not s: raise HTTPException(404, "Request not found or already processed")
    s.status = "cancelled"
    db.commit()
    return {"message": "Request cancelled successfully"}

# ---- trainer

@router.get("/requests/trainer")
def trainer_requests(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stmt = select(TrainingSession).where(TrainingSession.trainer_id == user.id, TrainingSession.status == "pending")
    return [session_out(s) for s in db.scalars(stmt.order_by(TrainingSession.created_at.desc(), TrainingSession.id.desc()))]

@router.post("/solo/{session_id}/approve")
def approve_request(session_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = pending_for_trainer(db, session_id, user)
    ensure_free(db, user.id, s.scheduled_at, s.duration, exclude_id=s.id)
    s.status = "scheduled"
    s.meeting_link = meeting_link()
    user.total_sessions = (user.total_sessions or 0) + 1
    db.commit(); db.refresh(s)
    logger.info("trainer %s approved session %s", user.id, s.id)
    return {"message": "Session approved successfully", "session": session_out(s)}

@router.post("/solo/{session_id}/reject")
def reject_request(session_id: int, payload: RejectIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.reason:
        raise HTTPException(400, "Rejection reason is required")
    s = pending_for_trainer(db, session_id, user)
    s.status = "rejected"
    s.rejection_reason = payload.reason
    db.commit(); db.refresh(s)
    return {"message": "Session request rejected", "session": session_out(s)}

@router.post("/solo/{session_id}/suggest-alternative")
def suggest_alternative(session_id: int, payload: SuggestIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if not payload.suggested_slots:
        raise HTTPException(400, "Please provide alternative time slots")
    s = pending_for_trainer(db, session_id, user)
    s.suggested_alternatives = [to_utc_naive(d).isoformat() for d in payload.suggested_slots]
    db.commit(); db.refresh(s)
    return {"message": "Alternative times suggested", "session": session_out(s)}

# ---- direct booking and lifecycle

@router.post("", status_code=201)
def book_session(payload: SessionCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    trainer = load_trainer(db, payload.trainer_id)
    start = to_utc_naive(payload.scheduled_at)
    ensure_free(db, trainer.id, start, payload.duration)
    s = TrainingSession(
        title=payload.title, description=payload.description, trainer_id=trainer.id, type=payload.type,
        scheduled_at=start, duration=payload.duration, meeting_link=meeting_link(), price=payload.price,
        status="scheduled",
    )
    if payload.type == "one-on-one":
        s.learner_id = user.id
    else:
        if payload.hub_id is not None and not db.get(Hub, payload.hub_id):
            raise HTTPException(404, "Hub not found")
        s.hub_id = payload.hub_id
        s.max_participants = payload.max_participants or settings.DEFAULT_GROUP_CAPACITY
        s.participants.append(SessionParticipant(user_id=user.id))
    trainer.total_sessions = (trainer.total_sessions or 0) + 1
    db.add(s); db.commit(); db.refresh(s)
    return session_out(s)

@router.get("/{session_id}")
def get_session(session_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return session_out(load_session(db, session_id))

@router.post("/{session_id}/join")
def join_session(session_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = db.get(TrainingSession, session_id)
    if not s or s.type != "group":
        raise HTTPException(404, "Group session not found")
    if s.status != "scheduled":
        raise HTTPException(400, f"Cannot join a {s.status} session")
    if any(p.user_id == user.id for p in s.participants):
        raise HTTPException(400, "Already joined this session")
    if s.max_participants is not None and len(s.participants) >= s.max_participants:
        raise HTTPException(400, "Session is full")
    s.participants.append(SessionParticipant(user_id=user.id))
    db.commit()
    return {"message": "Successfully joined session", "meeting_link": s.meeting_link}

@router.put("/{session_id}/complete")
def complete_session(session_id: int, payload: CompleteIn | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = load_session(db, session_id)
    if s.trainer_id != user.id:
        raise HTTPException(403, "Not authorized")
    if s.status != "scheduled":
        raise HTTPException(400, f"Cannot complete a {s.status} session")
    s.status = "completed"
    s.completed_at = utcnow()
    if payload:
        s.notes, s.recording_url = payload.notes, payload.recording_url
    db.commit(); db.refresh(s)
    return session_out(s)

@router.put("/{session_id}/cancel")
def cancel_session(session_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = load_session(db, session_id)
    if user.id not in (s.trainer_id, s.learner_id):
        raise HTTPException(403, "Not authorized")
    if s.status != "scheduled":
        raise HTTPException(400, f"Cannot cancel a {s.status} session")
    s.status = "cancelled"
    if s.payment_status == "paid":
        s.payment_status = "refunded"
    db.commit(); db.refresh(s)
    return session_out(s)

@router.post("/{session_id}/payment")
def pay_session(session_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = load_session(db, session_id)
    if s.payment_status != "pending":
        raise HTTPException(400, f"Payment is already {s.payment_status}")
    s.payment_status = "paid"
    db.commit()
    return {"message": "Payment successful (mock)", "transaction_id": f"TXN{int(time.time() * 1000)}", "amount": s.price}

@router.post("/{session_id}/refund")
def refund_session(session_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    s = load_session(db, session_id)
    if s.payment_status != "paid":
        raise HTTPException(400, "Only paid sessions can be refunded")
    s.payment_status = "refunded"
    db.commit()
    return {"message": "Refund processed (mock)", "amount": s.price}
