from datetime import datetime
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, conint, constr
from typing import Literal, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select
from peerlearn.core.auth import get_current_user
from peerlearn.core.database import get_db
from peerlearn.models.orm import Hub, Message, MessageReaction, User
from peerlearn.services.availability import to_utc_naive
from peerlearn.api.users import user_brief

router = APIRouter()

class MessageIn(BaseModel):
    hub_id: int
    content: constr(min_length=1)
    type: Literal["text", "image", "file", "link"] = "text"
    file_url: Optional[str] = None
    reply_to: Optional[int] = None

class ReactIn(BaseModel):
    emoji: constr(min_length=1, max_length=32)

def message_out(m: Message) -> dict:
    return {"id": m.id, "hub_id": m.hub_id, "sender": user_brief(m.sender), "content": m.content, "type": m.type,
            "file_url": m.file_url, "reply_to": m.reply_to, "created_at": m.created_at,
            "reactions": [{"user_id": r.user_id, "emoji": r.emoji} for r in m.reactions]}

def member_hub(db: Session, hub_id: int, user: User) -> Hub:
    hub = db.get(Hub, hub_id)
    if not hub: raise HTTPException(404, "Hub not found")
    if not hub.member(user.id):
        raise HTTPException(403, "Not a member of this hub")
    return hub

@router.get("/{hub_id}")
def history(hub_id: int, limit: conint(ge=1, le=200) = 50, before: Optional[datetime] = None,
            user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    member_hub(db, hub_id, user)
    stmt = select(Message).where(Message.hub_id == hub_id)
    if before is not None:
        stmt = stmt.where(Message.created_at < to_utc_naive(before))
    newest = db.scalars(stmt.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit)).all()
    return [message_out(m) for m in reversed(newest)]

@router.post("", status_code=201)
def send(payload: MessageIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    member_hub(db, payload.hub_id, user)
    if payload.reply_to is not None:
        parent = db.get(Message, payload.reply_to)
        if not parent or parent.hub_id != payload.hub_id:
            raise HTTPException(400, "Reply target is not in this hub")
    m = Message(hub_id=payload.hub_id, sender_id=user.id, content=payload.content, type=payload.type,
                file_url=payload.file_url, reply_to=payload.reply_to)
    db.add(m); db.commit(); db.refresh(m)
    return message_out(m)

@router.post("/{message_id}/react")
def react(message_id: int, payload: ReactIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    m = db.get(Message, message_id)
    if not m: raise HTTPException(404, "Message not found")
    if not any(r.user_id == user.id and r.emoji == payload.emoji for r in m.reactions):
        m.reactions.append(MessageReaction(user_id=user.id, emoji=payload.emoji))
        db.commit(); db.refresh(m)
    return message_out(m)
