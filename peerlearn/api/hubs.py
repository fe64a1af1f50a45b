import logging
import os
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, Form
from pydantic import BaseModel, constr
from typing import List, Literal, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, or_
from peerlearn.core.auth import get_current_user
from peerlearn.core.config import settings
from peerlearn.core.database import get_db
from peerlearn.models.orm import Hub, HubJoinRequest, HubResource, User
from peerlearn.services.hubs import next_hub_code, is_manager, leave_hub, add_member
from peerlearn.services.leaderboard import hub_leaderboard
from peerlearn.services.uploads import save_upload
from peerlearn.api.users import user_brief

logger = logging.getLogger(__name__)
router = APIRouter()

PrivacyType = Literal["public", "request-to-join", "closed"]

def hub_out(hub: Hub, detail: bool = False) -> dict:
    out = {
        "id": hub.id, "code": hub.code, "name": hub.name, "description": hub.description,
        "category": hub.category, "tags": hub.tags or [], "cover_image": hub.cover_image,
        "privacy_type": hub.privacy_type, "creator": user_brief(hub.creator),
        "gamification_enabled": hub.gamification_enabled, "total_members": hub.total_members,
        "created_at": hub.created_at,
    }
    if detail:
        out["members"] = [member_out(m) for m in hub.members]
        out["pending_requests"] = [
            {"user": user_brief(r.user), "message": r.message, "requested_at": r.requested_at} for r in hub.pending_requests
        ]
        out["resources"] = [resource_out(r) for r in hub.resources]
    return out

def member_out(m) -> dict:
    return {"user": user_brief(m.user), "role": m.role, "joined_at": m.joined_at}

def resource_out(r: HubResource) -> dict:
    return {"id": r.id, "title": r.title, "type": r.type, "url": r.url, "filename": r.filename,
            "mime_type": r.mime_type, "uploaded_by": r.uploaded_by, "uploaded_at": r.uploaded_at}

def load_hub(db: Session, hub_id: int) -> Hub:
    hub = db.get(Hub, hub_id)
    if not hub: raise HTTPException(404, "Hub not found")
    return hub

def require_manager(hub: Hub, user: User) -> None:
    if not is_manager(hub, user.id):
        raise HTTPException(403, "Only admins and moderators can do this")

class HubCreate(BaseModel):
    name: constr(min_length=1, max_length=200)
    description: constr(min_length=1)
    category: constr(min_length=1, max_length=100)
    tags: List[str] = []
    cover_image: Optional[str] = None
    privacy_type: PrivacyType = "public"
    gamification_enabled: bool = True

class JoinIn(BaseModel):
    message: Optional[str] = None

class LeaveIn(BaseModel):
    action: Optional[Literal["delete", "transfer"]] = None
    new_owner_id: Optional[int] = None

@router.get("")
def list_hubs(category: Optional[str] = None, privacy_type: Optional[PrivacyType] = None,
              search: Optional[str] = None, db: Session = Depends(get_db)):
    stmt = select(Hub)
    if category: stmt = stmt.where(Hub.category == category)
    if privacy_type: stmt = stmt.where(Hub.privacy_type == privacy_type)
    if search:
        like = f"%{search}%"
        stmt = stmt.where(or_(Hub.name.ilike(like), Hub.description.ilike(like)))
    hubs = db.scalars(stmt.order_by(Hub.created_at.desc(), Hub.id.desc()).limit(settings.HUB_LIST_LIMIT)).all()
    return [hub_out(h) for h in hubs]

@router.post("", status_code=201)
def create_hub(payload: HubCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    data = payload.model_dump(exclude_none=True)
    hub = Hub(code=next_hub_code(db), creator_id=user.id, **data)
    add_member(hub, user.id, role="admin")
    db.add(hub); db.commit(); db.refresh(hub)
    logger.info("user %s created hub %s (%s)", user.id, hub.id, hub.code)
    return hub_out(hub, detail=True)

@router.get("/{hub_id}")
def get_hub(hub_id: int, db: Session = Depends(get_db)):
    return hub_out(load_hub(db, hub_id), detail=True)

@router.post("/{hub_id}/join")
def join_hub(hub_id: int, payload: JoinIn | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hub = load_hub(db, hub_id)
    if hub.privacy_type == "closed":
        raise HTTPException(403, "This hub is closed")
    if hub.member(user.id):
        raise HTTPException(400, "Already a member")
    if hub.privacy_type == "request-to-join":
        if hub.pending_request(user.id):
            raise HTTPException(400, "Join request already pending")
        hub.pending_requests.append(HubJoinRequest(user_id=user.id, message=payload.message if payload else None))
        db.commit()
        return {"message": "Join request sent", "pending": True}
    add_member(hub, user.id)
    db.commit()
    return {"message": "Joined the hub", "pending": False}

@router.post("/{hub_id}/approve/{user_id}")
def approve_request(hub_id: int, user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hub = load_hub(db, hub_id)
    require_manager(hub, user)
    request = hub.pending_request(user_id)
    if not request: raise HTTPException(404, "Join request not found")
    hub.pending_requests.remove(request)
    if not hub.member(user_id):
        add_member(hub, user_id)
    db.commit()
    return {"message": "Request approved"}

@router.post("/{hub_id}/reject/{user_id}")
def reject_request(hub_id: int, user_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hub = load_hub(db, hub_id)
    require_manager(hub, user)
    request = hub.pending_request(user_id)
    if request:
        hub.pending_requests.remove(request)
        db.commit()
    return {"message": "Request rejected"}

@router.delete("/{hub_id}/leave")
def leave(hub_id: int, payload: LeaveIn | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hub = load_hub(db, hub_id)
    payload = payload or LeaveIn()
    return leave_hub(db, hub, user, payload.action, payload.new_owner_id)

@router.get("/{hub_id}/members")
def list_members(hub_id: int, db: Session = Depends(get_db)):
    return [member_out(m) for m in load_hub(db, hub_id).members]

@router.get("/{hub_id}/leaderboard")
def leaderboard(hub_id: int, db: Session = Depends(get_db)):
    load_hub(db, hub_id)
    return hub_leaderboard(db, hub_id)

@router.post("/{hub_id}/resources", status_code=201)
def upload_resource(hub_id: int, title: str = Form(...), type: str = Form("document"), file: UploadFile = File(...),
                    user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hub = load_hub(db, hub_id)
    member = hub.member(user.id)
    if member is None or member.role != "admin":
        raise HTTPException(403, "Only hub admins can upload resources")
    stored = save_upload(file, field="resource")
    resource = HubResource(title=title, type=type, url=stored["url"], filename=stored["filename"],
                           mime_type=stored["mime_type"], uploaded_by=user.id)
    hub.resources.append(resource)
    db.commit(); db.refresh(resource)
    return resource_out(resource)

@router.delete("/{hub_id}/resources/{resource_id}")
def delete_resource(hub_id: int, resource_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    hub = load_hub(db, hub_id)
    member = hub.member(user.id)
    if member is None or member.role != "admin":
        raise HTTPException(403, "Only hub admins can delete resources")
    resource = next((r for r in hub.resources if r.id == resource_id), None)
    if not resource: raise HTTPException(404, "Resource not found")
    path = os.path.join(settings.UPLOAD_DIR, resource.filename)
    hub.resources.remove(resource)
    db.commit()
    if os.path.exists(path):
        os.remove(path)
    return {"message": "Resource deleted"}
