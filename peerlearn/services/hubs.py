import logging
import re
from typing import Dict, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, update, delete
from peerlearn.core.config import settings
from peerlearn.core.errors import BadRequest
from peerlearn.models.orm import Hub, HubMember, Activity, Message, MessageReaction, Roadmap, TrainingSession, User

logger = logging.getLogger(__name__)

MANAGER_ROLES = ("admin", "moderator")

def next_hub_code(db: Session) -> str:
    """LO-10001, LO-10002, ... following the highest code issued so far."""
    prefix = settings.HUB_CODE_PREFIX
    pattern = re.compile(rf"^{re.escape(prefix)}(\d+)$")
    numbers = [int(m.group(1)) for c in db.scalars(select(Hub.code)) if (m := pattern.match(c or ""))]
    return f"{prefix}{max(numbers) + 1 if numbers else settings.HUB_CODE_START}"

def is_manager(hub: Hub, user_id: int) -> bool:
    member = hub.member(user_id)
    return member is not None and member.role in MANAGER_ROLES

def delete_hub(db: Session, hub: Hub) -> None:
    for activity in db.scalars(select(Activity).where(Activity.hub_id == hub.id)).all():
        db.delete(activity)
    hub_messages = select(Message.id).where(Message.hub_id == hub.id)
    db.execute(delete(MessageReaction).where(MessageReaction.message_id.in_(hub_messages)))
    db.execute(delete(Message).where(Message.hub_id == hub.id))
    db.execute(update(Roadmap).where(Roadmap.hub_id == hub.id).values(hub_id=None))
    db.execute(update(TrainingSession).where(TrainingSession.hub_id == hub.id).values(hub_id=None))
    logger.info("deleting hub %s (%s)", hub.id, hub.code)
    db.delete(hub)
    db.commit()

def leave_hub(db: Session, hub: Hub, user: User, action: Optional[str] = None,
              new_owner_id: Optional[int] = None) -> Dict:
    me = hub.member(user.id)
    if me is None:
        raise BadRequest("You are not a member of this hub")

    if hub.creator_id != user.id:
        hub.members.remove(me)
        db.commit()
        return {"message": "Left the hub"}

    if action == "delete":
        delete_hub(db, hub)
        return {"message": "Hub deleted successfully", "deleted": True}
    if action != "transfer":
        raise BadRequest('Invalid action. Must be "delete" or "transfer"')

    if new_owner_id is not None:
        new_owner = hub.member(new_owner_id)
        if new_owner is None or new_owner_id == user.id:
            raise BadRequest("Selected user is not a member")
    else:
        others = [m for m in hub.members if m.user_id != user.id]
        if not others:
            delete_hub(db, hub)
            return {"message": "Hub deleted as you were the only member", "deleted": True}
        new_owner = min(others, key=lambda m: (m.joined_at, m.id))

    hub.creator_id = new_owner.user_id
    new_owner.role = "admin"
    hub.members.remove(me)
    db.commit()
    logger.info("hub %s ownership moved from %s to %s", hub.id, user.id, new_owner.user_id)
    return {"message": "Ownership transferred and you have left the hub", "new_owner_id": new_owner.user_id}

def add_member(hub: Hub, user_id: int, role: str = "member") -> HubMember:
    member = HubMember(user_id=user_id, role=role)
    hub.members.append(member)
    return member
