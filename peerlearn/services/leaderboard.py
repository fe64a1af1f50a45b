from typing import List, Dict
from sqlalchemy.orm import Session
from sqlalchemy import select, func
from peerlearn.models.orm import Activity, Participation, User

def activity_leaderboard(activity: Activity, limit: int = 10) -> List[Participation]:
    # sorted() is stable, so equal scores keep submission order
    return sorted(activity.participants, key=lambda p: p.score, reverse=True)[:limit]

def hub_leaderboard(db: Session, hub_id: int) -> List[Dict]:
    """Per-user point totals for a hub, derived from participation history."""
    total = func.sum(Participation.score).label("points")
    first = func.min(Participation.id).label("first_id")
    stmt = (
        select(Participation.user_id, total, first)
        .join(Activity, Activity.id == Participation.activity_id)
        .where(Activity.hub_id == hub_id)
        .group_by(Participation.user_id)
        .order_by(total.desc(), first.asc())
    )
    rows = db.execute(stmt).all()
    users = {u.id: u for u in db.scalars(select(User).where(User.id.in_([r[0] for r in rows])))} if rows else {}
    return [
        {"user": {"id": r[0], "name": users[r[0]].name, "avatar": users[r[0]].avatar}, "points": int(r[1] or 0)}
        for r in rows
    ]
