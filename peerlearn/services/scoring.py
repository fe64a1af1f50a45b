"""
Activity participation scoring.

A participation touches three things: the participation row, the user's global
point total and (through the derived hub leaderboard) the hub standings. All of
it is written in a single transaction.
"""
import logging
from typing import List, Optional, Sequence
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from peerlearn.core.errors import BadRequest
from peerlearn.models.orm import Activity, ActivityQuestion, Participation, User, utcnow

logger = logging.getLogger(__name__)

SCORED_TYPES = ("quiz", "contest")

def score_answers(questions: Sequence[ActivityQuestion], answers: List[Optional[int]]) -> int:
    """Sum the points of every question whose submitted answer matches.

    An empty answer list is a forfeit and scores 0. Otherwise exactly one entry
    per question is required; ``None`` marks a skipped question.
    """
    if not answers:
        return 0
    if len(answers) != len(questions):
        raise BadRequest(f"Expected {len(questions)} answers, got {len(answers)}")
    return sum(q.points for q, a in zip(questions, answers) if a is not None and a == q.correct_answer)

def record_participation(db: Session, activity: Activity, user: User, answers: List[Optional[int]]) -> Participation:
    if any(p.user_id == user.id for p in activity.participants):
        raise BadRequest("Already participated in this activity")
    score = score_answers(activity.questions, answers) if activity.type in SCORED_TYPES else 0
    participation = Participation(user_id=user.id, score=score, answers=list(answers), completed_at=utcnow())
    activity.participants.append(participation)
    user.points = (user.points or 0) + score
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise BadRequest("Already participated in this activity")
    db.refresh(participation)
    logger.info("user %s scored %s on activity %s", user.id, score, activity.id)
    return participation
