import logging
from rq import get_current_job
from peerlearn.core.database import SessionLocal
from peerlearn.core.errors import AppError
from peerlearn.models.orm import User
from peerlearn.services.ai_roadmap import generate_roadmap

logger = logging.getLogger(__name__)

def generate_roadmap_job(user_id, topic, goal=None, difficulty="beginner"):
    job = get_current_job()
    if job is not None:
        job.meta.update({"state": "running", "user_id": user_id, "topic": topic}); job.save_meta()
    db = SessionLocal()
    try:
        user = db.get(User, user_id)
        if user is None:
            raise AppError(f"User {user_id} no longer exists")
        roadmap = generate_roadmap(db, user, topic, goal, difficulty)
        result = {"roadmap_id": roadmap.id, "title": roadmap.title}
        if job is not None:
            job.meta.update({"state": "done", "roadmap_id": roadmap.id}); job.save_meta()
        return result
    except AppError as e:
        logger.error("roadmap job for user %s failed: %s", user_id, e.message)
        if job is not None:
            job.meta.update({"state": "failed", "error": e.message}); job.save_meta()
        raise
    finally:
        db.close()
