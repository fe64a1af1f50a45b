import logging
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, constr
from typing import List, Literal, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select
from rq.job import Job
from rq.exceptions import NoSuchJobError
from peerlearn.core.auth import get_current_user
from peerlearn.core.config import settings
from peerlearn.core.database import get_db
from peerlearn.models.orm import Roadmap, User, utcnow
from peerlearn.services import roadmaps as svc
from peerlearn.services.ai_roadmap import generate_roadmap
from peerlearn.jobs.queue import queue, redis
from peerlearn.jobs.roadmap_job import generate_roadmap_job
from peerlearn.api.users import user_brief

logger = logging.getLogger(__name__)
router = APIRouter()

Difficulty = Literal["beginner", "intermediate", "advanced"]

class ResourceIn(BaseModel):
    title: str
    url: str
    type: Optional[str] = None

class TaskIn(BaseModel):
    title: constr(min_length=1)
    description: Optional[str] = None
    resources: List[ResourceIn] = []
    completed: bool = False

class MilestoneIn(BaseModel):
    title: constr(min_length=1)
    description: Optional[str] = None
    tasks: List[TaskIn] = []
    completed: bool = False

class RoadmapCreate(BaseModel):
    title: constr(min_length=1, max_length=200)
    description: Optional[str] = None
    category: constr(min_length=1, max_length=100)
    difficulty: Difficulty = "beginner"
    is_template: bool = False
    hub_id: Optional[int] = None
    estimated_duration: Optional[str] = None
    tags: List[str] = []
    thumbnail: Optional[str] = None
    milestones: List[MilestoneIn] = []

class RoadmapUpdate(BaseModel):
    title: Optional[constr(min_length=1, max_length=200)] = None
    description: Optional[str] = None
    category: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    estimated_duration: Optional[str] = None
    tags: Optional[List[str]] = None
    thumbnail: Optional[str] = None
    schedule: Optional[dict] = None
    milestones: Optional[List[MilestoneIn]] = None

class AdoptIn(BaseModel):
    customizations: Optional[str] = None

class ProgressIn(BaseModel):
    milestone_index: int
    task_index: Optional[int] = None
    completed: bool

class GenerateIn(BaseModel):
    topic: constr(min_length=1, max_length=200)
    goal: Optional[str] = None
    difficulty: Difficulty = "beginner"

def roadmap_out(r: Roadmap, detail: bool = True) -> dict:
    out = {
        "id": r.id, "title": r.title, "description": r.description, "category": r.category,
        "difficulty": r.difficulty, "type": r.kind, "is_template": r.is_template, "is_approved": r.is_approved,
        "created_by": user_brief(r.owner), "adopted_from": r.adopted_from, "hub_id": r.hub_id,
        "estimated_duration": r.estimated_duration, "tags": r.tags or [], "thumbnail": r.thumbnail,
        "used_by": r.used_by, "created_at": r.created_at, "updated_at": r.updated_at,
        "progress": svc.progress(r),
    }
    if r.is_template:
        out["adopted_by"] = [
            {"user": user_brief(a.user), "adopted_at": a.adopted_at, "customizations": a.customizations}
            for a in r.adoptions
        ]
    if detail:
        out["milestones"] = [
            {"title": m.title, "description": m.description, "completed": m.completed,
             "tasks": [{"title": t.title, "description": t.description, "resources": t.resources or [],
                        "completed": t.completed} for t in m.tasks]}
            for m in r.milestones
        ]
        out["schedule"] = r.schedule or {}
    return out

def load_roadmap(db: Session, roadmap_id: int) -> Roadmap:
    roadmap = db.get(Roadmap, roadmap_id)
    if not roadmap: raise HTTPException(404, "Roadmap not found")
    return roadmap

@router.get("")
def list_roadmaps(category: Optional[str] = None, difficulty: Optional[Difficulty] = None,
                  is_template: Optional[bool] = None, db: Session = Depends(get_db)):
    stmt = select(Roadmap)
    if category: stmt = stmt.where(Roadmap.category == category)
    if difficulty: stmt = stmt.where(Roadmap.difficulty == difficulty)
    if is_template is not None: stmt = stmt.where(Roadmap.is_template == is_template)
    return [roadmap_out(r, detail=False) for r in db.scalars(stmt.order_by(Roadmap.used_by.desc(), Roadmap.id))]

@router.get("/approved/all")
def approved_templates(db: Session = Depends(get_db)):
    stmt = select(Roadmap).where(Roadmap.is_template.is_(True), Roadmap.is_approved.is_(True))
    return [roadmap_out(r, detail=False) for r in db.scalars(stmt.order_by(Roadmap.used_by.desc(), Roadmap.id))]

@router.get("/trainer/{trainer_id}")
def trainer_templates(trainer_id: int, db: Session = Depends(get_db)):
    stmt = select(Roadmap).where(Roadmap.created_by == trainer_id, Roadmap.is_template.is_(True))
    return [roadmap_out(r, detail=False) for r in db.scalars(stmt.order_by(Roadmap.created_at.desc()))]

@router.get("/my/all")
def my_roadmaps(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    mine = db.scalars(select(Roadmap).where(Roadmap.created_by == user.id).order_by(Roadmap.updated_at.desc())).all()
    return {
        "created": [roadmap_out(r, detail=False) for r in mine if r.adopted_from is None],
        "adopted": [roadmap_out(r, detail=False) for r in mine if r.adopted_from is not None],
    }

@router.post("", status_code=201)
def create_roadmap(payload: RoadmapCreate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    if payload.is_template and not user.is_trainer:
        raise HTTPException(403, "Only trainers can publish template roadmaps")
    roadmap = Roadmap(
        title=payload.title, description=payload.description, category=payload.category,
        difficulty=payload.difficulty, kind="trainer" if payload.is_template else "custom",
        is_template=payload.is_template, is_approved=False, created_by=user.id, hub_id=payload.hub_id,
        estimated_duration=payload.estimated_duration, tags=payload.tags, thumbnail=payload.thumbnail,
    )
    roadmap.milestones.extend(svc.build_milestones(m.model_dump() for m in payload.milestones))
    db.add(roadmap); db.commit(); db.refresh(roadmap)
    return roadmap_out(roadmap)

@router.post("/generate", status_code=201)
def generate(payload: GenerateIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    roadmap = generate_roadmap(db, user, payload.topic, payload.goal, payload.difficulty)
    return {"message": "Roadmap generated", "roadmap": roadmap_out(roadmap)}

@router.post("/generate/jobs", status_code=202)
def enqueue_generation(payload: GenerateIn, user: User = Depends(get_current_user)):
    job = queue.enqueue(generate_roadmap_job, user.id, payload.topic, payload.goal, payload.difficulty,
                        job_timeout=settings.JOB_TIMEOUT_SECONDS, meta={"state": "queued", "user_id": user.id})
    logger.info("queued roadmap generation %s for user %s", job.get_id(), user.id)
    return {"job_id": job.get_id()}

@router.get("/generate/jobs/{job_id}")
def generation_status(job_id: str, user: User = Depends(get_current_user)):
    try:
        job = Job.fetch(job_id, connection=redis)
    except NoSuchJobError:
        raise HTTPException(404, "Job not found")
    meta = job.meta or {}
    if meta.get("user_id") != user.id:
        raise HTTPException(404, "Job not found")
    state = meta.get("state") or job.get_status()
    return {"job_id": job_id, "state": state, "error": meta.get("error"),
            "result": job.result if state == "done" else None}

@router.get("/{roadmap_id}")
def get_roadmap(roadmap_id: int, db: Session = Depends(get_db)):
    return roadmap_out(load_roadmap(db, roadmap_id))

@router.put("/{roadmap_id}")
def update_roadmap(roadmap_id: int, payload: RoadmapUpdate, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    roadmap = load_roadmap(db, roadmap_id)
    if roadmap.created_by != user.id:
        raise HTTPException(403, "Not authorized to update this roadmap")
    data = payload.model_dump(exclude_none=True, exclude={"milestones"})
    for field, value in data.items():
        setattr(roadmap, field, value)
    if payload.milestones is not None:
        if roadmap.is_template:
            raise HTTPException(400, "Template milestones cannot be changed")
        roadmap.milestones.clear()
        db.flush()
        roadmap.milestones.extend(svc.build_milestones(m.model_dump() for m in payload.milestones))
    roadmap.updated_at = utcnow()
    db.commit(); db.refresh(roadmap)
    return roadmap_out(roadmap)

@router.delete("/{roadmap_id}")
def delete_roadmap(roadmap_id: int, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    svc.delete_roadmap(db, load_roadmap(db, roadmap_id), user)
    return {"message": "Roadmap deleted"}

@router.post("/{roadmap_id}/adopt", status_code=201)
def adopt(roadmap_id: int, payload: AdoptIn | None = None, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    template = load_roadmap(db, roadmap_id)
    instance = svc.adopt(db, template, user, payload.customizations if payload else None)
    return {"message": "Roadmap adopted", "roadmap": roadmap_out(instance)}

@router.put("/{roadmap_id}/progress")
def update_progress(roadmap_id: int, payload: ProgressIn, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    roadmap = load_roadmap(db, roadmap_id)
    roadmap = svc.update_progress(db, roadmap, user, payload.milestone_index, payload.task_index, payload.completed)
    return roadmap_out(roadmap)
