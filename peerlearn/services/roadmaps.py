"""
Roadmap templates, adoption and per-instance progress.

Templates (``is_template=True``) are masters: they are copied, never progressed.
An adoption deep-copies the template's milestones and tasks into a roadmap owned
by the adopter, with every ``completed`` flag cleared, and bumps ``used_by``.
Milestone completion is its own flag; completing every task of a milestone does
not complete the milestone.
"""
import logging
from typing import Dict, Iterable, List, Optional
from sqlalchemy.orm import Session
from sqlalchemy import select, update
from peerlearn.core.errors import BadRequest, Forbidden
from peerlearn.models.orm import Roadmap, Milestone, RoadmapTask, RoadmapAdoption, User, utcnow

logger = logging.getLogger(__name__)

def build_milestones(items: Iterable[Dict]) -> List[Milestone]:
    milestones = []
    for m in items:
        ms = Milestone(title=m["title"], description=m.get("description"), completed=bool(m.get("completed", False)))
        for t in m.get("tasks") or []:
            ms.tasks.append(RoadmapTask(
                title=t["title"], description=t.get("description"),
                resources=list(t.get("resources") or []), completed=bool(t.get("completed", False)),
            ))
        milestones.append(ms)
    return milestones

def copy_milestones(source: Roadmap) -> List[Milestone]:
    copies = []
    for m in source.milestones:
        ms = Milestone(title=m.title, description=m.description, completed=False)
        for t in m.tasks:
            ms.tasks.append(RoadmapTask(title=t.title, description=t.description, resources=list(t.resources or []), completed=False))
        copies.append(ms)
    return copies

def progress(roadmap: Roadmap) -> Dict:
    tasks = [t for m in roadmap.milestones for t in m.tasks]
    done = sum(1 for t in tasks if t.completed)
    return {
        "completed_tasks": done,
        "total_tasks": len(tasks),
        "completed_milestones": sum(1 for m in roadmap.milestones if m.completed),
        "total_milestones": len(roadmap.milestones),
        "percent": round(100.0 * done / len(tasks), 1) if tasks else 0.0,
    }

def find_adoption(db: Session, template_id: int, user_id: int) -> Optional[Roadmap]:
    return db.scalar(select(Roadmap).where(Roadmap.adopted_from == template_id, Roadmap.created_by == user_id))

def adopt(db: Session, template: Roadmap, user: User, customizations: Optional[str] = None) -> Roadmap:
    if not template.is_template:
        raise BadRequest("Only template roadmaps can be adopted")
    existing = find_adoption(db, template.id, user.id)
    if existing:
        raise BadRequest("You have already adopted this roadmap", roadmap_id=existing.id)
    instance = Roadmap(
        title=template.title, description=template.description, category=template.category,
        difficulty=template.difficulty, kind="custom", is_template=False, is_approved=False,
        created_by=user.id, adopted_from=template.id, hub_id=template.hub_id,
        estimated_duration=template.estimated_duration, tags=list(template.tags or []),
        thumbnail=template.thumbnail, schedule={},
    )
    instance.milestones.extend(copy_milestones(template))
    db.add(instance); db.flush()
    template.adoptions.append(RoadmapAdoption(user_id=user.id, instance_id=instance.id, customizations=customizations, adopted_at=utcnow()))
    template.used_by = (template.used_by or 0) + 1
    db.commit(); db.refresh(instance)
    logger.info("user %s adopted roadmap %s as %s", user.id, template.id, instance.id)
    return instance

def update_progress(db: Session, roadmap: Roadmap, user: User, milestone_index: int,
                    task_index: Optional[int], completed: bool) -> Roadmap:
    if roadmap.created_by != user.id:
        raise Forbidden("Not authorized to update this roadmap")
    if roadmap.is_template:
        raise BadRequest("Template roadmaps do not track progress; adopt it first")
    if not 0 <= milestone_index < len(roadmap.milestones):
        raise BadRequest("Invalid milestone index")
    milestone = roadmap.milestones[milestone_index]
    if task_index is None:
        milestone.completed = completed
    else:
        if not 0 <= task_index < len(milestone.tasks):
            raise BadRequest("Invalid task index")
        milestone.tasks[task_index].completed = completed
    roadmap.updated_at = utcnow()
    db.commit(); db.refresh(roadmap)
    return roadmap

def delete_roadmap(db: Session, roadmap: Roadmap, user: User) -> None:
    if roadmap.created_by != user.id:
        raise Forbidden("Not authorized to delete this roadmap")
    if roadmap.adopted_from is not None:
        template = db.get(Roadmap, roadmap.adopted_from)
        if template is not None:
            template.used_by = max(0, (template.used_by or 0) - 1)
            for a in [a for a in template.adoptions if a.user_id == user.id]:
                template.adoptions.remove(a)
    if roadmap.is_template:
        db.execute(update(Roadmap).where(Roadmap.adopted_from == roadmap.id).values(adopted_from=None))
    logger.info("user %s deleting roadmap %s", user.id, roadmap.id)
    db.delete(roadmap)
    db.commit()
