"""
AI-assisted roadmap generation: prompt, parse, validate, store.
"""
import json
import logging
import re
from typing import Any, Dict, Optional
from sqlalchemy.orm import Session

from peerlearn.core.errors import ParseError
from peerlearn.models.orm import Roadmap, User
from peerlearn.services.groq_client import GroqClient
from peerlearn.services.roadmaps import build_milestones

logger = logging.getLogger(__name__)

ROADMAP_SCHEMA = """{
  "title": "string",
  "description": "string",
  "category": "string",
  "estimated_duration": "string, e.g. '3 months'",
  "tags": ["string"],
  "milestones": [
    {
      "title": "string",
      "description": "string",
      "tasks": [
        {
          "title": "string",
          "description": "string",
          "resources": [{"title": "string", "url": "string", "type": "documentation | tutorial | video | course"}]
        }
      ]
    }
  ]
}"""

_FENCE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL | re.IGNORECASE)

def build_prompt(topic: str, goal: Optional[str], difficulty: str) -> str:
    lines = [
        f"Create a detailed {difficulty} level learning roadmap for: {topic}.",
    ]
    if goal:
        lines.append(f"The learner's goal: {goal}.")
    lines += [
        "Use 4 to 6 milestones, each with 2 to 4 concrete tasks and at least one free resource per task.",
        "Respond with a single JSON object that follows exactly this schema:",
        ROADMAP_SCHEMA,
    ]
    return "\n".join(lines)

def strip_fences(text: str) -> str:
    m = _FENCE.match(text or "")
    return m.group(1) if m else (text or "").strip()

def parse_roadmap(text: str) -> Dict[str, Any]:
    """Parse model output into a roadmap dict or raise ParseError."""
    try:
        data = json.loads(strip_fences(text))
    except ValueError:
        raise ParseError("AI response was not valid JSON", raw_text=text)
    if not isinstance(data, dict):
        raise ParseError("AI response was not a JSON object", raw_text=text)
    if not isinstance(data.get("title"), str) or not data["title"].strip():
        raise ParseError("AI roadmap is missing a title", raw_text=text)
    milestones = data.get("milestones")
    if not isinstance(milestones, list) or not milestones:
        raise ParseError("AI roadmap has no milestones", raw_text=text)
    for i, m in enumerate(milestones):
        if not isinstance(m, dict) or not isinstance(m.get("title"), str) or not m["title"].strip():
            raise ParseError(f"Milestone {i} is missing a title", raw_text=text)
        tasks = m.get("tasks")
        if not isinstance(tasks, list) or not tasks:
            raise ParseError(f"Milestone {i} has no tasks", raw_text=text)
        for j, t in enumerate(tasks):
            if not isinstance(t, dict) or not isinstance(t.get("title"), str) or not t["title"].strip():
                raise ParseError(f"Task {j} of milestone {i} is missing a title", raw_text=text)
            t["resources"] = [r for r in (t.get("resources") or []) if isinstance(r, dict)]
    return data

def generate_roadmap(db: Session, user: User, topic: str, goal: Optional[str] = None,
                     difficulty: str = "beginner", client: Optional[GroqClient] = None) -> Roadmap:
    client = client or GroqClient()
    text = client.generate(build_prompt(topic, goal, difficulty))
    data = parse_roadmap(text)
    roadmap = Roadmap(
        title=data["title"].strip(), description=data.get("description"),
        category=data.get("category") or topic, difficulty=difficulty, kind="ai",
        is_template=False, is_approved=False, created_by=user.id,
        estimated_duration=data.get("estimated_duration"),
        tags=[t for t in data.get("tags") or [] if isinstance(t, str)],
    )
    roadmap.milestones.extend(build_milestones(data["milestones"]))
    db.add(roadmap); db.commit(); db.refresh(roadmap)
    logger.info("generated roadmap %s for user %s (%d milestones)", roadmap.id, user.id, len(roadmap.milestones))
    return roadmap
