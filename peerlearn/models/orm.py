from datetime import datetime, timezone
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship, Session
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy import Integer, String, Text, Boolean, ForeignKey, JSON, Float, DateTime, UniqueConstraint, Index, event

def utcnow() -> datetime:
    """Naive UTC timestamp; every datetime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)

class Base(DeclarativeBase): pass

# ---------------------------------------------------------------- users

class User(Base):
    __tablename__ = "users"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(120))
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255))
    avatar: Mapped[str] = mapped_column(String(500), default="https://api.dicebear.com/7.x/avataaars/svg?seed=default")
    bio: Mapped[str | None] = mapped_column(String(500), nullable=True)
    role: Mapped[str] = mapped_column(String(16), default="learner")
    skills_to_teach: Mapped[list] = mapped_column(JSON, default=list)
    skills_to_learn: Mapped[list] = mapped_column(JSON, default=list)
    # trainer profile
    is_trainer: Mapped[bool] = mapped_column(Boolean, default=False)
    domains: Mapped[list] = mapped_column(JSON, default=list)
    experience: Mapped[int] = mapped_column(Integer, default=0)
    hourly_rate: Mapped[float] = mapped_column(Float, default=0.0)
    programs: Mapped[list] = mapped_column(JSON, default=list)
    availability: Mapped[dict] = mapped_column(JSON, default=dict)
    total_students: Mapped[int] = mapped_column(Integer, default=0)
    total_sessions: Mapped[int] = mapped_column(Integer, default=0)
    # gamification
    points: Mapped[int] = mapped_column(Integer, default=0)
    level: Mapped[int] = mapped_column(Integer, default=1)
    badges: Mapped[list] = mapped_column(JSON, default=list)
    # ratings
    average_rating: Mapped[float] = mapped_column(Float, default=0.0)
    total_ratings: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

# ---------------------------------------------------------------- hubs

class Hub(Base):
    __tablename__ = "hubs"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    code: Mapped[str] = mapped_column(String(32), unique=True)
    name: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    category: Mapped[str] = mapped_column(String(100))
    tags: Mapped[list] = mapped_column(JSON, default=list)
    cover_image: Mapped[str] = mapped_column(String(500), default="https://images.unsplash.com/photo-1522071820081-009f0129c71c?w=800")
    privacy_type: Mapped[str] = mapped_column(String(20), default="public")
    creator_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    gamification_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    total_members: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    creator: Mapped[User] = relationship(foreign_keys=[creator_id])
    members: Mapped[list["HubMember"]] = relationship(back_populates="hub", cascade="all, delete-orphan", order_by="HubMember.id")
    pending_requests: Mapped[list["HubJoinRequest"]] = relationship(cascade="all, delete-orphan", order_by="HubJoinRequest.id")
    resources: Mapped[list["HubResource"]] = relationship(cascade="all, delete-orphan", order_by="HubResource.id")

    def member(self, user_id: int) -> "HubMember | None":
        return next((m for m in self.members if m.user_id == user_id), None)

    def pending_request(self, user_id: int) -> "HubJoinRequest | None":
        return next((r for r in self.pending_requests if r.user_id == user_id), None)

class HubMember(Base):
    __tablename__ = "hub_members"
    __table_args__ = (UniqueConstraint("hub_id", "user_id", name="uq_hub_member"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hub_id: Mapped[int] = mapped_column(Integer, ForeignKey("hubs.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    role: Mapped[str] = mapped_column(String(16), default="member")
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    hub: Mapped[Hub] = relationship(back_populates="members")
    user: Mapped[User] = relationship()

class HubJoinRequest(Base):
    __tablename__ = "hub_join_requests"
    __table_args__ = (UniqueConstraint("hub_id", "user_id", name="uq_hub_request"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hub_id: Mapped[int] = mapped_column(Integer, ForeignKey("hubs.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    requested_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped[User] = relationship()

class HubResource(Base):
    __tablename__ = "hub_resources"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hub_id: Mapped[int] = mapped_column(Integer, ForeignKey("hubs.id", ondelete="CASCADE"))
    title: Mapped[str] = mapped_column(String(200))
    type: Mapped[str] = mapped_column(String(32))
    url: Mapped[str] = mapped_column(String(500))
    filename: Mapped[str] = mapped_column(String(255))
    mime_type: Mapped[str] = mapped_column(String(100))
    uploaded_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    uploaded_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

@event.listens_for(Session, "before_flush")
def _sync_member_counts(session, flush_context, instances):
    for obj in list(session.new) + list(session.dirty):
        if isinstance(obj, Hub):
            obj.total_members = len(obj.members)

# ---------------------------------------------------------------- activities

class Activity(Base):
    __tablename__ = "activities"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(16))
    hub_id: Mapped[int] = mapped_column(Integer, ForeignKey("hubs.id", ondelete="CASCADE"), index=True)
    created_by: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    start_date: Mapped[datetime] = mapped_column(DateTime)
    end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    duration: Mapped[int | None] = mapped_column(Integer, nullable=True)
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rewards: Mapped[dict] = mapped_column(JSON, default=dict)
    status: Mapped[str] = mapped_column(String(16), default="upcoming")
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    hub: Mapped[Hub] = relationship()
    creator: Mapped[User] = relationship(foreign_keys=[created_by])
    questions: Mapped[list["ActivityQuestion"]] = relationship(
        cascade="all, delete-orphan", order_by="ActivityQuestion.position", collection_class=ordering_list("position"))
    participants: Mapped[list["Participation"]] = relationship(
        back_populates="activity", cascade="all, delete-orphan", order_by="Participation.id")

class ActivityQuestion(Base):
    __tablename__ = "activity_questions"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    activity_id: Mapped[int] = mapped_column(Integer, ForeignKey("activities.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer)
    question: Mapped[str] = mapped_column(Text)
    options: Mapped[list] = mapped_column(JSON, default=list)
    correct_answer: Mapped[int] = mapped_column(Integer)
    points: Mapped[int] = mapped_column(Integer, default=10)

class Participation(Base):
    __tablename__ = "participations"
    __table_args__ = (UniqueConstraint("activity_id", "user_id", name="uq_participation"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    activity_id: Mapped[int] = mapped_column(Integer, ForeignKey("activities.id", ondelete="CASCADE"), index=True)
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    score: Mapped[int] = mapped_column(Integer, default=0)
    answers: Mapped[list] = mapped_column(JSON, default=list)
    completed_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    activity: Mapped[Activity] = relationship(back_populates="participants")
    user: Mapped[User] = relationship()

# ---------------------------------------------------------------- roadmaps

class Roadmap(Base):
    __tablename__ = "roadmaps"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(100))
    difficulty: Mapped[str] = mapped_column(String(16), default="beginner")
    kind: Mapped[str] = mapped_column(String(16), default="custom")
    is_template: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, default=False)
    created_by: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    adopted_from: Mapped[int | None] = mapped_column(Integer, ForeignKey("roadmaps.id", ondelete="SET NULL"), nullable=True)
    hub_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("hubs.id", ondelete="SET NULL"), nullable=True)
    estimated_duration: Mapped[str | None] = mapped_column(String(64), nullable=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    thumbnail: Mapped[str | None] = mapped_column(String(500), nullable=True)
    used_by: Mapped[int] = mapped_column(Integer, default=0)
    schedule: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)

    owner: Mapped[User | None] = relationship(foreign_keys=[created_by])
    milestones: Mapped[list["Milestone"]] = relationship(
        cascade="all, delete-orphan", order_by="Milestone.position", collection_class=ordering_list("position"))
    adoptions: Mapped[list["RoadmapAdoption"]] = relationship(
        foreign_keys="RoadmapAdoption.template_id", cascade="all, delete-orphan", order_by="RoadmapAdoption.id")

class Milestone(Base):
    __tablename__ = "roadmap_milestones"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    roadmap_id: Mapped[int] = mapped_column(Integer, ForeignKey("roadmaps.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)

    tasks: Mapped[list["RoadmapTask"]] = relationship(
        cascade="all, delete-orphan", order_by="RoadmapTask.position", collection_class=ordering_list("position"))

class RoadmapTask(Base):
    __tablename__ = "roadmap_tasks"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    milestone_id: Mapped[int] = mapped_column(Integer, ForeignKey("roadmap_milestones.id", ondelete="CASCADE"))
    position: Mapped[int] = mapped_column(Integer)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    resources: Mapped[list] = mapped_column(JSON, default=list)
    completed: Mapped[bool] = mapped_column(Boolean, default=False)

class RoadmapAdoption(Base):
    __tablename__ = "roadmap_adoptions"
    __table_args__ = (UniqueConstraint("template_id", "user_id", name="uq_roadmap_adoption"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    template_id: Mapped[int] = mapped_column(Integer, ForeignKey("roadmaps.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    instance_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("roadmaps.id", ondelete="SET NULL"), nullable=True)
    customizations: Mapped[str | None] = mapped_column(Text, nullable=True)
    adopted_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    user: Mapped[User] = relationship()

# ---------------------------------------------------------------- sessions & ratings

class TrainingSession(Base):
    __tablename__ = "sessions"
    __table_args__ = (
        Index("ix_sessions_trainer_status", "trainer_id", "status"),
        Index("ix_sessions_learner_status", "learner_id", "status"),
    )
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    trainer_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    learner_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("users.id"), nullable=True)
    hub_id: Mapped[int | None] = mapped_column(Integer, ForeignKey("hubs.id", ondelete="SET NULL"), nullable=True)
    type: Mapped[str] = mapped_column(String(16), default="one-on-one")
    scheduled_at: Mapped[datetime] = mapped_column(DateTime, index=True)
    duration: Mapped[int] = mapped_column(Integer)
    requested_slot: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    status: Mapped[str] = mapped_column(String(16), default="pending")
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    suggested_alternatives: Mapped[list] = mapped_column(JSON, default=list)
    meeting_link: Mapped[str | None] = mapped_column(String(500), nullable=True)
    price: Mapped[float] = mapped_column(Float, default=0.0)
    payment_status: Mapped[str] = mapped_column(String(16), default="pending")
    max_participants: Mapped[int | None] = mapped_column(Integer, nullable=True)
    materials: Mapped[list] = mapped_column(JSON, default=list)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    recording_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    trainer: Mapped[User] = relationship(foreign_keys=[trainer_id])
    learner: Mapped[User | None] = relationship(foreign_keys=[learner_id])
    participants: Mapped[list["SessionParticipant"]] = relationship(cascade="all, delete-orphan", order_by="SessionParticipant.id")

class SessionParticipant(Base):
    __tablename__ = "session_participants"
    __table_args__ = (UniqueConstraint("session_id", "user_id", name="uq_session_participant"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    session_id: Mapped[int] = mapped_column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    joined_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    attended: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = (UniqueConstraint("learner_id", "session_id", name="uq_rating_learner_session"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    trainer_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"), index=True)
    learner_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    session_id: Mapped[int] = mapped_column(Integer, ForeignKey("sessions.id", ondelete="CASCADE"))
    rating: Mapped[int] = mapped_column(Integer)
    review: Mapped[str | None] = mapped_column(String(500), nullable=True)
    categories: Mapped[dict] = mapped_column(JSON, default=dict)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    learner: Mapped[User] = relationship(foreign_keys=[learner_id])

# ---------------------------------------------------------------- messages

class Message(Base):
    __tablename__ = "messages"
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    hub_id: Mapped[int] = mapped_column(Integer, ForeignKey("hubs.id", ondelete="CASCADE"), index=True)
    sender_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    content: Mapped[str] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(16), default="text")
    file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    reply_to: Mapped[int | None] = mapped_column(Integer, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    sender: Mapped[User] = relationship()
    reactions: Mapped[list["MessageReaction"]] = relationship(cascade="all, delete-orphan", order_by="MessageReaction.id")

class MessageReaction(Base):
    __tablename__ = "message_reactions"
    __table_args__ = (UniqueConstraint("message_id", "user_id", "emoji", name="uq_message_reaction"),)
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    message_id: Mapped[int] = mapped_column(Integer, ForeignKey("messages.id", ondelete="CASCADE"))
    user_id: Mapped[int] = mapped_column(Integer, ForeignKey("users.id"))
    emoji: Mapped[str] = mapped_column(String(32))
