from enum import Enum
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
    text,
)
from sqlalchemy.orm import relationship
from portal.database import Base
from portal.shared.models import UUIDMixin, utcnow, value_enum


class ReviewAction(str, Enum):
    ADVANCE = "advance"
    RETURN = "return"
    HOLD = "hold"
    TERMINAL_ACCEPT = "terminal_accept"
    TERMINAL_REJECT = "terminal_reject"


class TerminalOutcome(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ReviewWorkflow(Base, UUIDMixin):
    """An immutable, versioned ordered set of review stages. Only ``is_active``
    and ``activated_at`` ever change after creation."""
    __tablename__ = "review_workflows"
    __table_args__ = (
        # At most one active workflow at any time.
        Index(
            "uq_review_workflows_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active"),
        ),
    )

    version = Column(Integer, unique=True, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    created_by = Column(ForeignKey("users.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    activated_at = Column(DateTime, nullable=True)

    stages = relationship(
        "ReviewStage",
        back_populates="workflow",
        order_by="ReviewStage.position",
        cascade="all, delete-orphan",
    )


class ReviewStage(Base, UUIDMixin):
    __tablename__ = "review_stages"
    __table_args__ = (
        UniqueConstraint("workflow_id", "position", name="uq_review_stages_workflow_position"),
        CheckConstraint("position >= 1", name="ck_review_stages_position_positive"),
    )

    workflow_id = Column(ForeignKey("review_workflows.id"), nullable=False, index=True)
    name = Column(String(80), nullable=False)
    position = Column(Integer, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    workflow = relationship("ReviewWorkflow", back_populates="stages")


Index(
    "uq_review_stages_workflow_name",
    ReviewStage.workflow_id,
    func.lower(ReviewStage.name),
    unique=True,
)


class IdeaStageState(Base):
    """Current review position of one idea. ``state_version`` is the optimistic lock."""
    __tablename__ = "idea_stage_states"

    idea_id = Column(ForeignKey("ideas.id"), primary_key=True)
    workflow_id = Column(ForeignKey("review_workflows.id"), nullable=False)
    current_stage_id = Column(ForeignKey("review_stages.id"), nullable=False)
    state_version = Column(Integer, default=1, nullable=False)
    terminal_outcome = Column(value_enum(TerminalOutcome, "terminaloutcome"), nullable=True)
    updated_by = Column(ForeignKey("users.id"), nullable=False)
    updated_at = Column(DateTime, default=utcnow, nullable=False)

    @property
    def is_terminal(self) -> bool:
        return self.terminal_outcome is not None


class ReviewStageEvent(Base, UUIDMixin):
    """Append-only audit record of one accepted stage-state write."""
    __tablename__ = "review_stage_events"

    idea_id = Column(ForeignKey("ideas.id"), nullable=False, index=True)
    workflow_id = Column(ForeignKey("review_workflows.id"), nullable=False)
    from_stage_id = Column(ForeignKey("review_stages.id"), nullable=True)
    to_stage_id = Column(ForeignKey("review_stages.id"), nullable=False)
    action = Column(value_enum(ReviewAction, "reviewaction"), nullable=False)
    evaluator_comment = Column(Text, nullable=True)
    actor_id = Column(ForeignKey("users.id"), nullable=False)
    occurred_at = Column(DateTime, default=utcnow, nullable=False, index=True)
