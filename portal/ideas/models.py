from enum import Enum
from sqlalchemy import Column, String, Text, ForeignKey, DateTime
from sqlalchemy.orm import relationship
from portal.database import Base
from portal.shared.models import AuditMixin, value_enum


class IdeaStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


IDEA_CATEGORIES = (
    "Process Improvement",
    "Technology Innovation",
    "Cost Reduction",
    "Customer Experience",
    "Employee Engagement",
)

# Legacy status lifecycle, used only for ideas that never entered staged review.
# Terminal states (accepted, rejected) have no outgoing transitions.
VALID_STATUS_TRANSITIONS = {
    IdeaStatus.SUBMITTED: [IdeaStatus.UNDER_REVIEW, IdeaStatus.ACCEPTED, IdeaStatus.REJECTED],
    IdeaStatus.UNDER_REVIEW: [IdeaStatus.ACCEPTED, IdeaStatus.REJECTED],
    IdeaStatus.ACCEPTED: [],
    IdeaStatus.REJECTED: [],
}


class Idea(Base, AuditMixin):
    __tablename__ = "ideas"

    user_id = Column(ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False)
    status = Column(value_enum(IdeaStatus, "ideastatus"), default=IdeaStatus.DRAFT, nullable=False)
    evaluator_comment = Column(Text, nullable=True)
    deleted_at = Column(DateTime, nullable=True)

    owner = relationship("portal.auth.models.User", back_populates="ideas")

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None
