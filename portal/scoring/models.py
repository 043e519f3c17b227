from sqlalchemy import Column, Integer, String, ForeignKey, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from portal.database import Base
from portal.shared.models import AuditMixin


class IdeaScore(Base, AuditMixin):
    """One evaluator's score for one idea. Re-scoring updates the row in place."""
    __tablename__ = "idea_scores"
    __table_args__ = (
        UniqueConstraint("idea_id", "evaluator_id", name="uq_idea_scores_idea_evaluator"),
        CheckConstraint("score BETWEEN 1 AND 5", name="ck_idea_scores_range"),
    )

    idea_id = Column(ForeignKey("ideas.id"), nullable=False, index=True)
    evaluator_id = Column(ForeignKey("users.id"), nullable=False)
    score = Column(Integer, nullable=False)
    comment = Column(String(500), nullable=True)

    evaluator = relationship("portal.auth.models.User")
