from enum import Enum
from sqlalchemy import Column, String, Boolean
from sqlalchemy.orm import relationship
from portal.database import Base
from portal.shared.models import AuditMixin, value_enum


class UserRole(str, Enum):
    SUBMITTER = "submitter"
    EVALUATOR = "evaluator"
    ADMIN = "admin"


class User(Base, AuditMixin):
    __tablename__ = "users"

    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=True)
    full_name = Column(String, nullable=True)
    role = Column(value_enum(UserRole, "userrole"), default=UserRole.SUBMITTER, nullable=False)
    is_active = Column(Boolean, default=True)

    ideas = relationship("portal.ideas.models.Idea", back_populates="owner")

    @property
    def display_name(self) -> str:
        return self.full_name or self.email
