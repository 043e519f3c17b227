from sqlalchemy import Column, String, ForeignKey, DateTime, JSON
from portal.database import Base
from portal.shared.models import utcnow

BLIND_REVIEW_KEY = "blind_review_enabled"


class PortalSetting(Base):
    """Global key/value switches edited by admins."""
    __tablename__ = "portal_settings"

    key = Column(String, primary_key=True)
    value = Column(JSON, nullable=False)
    updated_by = Column(ForeignKey("users.id"), nullable=True)
    updated_at = Column(DateTime, default=utcnow, nullable=False)
