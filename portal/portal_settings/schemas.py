from datetime import datetime
from typing import Optional
from uuid import UUID
from pydantic import StrictBool

from portal.shared.schemas import CamelModel


class BlindReviewUpdate(CamelModel):
    enabled: StrictBool


class BlindReviewResponse(CamelModel):
    enabled: bool
    updated_by: Optional[UUID] = None
    updated_at: Optional[datetime] = None
