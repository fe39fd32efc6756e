from pydantic import BaseModel, Field
from typing import List, Optional
from datetime import datetime

from taskboard.models.enums import ParticipantRole, TaskStatus

class ParticipantIn(BaseModel):
    user_id: int
    role: ParticipantRole

class TaskCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str
    status: TaskStatus
    due_date: Optional[datetime] = None
    # Must name a creator; checked by the service so the error carries a clear message
    participants: List[ParticipantIn] = Field(default_factory=list)

class TaskUpdate(BaseModel):
    """Partial update; omitted fields are left alone.

    ``null`` means "no change" for title, description, status and
    participants. ``due_date`` is the exception: ``null`` clears it, so a
    client keeping the date must omit the field or send it back.
    """

    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    due_date: Optional[datetime] = None
    participants: Optional[List[ParticipantIn]] = None
