from pydantic import BaseModel, Field
from typing import Optional

class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1)

class CommentUpdate(BaseModel):
    content: Optional[str] = Field(None, min_length=1)
