from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Optional
from datetime import datetime
from .users import UserPublic

class BlockIn(BaseModel):
    user_id: int

class BlockOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    blocker_id: int
    blocked_id: int
    created_at: Optional[datetime] = None
    blocked: Optional[UserPublic] = None

class ReportIn(BaseModel):
    listing_id: Optional[int] = None
    target_user_id: Optional[int] = None
    reason: str = Field(min_length=1, max_length=1000)

    @model_validator(mode='after')
    def has_target(self):
        if self.listing_id is None and self.target_user_id is None:
            raise ValueError('Either listing_id or target_user_id must be provided')
        return self

class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    reporter_id: int
    listing_id: Optional[int] = None
    target_user_id: Optional[int] = None
    reason: str
    created_at: Optional[datetime] = None
    reporter: Optional[UserPublic] = None
    target_user: Optional[UserPublic] = None
