from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from typing import List, Optional
from datetime import datetime
from .users import UserPublic
from .listings import ListingBrief

class ThreadIn(BaseModel):
    listing_id: int = Field(validation_alias=AliasChoices('listing_id', 'listingId'))

class MessageIn(BaseModel):
    body: str

class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    thread_id: int
    sender_id: int
    body: str
    created_at: datetime
    read_at: Optional[datetime] = None
    sender: Optional[UserPublic] = None

class ThreadOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    listing_id: int
    buyer_id: int
    seller_id: int
    created_at: Optional[datetime] = None
    updated_at: datetime
    listing: Optional[ListingBrief] = None
    buyer: Optional[UserPublic] = None
    seller: Optional[UserPublic] = None
    last_message: Optional[MessageOut] = None
    unread_count: int = 0

class MarkReadOut(BaseModel):
    ok: bool = True
    updated: int = 0

# realtime payloads accept the browser client's camelCase keys
class ThreadRef(BaseModel):
    thread_id: int = Field(validation_alias=AliasChoices('thread_id', 'threadId'))

class RealtimeMessageIn(ThreadRef):
    body: str

class MessagesReadOut(BaseModel):
    threadId: int
    userId: int
