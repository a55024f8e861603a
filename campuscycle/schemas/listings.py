from pydantic import BaseModel, ConfigDict, Field
from typing import List, Literal, Optional
from datetime import datetime
from .users import UserPublic

ListingStatus = Literal['AVAILABLE', 'CLAIMED', 'SOLD']

class ListingImageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    url: str

class ListingIn(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1, max_length=5000)
    category: str = Field(min_length=1)
    condition: str = Field(min_length=1)
    price: float = Field(default=0, ge=0)
    is_giveaway: bool = False
    status: ListingStatus = 'AVAILABLE'
    location: Optional[str] = None
    zipcode: Optional[str] = None
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    image_urls: List[str] = Field(default_factory=list, max_length=5)

class ListingUpdateIn(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, min_length=1, max_length=5000)
    category: Optional[str] = Field(default=None, min_length=1)
    condition: Optional[str] = Field(default=None, min_length=1)
    price: Optional[float] = Field(default=None, ge=0)
    is_giveaway: Optional[bool] = None
    status: Optional[ListingStatus] = None
    location: Optional[str] = None
    zipcode: Optional[str] = None
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None

class ListingOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: str
    condition: str
    price: float
    is_giveaway: bool
    status: str
    location: Optional[str] = None
    zipcode: Optional[str] = None
    available_from: Optional[datetime] = None
    available_to: Optional[datetime] = None
    campus_id: int
    seller_id: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    seller: Optional[UserPublic] = None
    images: List[ListingImageOut] = []

class ListingBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    price: float
    is_giveaway: bool
    status: str
    images: List[ListingImageOut] = []

class PaginationOut(BaseModel):
    page: int
    page_size: int
    total: int
    total_pages: int

class ListingPageOut(BaseModel):
    listings: List[ListingOut]
    pagination: PaginationOut
