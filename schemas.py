"""
Database Schemas

MongoDB collection schemas and API response models, defined with Pydantic.

Each document model represents a collection in the database.
Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Video -> "video" collection
"""

from datetime import datetime
from typing import List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user" (lowercase of class name)
    Read only from this service; joined into video listings.
    """
    name: str = Field(..., description="Display name")
    avatar: Optional[str] = Field(None, description="Avatar image URL")


class Video(BaseModel):
    """
    Videos collection schema
    Collection name: "video" (lowercase of class name)
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., description="Video title")
    description: str = Field("", description="Video description")
    video_file: Optional[str] = Field(None, description="Hosted media URL")
    thumbnail: Optional[str] = Field(None, description="Hosted thumbnail URL")
    duration: Optional[float] = Field(None, ge=0, description="Duration in seconds, from the media host")
    views: int = Field(0, ge=0, description="View count")
    is_published: bool = Field(True, description="Whether the video is live")
    owner: ObjectId = Field(..., description="ObjectId of the owning user")


class CurrentUser(BaseModel):
    """Caller identity handed over by the gateway."""
    id: str


class OwnerSummary(BaseModel):
    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None


class VideoOut(BaseModel):
    id: str
    title: str
    description: str = ""
    video_file: Optional[str] = None
    thumbnail: Optional[str] = None
    duration: Optional[float] = None
    views: int = 0
    is_published: bool = False
    owner: Union[OwnerSummary, str, None] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class VideoPage(BaseModel):
    """One page of an aggregate query plus its paging metadata."""
    docs: List[VideoOut] = Field(default_factory=list)
    total_docs: int = 0
    limit: int = 10
    page: int = 1
    total_pages: int = 0
    paging_counter: int = 1
    has_prev_page: bool = False
    has_next_page: bool = False
    prev_page: Optional[int] = None
    next_page: Optional[int] = None
