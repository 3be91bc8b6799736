# models/community.py

from typing import Optional
from pydantic import BaseModel, Field

from .enums import PostType


class CommunityPostCreate(BaseModel):
    """
    Board post for one building. building_id may be omitted when a single
    building is selected.
    """
    building_id: Optional[str] = None
    title: str = Field(..., min_length=1)
    content: str = Field(..., min_length=1)
    post_type: PostType = PostType.announcement
    category: Optional[str] = None
    is_pinned: bool = False
