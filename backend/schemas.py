"""
Pydantic schemas for the bucket list backend.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

StatusValue = Literal["planned", "in_progress", "completed"]


class HealthResponse(BaseModel):
    status: Literal["ok"]


class RegisterRequest(BaseModel):
    email: str = Field(..., max_length=320)
    password: str = Field(..., min_length=6, max_length=256)
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    pseudo: Optional[str] = Field(default=None, max_length=100)


class LoginRequest(BaseModel):
    email: str
    password: str


class AuthResponse(BaseModel):
    user: dict
    profile: Optional[dict] = None
    access_token: Optional[str] = None
    refresh_token: Optional[str] = None


class MeResponse(BaseModel):
    user: dict
    profile: Optional[dict] = None


class ActivityListResponse(BaseModel):
    data: list[dict]
    count: int
    limit: int
    offset: int


class ActivityResponse(BaseModel):
    data: dict


class SearchResponse(BaseModel):
    data: list[dict]
    query: str
    count: int


class CategoryListResponse(BaseModel):
    data: list[dict]


class ContinentListResponse(BaseModel):
    data: list[dict]


class CatalogStatsResponse(BaseModel):
    total_activities: int
    by_category: dict[str, int]
    by_continent: dict[str, int]


class ProfileUpdateRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=100)
    last_name: str = Field(..., min_length=1, max_length=100)
    email: Optional[str] = Field(default=None, max_length=320)
    pseudo: Optional[str] = Field(default=None, max_length=100)


class ProfileResponse(BaseModel):
    profile: dict


class AddBucketItemRequest(BaseModel):
    activity_id: str
    notes: Optional[str] = Field(default=None, max_length=2000)
    priority: Literal["low", "medium", "high"] = "medium"
    target_date: Optional[str] = None


class UpdateStatusRequest(BaseModel):
    status: StatusValue
    notes: Optional[str] = Field(default=None, max_length=2000)
    completion_date: Optional[str] = None
    rating: Optional[int] = None


class BucketItemResponse(BaseModel):
    item: dict


class BucketListResponse(BaseModel):
    items: list[dict]
    total: int


class StatsResponse(BaseModel):
    total: int
    planned: int
    in_progress: int
    completed: int
    completion_rate: int


class ShareImagesRequest(BaseModel):
    formats: Optional[list[str]] = None


class ShareImage(BaseModel):
    url: str
    width: int
    height: int
    image_count: int
    public_id: Optional[str] = None


class ShareStatsSummary(BaseModel):
    total: int
    completed: int
    completion_rate: int


class ShareImagesResponse(BaseModel):
    images: dict[str, ShareImage]
    errors: dict[str, str]
    partial: bool
    stats: ShareStatsSummary


class CreateShareLinkRequest(BaseModel):
    platform: str = Field(..., max_length=32)
    image_url: str = Field(..., max_length=2048)


class ShareLinkResponse(BaseModel):
    share_token: str
    share_url: str
    platform: str
    expires_at: datetime
    social_links: dict
