"""
Pydantic models for user records, profiles and identity sync.

``IdentityEvent`` mirrors the subset of the identity provider's
webhook payload that the API consumes; unknown keys are ignored.
"""

from typing import Any, Dict, List, Optional

from pydantic import Field

from .common import ApiModel, OkResponse
from .onboarding import OnboardingState


class IdentityEvent(ApiModel):
    type: str
    data: Dict[str, Any] = Field(default_factory=dict)


class ProfileRead(OkResponse):
    clerk_user_id: str
    name: str
    username: str = ""
    about: str = ""
    interests: List[str] = Field(default_factory=list)
    languages: List[str] = Field(default_factory=list)
    photos: List[str] = Field(default_factory=list)
    onboarding: Optional[OnboardingState] = None


class PhotoAdd(ApiModel):
    clerk_user_id: str = ""
    url: str = Field(..., min_length=1, max_length=1000)
    key: Optional[str] = None


class PhotoDelete(ApiModel):
    clerk_user_id: str = ""
    uri: str = ""


class PhotoList(OkResponse):
    photos: List[str]
    count: int


class UserRead(ApiModel):
    clerk_user_id: str
    profile: Dict[str, Any] = Field(default_factory=dict)


class UserLookup(OkResponse):
    user: Optional[UserRead] = None
