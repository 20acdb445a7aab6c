"""
Pydantic models for the onboarding wizard.

Each wizard page posts one of the ``*Step`` payloads below.  The
validators implement the per-step business rules, so a payload that
parses is ready to be persisted.  Error messages are user facing and
are returned verbatim in the ``error`` field of a 400 response.
"""

import re
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Iterable, List, Optional, Union

from pydantic import Field, field_validator

from ..core.config import settings
from .common import ApiModel, OkResponse


class OnboardingStep(str, Enum):
    """Stored onboarding progress.  Declaration order is the wizard order."""

    NONE = "none"
    NAME = "name"
    DATE_OF_BIRTH = "dateOfBirth"
    GENDER = "gender"
    INTERESTS = "interests"
    ABOUT = "about"
    PHOTOS = "photos"
    COMPLETE = "complete"


GENDER_OPTIONS = frozenset({"Male", "Female", "Non-binary", "Prefer not to say", "Other"})

MIN_AGE = 18
MAX_AGE = 100
ABOUT_MIN_LENGTH = 10
ABOUT_MAX_LENGTH = 500

DOB_PATTERN = re.compile(r"\d{4}-\d{2}-\d{2}")


def coerce_step(raw: Any) -> OnboardingStep:
    """Parse a stored step; unknown or corrupted values restart at ``name``."""
    try:
        return OnboardingStep(raw)
    except ValueError:
        return OnboardingStep.NAME


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def age_on(dob: date, today: date) -> int:
    """Whole years between ``dob`` and ``today``."""
    age = today.year - dob.year
    if (today.month, today.day) < (dob.month, dob.day):
        age -= 1
    return age


def unique_strings(values: Iterable[object]) -> List[str]:
    """Trim values, drop empties and duplicates, keep first-seen order."""
    out: List[str] = []
    seen = set()
    for value in values:
        text = str(value if value is not None else "").strip()
        if not text or text in seen:
            continue
        seen.add(text)
        out.append(text)
    return out


class PhotoRef(ApiModel):
    """Reference to an image already stored by the upload provider."""

    url: str
    key: Optional[str] = None


class StepPayload(ApiModel):
    # Only honoured in ``api_key`` identity mode; see core.security.
    clerk_user_id: Optional[str] = None


class NameStep(StepPayload):
    first_name: str = Field(..., max_length=80)
    last_name: Optional[str] = Field(None, max_length=80)

    @field_validator("first_name")
    @classmethod
    def _first_name_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("First name is required")
        return value

    @field_validator("last_name")
    @classmethod
    def _blank_last_name_is_null(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return value.strip() or None


class DateOfBirthStep(StepPayload):
    dob: date = Field(..., examples=["1994-05-17"])

    @field_validator("dob", mode="before")
    @classmethod
    def _calendar_date_only(cls, value: Any) -> Any:
        if not isinstance(value, str) or not DOB_PATTERN.fullmatch(value.strip()):
            raise ValueError("dob must be YYYY-MM-DD")
        return value.strip()

    @field_validator("dob")
    @classmethod
    def _age_in_range(cls, value: date) -> date:
        age = age_on(value, utc_today())
        if age < MIN_AGE:
            raise ValueError(f"You must be at least {MIN_AGE} years old")
        if age > MAX_AGE:
            raise ValueError("Please select a valid date of birth")
        return value


class GenderStep(StepPayload):
    gender: str

    @field_validator("gender")
    @classmethod
    def _known_option(cls, value: str) -> str:
        value = value.strip()
        if value not in GENDER_OPTIONS:
            raise ValueError("Invalid gender option")
        return value


class InterestsStep(StepPayload):
    interests: List[Any]

    @field_validator("interests")
    @classmethod
    def _normalise(cls, value: List[Any]) -> List[str]:
        interests = unique_strings(value)
        if not interests:
            raise ValueError("Pick at least one interest")
        cap = settings.onboarding_max_interests
        if cap and len(interests) > cap:
            raise ValueError(f"Pick at most {cap} interests")
        return interests


class AboutStep(StepPayload):
    about: str

    @field_validator("about")
    @classmethod
    def _length_in_range(cls, value: str) -> str:
        value = value.strip()
        if len(value) < ABOUT_MIN_LENGTH:
            raise ValueError(f"About must be at least {ABOUT_MIN_LENGTH} characters")
        if len(value) > ABOUT_MAX_LENGTH:
            raise ValueError(f"About must be at most {ABOUT_MAX_LENGTH} characters")
        return value


class PhotosStep(StepPayload):
    """Photo references; plain URL strings and ``{url, key}`` objects are both accepted."""

    photos: List[Union[str, PhotoRef]]

    @field_validator("photos")
    @classmethod
    def _count_in_range(cls, value: List[Union[str, PhotoRef]]) -> List[PhotoRef]:
        photos: List[PhotoRef] = []
        for item in value:
            if isinstance(item, PhotoRef):
                url = item.url.strip()
                key = item.key
            else:
                url, key = item.strip(), None
            if url:
                photos.append(PhotoRef(url=url, key=key))
        if len(photos) < settings.onboarding_min_photos:
            raise ValueError(f"At least {settings.onboarding_min_photos} photos are required")
        if len(photos) > settings.onboarding_max_photos:
            raise ValueError(f"Max {settings.onboarding_max_photos} photos allowed")
        return photos


class OnboardingState(ApiModel):
    step: str = OnboardingStep.NONE.value
    completed: bool = False

    @classmethod
    def from_row(cls, row: Any) -> "OnboardingState":
        """State of a stored user row, with unknown steps read as ``name``."""
        step = coerce_step(row["onboarding_step"])
        completed = bool(row["onboarding_completed"]) or step is OnboardingStep.COMPLETE
        return cls(step=step.value, completed=completed)


class OnboardingStepResponse(OkResponse):
    """Result of a successful step submission.

    Only the fields of the submitted step are filled in; the endpoint
    drops the others from the response.
    """

    step: str
    completed: bool
    created: bool = False
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = None
    gender: Optional[str] = None
    interests: Optional[List[str]] = None
    about: Optional[str] = None
    photos: Optional[List[str]] = None


class OnboardingStatus(ApiModel):
    completed: bool
    step: str
    next_route: Optional[str] = None


class AboutRead(OkResponse):
    about: str
    onboarding: OnboardingState


class InterestsRead(OkResponse):
    interests: List[str]
    onboarding: OnboardingState
