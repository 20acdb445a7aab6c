"""
Onboarding progress tracking.

A user's progress through the wizard is a single stored step.  The
step names the page the user should see next: after the name page is
submitted the stored step becomes ``dateOfBirth`` and so on, until
``photos`` is submitted and the step becomes ``complete``.

Transitions are decided by the pure ``advance`` function; the service
methods only validate, persist and report.  A submission is accepted
when it is for the expected page or for an earlier one (the user went
back to edit).  Earlier pages update their fields but never move the
step backward; later pages are rejected, as is any submission once
onboarding is complete.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.db import from_json, to_json, transaction, utcnow_iso
from ..core.errors import ConflictError
from ..schemas.onboarding import (
    AboutRead,
    AboutStep,
    DateOfBirthStep,
    GenderStep,
    InterestsRead,
    InterestsStep,
    NameStep,
    OnboardingState,
    OnboardingStatus,
    OnboardingStep,
    OnboardingStepResponse,
    PhotosStep,
    age_on,
    coerce_step,
    utc_today,
)
from .user_service import UserService


logger = logging.getLogger(__name__)

SEQUENCE = list(OnboardingStep)

NEXT_ROUTE = {
    OnboardingStep.NONE: "/(onboarding)/name",
    OnboardingStep.NAME: "/(onboarding)/name",
    OnboardingStep.DATE_OF_BIRTH: "/(onboarding)/dateOfBirth",
    OnboardingStep.GENDER: "/(onboarding)/gender",
    OnboardingStep.INTERESTS: "/(onboarding)/interests",
    OnboardingStep.ABOUT: "/(onboarding)/about",
    OnboardingStep.PHOTOS: "/(onboarding)/photos",
    OnboardingStep.COMPLETE: "/newApp/home",
}


class OnboardingAlreadyComplete(ConflictError):
    def __init__(self) -> None:
        super().__init__("Onboarding is already complete")


class StepOutOfOrder(ConflictError):
    def __init__(self, submitted: OnboardingStep, expected: OnboardingStep) -> None:
        super().__init__(f"Complete the '{expected.value}' step before '{submitted.value}'")
        self.submitted = submitted
        self.expected = expected


def next_step(step: OnboardingStep) -> OnboardingStep:
    if step is OnboardingStep.COMPLETE:
        return step
    return SEQUENCE[SEQUENCE.index(step) + 1]


def expected_submission(current: OnboardingStep) -> Optional[OnboardingStep]:
    """The page a user at ``current`` is expected to submit, ``None`` when done."""
    if current is OnboardingStep.COMPLETE:
        return None
    if current is OnboardingStep.NONE:
        return OnboardingStep.NAME
    return current


def advance(current: OnboardingStep, submitted: OnboardingStep) -> OnboardingStep:
    """Return the stored step after ``submitted`` is accepted at ``current``.

    Raises ``OnboardingAlreadyComplete`` or ``StepOutOfOrder`` when the
    submission is not allowed.
    """
    expected = expected_submission(current)
    if expected is None:
        raise OnboardingAlreadyComplete()
    if SEQUENCE.index(submitted) > SEQUENCE.index(expected):
        raise StepOutOfOrder(submitted, expected)
    if submitted is expected:
        return next_step(submitted)
    return current


@dataclass
class StepOutcome:
    step: OnboardingStep
    created: bool

    @property
    def completed(self) -> bool:
        return self.step is OnboardingStep.COMPLETE


class OnboardingService:
    """Validate-and-advance operations for each wizard page."""

    @classmethod
    def _submit(
        cls,
        clerk_user_id: str,
        submitted: OnboardingStep,
        profile_updates: Dict[str, Any],
        clerk_updates: Optional[Dict[str, Any]] = None,
    ) -> StepOutcome:
        with transaction() as conn:
            row, created = UserService.load_or_create(conn, clerk_user_id)
            current = coerce_step(row["onboarding_step"])
            new_step = advance(current, submitted)

            profile = from_json(row["profile"], {}) or {}
            profile.update(profile_updates)
            clerk = from_json(row["clerk"], None)
            if clerk_updates:
                clerk = dict(clerk or {})
                clerk.update(clerk_updates)

            conn.execute(
                """
                UPDATE users
                SET profile = ?, clerk = ?, onboarding_step = ?, onboarding_completed = ?, updated_at = ?
                WHERE clerk_user_id = ?
                """,
                (
                    to_json(profile),
                    to_json(clerk) if clerk is not None else None,
                    new_step.value,
                    int(new_step is OnboardingStep.COMPLETE),
                    utcnow_iso(),
                    clerk_user_id,
                ),
            )
        if new_step is not current:
            logger.info("User %s onboarding %s -> %s", clerk_user_id, current.value, new_step.value)
        return StepOutcome(step=new_step, created=created)

    @staticmethod
    def _response(outcome: StepOutcome, **fields: Any) -> OnboardingStepResponse:
        return OnboardingStepResponse(
            step=outcome.step.value,
            completed=outcome.completed,
            created=outcome.created,
            **fields,
        )

    @classmethod
    async def submit_name(cls, clerk_user_id: str, payload: NameStep) -> OnboardingStepResponse:
        names = {"firstName": payload.first_name, "lastName": payload.last_name}
        outcome = cls._submit(clerk_user_id, OnboardingStep.NAME, names, clerk_updates=names)
        return cls._response(outcome, first_name=payload.first_name, last_name=payload.last_name)

    @classmethod
    async def submit_date_of_birth(cls, clerk_user_id: str, payload: DateOfBirthStep) -> OnboardingStepResponse:
        age = age_on(payload.dob, utc_today())
        outcome = cls._submit(
            clerk_user_id,
            OnboardingStep.DATE_OF_BIRTH,
            {"dob": payload.dob.isoformat(), "age": age},
        )
        return cls._response(outcome, age=age)

    @classmethod
    async def submit_gender(cls, clerk_user_id: str, payload: GenderStep) -> OnboardingStepResponse:
        outcome = cls._submit(clerk_user_id, OnboardingStep.GENDER, {"gender": payload.gender})
        return cls._response(outcome, gender=payload.gender)

    @classmethod
    async def submit_interests(cls, clerk_user_id: str, payload: InterestsStep) -> OnboardingStepResponse:
        outcome = cls._submit(clerk_user_id, OnboardingStep.INTERESTS, {"interests": payload.interests})
        return cls._response(outcome, interests=payload.interests)

    @classmethod
    async def submit_about(cls, clerk_user_id: str, payload: AboutStep) -> OnboardingStepResponse:
        outcome = cls._submit(clerk_user_id, OnboardingStep.ABOUT, {"about": payload.about})
        return cls._response(outcome, about=payload.about)

    @classmethod
    async def submit_photos(cls, clerk_user_id: str, payload: PhotosStep) -> OnboardingStepResponse:
        uploaded_at = utcnow_iso()
        photos = [{"url": p.url, "key": p.key, "uploadedAt": uploaded_at} for p in payload.photos]
        outcome = cls._submit(clerk_user_id, OnboardingStep.PHOTOS, {"photos": photos})
        return cls._response(outcome, photos=[p.url for p in payload.photos])

    @classmethod
    async def get_status(cls, clerk_user_id: str) -> OnboardingStatus:
        """Report where the client should route the user.

        Users without a record start at ``name``.  Unknown stored values
        are reported as ``name`` as well.
        """
        row = await UserService.get_user_row(clerk_user_id)
        if row is None:
            step = OnboardingStep.NAME
            completed = False
        else:
            state = OnboardingState.from_row(row)
            step, completed = OnboardingStep(state.step), state.completed
        return OnboardingStatus(
            completed=completed,
            step=step.value,
            next_route=None if completed else NEXT_ROUTE[step],
        )

    @classmethod
    async def _state_and_profile(cls, clerk_user_id: str) -> tuple:
        row = await UserService.get_user_row(clerk_user_id)
        if row is None:
            return OnboardingState(), {}
        return OnboardingState.from_row(row), from_json(row["profile"], {}) or {}

    @classmethod
    async def get_about(cls, clerk_user_id: str) -> AboutRead:
        state, profile = await cls._state_and_profile(clerk_user_id)
        about = profile.get("about")
        return AboutRead(about=about if isinstance(about, str) else "", onboarding=state)

    @classmethod
    async def get_interests(cls, clerk_user_id: str) -> InterestsRead:
        state, profile = await cls._state_and_profile(clerk_user_id)
        interests = profile.get("interests")
        if not isinstance(interests, list):
            interests = []
        return InterestsRead(interests=[i for i in interests if isinstance(i, str)], onboarding=state)
