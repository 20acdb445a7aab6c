"""Unit tests for the onboarding transition rules and step payloads."""

from datetime import date

import pytest
from pydantic import ValidationError

from social_events_api.app.schemas.onboarding import (
    AboutStep,
    InterestsStep,
    OnboardingStep,
    PhotosStep,
    age_on,
    unique_strings,
)
from social_events_api.app.services.onboarding_service import (
    OnboardingAlreadyComplete,
    StepOutOfOrder,
    advance,
    coerce_step,
    expected_submission,
)


S = OnboardingStep


class TestAdvance:
    @pytest.mark.parametrize(
        "current, submitted, expected",
        [
            (S.NONE, S.NAME, S.DATE_OF_BIRTH),
            (S.NAME, S.NAME, S.DATE_OF_BIRTH),
            (S.DATE_OF_BIRTH, S.DATE_OF_BIRTH, S.GENDER),
            (S.GENDER, S.GENDER, S.INTERESTS),
            (S.INTERESTS, S.INTERESTS, S.ABOUT),
            (S.ABOUT, S.ABOUT, S.PHOTOS),
            (S.PHOTOS, S.PHOTOS, S.COMPLETE),
        ],
    )
    def test_expected_page_moves_forward(self, current, submitted, expected):
        assert advance(current, submitted) is expected

    def test_earlier_page_keeps_step(self):
        assert advance(S.ABOUT, S.NAME) is S.ABOUT
        assert advance(S.PHOTOS, S.INTERESTS) is S.PHOTOS

    def test_later_page_is_rejected(self):
        with pytest.raises(StepOutOfOrder) as info:
            advance(S.NAME, S.GENDER)
        assert info.value.expected is S.NAME
        assert info.value.status_code == 409

    def test_first_submission_must_be_name(self):
        with pytest.raises(StepOutOfOrder):
            advance(S.NONE, S.DATE_OF_BIRTH)

    def test_complete_is_terminal(self):
        for submitted in (S.NAME, S.PHOTOS):
            with pytest.raises(OnboardingAlreadyComplete):
                advance(S.COMPLETE, submitted)

    def test_never_moves_backward(self):
        order = list(S)
        for current in order[:-1]:
            for submitted in order[1:-1]:
                try:
                    new = advance(current, submitted)
                except StepOutOfOrder:
                    continue
                assert order.index(new) >= order.index(current)


def test_expected_submission():
    assert expected_submission(S.NONE) is S.NAME
    assert expected_submission(S.GENDER) is S.GENDER
    assert expected_submission(S.COMPLETE) is None


@pytest.mark.parametrize("raw", ["bogus", "", None, 3])
def test_unknown_stored_step_restarts_at_name(raw):
    assert coerce_step(raw) is S.NAME


def test_coerce_known_step():
    assert coerce_step("interests") is S.INTERESTS


class TestAge:
    def test_birthday_today(self):
        assert age_on(date(2000, 10, 18), date(2018, 10, 18)) == 18

    def test_day_before_birthday(self):
        assert age_on(date(2000, 10, 18), date(2018, 10, 17)) == 17

    def test_leap_day(self):
        assert age_on(date(2004, 2, 29), date(2022, 2, 28)) == 17
        assert age_on(date(2004, 2, 29), date(2022, 3, 1)) == 18


def test_unique_strings_trims_and_dedupes():
    assert unique_strings([" Music", "music", "Music ", "", None, "Art"]) == ["Music", "music", "Art"]


class TestStepPayloads:
    def test_interests_deduped(self):
        step = InterestsStep(interests=["Hiking", " Hiking ", "Cooking"])
        assert step.interests == ["Hiking", "Cooking"]

    def test_interests_empty_after_cleanup(self):
        with pytest.raises(ValidationError):
            InterestsStep(interests=["  ", ""])

    def test_interests_cap(self, isolated_settings, monkeypatch):
        monkeypatch.setattr(isolated_settings, "onboarding_max_interests", 3)
        with pytest.raises(ValidationError):
            InterestsStep(interests=["a", "b", "c", "d"])

    def test_about_bounds(self):
        with pytest.raises(ValidationError):
            AboutStep(about="x" * 9)
        assert AboutStep(about="  " + "x" * 10 + "  ").about == "x" * 10
        assert AboutStep(about="x" * 500).about == "x" * 500
        with pytest.raises(ValidationError):
            AboutStep(about="x" * 501)

    def test_photos_accept_strings_and_refs(self):
        step = PhotosStep(photos=["https://cdn/a.jpg", {"url": "https://cdn/b.jpg", "key": "b"}])
        assert [p.url for p in step.photos] == ["https://cdn/a.jpg", "https://cdn/b.jpg"]
        assert step.photos[1].key == "b"

    def test_blank_photo_entries_do_not_count(self):
        with pytest.raises(ValidationError):
            PhotosStep(photos=["https://cdn/a.jpg", "   "])
