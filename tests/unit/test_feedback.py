"""Tests for AI grading and Gemini feedback suggestions."""

import pytest

from squadgrowth.growth.types import MatchStatLine
from squadgrowth.services import feedback
from squadgrowth.services.feedback import (
    FALLBACK_SUGGESTIONS,
    FeedbackSuggester,
    build_suggestion_prompt,
    generate_ai_grade,
    letter_for_grade,
    should_regenerate_suggestions,
)


class TestAIGrade:

    def test_forward_with_two_goals(self):
        stats = MatchStatLine(goals=2, minutes_played=90)

        grade = generate_ai_grade(stats, "ST")

        # components 70, 0, 60, 0 -> 32.5; 0.8 * 32.5 + 0.2 * 50 = 36; 36 * 1.03 + 1 = 38.08
        assert grade.components == {"goals": 70, "assists": 0, "attacking_threat": 60, "defensive_work": 0}
        assert grade.numeric == 38
        assert grade.letter == "F"
        assert grade.explanation == (
            "F: Clinical finishing with multiple goals. Full match performance demonstrates consistency."
        )

    def test_components_scaled_by_minutes(self):
        full = generate_ai_grade(MatchStatLine(tackles=4, minutes_played=30), "CB")
        partial = generate_ai_grade(MatchStatLine(tackles=4, minutes_played=15), "CB")

        assert full.components["tackles"] == 60
        assert partial.components["tackles"] == 30

    def test_goalkeeper_group(self):
        stats = MatchStatLine(saves=5, successful_goalie_kicks=9, failed_goalie_kicks=1, minutes_played=90)

        grade = generate_ai_grade(stats, "GK")

        assert set(grade.components) == {"saves", "kicks_accuracy", "throws_accuracy", "activity"}
        assert "Strong shot-stopping with 5 saves" in grade.notes
        assert "Excellent distribution accuracy with kicks" in grade.notes

    def test_unknown_position_uses_generic_components(self):
        grade = generate_ai_grade(MatchStatLine(minutes_played=60), None)
        assert "minutes_impact" in grade.components

    def test_grade_within_range(self):
        stats = MatchStatLine(goals=9, assists=9, chances_created=9, tackles=9, minutes_played=90, coach_rating=100)
        grade = generate_ai_grade(stats, "CM")
        assert 0 <= grade.numeric <= 100

    def test_internal_error_falls_back(self, monkeypatch):
        def explode(stats, position):
            raise ZeroDivisionError("bad stats")

        monkeypatch.setattr(feedback, "_compute_grade", explode)

        grade = generate_ai_grade(MatchStatLine(), "ST")

        assert (grade.numeric, grade.letter) == (50, "C")

    @pytest.mark.parametrize(
        "value,letter",
        [(100, "A+"), (97, "A+"), (93, "A"), (85, "B"), (73, "C"), (60, "D"), (59, "F"), (0, "F")],
    )
    def test_letter_for_grade(self, value, letter):
        assert letter_for_grade(value) == letter


class TestShouldRegenerate:

    @pytest.mark.parametrize(
        "new_feedback,existing_suggestions,existing_feedback,expected",
        [
            (None, None, None, False),
            ("   ", None, None, False),
            ("Work on first touch", None, None, True),
            ("Work on first touch", "", "Work on first touch", True),
            ("Work on first touch", "- tips", "Work on first touch", False),
            ("Track runners", "- tips", "Work on first touch", True),
        ],
    )
    def test_rules(self, new_feedback, existing_suggestions, existing_feedback, expected):
        assert should_regenerate_suggestions(new_feedback, existing_suggestions, existing_feedback) is expected


class _FakeResponse:
    def __init__(self, text):
        self.text = text


class _FakeModel:
    def __init__(self, text=None, error=None):
        self.text = text
        self.error = error
        self.prompts = []
        self.request_options = []

    def generate_content(self, prompt, request_options=None):
        self.prompts.append(prompt)
        self.request_options.append(request_options)
        if self.error:
            raise self.error
        return _FakeResponse(self.text)


def _suggester_with(model):
    suggester = FeedbackSuggester(api_key=None, model_name="gemini-test")
    suggester.model = model
    return suggester


class TestFeedbackSuggester:

    def test_unavailable_without_key(self):
        suggester = FeedbackSuggester(api_key=None, model_name="gemini-test")

        assert not suggester.is_available()
        assert suggester.generate_suggestions("Be braver", MatchStatLine()) is None

    def test_disabled_by_configuration(self):
        suggester = FeedbackSuggester(api_key="secret", model_name="gemini-test", enabled=False)
        assert not suggester.is_available()

    def test_configures_client_with_key(self, monkeypatch):
        configured = {}
        monkeypatch.setattr(feedback.genai, "configure", lambda api_key: configured.update(api_key=api_key))
        monkeypatch.setattr(feedback.genai, "GenerativeModel", lambda name: _FakeModel(text=name))

        suggester = FeedbackSuggester(api_key="secret", model_name="gemini-test")

        assert configured == {"api_key": "secret"}
        assert suggester.is_available()

    def test_returns_model_text(self):
        model = _FakeModel(text="  Nice work.\n\n- One\n- Two\n- Three  ")
        suggester = _suggester_with(model)

        text = suggester.generate_suggestions("Be braver", MatchStatLine(goals=1), "Sam", "ST")

        assert text == "Nice work.\n\n- One\n- Two\n- Three"
        assert 'Original coach feedback: "Be braver"' in model.prompts[0]
        assert "- Name: Sam" in model.prompts[0]

    def test_request_has_timeout(self):
        model = _FakeModel(text="Nice work.")
        suggester = _suggester_with(model)
        suggester.timeout = 4.5

        suggester.generate_suggestions("Be braver", MatchStatLine())

        assert model.request_options == [{"timeout": 4.5}]

    def test_timeout_returns_fallback(self):
        suggester = _suggester_with(_FakeModel(error=TimeoutError("deadline exceeded")))
        text = suggester.generate_suggestions("Be braver", MatchStatLine())
        assert text == FeedbackSuggester.fallback_suggestions("Be braver")

    def test_blank_feedback_skips_model(self):
        model = _FakeModel(text="unused")
        suggester = _suggester_with(model)

        assert suggester.generate_suggestions("  ", MatchStatLine()) is None
        assert model.prompts == []

    def test_api_error_returns_fallback(self):
        suggester = _suggester_with(_FakeModel(error=RuntimeError("quota exceeded")))

        text = suggester.generate_suggestions("Be braver", MatchStatLine())

        assert text.startswith('Your coach provided valuable feedback: "Be braver".')
        for line in FALLBACK_SUGGESTIONS:
            assert line in text

    def test_empty_reply_returns_fallback(self):
        suggester = _suggester_with(_FakeModel(text="   "))
        text = suggester.generate_suggestions("Be braver", MatchStatLine())
        assert text == FeedbackSuggester.fallback_suggestions("Be braver")


class TestSuggestionPrompt:

    def test_goalkeeper_metrics_included(self):
        stats = MatchStatLine(saves=4, successful_goalie_kicks=3, failed_goalie_kicks=1, minutes_played=90)

        prompt = build_suggestion_prompt("Command your area", stats, "Alex", "GK")

        assert "Goalkeeper-specific performance" in prompt
        assert "- Kicks: 4 attempts, 75% success rate" in prompt
        assert "- Throws: 0 attempts, 0% success rate" in prompt

    def test_outfield_prompt_has_no_goalkeeper_block(self):
        prompt = build_suggestion_prompt("Press more", MatchStatLine(tackles=2), "Sam", "CM")

        assert "Goalkeeper-specific performance" not in prompt
        assert "- Tackles: 2" in prompt
        assert "practical and achievable for a CM" in prompt
