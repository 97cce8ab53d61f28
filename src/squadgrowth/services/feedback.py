"""
Match feedback enrichment: AI grade and AI improvement suggestions.

Both run after the growth commit and are strictly best-effort:

- generate_ai_grade() is a deterministic, position-aware heuristic. Any
  internal error yields the fallback grade (50, "C").
- FeedbackSuggester.generate_suggestions() asks Gemini to rephrase the
  coach's feedback and add three position-specific suggestions. Without an
  API key it returns None; on API errors it returns fixed fallback text.

Neither ever raises to the caller.

Usage:
    grade = generate_ai_grade(stat_line, "CM")
    review.ai_rating = grade.numeric

    suggester = FeedbackSuggester.from_settings()
    text = suggester.generate_suggestions(feedback, stat_line, "Sam", "CM")
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

import google.generativeai as genai

from squadgrowth.config import settings
from squadgrowth.growth.calculator import round_half_up
from squadgrowth.growth.types import MatchStatLine, is_goalkeeper

logger = logging.getLogger(__name__)


# =============================================================================
# AI grade
# =============================================================================

DEFENDER_POSITIONS = {"CB", "LB", "RB"}
MIDFIELDER_POSITIONS = {"CDM", "CM", "CAM"}
FORWARD_POSITIONS = {"LW", "RW", "ST", "CF"}

# Components scale linearly up to this many minutes
GRADE_FULL_CREDIT_MINUTES = 30

# Share of the final grade taken from the coach's own rating
COACH_RATING_SHARE = 0.2

# (minimum grade, letter), best first
LETTER_GRADES = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D+"),
    (60, "D"),
)

FALLBACK_GRADE = 50
FALLBACK_LETTER = "C"


@dataclass
class AIGrade:
    """Grade for one match: 0-100 score, letter and explanation notes."""
    numeric: int
    letter: str
    components: dict[str, int] = field(default_factory=dict)
    notes: list[str] = field(default_factory=list)

    @property
    def explanation(self) -> str:
        return f"{self.letter}: " + " ".join(f"{note}." for note in self.notes)


def letter_for_grade(grade: int) -> str:
    for minimum, letter in LETTER_GRADES:
        if grade >= minimum:
            return letter
    return "F"


def _safe_rate(successful: int, attempted: int, fallback: float) -> float:
    return successful / attempted if attempted > 0 else fallback


def _goalkeeper_components(s: MatchStatLine, notes: list[str]) -> dict[str, float]:
    kicks_accuracy = _safe_rate(s.successful_goalie_kicks, s.kicks_attempted, 0.7)
    throws_accuracy = _safe_rate(s.successful_goalie_throws, s.throws_attempted, 0.8)
    # Roughly one save expected per 15 minutes
    save_performance = min(1.0, s.saves / max(1.0, s.minutes_played / 15))

    if s.saves > 3:
        notes.append(f"Strong shot-stopping with {s.saves} saves")
    elif s.saves == 0 and s.minutes_played > 45:
        notes.append("No saves recorded in significant playing time")

    if s.kicks_attempted > 0:
        if kicks_accuracy >= 0.8:
            notes.append("Excellent distribution accuracy with kicks")
        elif kicks_accuracy < 0.5:
            notes.append("Distribution accuracy needs improvement")

    if s.throws_attempted > 0:
        if throws_accuracy >= 0.9:
            notes.append("Precise throwing distribution")
        elif throws_accuracy < 0.7:
            notes.append("Hand distribution could be more accurate")

    return {
        "saves": min(100.0, save_performance * 100),
        "kicks_accuracy": kicks_accuracy * 100,
        "throws_accuracy": throws_accuracy * 100,
        "activity": min(100.0, (s.kicks_attempted + s.throws_attempted + s.saves) * 5.0),
    }


def _defender_components(s: MatchStatLine, notes: list[str]) -> dict[str, float]:
    if s.tackles >= 5:
        notes.append("Strong defensive presence with tackles")
    elif s.tackles == 0 and s.minutes_played > 45:
        notes.append("Limited defensive impact")
    if s.interceptions >= 3:
        notes.append("Good positional play and ball interception")
    if s.goals > 0:
        notes.append("Valuable attacking contribution from defense")

    return {
        "tackles": min(100.0, s.tackles * 15.0),
        "interceptions": min(100.0, s.interceptions * 20.0),
        "defensive_actions": min(100.0, (s.tackles + s.interceptions) * 12.0),
        "contribution": min(100.0, (s.goals + s.assists) * 30.0),
    }


def _midfielder_components(s: MatchStatLine, notes: list[str]) -> dict[str, float]:
    if s.chances_created >= 3:
        notes.append("Excellent creative play and vision")
    elif s.chances_created == 0 and s.minutes_played > 45:
        notes.append("Limited creative impact")
    if s.assists >= 2:
        notes.append("Strong playmaking with multiple assists")
    if s.tackles + s.interceptions >= 4:
        notes.append("Good defensive contribution from midfield")

    return {
        "creativity": min(100.0, s.chances_created * 25.0),
        "assists": min(100.0, s.assists * 40.0),
        "defensive_work": min(100.0, (s.tackles + s.interceptions) * 15.0),
        "goals": min(100.0, s.goals * 30.0),
    }


def _forward_components(s: MatchStatLine, notes: list[str]) -> dict[str, float]:
    if s.goals >= 2:
        notes.append("Clinical finishing with multiple goals")
    elif s.goals == 0 and s.minutes_played > 60:
        notes.append("Needs to find the back of the net")
    if s.assists >= 2:
        notes.append("Great link-up play and assist creation")
    if s.chances_created >= 2:
        notes.append("Good involvement in creating opportunities")

    return {
        "goals": min(100.0, s.goals * 35.0),
        "assists": min(100.0, s.assists * 30.0),
        "attacking_threat": min(100.0, (s.goals * 2 + s.assists + s.chances_created) * 15.0),
        "defensive_work": min(100.0, (s.tackles + s.interceptions) * 10.0),
    }


def _generic_components(s: MatchStatLine, notes: list[str]) -> dict[str, float]:
    involvement = s.goals + s.assists + s.tackles + s.interceptions + s.chances_created
    return {
        "attacking": min(100.0, s.goals * 25.0 + s.assists * 20.0 + s.chances_created * 15.0),
        "defensive": min(100.0, (s.tackles + s.interceptions) * 15.0),
        "involvement": min(100.0, involvement * 8.0),
        "minutes_impact": min(100.0, s.minutes_played * 1.1),
    }


def _compute_grade(stats: MatchStatLine, position: Optional[str]) -> AIGrade:
    code = (position or "").strip().upper()
    notes: list[str] = []

    if is_goalkeeper(code):
        raw = _goalkeeper_components(stats, notes)
    elif code in DEFENDER_POSITIONS:
        raw = _defender_components(stats, notes)
    elif code in MIDFIELDER_POSITIONS:
        raw = _midfielder_components(stats, notes)
    elif code in FORWARD_POSITIONS:
        raw = _forward_components(stats, notes)
    else:
        raw = _generic_components(stats, notes)

    minutes_scale = min(1.0, stats.minutes_played / GRADE_FULL_CREDIT_MINUTES)
    components = {name: round_half_up(value * minutes_scale) for name, value in raw.items()}

    base = sum(components.values()) / len(components) if components else 50
    blended = round_half_up(base * (1 - COACH_RATING_SHARE) + stats.coach_rating * COACH_RATING_SHARE)

    # Slight optimism bias, bounded to the grade range
    numeric = round_half_up(min(100.0, max(0.0, blended * 1.03 + 1)))

    if stats.minutes_played < 15:
        notes.append("Limited playing time affects overall assessment")
    elif stats.minutes_played >= 90:
        notes.append("Full match performance demonstrates consistency")

    if stats.coach_rating >= 80:
        notes.append("Coach highly rated this performance")
    elif stats.coach_rating <= 40:
        notes.append("Coach rating indicates areas for improvement")

    if not notes:
        notes.append("Solid overall contribution to the match")

    return AIGrade(numeric=numeric, letter=letter_for_grade(numeric), components=components, notes=notes)


def generate_ai_grade(stats: MatchStatLine, position: Optional[str] = None) -> AIGrade:
    """
    Position-aware grade for one match.

    Components are chosen by position group (goalkeeper, defender,
    midfielder, forward, or generic), scaled by minutes played, averaged,
    blended 80/20 with the coach rating and given a small optimism bias.

    Never raises; falls back to a 50 / "C" grade.
    """
    try:
        return _compute_grade(stats, position)
    except Exception:
        logger.error("AI grade calculation failed, using fallback", exc_info=True)
        return AIGrade(
            numeric=FALLBACK_GRADE,
            letter=FALLBACK_LETTER,
            components={"fallback": FALLBACK_GRADE},
            notes=["Grade calculation unavailable"],
        )


# =============================================================================
# AI suggestions
# =============================================================================

FALLBACK_SUGGESTIONS = (
    "- Focus on consistent training to build muscle memory and technique",
    "- Watch match footage to identify areas for tactical improvement",
    "- Work with teammates during practice to enhance decision-making skills",
)

POSITION_FOCUS = """Position-specific focus areas:
- GK (Goalkeeper): Shot-stopping, distribution (kicks/throws), command of penalty area, communication, positioning, diving technique
- CB/LB/RB (Defenders): Tackling, marking, aerial duels, positioning, passing out from the back
- CDM/CM/CAM (Midfielders): Passing accuracy, vision, work rate, pressing, ball retention
- LW/RW (Wingers): Crossing, dribbling, tracking back, pace utilization, 1v1 situations
- ST/CF (Forwards): Finishing, movement in the box, hold-up play, pressing from the front"""


def should_regenerate_suggestions(
    feedback: Optional[str],
    existing_suggestions: Optional[str],
    existing_feedback: Optional[str],
) -> bool:
    """
    Suggestions are regenerated only for non-blank feedback, and only when
    none exist yet or the feedback text changed.
    """
    if not feedback or not feedback.strip():
        return False
    if not existing_suggestions:
        return True
    return feedback != existing_feedback


def build_suggestion_prompt(
    feedback: str,
    stats: MatchStatLine,
    player_name: str,
    position: str,
) -> str:
    """Prompt for rephrased feedback plus three suggestions."""
    gk_metrics = ""
    if is_goalkeeper(position):
        kick_rate = round_half_up(_safe_rate(stats.successful_goalie_kicks, stats.kicks_attempted, 0) * 100)
        throw_rate = round_half_up(_safe_rate(stats.successful_goalie_throws, stats.throws_attempted, 0) * 100)
        gk_metrics = (
            "\nGoalkeeper-specific performance:\n"
            f"- Saves: {stats.saves}\n"
            f"- Kicks: {stats.kicks_attempted} attempts, {kick_rate}% success rate\n"
            f"- Throws: {stats.throws_attempted} attempts, {throw_rate}% success rate"
        )
        focus = (
            "focus on goalkeeper-specific skills like diving, distribution, handling, "
            "kicking accuracy, and command of the penalty area"
        )
    else:
        focus = (
            "e.g., defenders on tackling/positioning, midfielders on passing/vision, "
            "forwards on finishing/movement"
        )

    return f"""You are an experienced football coach providing constructive feedback to help players improve.

Original coach feedback: "{feedback}"

Player details:
- Position: {position}
- Name: {player_name}

Player match performance:
- Goals: {stats.goals}
- Assists: {stats.assists}
- Saves: {stats.saves}
- Tackles: {stats.tackles}
- Interceptions: {stats.interceptions}
- Chances Created: {stats.chances_created}
- Minutes Played: {stats.minutes_played}
- Coach Rating: {stats.coach_rating}/100{gk_metrics}

Instructions:
1. First, rephrase the coach's feedback in a constructive, encouraging way that maintains honesty while being supportive
2. Then provide exactly 3 bullet points with specific, actionable improvement suggestions based on the feedback, performance stats, AND the player's position
3. Tailor suggestions to the player's position ({focus})
4. Keep the tone professional but encouraging
5. Make suggestions practical and achievable for a {position}

{POSITION_FOCUS}

Format your response exactly like this:
[Constructive rephrased feedback in 1-2 sentences]

- [Position-specific improvement suggestion 1]
- [Position-specific improvement suggestion 2]
- [Position-specific improvement suggestion 3]

Do not include any other text, headers, or formatting.
"""


def _response_text(response) -> str:
    text = getattr(response, "text", None)
    return text.strip() if isinstance(text, str) else ""


class FeedbackSuggester:
    """
    Gemini-backed feedback suggestions.

    The model is only configured when an API key is present and
    suggestions are enabled; otherwise is_available() is False and every
    call returns None.
    """

    def __init__(
        self,
        api_key: Optional[str],
        model_name: str,
        enabled: bool = True,
        timeout: float = 15.0,
    ):
        self.model_name = model_name
        self.timeout = timeout
        self.model = None
        if not enabled:
            logger.info("AI suggestions disabled by configuration")
            return
        if not api_key:
            logger.warning("GEMINI_API_KEY not set, AI suggestions disabled")
            return
        genai.configure(api_key=api_key)
        self.model = genai.GenerativeModel(model_name)

    @classmethod
    def from_settings(cls) -> "FeedbackSuggester":
        return cls(
            api_key=settings.gemini_api_key,
            model_name=settings.gemini_model,
            enabled=settings.ai_suggestions_enabled,
            timeout=settings.gemini_timeout_seconds,
        )

    def is_available(self) -> bool:
        return self.model is not None

    def generate_suggestions(
        self,
        feedback: Optional[str],
        stats: MatchStatLine,
        player_name: str = "the player",
        position: Optional[str] = None,
    ) -> Optional[str]:
        """
        Rephrase coach feedback and add three position-specific suggestions.

        Returns:
            Generated text; None when unavailable or feedback is blank;
            fallback text when the API call fails or returns nothing
        """
        if not self.is_available():
            return None
        if not feedback or not feedback.strip():
            logger.debug("No coach feedback, skipping AI suggestions")
            return None

        prompt = build_suggestion_prompt(feedback, stats, player_name, position or "unknown")
        try:
            # Growth is already committed; a slow model must not hold the response
            response = self.model.generate_content(
                prompt, request_options={"timeout": self.timeout}
            )
            text = _response_text(response)
        except Exception:
            logger.error("Gemini suggestion request failed, using fallback", exc_info=True)
            return self.fallback_suggestions(feedback)

        if not text:
            logger.warning("Empty response from Gemini, using fallback")
            return self.fallback_suggestions(feedback)
        return text

    @staticmethod
    def fallback_suggestions(feedback: str) -> str:
        """Fixed text quoting the coach's feedback with three general suggestions."""
        intro = (
            f'Your coach provided valuable feedback: "{feedback}". '
            "Use this input to guide your development."
        )
        return intro + "\n\n" + "\n".join(FALLBACK_SUGGESTIONS)
