"""Heuristic scoring of prompt variants.

Five independent sub-scores in [0, 1] are combined with fixed weights, then a
strategy bonus of ``strategy_weight * 0.2`` is added and the total is clamped
to 1.0. The bonus can push a variant past what the sub-scores alone would
give; the clamp is kept rather than renormalizing.

Everything here is a pure function of its arguments.
"""

import re
from dataclasses import asdict, dataclass

SCORE_WEIGHTS = {
    "clarity": 0.25,
    "specificity": 0.25,
    "context": 0.20,
    "structure": 0.15,
    "efficiency": 0.15,
}
STRATEGY_BONUS_FACTOR = 0.2

SPECIFICITY_KEYWORDS = ("specific", "exactly", "must", "should", "include", "format", "example", "detailed")
CONTEXT_KEYWORDS = ("context", "background", "purpose", "goal", "audience", "use case")

# Keywords match as word prefixes so "examples" and "formatted" count too
_SPECIFICITY_RE = re.compile(r"\b(?:" + "|".join(SPECIFICITY_KEYWORDS) + r")\w*", re.IGNORECASE)
_CONTEXT_RE = re.compile(
    r"\b(?:" + "|".join(k.replace(" ", r"\s+") for k in CONTEXT_KEYWORDS) + r")\w*",
    re.IGNORECASE,
)

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_NUMBERED_RE = re.compile(r"^\s*\d+[.)]\s+\S", re.MULTILINE)
_BULLET_RE = re.compile(r"^\s*[-*•]\s+\S", re.MULTILINE)
# Markdown header, bold label, or a short capitalized label followed by a colon
_SECTION_RE = re.compile(
    r"^\s*(?:#{1,6}\s+\S|\*\*[^*\n]+\*\*|[A-Z][\w /&()-]{0,40}:(?:\s|$))",
    re.MULTILINE,
)

CHARS_PER_TOKEN = 4


@dataclass(frozen=True)
class ScoreBreakdown:
    clarity: float
    specificity: float
    context: float
    structure: float
    efficiency: float
    strategy_bonus: float
    total: float

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


def clarity_score(text: str) -> float:
    """Average words per sentence: 10-20 ideal, widening bands score lower."""
    words = len(text.split())
    if words == 0:
        return 0.4
    sentences = [s for s in _SENTENCE_SPLIT_RE.split(text) if s.strip()]
    avg = words / max(len(sentences), 1)

    if 10 <= avg <= 20:
        return 1.0
    if 8 <= avg <= 25:
        return 0.8
    if 5 <= avg <= 30:
        return 0.6
    return 0.4


def specificity_score(text: str) -> float:
    matches = len(_SPECIFICITY_RE.findall(text))
    return min(1.0, matches / 4)


def context_score(text: str) -> float:
    matches = len(_CONTEXT_RE.findall(text))
    return min(1.0, matches / 3)


def structure_score(text: str) -> float:
    score = 0.3
    if _NUMBERED_RE.search(text):
        score += 0.3
    if _BULLET_RE.search(text):
        score += 0.2
    if _SECTION_RE.search(text):
        score += 0.2
    return round(score, 2)


def estimate_tokens(text: str) -> float:
    """Token proxy: characters / 4."""
    return len(text) / CHARS_PER_TOKEN


def response_efficiency_score(prompt_text: str, sample_response: str) -> float:
    """Ratio of response tokens to prompt tokens, 2-8 ideal."""
    prompt_tokens = estimate_tokens(prompt_text)
    if prompt_tokens == 0:
        return 0.4
    ratio = estimate_tokens(sample_response) / prompt_tokens

    if 2 <= ratio <= 8:
        return 1.0
    if 1.5 <= ratio <= 10:
        return 0.8
    if 1 <= ratio <= 12:
        return 0.6
    return 0.4


def length_ratio_efficiency_score(prompt_text: str, original_prompt: str) -> float:
    """Speed-mode proxy: how much the rewrite expanded or condensed the original.

    Moderate expansion (1.5x-4x) scores best; mild expansion or heavy
    expansion less; condensation below half or runaway growth scores lowest.
    """
    if not original_prompt:
        return 0.4
    ratio = len(prompt_text) / len(original_prompt)

    if 1.5 <= ratio <= 4:
        return 1.0
    if 1.0 <= ratio <= 6:
        return 0.8
    if 0.5 <= ratio <= 10:
        return 0.6
    return 0.4


def _combine(
    prompt_text: str, efficiency: float, strategy_weight: float
) -> ScoreBreakdown:
    clarity = clarity_score(prompt_text)
    specificity = specificity_score(prompt_text)
    context = context_score(prompt_text)
    structure = structure_score(prompt_text)

    weighted = (
        SCORE_WEIGHTS["clarity"] * clarity
        + SCORE_WEIGHTS["specificity"] * specificity
        + SCORE_WEIGHTS["context"] * context
        + SCORE_WEIGHTS["structure"] * structure
        + SCORE_WEIGHTS["efficiency"] * efficiency
    )
    bonus = strategy_weight * STRATEGY_BONUS_FACTOR
    total = max(0.0, min(1.0, weighted + bonus))

    return ScoreBreakdown(
        clarity=clarity,
        specificity=specificity,
        context=context,
        structure=structure,
        efficiency=efficiency,
        strategy_bonus=bonus,
        total=total,
    )


def score_breakdown(prompt_text: str, sample_response: str, strategy_weight: float) -> ScoreBreakdown:
    """Deep-mode scoring: efficiency from a live sample response."""
    efficiency = response_efficiency_score(prompt_text, sample_response)
    return _combine(prompt_text, efficiency, strategy_weight)


def score(prompt_text: str, sample_response: str, strategy_weight: float) -> float:
    return score_breakdown(prompt_text, sample_response, strategy_weight).total


def speed_score_breakdown(prompt_text: str, original_prompt: str, strategy_weight: float) -> ScoreBreakdown:
    """Speed-mode scoring: no live response, efficiency from length ratio."""
    efficiency = length_ratio_efficiency_score(prompt_text, original_prompt)
    return _combine(prompt_text, efficiency, strategy_weight)
