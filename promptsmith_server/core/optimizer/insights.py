"""Per-user insight cache learned from star ratings.

Ratings of 4 or 5 stars promote the patterns found in the rated prompt,
ratings of 1 or 2 move them to an avoid list, and 3 stars only updates the
rating statistics. Reads are advisory: speed mode uses whatever is cached
and concurrent writers resolve last-write-wins.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy import insert, select, update
from sqlalchemy.engine import Engine

from ..database import get_connection, optimization_insights_table

logger = logging.getLogger(__name__)

MAX_PATTERNS_PER_STRATEGY = 10

PATTERN_RULES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"step[\s-]+by[\s-]+step", re.IGNORECASE), "step-by-step instructions"),
    (re.compile(r"\b(?:for example|for instance|such as|example)", re.IGNORECASE), "concrete examples"),
    (re.compile(r"\b(?:format|structure|organi[sz]e)", re.IGNORECASE), "clear formatting"),
    (re.compile(r"\b(?:context|background)", re.IGNORECASE), "contextual information"),
    (re.compile(r"\b(?:specific|detailed|precise)", re.IGNORECASE), "specific requirements"),
    (re.compile(r"\b(?:constraint|limit|requirement)", re.IGNORECASE), "clear constraints"),
)


def extract_patterns(prompt_text: str) -> list[str]:
    """Return the named patterns present in a prompt, in catalog order."""
    return [name for regex, name in PATTERN_RULES if regex.search(prompt_text)]


def _merge(existing: list[str], new: list[str]) -> list[str]:
    merged = list(existing)
    for pattern in new:
        if pattern not in merged:
            merged.append(pattern)
    # Oldest patterns drop off first
    return merged[-MAX_PATTERNS_PER_STRATEGY:]


@dataclass
class StrategyInsight:
    successful_patterns: list[str] = field(default_factory=list)
    avoid_patterns: list[str] = field(default_factory=list)
    rating_count: int = 0
    average_rating: float = 0.0

    def apply_rating(self, patterns: list[str], stars: int) -> None:
        if stars >= 4:
            self.successful_patterns = _merge(self.successful_patterns, patterns)
            self.avoid_patterns = [p for p in self.avoid_patterns if p not in patterns]
        elif stars <= 2:
            self.avoid_patterns = _merge(self.avoid_patterns, patterns)
            self.successful_patterns = [p for p in self.successful_patterns if p not in patterns]

        total = self.average_rating * self.rating_count + stars
        self.rating_count += 1
        self.average_rating = round(total / self.rating_count, 3)

    def to_dict(self) -> dict[str, Any]:
        return {
            "successful_patterns": list(self.successful_patterns),
            "avoid_patterns": list(self.avoid_patterns),
            "rating_count": self.rating_count,
            "average_rating": self.average_rating,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StrategyInsight":
        return cls(
            successful_patterns=list(data.get("successful_patterns", [])),
            avoid_patterns=list(data.get("avoid_patterns", [])),
            rating_count=int(data.get("rating_count", 0)),
            average_rating=float(data.get("average_rating", 0.0)),
        )


@dataclass
class UserInsights:
    """Everything learned about one user's preferences."""

    user_id: str
    strategies: dict[str, StrategyInsight] = field(default_factory=dict)

    def patterns_for(self, strategy_name: str) -> list[str]:
        insight = self.strategies.get(strategy_name)
        return list(insight.successful_patterns) if insight else []

    @property
    def successful_patterns(self) -> dict[str, list[str]]:
        return {name: list(i.successful_patterns) for name, i in self.strategies.items()}

    @property
    def total_ratings(self) -> int:
        return sum(i.rating_count for i in self.strategies.values())

    @property
    def average_rating(self) -> float:
        total = self.total_ratings
        if total == 0:
            return 0.0
        weighted = sum(i.average_rating * i.rating_count for i in self.strategies.values())
        return round(weighted / total, 3)

    def apply_rating(self, strategy_name: str, prompt_text: str, stars: int) -> None:
        if not 1 <= stars <= 5:
            raise ValueError(f"Rating must be between 1 and 5, got {stars}")
        insight = self.strategies.setdefault(strategy_name, StrategyInsight())
        insight.apply_rating(extract_patterns(prompt_text), stars)

    def to_dict(self) -> dict[str, Any]:
        return {name: insight.to_dict() for name, insight in self.strategies.items()}

    @classmethod
    def from_dict(cls, user_id: str, data: Optional[dict[str, Any]]) -> "UserInsights":
        strategies = {name: StrategyInsight.from_dict(raw) for name, raw in (data or {}).items()}
        return cls(user_id=user_id, strategies=strategies)


class InsightCache(Protocol):
    """Storage for learned per-user insights."""

    def load(self, user_id: str) -> UserInsights:
        """Current insights for a user; empty when nothing was learned yet."""
        ...

    def record_rating(self, user_id: str, strategy_name: str, prompt_text: str, stars: int) -> UserInsights:
        """Fold one star rating into the user's insights and store the result."""
        ...


class InMemoryInsightCache:
    """Process-local insight cache; stores serialized copies so callers never alias state."""

    def __init__(self) -> None:
        self._entries: dict[str, dict[str, Any]] = {}

    def load(self, user_id: str) -> UserInsights:
        return UserInsights.from_dict(user_id, self._entries.get(user_id))

    def record_rating(self, user_id: str, strategy_name: str, prompt_text: str, stars: int) -> UserInsights:
        insights = self.load(user_id)
        insights.apply_rating(strategy_name, prompt_text, stars)
        self._entries[user_id] = insights.to_dict()
        logger.info(
            f"Recorded {stars}-star rating for user {user_id} on strategy {strategy_name} "
            f"({insights.total_ratings} total)"
        )
        return insights


class SqlInsightCache:
    """Insight cache backed by the ``optimization_insights`` table, one row per user."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def load(self, user_id: str) -> UserInsights:
        with get_connection(self.engine) as conn:
            row = conn.execute(
                select(optimization_insights_table.c.successful_strategies).where(
                    optimization_insights_table.c.user_id == user_id
                )
            ).fetchone()
        return UserInsights.from_dict(user_id, row.successful_strategies if row else None)

    def record_rating(self, user_id: str, strategy_name: str, prompt_text: str, stars: int) -> UserInsights:
        insights = self.load(user_id)
        insights.apply_rating(strategy_name, prompt_text, stars)

        values = {
            "successful_strategies": insights.to_dict(),
            "total_ratings": insights.total_ratings,
            "average_rating": insights.average_rating,
            "updated_at": datetime.now(timezone.utc),
        }
        with get_connection(self.engine) as conn:
            result = conn.execute(
                update(optimization_insights_table)
                .where(optimization_insights_table.c.user_id == user_id)
                .values(**values)
            )
            if result.rowcount == 0:
                conn.execute(insert(optimization_insights_table).values(user_id=user_id, **values))

        logger.info(
            f"Recorded {stars}-star rating for user {user_id} on strategy {strategy_name} "
            f"({insights.total_ratings} total)"
        )
        return insights
