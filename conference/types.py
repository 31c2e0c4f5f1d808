"""
Data types and constants for the session recommendation system.

This module contains:
- DTOs (Data Transfer Objects) for service layer operations
- Scoring weights and thresholds used across the application
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime
from uuid import UUID


DEFAULT_TOP_K = 8
MAX_ARRANGEMENT_CANDIDATES = 16
RELEVANCE_FLOOR = 0.5
MAX_GAP_MINUTES = 90

DEFAULT_SESSION_HOUR = 10
DEFAULT_DURATION_HOURS = 2.0

RELEVANCE_WEIGHT = 5.0
TIME_FIT_WEIGHT = 2.0
FRESHNESS_WEIGHT = 0.3
AVAILABILITY_WEIGHT = 0.2

EXACT_TAG_WEIGHT = 1.0
PARTIAL_TAG_WEIGHT = 0.3
SUBCATEGORY_MATCH_SCORE = 0.7

GENERAL_CATEGORY = 'General'
BOOKING_STATUS_CONFIRMED = 'confirmed'

NO_SESSIONS_MESSAGE = 'No sessions available. Please populate the database with session data.'
NO_MATCHES_MESSAGE = 'No sessions matched your preferences.'


@dataclass(frozen=True)
class TimePreference:
    """Absolute window the user would like their sessions to fall into."""
    start: datetime
    end: datetime


@dataclass
class UserProfile:
    """Request-scoped preferences a session is scored against."""
    industry: str = ''
    focus: Tuple[str, ...] = ()
    time_pref: Optional[TimePreference] = None

    def __post_init__(self):
        self.industry = (self.industry or '').strip()
        self.focus = tuple(
            term.strip() for term in (self.focus or ()) if term and term.strip()
        )


@dataclass
class RecommendationOptions:
    """DTO for arrangement and limit options of a recommendation request."""
    avoid_gaps: bool = True
    top_k: int = DEFAULT_TOP_K
    use_llm: bool = False


@dataclass
class ScoredSession:
    """A session record paired with the score it earned for one request."""
    session: Any
    score: float

    @property
    def id(self):
        return self.session.id

    @property
    def start(self) -> datetime:
        from .matching import session_start
        return session_start(self.session)

    @property
    def end(self) -> datetime:
        from .matching import session_end
        return session_end(self.session)


@dataclass
class RecommendationResult:
    """Outcome of a recommendation request."""
    request_id: UUID
    category: str
    items: List[ScoredSession] = field(default_factory=list)
    total_analyzed: int = 0
    top_candidates: int = 0
    llm_optimized: bool = False
    message: Optional[str] = None

    @property
    def final_count(self) -> int:
        return len(self.items)


@dataclass
class BookingResult:
    """Outcome of a successful booking."""
    booking_id: UUID
    sessions: List[Any] = field(default_factory=list)
    user_details: Dict[str, Any] = field(default_factory=dict)
    missing_session_ids: List[int] = field(default_factory=list)

    @property
    def session_ids(self) -> List[int]:
        return [session.id for session in self.sessions]
