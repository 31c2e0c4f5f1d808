"""Optional LLM reordering of an already arranged recommendation list."""

import json
import logging
import re
from typing import List, Optional, Tuple

from django.conf import settings
from openai import OpenAI

from .matching import parse_duration
from .types import ScoredSession, UserProfile

logger = logging.getLogger(__name__)


ID_ARRAY_PATTERN = re.compile(r'\[[\d,\s]+\]')

PROMPT_TEMPLATE = """You are a strict schedule optimizer focused on user preference matching. Your primary goal is to ensure sessions EXACTLY match what the user requested.

Sessions (JSON):
{sessions}

User Requirements (MUST BE STRICTLY FOLLOWED):
- Industry: {industry}
- Focus areas: {focus}

CRITICAL OPTIMIZATION RULES (in order of priority):
1. RELEVANCE FIRST: Only sessions with score >= 4.0 should be prioritized
2. EXACT MATCH: Sessions must directly relate to user's industry and focus areas
3. LEARNING PROGRESSION: Order from foundational to advanced concepts
4. TIME EFFICIENCY: Minimize gaps between sessions (prefer <= 90 minutes)
5. SCORE PRIORITY: Higher scored sessions should come first when relevance is equal

FILTERING REQUIREMENTS:
- If a session doesn't match the user's industry/focus, it should be deprioritized
- Sessions with scores < 2.0 should be placed last or excluded
- Group related sessions together for better learning flow

Return ONLY a JSON array of session IDs in the optimized order that STRICTLY follows user preferences: [1, 3, 2, 5]"""


def build_client() -> Optional[OpenAI]:
    """OpenAI client with a bounded timeout and no retries, or None without an API key."""
    if not settings.OPENAI_API_KEY:
        return None
    return OpenAI(
        api_key=settings.OPENAI_API_KEY,
        timeout=settings.LLM_REORDER_TIMEOUT,
        max_retries=0,
    )


def build_prompt(sessions: List[ScoredSession], profile: UserProfile) -> str:
    """Prompt with abstracted session data only (no attendee details)."""
    abstracted = [
        {
            'id': item.id,
            'start_time': item.start.isoformat(),
            'duration_hours': parse_duration(item.session.duration),
            'score': item.score,
            'category': item.session.category or 'General',
        }
        for item in sessions
    ]
    return PROMPT_TEMPLATE.format(
        sessions=json.dumps(abstracted, indent=2),
        industry=profile.industry or 'General',
        focus=', '.join(profile.focus) or 'None specified',
    )


def apply_order(sessions: List[ScoredSession], ordered_ids) -> List[ScoredSession]:
    """Reorder by ordered_ids; ids not mentioned keep their relative order at the end."""
    remaining = {item.id: item for item in sessions}
    ordered = []
    for session_id in ordered_ids:
        item = remaining.pop(session_id, None)
        if item is not None:
            ordered.append(item)
    ordered.extend(item for item in sessions if item.id in remaining)
    return ordered


def reorder_sessions(
    sessions: List[ScoredSession],
    profile: UserProfile,
    client: Optional[OpenAI] = None
) -> Tuple[List[ScoredSession], bool]:
    """
    Ask the LLM for a better ordering of the recommended sessions.

    Makes one attempt. Any failure (no client, API error, reply without an
    id array) returns the input order unchanged.

    Returns:
        Tuple of (sessions in final order, whether the LLM order was applied)
    """
    if len(sessions) <= 1:
        return sessions, False

    client = client or build_client()
    if client is None:
        logger.info("LLM reordering requested but no OpenAI API key is configured")
        return sessions, False

    try:
        completion = client.chat.completions.create(
            model=settings.OPENAI_MODEL,
            messages=[{'role': 'user', 'content': build_prompt(sessions, profile)}],
            max_tokens=200,
            temperature=0.3,
        )
        reply = (completion.choices[0].message.content or '').strip()
    except Exception as e:
        logger.warning(f"LLM reordering failed, keeping arranged order: {e}")
        return sessions, False

    match = ID_ARRAY_PATTERN.search(reply)
    if not match:
        logger.warning("LLM did not return a JSON id array, keeping arranged order")
        return sessions, False

    try:
        ordered_ids = json.loads(match.group(0))
    except ValueError:
        logger.warning("LLM returned a malformed id array, keeping arranged order")
        return sessions, False

    known_ids = {item.id for item in sessions}
    if not any(session_id in known_ids for session_id in ordered_ids):
        logger.warning("LLM id array names no recommended session, keeping arranged order")
        return sessions, False

    return apply_order(sessions, ordered_ids), True
