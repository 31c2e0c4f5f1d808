"""
Rule-based routing of an industry and focus tags to one session category.

The routed category is only a hint for narrowing the candidate fetch; sessions
from other categories can still be recommended through tag overlap.
"""

from typing import Iterable

from .types import GENERAL_CATEGORY


MARKETING_RULES = [
    (('digital',), 'DigitalMarketing'),
    (('content',), 'ContentMarketing'),
    (('social',), 'SocialMedia'),
    (('seo',), 'DigitalMarketing'),
]

TECHNOLOGY_RULES = [
    (('software', 'development'), 'WebDevelopment'),
    (('data',), 'DataScience'),
    (('product',), 'ProductManagement'),
    (('devops',), 'DevOps'),
]

INDUSTRY_RULES = {
    'marketing': (MARKETING_RULES, 'DigitalMarketing'),
    'technology': (TECHNOLOGY_RULES, 'WebDevelopment'),
    'tech': (TECHNOLOGY_RULES, 'WebDevelopment'),
    'sales': ([], 'Sales'),
    'finance': ([], 'Finance'),
}


def route_category(industry: str, focus: Iterable[str] = ()) -> str:
    """
    Map an industry plus free-text focus tags to a session category.

    Rules are checked in order; the first keyword found inside any focus tag
    wins. Unknown industries route to "General".
    """
    focus_lower = [term.lower() for term in focus]
    rules, default = INDUSTRY_RULES.get((industry or '').lower().strip(), ([], GENERAL_CATEGORY))

    for keywords, category in rules:
        if any(keyword in term for term in focus_lower for keyword in keywords):
            return category

    return default
