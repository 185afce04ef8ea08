"""
ALMANAC: Training research data.

Internal Codename: ALMANAC
Exercise effectiveness research and per-muscle-group volume landmarks,
loaded once and shared read-only.
"""

from .base import KnowledgeBase, goal_weighted_score

__all__ = [
    'KnowledgeBase',
    'goal_weighted_score',
]
