"""
FORGE: Coaching Layer

Internal Codename: FORGE
"Forge: where today's workout is hammered out."

This package turns research data and training history into decisions:
- Session plans (exercises, sets, reps, rest, techniques)
- Weekly volume targets and recovery state
- Injury screening
- Live per-set coaching and plan edits during a workout
- Post-workout summaries
- What to train next
"""

from .injuries import InjuryRuleEngine
from .volume import VolumeCalculator
from .planner import SessionPlanGenerator, build_order_note, format_plan_text
from .adaptation import AdaptationEngine
from .session import ActiveWorkoutSession
from .summary import WorkoutSummaryAggregator
from .recommender import SmartRecommender

__all__ = [
    'InjuryRuleEngine',
    'VolumeCalculator',
    'SessionPlanGenerator',
    'build_order_note',
    'format_plan_text',
    'AdaptationEngine',
    'ActiveWorkoutSession',
    'WorkoutSummaryAggregator',
    'SmartRecommender',
]
