"""
Smart Workout Recommendation

Internal Codename: COMPASS
Suggests what to train next from the last week's sessions.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Tuple

from ..config import EngineConfig
from ..models import SmartWorkoutRecommendation, UserProfile
from ..normalizer import names_match, normalize_muscle_group
from .injuries import InjuryRuleEngine
from .volume import VolumeCalculator, muscle_groups_for_workout_type

logger = logging.getLogger(__name__)

STARTER_RECOMMENDATION = SmartWorkoutRecommendation(
    workout_type='push',
    muscle_groups=('chest', 'shoulders', 'triceps'),
    days_since_last_trained=0,
    reasoning="Start your training journey!",
    suggested_exercises=(('Barbell Bench Press', 3), ('Pull-Ups', 3), ('Back Squat', 3)),
)

SUGGESTED_EXERCISE_COUNT = 3
MIN_SETS_PER_SESSION = 6
MIN_DELOAD_SETS = 4
FALLBACK_WEEKLY_MIN = 10


def determine_workout_type(primary_group: str) -> Tuple[str, List[str]]:
    """Workout type and muscle groups that train a primary group."""
    group = normalize_muscle_group(primary_group)
    if group in ('chest', 'shoulders', 'triceps'):
        return 'push', ['chest', 'shoulders', 'triceps']
    if group in ('back', 'biceps'):
        return 'pull', ['back', 'biceps']
    if group in ('quads', 'hamstrings', 'glutes', 'calves'):
        return 'legs', ['quads', 'hamstrings', 'glutes']
    return group, [group]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class SmartRecommender:
    """
    Picks the next workout.

    Considers:
    - Which muscle group has rested longest
    - Whether its last session was a deload
    - Historical set counts per exercise
    - Injury screening
    """

    def __init__(
        self,
        knowledge,
        store,
        config: Optional[EngineConfig] = None,
        injuries: Optional[InjuryRuleEngine] = None,
        volume: Optional[VolumeCalculator] = None
    ):
        """
        Initialize recommender.

        Args:
            knowledge: KnowledgeBase instance
            store: TrainingStore-compatible collaborator
            config: Engine configuration
            injuries: Injury rule engine
            volume: Volume calculator
        """
        self.knowledge = knowledge
        self.store = store
        self.config = config or EngineConfig()
        self.injuries = injuries or InjuryRuleEngine()
        self.volume = volume or VolumeCalculator(knowledge, store, self.config)

    def get_smart_recommendation(self, profile: UserProfile, now: Optional[datetime] = None) -> SmartWorkoutRecommendation:
        """
        Recommend the next workout.

        Falls back to a fixed starter recommendation when there is no
        completed session in the look-back window or history cannot be read.
        """
        now = now or datetime.now()
        start = now - timedelta(days=self.config.recommendation_lookback_days)

        try:
            sessions = self.store.get_sessions_between(profile.id, start, now)
        except Exception as e:
            logger.warning(f"Could not load recent sessions for {profile.id}: {e}")
            return STARTER_RECOMMENDATION

        sessions = sorted((s for s in sessions if s.completed_at is not None), key=lambda s: s.started_at)
        if not sessions:
            return STARTER_RECOMMENDATION

        last_trained: Dict[str, datetime] = {}
        for session in sessions:
            for group in muscle_groups_for_workout_type(session.workout_type):
                if group not in last_trained or session.started_at > last_trained[group]:
                    last_trained[group] = session.started_at

        oldest_group = min(last_trained, key=lambda g: last_trained[g])
        days_since = (now - last_trained[oldest_group]).days

        workout_type, groups = determine_workout_type(oldest_group)
        primary = groups[0]
        is_deload = self.volume.detect_deload(oldest_group, sessions)

        suggested = self._suggested_exercises(primary, profile, is_deload)

        injuries = self.injuries.parse_injuries(profile.injuries)
        if injuries:
            safe = {
                f.exercise.name.lower()
                for f in self.injuries.filter_exercises(self.knowledge.get_exercises(primary), injuries)
            }
            filtered = [s for s in suggested if s[0].lower() in safe]
            if filtered:
                suggested = filtered

        if days_since >= 3:
            reasoning = f"Optimal recovery window ({days_since} days since last {oldest_group} workout)"
        elif days_since >= 2:
            reasoning = f"Adequate recovery ({days_since} days rest)"
        else:
            reasoning = (
                f"Consider training different muscle groups "
                f"(only {days_since} days since last {oldest_group} workout)"
            )
        if is_deload:
            reasoning += ". Last session was a deload, so volume is reduced today."
        if injuries:
            reasoning += f"\nExercises selected are adapted for: {', '.join(injuries)}"

        logger.info(f"Recommending {workout_type} ({oldest_group} rested {days_since} days)")

        return SmartWorkoutRecommendation(
            workout_type=workout_type,
            muscle_groups=tuple(groups),
            days_since_last_trained=days_since,
            reasoning=reasoning,
            suggested_exercises=tuple(suggested),
        )

    def _average_sets_per_session(self, user_id: str, exercise_id: str) -> Optional[float]:
        sets = self.store.get_exercise_history(user_id, exercise_id, limit=50)
        per_session: Dict[str, int] = {}
        for s in sets:
            per_session[s.session_id] = per_session.get(s.session_id, 0) + 1
        if not per_session:
            return None
        return max(sum(per_session.values()) / len(per_session), 2.0)

    def _suggested_exercises(self, muscle_group: str, profile: UserProfile, is_deload: bool) -> List[Tuple[str, int]]:
        """
        Top-ranked exercises with set counts scaled to today's target.

        Each exercise's share follows its historical sets per session; the
        first exercise gets at least 3 sets, the others at least 2.
        """
        ranked = self.knowledge.get_exercises_ranked(muscle_group, profile.goal)[:SUGGESTED_EXERCISE_COUNT]
        if not ranked:
            return []

        frequency = max(profile.workout_frequency, 1)
        weekly_range = self.volume.weekly_range(muscle_group, profile)
        weekly_min = weekly_range[0] if weekly_range else FALLBACK_WEEKLY_MIN

        target = max(weekly_min // frequency, MIN_SETS_PER_SESSION)
        if is_deload:
            target = max(int(target * self.config.deload_volume_factor), MIN_DELOAD_SETS)

        def base_sets(index: int) -> float:
            return 4.0 if index == 0 else 3.0

        workout_type = determine_workout_type(muscle_group)[0]
        try:
            catalog = self.store.get_exercises_by_muscle_group(workout_type, muscle_group)
        except Exception as e:
            logger.warning(f"Could not load catalog for {muscle_group}: {e}")
            return [(d.name, int(base_sets(i))) for i, d in enumerate(ranked)]

        averages = [base_sets(i) for i in range(len(ranked))]
        matches = {}
        for i, detail in enumerate(ranked):
            match = next((c for c in catalog if names_match(c.name, detail.name)), None)
            if match is not None:
                matches[i] = match

        if matches:
            with ThreadPoolExecutor(max_workers=max(1, self.config.history_workers)) as executor:
                future_to_index = {
                    executor.submit(self._average_sets_per_session, profile.id, match.id): i
                    for i, match in matches.items()
                }
                for future in as_completed(future_to_index):
                    i = future_to_index[future]
                    try:
                        average = future.result()
                    except Exception as e:
                        logger.warning(f"Could not load history for {ranked[i].name}: {e}")
                        average = None
                    if average is not None:
                        averages[i] = average

        return self._allocate_sets([d.name for d in ranked], averages, target)

    def _allocate_sets(self, names: List[str], averages: List[float], target: int) -> List[Tuple[str, int]]:
        def minimum(index: int) -> int:
            return 3 if index == 0 else 2

        total_weight = sum(averages)
        allocated = [
            max(_round_half_up(target * avg / total_weight), minimum(i))
            for i, avg in enumerate(averages)
        ]

        # Nudge toward the exact target without breaking the minimums
        diff = target - sum(allocated)
        for step in range(100):
            if diff == 0:
                break
            i = step % len(allocated)
            if diff > 0:
                allocated[i] += 1
                diff -= 1
            elif allocated[i] > minimum(i):
                allocated[i] -= 1
                diff += 1

        return list(zip(names, allocated))
