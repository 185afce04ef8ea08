"""
Volume & Recovery Tracking

Internal Codename: TALLY
Weekly set targets per muscle group, recovery windows and deload detection.
"""

import logging
from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..config import EngineConfig
from ..models import (
    ExerciseCountRecommendation,
    ExerciseSet,
    ExperienceLevel,
    Goal,
    MuscleVolumeData,
    MuscleVolumeTarget,
    UserProfile,
    VolumeProgress,
    WorkoutSession,
)
from ..normalizer import CANONICAL_MUSCLE_GROUPS, normalize_muscle_group, sanitize_research_text

logger = logging.getLogger(__name__)


# Checked in order by substring against the lowercased workout type
WORKOUT_TYPE_MUSCLE_GROUPS = [
    ('push', ['chest', 'shoulders', 'triceps']),
    ('pull', ['back', 'biceps', 'shoulders']),
    ('leg', ['quads', 'hamstrings', 'glutes', 'calves']),
    ('upper', ['chest', 'back', 'shoulders', 'biceps', 'triceps']),
    ('lower', ['quads', 'hamstrings', 'glutes', 'calves']),
    ('full', ['chest', 'back', 'shoulders', 'quads', 'hamstrings', 'biceps', 'triceps']),
]

DELOAD_KEYWORDS = ['deload', 'recovery week']

# Heuristic exercise counts when research has no landmarks
BASE_EXERCISE_COUNT = {
    ExperienceLevel.BEGINNER: 2,
    ExperienceLevel.INTERMEDIATE: 3,
    ExperienceLevel.ADVANCED: 4,
}

NEVER_TRAINED_DAYS = 7


def muscle_groups_for_workout_type(workout_type: str) -> List[str]:
    """
    Muscle groups a workout type covers.

    Unknown types (custom workouts named after a muscle) map to themselves.
    """
    lowered = (workout_type or '').lower()
    for key, groups in WORKOUT_TYPE_MUSCLE_GROUPS:
        if key in lowered:
            return list(groups)
    return [normalize_muscle_group(lowered)]


def load_sets_by_session(store, sessions: List[WorkoutSession], max_workers: int = 4) -> Dict[str, List[ExerciseSet]]:
    """
    Fetch logged sets for several sessions in parallel.

    A failed read is logged and treated as a session without sets. The
    returned mapping preserves the input session order.

    Args:
        store: TrainingStore-compatible collaborator
        sessions: Sessions to read
        max_workers: Thread pool size

    Returns:
        Dict of session id -> sets
    """
    if not sessions:
        return {}

    fetched: Dict[str, List[ExerciseSet]] = {}

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        future_to_session = {
            executor.submit(store.get_exercise_sets_for_session, session.id): session
            for session in sessions
        }

        for future in as_completed(future_to_session):
            session = future_to_session[future]
            try:
                fetched[session.id] = list(future.result())
            except Exception as e:
                logger.warning(f"Could not load sets for session {session.id}: {e}")
                fetched[session.id] = []

    # Merge in input order, not completion order
    return {session.id: fetched[session.id] for session in sessions}


class VolumeCalculator:
    """
    Computes per-muscle-group volume targets and recovery state.

    Tracks:
    - Weekly set targets from research landmarks
    - Sets completed in the trailing 7 days
    - Days since each muscle group was last trained
    - Deload sessions
    """

    def __init__(self, knowledge, store, config: Optional[EngineConfig] = None):
        """
        Initialize volume calculator.

        Args:
            knowledge: KnowledgeBase instance
            store: TrainingStore-compatible collaborator
            config: Engine configuration (defaults if omitted)
        """
        self.knowledge = knowledge
        self.store = store
        self.config = config or EngineConfig()

    def sessions_per_week(self, profile: UserProfile) -> int:
        """How many sessions per week each muscle group is trained."""
        return 2 if profile.workout_frequency >= self.config.high_frequency_days else 1

    def weekly_range(self, muscle_group: str, profile: UserProfile):
        """Weekly set range from landmarks, or None when research is missing."""
        landmarks = self.knowledge.get_volume_landmarks(muscle_group, profile.goal, profile.experience)
        return landmarks.sets_per_week_range if landmarks else None

    def count_sets_by_muscle_group(self, sessions: List[WorkoutSession]) -> Dict[str, int]:
        """
        Count logged sets per canonical muscle group.

        Sets whose exercise cannot be resolved against the catalog are skipped.
        """
        sets_by_session = load_sets_by_session(self.store, sessions, self.config.history_workers)
        all_sets = [s for sets in sets_by_session.values() for s in sets]
        if not all_sets:
            return {}

        try:
            exercises = self.store.get_exercises_by_ids([s.exercise_id for s in all_sets])
        except Exception as e:
            logger.warning(f"Could not resolve exercises for volume counting: {e}")
            return {}

        group_by_exercise = {e.id: normalize_muscle_group(e.muscle_group) for e in exercises}

        counts: Dict[str, int] = defaultdict(int)
        for exercise_set in all_sets:
            group = group_by_exercise.get(exercise_set.exercise_id)
            if group:
                counts[group] += 1
        return dict(counts)

    def calculate_volume_targets(
        self,
        muscle_groups: List[str],
        profile: UserProfile,
        recent_sessions: List[WorkoutSession],
        now: Optional[datetime] = None
    ) -> List[MuscleVolumeTarget]:
        """
        Compute today's set targets for each muscle group.

        Args:
            muscle_groups: Groups trained today, in plan order
            profile: User profile
            recent_sessions: Recent sessions (anything older than 7 days is ignored)
            now: Reference time (default: now)

        Returns:
            One MuscleVolumeTarget per input group, in input order
        """
        now = now or datetime.now()
        week_start = now - timedelta(days=7)
        this_week = [s for s in recent_sessions if s.started_at >= week_start]

        completed_by_group = self.count_sets_by_muscle_group(this_week)
        sessions_per_week = self.sessions_per_week(profile)

        targets = []
        for raw_group in muscle_groups:
            group = normalize_muscle_group(raw_group)
            weekly_range = self.weekly_range(group, profile)
            completed = completed_by_group.get(group, 0)

            if weekly_range:
                weekly_target = (weekly_range[0] + weekly_range[1]) // 2
                reasoning = f"You've done {completed}/{weekly_target} sets this week for {group}"
            else:
                weekly_target = self.config.default_weekly_sets
                reasoning = (
                    f"You've done {completed}/{weekly_target} sets this week for {group} "
                    f"(default target, no research landmarks)"
                )

            remaining = max(weekly_target - completed, 0)
            target_today = max(0, min(remaining, weekly_target // sessions_per_week + 2))

            targets.append(MuscleVolumeTarget(
                muscle_group=group,
                target_sets_today=target_today,
                weekly_target=weekly_target,
                completed_this_week=completed,
                reasoning=reasoning,
            ))

        return targets

    def recommend_exercise_count(self, muscle_group: str, profile: UserProfile) -> ExerciseCountRecommendation:
        """
        How many exercises to program for a muscle group in one session.

        Uses research landmarks when available, else a heuristic on
        experience, goal and frequency.
        """
        landmarks = self.knowledge.get_volume_landmarks(muscle_group, profile.goal, profile.experience)
        if landmarks:
            reason = (
                f"Research recommends {sanitize_research_text(landmarks.exercises_per_session)} per session "
                f"(MAV {sanitize_research_text(landmarks.mav)}, "
                f"{sanitize_research_text(landmarks.sets_per_session_range)} per session) for "
                f"{profile.experience.display_name.lower()} lifters on a {profile.goal.value}"
            )
            return ExerciseCountRecommendation(count=landmarks.exercise_count, reason=reason, source='research')

        count = BASE_EXERCISE_COUNT[profile.experience]
        if profile.goal == Goal.BULK:
            count += 1
        if profile.workout_frequency >= self.config.high_frequency_days:
            count -= 1
        count = max(1, min(count, 5))

        reason = (
            f"Based on {profile.experience.value} experience, {profile.goal.value} goal "
            f"and {profile.workout_frequency} training days per week"
        )
        return ExerciseCountRecommendation(count=count, reason=reason, source='heuristic')

    def detect_deload(self, muscle_group: str, sessions: List[WorkoutSession]) -> bool:
        """
        Check whether the most recent session covering a muscle group was a deload.

        Session notes are checked first, then the stored plan's safety notes.
        """
        group = normalize_muscle_group(muscle_group)

        for session in sorted(sessions, key=lambda s: s.started_at, reverse=True):
            if group not in muscle_groups_for_workout_type(session.workout_type):
                continue

            notes = (session.notes or '').lower()
            if any(keyword in notes for keyword in DELOAD_KEYWORDS):
                return True

            try:
                plan = self.store.get_session_plan(session.id)
            except Exception as e:
                logger.warning(f"Could not load plan for session {session.id}: {e}")
                plan = None

            if plan is not None:
                for note in plan.safety_notes:
                    if any(keyword in note.lower() for keyword in DELOAD_KEYWORDS):
                        return True

            # The most recent covering session decides
            return False

        return False

    def last_trained_dates(self, muscle_groups: List[str], sessions: List[WorkoutSession]) -> Dict[str, Optional[datetime]]:
        """Start time of the most recent session covering each group."""
        dates: Dict[str, Optional[datetime]] = {}
        for raw_group in muscle_groups:
            group = normalize_muscle_group(raw_group)
            covering = [
                s.started_at for s in sessions
                if group in muscle_groups_for_workout_type(s.workout_type)
            ]
            dates[group] = max(covering) if covering else None
        return dates

    def days_since_last_trained(
        self,
        muscle_group: str,
        sessions: List[WorkoutSession],
        now: Optional[datetime] = None
    ) -> Optional[int]:
        now = now or datetime.now()
        last = self.last_trained_dates([muscle_group], sessions)[normalize_muscle_group(muscle_group)]
        if last is None:
            return None
        return (now - last).days

    def recovery_status(
        self,
        muscle_groups: List[str],
        sessions: List[WorkoutSession],
        now: Optional[datetime] = None
    ) -> Dict[str, int]:
        """Days since each group was trained; never-trained groups count as fully recovered."""
        now = now or datetime.now()
        status = {}
        for group, last in self.last_trained_dates(muscle_groups, sessions).items():
            status[group] = (now - last).days if last else NEVER_TRAINED_DAYS
        return status

    def volume_progress(self, muscle_group: str, profile: UserProfile, completed_today: int) -> VolumeProgress:
        """
        Progress toward today's set range for a muscle group.

        Args:
            muscle_group: Muscle group being trained
            profile: User profile
            completed_today: Sets logged for the group this session
        """
        group = normalize_muscle_group(muscle_group)
        low, high = self.weekly_range(group, profile) or self.config.fallback_weekly_range
        sessions_per_week = self.sessions_per_week(profile)

        min_sets = low // sessions_per_week
        max_sets = high // sessions_per_week

        if completed_today >= max_sets:
            state = "Max productive volume reached"
        elif completed_today >= min_sets:
            state = "In the productive range"
        else:
            state = f"{min_sets - completed_today} more sets to reach the minimum"

        status = f"{state} (training {sessions_per_week}x/week, {low}-{high} total sets)"
        return VolumeProgress(
            muscle_group=group,
            completed=completed_today,
            min_sets=min_sets,
            max_sets=max_sets,
            status=status,
        )

    def weekly_volume_by_muscle(
        self,
        profile: UserProfile,
        sessions: List[WorkoutSession],
        now: Optional[datetime] = None
    ) -> List[MuscleVolumeData]:
        """
        Sets per canonical muscle group over the trailing 7 days.

        Groups with no sets are omitted. Sorted by sets, highest first.
        """
        now = now or datetime.now()
        week_start = now - timedelta(days=7)
        this_week = [s for s in sessions if s.started_at >= week_start]
        counts = self.count_sets_by_muscle_group(this_week)

        data = []
        for group in CANONICAL_MUSCLE_GROUPS:
            sets = counts.get(group, 0)
            if sets <= 0:
                continue
            low, high = self.weekly_range(group, profile) or self.config.fallback_weekly_range
            data.append(MuscleVolumeData(muscle_group=group, sets=sets, target_min=low, target_max=high))

        data.sort(key=lambda d: d.sets, reverse=True)
        return data
