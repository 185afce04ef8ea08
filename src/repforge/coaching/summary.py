"""
Workout Summary

Internal Codename: DEBRIEF
Post-session reconciliation of planned vs. actual work, PR detection and
insights.
"""

import logging
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from ..config import EngineConfig
from ..models import (
    ExerciseHighlight,
    ExerciseSet,
    SessionPlan,
    WorkoutSession,
    WorkoutSummaryData,
)
from ..normalizer import normalize_muscle_group
from .volume import load_sets_by_session

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 200
MAX_HIGHLIGHTS = 3

# Rotation used for the next-workout suggestion
NEXT_WORKOUT = [
    ('push', "Next up: Pull day (back & biceps) to balance your training"),
    ('pull', "Next up: Legs day to complete the cycle"),
    ('leg', "Next up: Push day to restart the rotation"),
]


class WorkoutSummaryAggregator:
    """
    Builds the end-of-workout summary.

    Compares:
    - Planned vs. actual exercises, sets, volume and duration
    - Today's best sets against the exercise history (PRs)
    - Today's per-muscle volume against the last 30 days (volume PRs)
    """

    def __init__(self, store, config: Optional[EngineConfig] = None):
        """
        Initialize summary aggregator.

        Args:
            store: TrainingStore-compatible collaborator
            config: Engine configuration
        """
        self.store = store
        self.config = config or EngineConfig()

    def summarize(
        self,
        session: WorkoutSession,
        plan: Optional[SessionPlan],
        completed_sets: List[ExerciseSet],
        now: Optional[datetime] = None
    ) -> WorkoutSummaryData:
        """
        Summarize a finished workout.

        Args:
            session: The workout session
            plan: Final plan snapshot (None for unplanned workouts)
            completed_sets: Sets logged this session
            now: Reference time for duration (default: now)

        Returns:
            WorkoutSummaryData
        """
        now = now or datetime.now()

        actual_sets = len(completed_sets)
        actual_volume = sum(s.reps for s in completed_sets)
        actual_exercises = len({s.exercise_id for s in completed_sets})

        if plan is None:
            return WorkoutSummaryData(
                planned_exercises=0,
                planned_sets=0,
                planned_duration=0,
                planned_volume=0,
                actual_exercises=actual_exercises,
                actual_sets=actual_sets,
                actual_duration=0,
                actual_volume=actual_volume,
                overachievement=0.0,
                efficiency="",
                pr_count=0,
                volume_pr_muscle_groups=(),
                top_exercises=(),
                insights=(),
                next_workout_suggestion="Rest and recover!",
            )

        planned_sets = sum(e.target_sets for e in plan.exercises)
        planned_volume = sum(
            (e.target_reps_min + e.target_reps_max) // 2 * e.target_sets
            for e in plan.exercises
        )
        actual_duration = max(0, int((now - session.started_at).total_seconds() // 60))

        overachievement = (actual_sets - planned_sets) / max(planned_sets, 1)

        if actual_duration < plan.estimated_duration:
            efficiency = f"{plan.estimated_duration - actual_duration} min faster"
        elif actual_duration > plan.estimated_duration:
            efficiency = f"{actual_duration - plan.estimated_duration} min longer"
        else:
            efficiency = "Right on schedule"

        history = self._load_histories(session, completed_sets)
        pr_count = self.count_new_prs(completed_sets, history)
        volume_prs = self.detect_volume_prs(session, completed_sets, now)
        highlights = self.generate_highlights(completed_sets, history, plan)
        insights = self.generate_insights(
            overachievement, actual_duration, pr_count, plan.estimated_duration, completed_sets
        )

        logger.info(
            f"Session {session.id} summary: {actual_sets}/{planned_sets} sets, "
            f"{pr_count} PRs, {len(volume_prs)} volume PRs"
        )

        return WorkoutSummaryData(
            planned_exercises=len(plan.exercises),
            planned_sets=planned_sets,
            planned_duration=plan.estimated_duration,
            planned_volume=planned_volume,
            actual_exercises=actual_exercises,
            actual_sets=actual_sets,
            actual_duration=actual_duration,
            actual_volume=actual_volume,
            overachievement=overachievement,
            efficiency=efficiency,
            pr_count=pr_count,
            volume_pr_muscle_groups=tuple(volume_prs),
            top_exercises=tuple(highlights),
            insights=tuple(insights),
            next_workout_suggestion=self.suggest_next_workout(session.workout_type),
        )

    def _load_histories(self, session: WorkoutSession, completed_sets: List[ExerciseSet]) -> Dict[str, List[ExerciseSet]]:
        """
        Historical sets per exercise performed today, excluding this session.

        Exercises whose history could not be read are left out, so they are
        never reported as PRs.
        """
        histories = {}
        for exercise_id in dict.fromkeys(s.exercise_id for s in completed_sets):
            try:
                sets = self.store.get_exercise_history(session.user_id, exercise_id, limit=HISTORY_LIMIT)
            except Exception as e:
                logger.warning(f"Could not load history for exercise {exercise_id}: {e}")
                continue
            histories[exercise_id] = [s for s in sets if s.session_id != session.id]
        return histories

    def count_new_prs(self, completed_sets: List[ExerciseSet], history: Dict[str, List[ExerciseSet]]) -> int:
        """Exercises whose best weight today beats every earlier set (ties do not count)."""
        pr_count = 0
        for exercise_id in dict.fromkeys(s.exercise_id for s in completed_sets):
            if exercise_id not in history:
                continue
            best_today = max(s.weight for s in completed_sets if s.exercise_id == exercise_id)
            previous = history[exercise_id]
            previous_max = max((s.weight for s in previous), default=0)
            if best_today > previous_max:
                pr_count += 1
        return pr_count

    def _volume_by_group(self, sets: List[ExerciseSet]) -> Dict[str, int]:
        """Reps per muscle group."""
        if not sets:
            return {}
        try:
            exercises = self.store.get_exercises_by_ids([s.exercise_id for s in sets])
        except Exception as e:
            logger.warning(f"Could not resolve exercises for volume: {e}")
            return {}

        group_by_id = {e.id: normalize_muscle_group(e.muscle_group) for e in exercises}
        volume: Dict[str, int] = defaultdict(int)
        for s in sets:
            group = group_by_id.get(s.exercise_id)
            if group:
                volume[group] += s.reps
        return dict(volume)

    def detect_volume_prs(
        self,
        session: WorkoutSession,
        completed_sets: List[ExerciseSet],
        now: Optional[datetime] = None
    ) -> List[str]:
        """Muscle groups whose rep volume today beats any session in the look-back window."""
        now = now or datetime.now()
        today = self._volume_by_group(completed_sets)
        if not today:
            return []

        start = session.started_at - timedelta(days=self.config.volume_pr_lookback_days)
        try:
            sessions = self.store.get_sessions_between(session.user_id, start, now)
        except Exception as e:
            logger.warning(f"Could not load sessions for volume PRs: {e}")
            sessions = []

        sessions = [s for s in sessions if s.id != session.id]
        sets_by_session = load_sets_by_session(self.store, sessions, self.config.history_workers)

        best: Dict[str, int] = defaultdict(int)
        for sets in sets_by_session.values():
            for group, volume in self._volume_by_group(sets).items():
                best[group] = max(best[group], volume)

        return sorted(group for group, volume in today.items() if volume > best.get(group, 0))

    def generate_highlights(
        self,
        completed_sets: List[ExerciseSet],
        history: Dict[str, List[ExerciseSet]],
        plan: Optional[SessionPlan] = None
    ) -> List[ExerciseHighlight]:
        """Best set per exercise, first three exercises performed."""
        highlights = []
        for exercise_id in dict.fromkeys(s.exercise_id for s in completed_sets):
            sets = [s for s in completed_sets if s.exercise_id == exercise_id]
            best_set = max(sets, key=lambda s: s.weight)
            is_pr = exercise_id in history and all(s.weight < best_set.weight for s in history[exercise_id])

            highlights.append(ExerciseHighlight(
                exercise_name=self._exercise_name(exercise_id, plan),
                achievement="New PR!" if is_pr else "Best set",
                metric=f"{int(best_set.weight)} lbs × {best_set.reps}",
            ))

            if len(highlights) >= MAX_HIGHLIGHTS:
                break
        return highlights

    def _exercise_name(self, exercise_id: str, plan: Optional[SessionPlan]) -> str:
        try:
            exercise = self.store.get_exercise_by_id(exercise_id)
        except Exception as e:
            logger.warning(f"Could not load exercise {exercise_id}: {e}")
            exercise = None
        if exercise is not None:
            return exercise.name

        if plan is not None:
            entry = next((e for e in plan.exercises if e.exercise_id == exercise_id), None)
            if entry is not None:
                return entry.exercise_name
        return exercise_id

    def generate_insights(
        self,
        overachievement: float,
        duration: int,
        pr_count: int,
        estimated_duration: int,
        completed_sets: List[ExerciseSet]
    ) -> List[str]:
        """All applicable insight templates, in a fixed order."""
        insights = []
        if overachievement > 0.1:
            insights.append(f"You exceeded your plan by {int(overachievement * 100)}%!")
        if pr_count > 0:
            insights.append(f"{pr_count} new personal record{'' if pr_count == 1 else 's'} hit today!")
        if duration < estimated_duration - 10:
            insights.append("Efficient workout, you finished ahead of schedule!")
        if completed_sets and all((s.rpe if s.rpe is not None else 10) <= 8 for s in completed_sets):
            insights.append("Great form reserve, you're leaving room to grow!")
        return insights

    def suggest_next_workout(self, workout_type: str) -> str:
        lowered = (workout_type or '').lower()
        for key, suggestion in NEXT_WORKOUT:
            if key in lowered:
                return suggestion
        return "Recover and get ready for your next session"
