"""
Active Workout Session

Internal Codename: PIVOT
Owns the live plan and set log for one workout while it is in progress.

Every plan change runs as read snapshot -> compute new snapshot -> replace,
under a per-session lock. Writes to the store are best-effort: when they fail
the local state stays authoritative for the rest of the session.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from ..errors import PlanMutationError
from ..models import (
    AdaptationAction,
    AdaptationReason,
    CatalogExercise,
    ExerciseSet,
    MutationResult,
    PlannedExercise,
    SessionAdaptation,
    SessionPlan,
    WorkoutSession,
    new_id,
)
from .adaptation import (
    mark_exercise_complete_in_plan,
    move_planned_exercise,
    reopen_planned_exercise,
    replace_exercise_in_plan,
    replace_next_planned_exercise,
    sync_actual_sets,
)

logger = logging.getLogger(__name__)


class ActiveWorkoutSession:
    """
    Live state of one workout.

    Tracks:
    - The current plan snapshot
    - Sets logged this session (dense 1-based numbering per exercise)
    - Adaptations made along the way
    """

    def __init__(self, session: WorkoutSession, plan: Optional[SessionPlan], store):
        """
        Start tracking a workout.

        Args:
            session: Workout session being performed
            plan: Generated plan (None for an unplanned workout)
            store: TrainingStore-compatible collaborator for persistence
        """
        self.session = session
        self.store = store
        self._plan = plan
        self._sets: List[ExerciseSet] = []
        self._adaptations: List[SessionAdaptation] = []
        self._lock = threading.Lock()

    @property
    def plan(self) -> Optional[SessionPlan]:
        return self._plan

    @property
    def completed_sets(self) -> Tuple[ExerciseSet, ...]:
        return tuple(self._sets)

    @property
    def adaptations(self) -> Tuple[SessionAdaptation, ...]:
        return tuple(self._adaptations)

    def sets_for_exercise(self, exercise_id: str) -> List[ExerciseSet]:
        return sorted((s for s in self._sets if s.exercise_id == exercise_id), key=lambda s: s.set_number)

    # =========================================================================
    # Plan mutations
    # =========================================================================

    def _apply(self, mutation: Callable[[SessionPlan], MutationResult]) -> MutationResult:
        with self._lock:
            if self._plan is None:
                message = "No active plan"
                return MutationResult(ok=False, plan=None, message=message, error=PlanMutationError(message))

            result = mutation(self._plan)
            if result.ok:
                self._plan = result.plan
            return result

    def replace_exercise(self, planned_id: str, new: CatalogExercise) -> MutationResult:
        return self._apply(lambda plan: replace_exercise_in_plan(plan, planned_id, new))

    def replace_next_exercise(self, muscle_group: str, new: CatalogExercise) -> MutationResult:
        return self._apply(lambda plan: replace_next_planned_exercise(plan, muscle_group, new))

    def move_exercise(self, planned_id: str, muscle_group: str, move_up: bool) -> MutationResult:
        return self._apply(lambda plan: move_planned_exercise(plan, planned_id, muscle_group, move_up))

    def mark_exercise_complete(
        self,
        exercise_id: Optional[str] = None,
        exercise: Optional[CatalogExercise] = None
    ) -> MutationResult:
        return self._apply(lambda plan: mark_exercise_complete_in_plan(
            plan, list(self._sets), exercise_id=exercise_id, exercise=exercise
        ))

    def next_planned_exercise(self) -> Optional[PlannedExercise]:
        plan = self._plan
        if plan is None:
            return None
        return next((e for e in plan.exercises if not e.is_completed), None)

    # =========================================================================
    # Set log
    # =========================================================================

    def log_set(
        self,
        exercise_id: str,
        reps: int,
        weight: float,
        rpe: Optional[int] = None,
        rest_seconds: Optional[int] = None,
        completed_at: Optional[datetime] = None
    ) -> ExerciseSet:
        """
        Record a completed set.

        The set number continues the exercise's dense sequence.
        """
        with self._lock:
            exercise_set = ExerciseSet(
                id=new_id(),
                session_id=self.session.id,
                exercise_id=exercise_id,
                set_number=len(self.sets_for_exercise(exercise_id)) + 1,
                reps=reps,
                weight=weight,
                rpe=rpe,
                rest_seconds=rest_seconds,
                completed_at=completed_at or datetime.now(),
            )
            self._sets.append(exercise_set)
            if self._plan is not None:
                self._plan = sync_actual_sets(self._plan, self._sets)

        self._persist(self.store.save_exercise_set, exercise_set)
        return exercise_set

    def update_set(
        self,
        set_id: str,
        reps: Optional[int] = None,
        weight: Optional[float] = None,
        rpe: Optional[int] = None
    ) -> Optional[ExerciseSet]:
        """Edit a logged set. Returns None if the set is not in this session."""
        with self._lock:
            index = next((i for i, s in enumerate(self._sets) if s.id == set_id), None)
            if index is None:
                return None

            current = self._sets[index]
            updated = replace(
                current,
                reps=current.reps if reps is None else reps,
                weight=current.weight if weight is None else weight,
                rpe=current.rpe if rpe is None else rpe,
            )
            self._sets[index] = updated

        self._persist(self.store.update_exercise_set, updated)
        return updated

    def delete_set(self, set_id: str) -> bool:
        """
        Delete a logged set and renumber the exercise's remaining sets.

        When the exercise has no sets left its plan entry is reopened.
        """
        with self._lock:
            deleted = next((s for s in self._sets if s.id == set_id), None)
            if deleted is None:
                return False

            self._sets = [s for s in self._sets if s.id != set_id]

            renumbered = []
            for number, s in enumerate(self.sets_for_exercise(deleted.exercise_id), 1):
                if s.set_number != number:
                    renumbered.append(replace(s, set_number=number))
            by_id = {s.id: s for s in renumbered}
            self._sets = [by_id.get(s.id, s) for s in self._sets]

            if self._plan is not None:
                if not self.sets_for_exercise(deleted.exercise_id):
                    result = reopen_planned_exercise(self._plan, deleted.exercise_id)
                    if result.ok:
                        self._plan = result.plan
                self._plan = sync_actual_sets(self._plan, self._sets)

        self._persist(self.store.delete_exercise_set, set_id)
        for s in renumbered:
            self._persist(self.store.update_exercise_set, s)
        return True

    # =========================================================================
    # Session lifecycle
    # =========================================================================

    def record_adaptation(
        self,
        exercise_id: str,
        reason: AdaptationReason,
        action: AdaptationAction,
        notes: str = ""
    ) -> SessionAdaptation:
        adaptation = SessionAdaptation(
            timestamp=datetime.now(),
            exercise_id=exercise_id,
            reason=reason,
            action=action,
            notes=notes,
        )
        with self._lock:
            self._adaptations.append(adaptation)
        logger.info(f"Plan adapted: {action.value} ({reason.value})")
        return adaptation

    def complete(self, notes: Optional[str] = None, completed_at: Optional[datetime] = None) -> WorkoutSession:
        """
        Finish the workout.

        The final plan snapshot and the session notes are persisted
        best-effort.
        """
        completed_at = completed_at or datetime.now()
        with self._lock:
            self.session = replace(self.session, completed_at=completed_at, notes=notes)
            plan = self._plan

        if plan is not None:
            self._persist(self.store.save_session_plan, plan)
        self._persist(self.store.complete_workout_session, self.session.id, notes, completed_at)

        logger.info(f"Completed session {self.session.id}: {len(self._sets)} sets logged")
        return self.session

    def _persist(self, write: Callable, *args) -> bool:
        try:
            write(*args)
            return True
        except Exception as e:
            logger.error(f"Persistence failed ({getattr(write, '__name__', 'write')}): {e}")
            return False
