"""
In-Session Adaptation

Internal Codename: PIVOT
Live per-set coaching, smart exercise substitution and plan mutations.

Plan mutations are pure functions: each takes a SessionPlan snapshot and
returns a MutationResult carrying a new snapshot. The input plan is never
modified.
"""

import logging
import math
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Iterable, List, Optional, Set

from ..config import EngineConfig
from ..errors import PlanMutationError
from ..knowledge import goal_weighted_score
from ..models import (
    CatalogExercise,
    ExerciseDetail,
    ExerciseSet,
    ExperienceLevel,
    Goal,
    MutationResult,
    PlannedExercise,
    RecommendationKind,
    SafetyStatus,
    SessionPlan,
    SetRecommendation,
    SmartSubstitute,
    UserProfile,
    new_id,
)
from ..normalizer import names_match, normalize_exercise_name_for_matching, normalize_muscle_group
from .injuries import InjuryRuleEngine
from .volume import load_sets_by_session

logger = logging.getLogger(__name__)


def round_to_step(value: float, step: int) -> int:
    """Round half-up to a multiple of step, never below one step."""
    return max(step, int(math.floor(value / step + 0.5)) * step)


def _first_equipment(equipment: str) -> str:
    return equipment.split(',')[0].strip()


def _equipment_shift(old_equipment: str, new_equipment: str) -> bool:
    old_eq, new_eq = old_equipment.lower(), new_equipment.lower()
    return (
        ('barbell' in old_eq and 'dumbbell' in new_eq)
        or ('dumbbell' in old_eq and 'cable' in new_eq)
        or (('machine' in old_eq) != ('machine' in new_eq))
    )


def _angle_shift(old_name: str, new_name: str) -> bool:
    old_n, new_n = old_name.lower(), new_name.lower()
    return ('flat' in old_n and 'incline' in new_n) or ('incline' in old_n and 'flat' in new_n)


class AdaptationEngine:
    """
    Live coaching during a workout.

    Provides:
    - Per-set performance analysis (progress, regress, rest)
    - Smart substitutes with equipment/angle variety and recency avoidance
    """

    def __init__(self, knowledge, store, config: Optional[EngineConfig] = None,
                 injuries: Optional[InjuryRuleEngine] = None):
        """
        Initialize adaptation engine.

        Args:
            knowledge: KnowledgeBase instance
            store: TrainingStore-compatible collaborator
            config: Engine configuration
            injuries: Injury rule engine (default rule table if omitted)
        """
        self.knowledge = knowledge
        self.store = store
        self.config = config or EngineConfig()
        self.injuries = injuries or InjuryRuleEngine()

    # =========================================================================
    # Set analysis
    # =========================================================================

    def equipment_step(self, exercise: CatalogExercise) -> int:
        """Weight increment for an exercise's equipment (lbs)."""
        if exercise.equipment:
            category = exercise.equipment[0].lower()
        else:
            detail = self.knowledge.find_exercise(exercise.name)
            category = detail.equipment.lower() if detail else ''

        if 'machine' in category:
            return self.config.machine_increment
        return self.config.default_increment

    def analyze_set_performance(
        self,
        profile: UserProfile,
        exercise: CatalogExercise,
        set_number: int,
        weight: float,
        reps: int,
        rpe: Optional[int],
        target_reps_min: int,
        target_reps_max: int
    ) -> Optional[SetRecommendation]:
        """
        Coach the next set based on the one just logged.

        Rules are checked in priority order and the first match wins.

        Args:
            profile: User profile (goal and experience)
            exercise: Catalog exercise performed
            set_number: 1-based set number
            weight: Load used
            reps: Reps completed
            rpe: Rate of perceived exertion, if recorded
            target_reps_min: Planned rep range lower bound
            target_reps_max: Planned rep range upper bound

        Returns:
            SetRecommendation, or None when there is nothing to say
        """
        step = self.equipment_step(exercise)
        surplus = max(0, reps - target_reps_max)
        deficit = max(0, target_reps_min - reps)

        # 1. Far too light for hypertrophy
        if profile.goal == Goal.BULK and reps > 15:
            if surplus >= 8:
                pct = 0.25 if profile.experience == ExperienceLevel.ADVANCED else 0.20
            elif surplus >= 4:
                pct = 0.15
            else:
                pct = 0.10
            delta = round_to_step(weight * pct, step)
            return SetRecommendation(
                kind=RecommendationKind.INCREASE_WEIGHT,
                message=f"That was {reps} reps, too light for muscle building. "
                        f"Add weight next set to land back in the 8-12 rep range.",
                actionable=True,
                suggested_adjustment=f"+{delta} lbs",
                weight_delta=delta,
            )

        # 2. Too heavy for an isolation movement
        if profile.goal == Goal.BULK and reps < 6 and not exercise.is_compound:
            pct = 0.15 if deficit >= 4 else 0.10
            delta = round_to_step(weight * pct, step)
            return SetRecommendation(
                kind=RecommendationKind.DECREASE_WEIGHT,
                message=f"Only {reps} reps on an isolation exercise. "
                        f"Drop the weight to reach 10-15 reps for better hypertrophy.",
                actionable=True,
                suggested_adjustment=f"-{delta} lbs",
                weight_delta=-delta,
            )

        # 3. Grinding early in the exercise
        if rpe is not None and rpe >= 9 and set_number <= 2:
            return SetRecommendation(
                kind=RecommendationKind.EXTEND_REST,
                message=f"RPE {rpe} on set {set_number} is very hard this early. "
                        f"Rest 3+ minutes or reduce weight to keep the remaining sets productive.",
                actionable=True,
                suggested_adjustment="Rest 3+ min",
            )

        # 4. On target
        if target_reps_min <= reps <= target_reps_max and (rpe is None or rpe <= 8):
            return SetRecommendation(
                kind=RecommendationKind.ON_TARGET,
                message="Right in the target rep range with reps in reserve. Keep this weight for the next set.",
                actionable=False,
            )

        # 5. Beat the range with room to spare
        if reps > target_reps_max and (rpe is None or rpe <= 7):
            pct = 0.10 if exercise.is_compound else 0.07
            if surplus >= 4:
                pct += 0.05
            delta = round_to_step(weight * pct, step)
            rpe_text = f" (RPE {rpe})" if rpe is not None else ""
            return SetRecommendation(
                kind=RecommendationKind.PROGRESS,
                message=f"You hit {reps} reps with more in the tank{rpe_text}. Time to increase the weight.",
                actionable=True,
                suggested_adjustment=f"+{delta} lbs",
                weight_delta=delta,
            )

        # 6. Compound rest reminder
        if exercise.is_compound and set_number < 4:
            return SetRecommendation(
                kind=RecommendationKind.REST_REMINDER,
                message="Compound lift. Rest 2-3 minutes before your next set to maintain strength.",
                actionable=False,
            )

        return None

    # =========================================================================
    # Substitution
    # =========================================================================

    def _recent_exercise_names(self, user_id: str, now: datetime) -> Set[str]:
        """Lowercased names of exercises from the user's last few sessions."""
        start = now - timedelta(days=self.config.substitute_recent_days)
        try:
            sessions = self.store.get_sessions_between(user_id, start, now)
            sessions = sorted(sessions, key=lambda s: s.started_at, reverse=True)
            recent = sessions[:self.config.substitute_recent_sessions]

            sets_by_session = load_sets_by_session(self.store, recent, self.config.history_workers)
            exercise_ids = [s.exercise_id for sets in sets_by_session.values() for s in sets]
            exercises = self.store.get_exercises_by_ids(exercise_ids) if exercise_ids else []
        except Exception as e:
            logger.warning(f"Could not load recent sessions for substitution: {e}")
            return set()

        return {e.name.lower() for e in exercises}

    def _catalog_for_group(self, workout_type: str, group: str, details: List[ExerciseDetail]) -> List[CatalogExercise]:
        try:
            catalog = self.store.get_exercises_by_muscle_group(workout_type, group)
            if not catalog:
                catalog = self.store.get_exercises_by_muscle_group(None, group)
        except Exception as e:
            logger.warning(f"Could not load catalog for {group}, using research entries: {e}")
            catalog = []

        if catalog:
            return catalog

        # Research entries stand in for the catalog
        return [
            CatalogExercise(
                id=f"knowledge:{normalize_exercise_name_for_matching(d.name)}",
                name=d.name,
                muscle_group=group,
                workout_type=workout_type,
                equipment=tuple(p.strip() for p in d.equipment.split(',') if p.strip()),
                is_compound=d.is_compound,
            )
            for d in details
        ]

    def get_smart_substitute(
        self,
        planned: PlannedExercise,
        plan: Optional[SessionPlan],
        profile: UserProfile,
        workout_type: Optional[str] = None,
        now: Optional[datetime] = None
    ) -> Optional[SmartSubstitute]:
        """
        Find the best replacement for a planned exercise.

        Candidates share the muscle group and compound/isolation pattern, are
        not already planned for the group and were not used recently. Ties
        keep the higher-ranked candidate, so repeated calls agree.

        Args:
            planned: Planned exercise to replace
            plan: Current plan (its other exercises for the group are excluded)
            profile: User profile
            workout_type: Catalog workout type (default: the plan's)
            now: Reference time (default: now)

        Returns:
            SmartSubstitute, or None if nothing qualifies
        """
        now = now or datetime.now()
        group = normalize_muscle_group(planned.muscle_group)
        workout_type = workout_type or (plan.workout_type if plan else '')

        ranked = self.knowledge.get_exercises_ranked(group, profile.goal)
        planned_names = {e.exercise_name.lower() for e in plan.exercises_for_group(group)} if plan else set()
        old_name = planned.exercise_name.lower()
        injuries = self.injuries.parse_injuries(profile.injuries)

        candidates = [
            d for d in ranked
            if d.is_compound == planned.is_compound
            and d.name.lower() not in planned_names
            and old_name not in d.name.lower()
            and self.injuries.classify_exercise(d.name, injuries)[0] != SafetyStatus.AVOID
        ]
        if not candidates:
            return None

        recent = self._recent_exercise_names(profile.id, now)
        catalog = self._catalog_for_group(workout_type, group, candidates)
        old_detail = self.knowledge.find_exercise(planned.exercise_name)

        best = None
        for detail in candidates:
            match = next((c for c in catalog if names_match(c.name, detail.name)), None)
            if match is None or match.name.lower() in recent:
                continue

            score = goal_weighted_score(detail, profile.goal)
            if old_detail is not None:
                if _equipment_shift(old_detail.equipment, detail.equipment):
                    score += 1
                if _angle_shift(old_detail.name, detail.name):
                    score += 1

            if best is None or score > best.score:
                best = SmartSubstitute(
                    exercise=match,
                    detail=detail,
                    score=score,
                    reasoning=self._substitute_reasoning(planned, old_detail, match, detail),
                )

        if best is not None:
            logger.info(f"Substitute for {planned.exercise_name}: {best.exercise.name} (score {best.score})")
        return best

    def _substitute_reasoning(
        self,
        planned: PlannedExercise,
        old_detail: Optional[ExerciseDetail],
        match: CatalogExercise,
        detail: ExerciseDetail
    ) -> str:
        parts = []
        if old_detail is not None:
            parts.append(
                f"similar activation ({old_detail.effectiveness.hypertrophy} → {detail.effectiveness.hypertrophy})"
            )
            old_eq = _first_equipment(old_detail.equipment)
            new_eq = _first_equipment(detail.equipment)
            if old_eq and new_eq and old_eq.lower() != new_eq.lower():
                parts.append(f"equipment variety ({old_eq} → {new_eq})")
            if _angle_shift(planned.exercise_name, match.name):
                parts.append("different angle for variety")

        joined = ", ".join(parts)
        if not joined:
            return "Similar movement pattern with useful variety"
        return joined[0].upper() + joined[1:]


# =============================================================================
# Plan mutations
# =============================================================================

def _failed(plan: SessionPlan, message: str) -> MutationResult:
    logger.warning(f"Plan mutation failed: {message}")
    return MutationResult(ok=False, plan=plan, message=message, error=PlanMutationError(message))


def _replace_at(plan: SessionPlan, index: int, entry: PlannedExercise) -> SessionPlan:
    exercises = list(plan.exercises)
    exercises[index] = entry
    return plan.with_exercises(exercises)


def replace_exercise_in_plan(plan: SessionPlan, planned_id: str, new: CatalogExercise) -> MutationResult:
    """
    Swap a planned exercise for a catalog exercise.

    The replacement gets a fresh id and starts uncompleted; sets, reps, rest,
    technique and position are kept.
    """
    index = next((i for i, e in enumerate(plan.exercises) if e.id == planned_id), None)
    if index is None:
        return _failed(plan, f"Planned exercise {planned_id} not found")

    old = plan.exercises[index]
    replacement = replace(
        old,
        id=new_id(),
        exercise_name=new.name,
        exercise_id=new.id,
        is_compound=new.is_compound,
        rationale=f"Swapped: {new.name} - {old.rationale}",
        is_completed=False,
        actual_sets=0,
    )
    logger.info(f"Replaced {old.exercise_name} with {new.name}")
    return MutationResult(ok=True, plan=_replace_at(plan, index, replacement),
                          message=f"Replaced {old.exercise_name} with {new.name}")


def replace_next_planned_exercise(plan: SessionPlan, muscle_group: str, new: CatalogExercise) -> MutationResult:
    """Point the next uncompleted exercise of a group at a different catalog exercise."""
    group = normalize_muscle_group(muscle_group)
    index = next(
        (i for i, e in enumerate(plan.exercises) if normalize_muscle_group(e.muscle_group) == group and not e.is_completed),
        None
    )
    if index is None:
        return _failed(plan, f"No remaining planned exercise for {muscle_group}")

    old = plan.exercises[index]
    updated = replace(old, exercise_name=new.name, exercise_id=new.id, is_compound=new.is_compound)
    return MutationResult(ok=True, plan=_replace_at(plan, index, updated),
                          message=f"Next {muscle_group} exercise is now {new.name}")


def move_planned_exercise(plan: SessionPlan, planned_id: str, muscle_group: str, move_up: bool) -> MutationResult:
    """
    Move a planned exercise one position up or down within its muscle group.

    The group's order_index values are renumbered 0..n-1 in plan order.
    """
    group = normalize_muscle_group(muscle_group)
    exercises = list(plan.exercises)
    group_indices = [i for i, e in enumerate(exercises) if normalize_muscle_group(e.muscle_group) == group]

    position = next((p for p, i in enumerate(group_indices) if exercises[i].id == planned_id), None)
    if position is None:
        return _failed(plan, f"Planned exercise {planned_id} not found in {muscle_group}")

    neighbor = position - 1 if move_up else position + 1
    if neighbor < 0 or neighbor >= len(group_indices):
        return _failed(plan, f"Cannot move {exercises[group_indices[position]].exercise_name} "
                             f"{'up' if move_up else 'down'}")

    a, b = group_indices[position], group_indices[neighbor]
    exercises[a], exercises[b] = exercises[b], exercises[a]

    for order, i in enumerate(group_indices):
        exercises[i] = replace(exercises[i], order_index=order)

    return MutationResult(ok=True, plan=plan.with_exercises(exercises), message="Exercise moved")


def _count_sets(completed_sets: Iterable[ExerciseSet], exercise_id: str) -> int:
    return sum(1 for s in completed_sets if s.exercise_id == exercise_id)


def mark_exercise_complete_in_plan(
    plan: SessionPlan,
    completed_sets: List[ExerciseSet],
    exercise_id: Optional[str] = None,
    exercise: Optional[CatalogExercise] = None
) -> MutationResult:
    """
    Mark a planned exercise complete and record how many sets were logged.

    Args:
        plan: Current plan
        completed_sets: Sets logged this session
        exercise_id: Catalog id of the exercise performed
        exercise: Catalog exercise performed; when its id is not in the plan,
            the first uncompleted entry of its group with a matching name is used
    """
    if exercise is not None:
        exercise_id = exercise.id

    if exercise_id is None:
        return _failed(plan, "No exercise given to mark complete")

    index = next((i for i, e in enumerate(plan.exercises) if e.exercise_id == exercise_id), None)

    if index is None and exercise is not None:
        group = normalize_muscle_group(exercise.muscle_group)
        index = next(
            (
                i for i, e in enumerate(plan.exercises)
                if normalize_muscle_group(e.muscle_group) == group
                and not e.is_completed
                and names_match(e.exercise_name, exercise.name)
            ),
            None
        )

    if index is None:
        return _failed(plan, f"Exercise {exercise_id} is not in the plan")

    entry = plan.exercises[index]
    updated = replace(
        entry,
        exercise_id=exercise_id,
        is_completed=True,
        actual_sets=_count_sets(completed_sets, exercise_id),
    )
    return MutationResult(ok=True, plan=_replace_at(plan, index, updated),
                          message=f"{entry.exercise_name} complete")


def reopen_planned_exercise(plan: SessionPlan, exercise_id: str) -> MutationResult:
    """Clear completion for the plan entries of an exercise (e.g. after its last set is deleted)."""
    indices = [i for i, e in enumerate(plan.exercises) if e.exercise_id == exercise_id and e.is_completed]
    if not indices:
        return _failed(plan, f"No completed plan entry for exercise {exercise_id}")

    exercises = list(plan.exercises)
    for i in indices:
        exercises[i] = replace(exercises[i], is_completed=False, actual_sets=0)
    return MutationResult(ok=True, plan=plan.with_exercises(exercises), message="Exercise reopened")


def sync_actual_sets(plan: SessionPlan, completed_sets: List[ExerciseSet]) -> SessionPlan:
    """Recompute actual_sets of resolved plan entries from the set log."""
    exercises = [
        replace(e, actual_sets=_count_sets(completed_sets, e.exercise_id)) if e.exercise_id else e
        for e in plan.exercises
    ]
    return plan.with_exercises(exercises)
