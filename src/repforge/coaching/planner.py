"""
Session Plan Generator

Internal Codename: FORGE
"Forge: where today's workout is hammered out."

Generates a structured plan for one workout session: which exercises, in what
order, how many sets and reps, how much rest and which intensity techniques.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from ..config import EngineConfig
from ..models import (
    CatalogExercise,
    ExerciseDetail,
    ExperienceLevel,
    Goal,
    IntensityTechnique,
    MuscleVolumeTarget,
    PlannedExercise,
    PreferenceLevel,
    SessionPlan,
    UserProfile,
    WorkoutSession,
    new_id,
)
from ..normalizer import (
    first_sentence,
    names_match,
    normalize_exercise_name_for_matching,
    normalize_muscle_group,
)
from .injuries import FilteredExercise, InjuryRuleEngine
from .volume import VolumeCalculator, muscle_groups_for_workout_type

logger = logging.getLogger(__name__)


PREFERENCE_WEIGHTS = {
    PreferenceLevel.FAVORITE: 2,
    PreferenceLevel.NEUTRAL: 1,
    PreferenceLevel.AVOID: 0,
}

# (min, max) reps by goal
COMPOUND_REP_RANGES = {
    Goal.BULK: (6, 10),
    Goal.CUT: (8, 12),
    Goal.MAINTAIN: (6, 12),
}
ISOLATION_REP_RANGES = {
    Goal.BULK: (10, 15),
    Goal.CUT: (12, 20),
    Goal.MAINTAIN: (10, 15),
}

# Muscle groups used when a workout is started without an explicit selection
DEFAULT_MUSCLE_GROUPS = [
    ('push', ['chest', 'shoulders', 'triceps']),
    ('pull', ['back', 'biceps']),
    ('leg', ['quads', 'hamstrings', 'glutes']),
    ('upper', ['chest', 'back', 'shoulders']),
    ('lower', ['quads', 'hamstrings', 'glutes', 'calves']),
    ('full', ['chest', 'back', 'quads', 'hamstrings', 'shoulders']),
]

HIGH_COMPOUND_COUNT = 3


def determine_rep_range(goal: Goal, is_compound: bool) -> Tuple[int, int]:
    """Target rep range for a goal and movement type."""
    table = COMPOUND_REP_RANGES if is_compound else ISOLATION_REP_RANGES
    return table[goal]


def default_muscle_groups(workout_type: str) -> List[str]:
    lowered = (workout_type or '').lower()
    for key, groups in DEFAULT_MUSCLE_GROUPS:
        if key in lowered:
            return list(groups)
    return muscle_groups_for_workout_type(lowered)


def select_intensity_technique(equipment: str) -> IntensityTechnique:
    """Pick the final-set technique the equipment supports best."""
    lowered = equipment.lower()
    if 'machine' in lowered or 'cable' in lowered:
        return IntensityTechnique.DROP_SETS
    if 'dumbbell' in lowered or 'barbell' in lowered:
        return IntensityTechnique.REST_PAUSE
    return IntensityTechnique.DROP_SETS


def estimate_duration(exercises, config: Optional[EngineConfig] = None) -> int:
    """
    Estimate session length in minutes.

    Warmup + per exercise (sets x minutes per set + rest between sets) + cooldown.
    """
    config = config or EngineConfig()
    minutes = config.warmup_minutes
    for e in exercises:
        minutes += e.target_sets * config.minutes_per_set
        minutes += (e.target_sets - 1) * (e.rest_seconds // 60)
    minutes += config.cooldown_minutes
    return minutes


class SessionPlanGenerator:
    """
    Generates session plans.

    Integrates:
    - Volume targets (how many sets today)
    - Knowledge base ranking (which exercises work best for the goal)
    - Injury screening (what to avoid)
    - User preferences (favorites first)
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
        Initialize plan generator.

        Args:
            knowledge: KnowledgeBase instance
            store: TrainingStore-compatible collaborator
            config: Engine configuration
            injuries: Injury rule engine (default rule table if omitted)
            volume: Volume calculator (built from the other collaborators if omitted)
        """
        self.knowledge = knowledge
        self.store = store
        self.config = config or EngineConfig()
        self.injuries = injuries or InjuryRuleEngine()
        self.volume = volume or VolumeCalculator(knowledge, store, self.config)

    def generate_plan(
        self,
        workout_type: str,
        muscle_groups: Optional[List[str]],
        profile: UserProfile,
        recent_sessions: List[WorkoutSession],
        session_id: str,
        user_id: str,
        preferences: Optional[Dict[str, PreferenceLevel]] = None,
        now: Optional[datetime] = None
    ) -> SessionPlan:
        """
        Generate a plan for one workout session.

        Args:
            workout_type: Workout type (e.g., "push", "legs")
            muscle_groups: Groups to train, in order (default groups for the type if empty)
            profile: User profile
            recent_sessions: Recent sessions, used for weekly volume
            session_id: Workout session the plan belongs to
            user_id: Owner of the plan
            preferences: Exercise name -> preference (loaded from the store if omitted)
            now: Reference time (default: now)

        Returns:
            SessionPlan. A group with no candidates contributes no exercises.
        """
        now = now or datetime.now()

        if not muscle_groups:
            muscle_groups = default_muscle_groups(workout_type)
        groups = [normalize_muscle_group(g) for g in muscle_groups]

        injuries = self.injuries.parse_injuries(profile.injuries)
        targets = self.volume.calculate_volume_targets(groups, profile, recent_sessions, now)
        target_by_group = {t.muscle_group: t for t in targets}

        if preferences is None:
            preferences = self._load_preferences(user_id)
        else:
            preferences = {normalize_exercise_name_for_matching(k): v for k, v in preferences.items()}

        exercises: List[PlannedExercise] = []
        for group in groups:
            group_exercises = self._plan_group(
                group=group,
                workout_type=workout_type,
                profile=profile,
                injuries=injuries,
                target=target_by_group.get(group),
                preferences=preferences,
                start_index=len(exercises),
            )
            if not group_exercises:
                logger.warning(f"No exercises found for {group} ({workout_type})")
            exercises.extend(group_exercises)

        plan = SessionPlan(
            id=new_id(),
            session_id=session_id,
            user_id=user_id,
            workout_type=workout_type,
            muscle_groups=tuple(groups),
            generated_at=now,
            exercises=tuple(exercises),
            volume_targets=tuple(targets),
            safety_notes=tuple(self._generate_safety_notes(exercises, injuries)),
            estimated_duration=estimate_duration(exercises, self.config),
        )

        logger.info(
            f"Generated {workout_type} plan: {len(exercises)} exercises, "
            f"{sum(e.target_sets for e in exercises)} sets, ~{plan.estimated_duration} min"
        )
        return plan

    def _load_preferences(self, user_id: str) -> Dict[str, PreferenceLevel]:
        """Exercise preferences keyed by normalized exercise name."""
        try:
            prefs = self.store.get_exercise_preferences(user_id)
            catalog = self.store.get_exercises_by_ids([p.exercise_id for p in prefs])
        except Exception as e:
            logger.warning(f"Could not load exercise preferences for {user_id}: {e}")
            return {}

        names = {c.id: c.name for c in catalog}
        return {
            normalize_exercise_name_for_matching(names[p.exercise_id]): p.preference_level
            for p in prefs
            if p.exercise_id in names
        }

    def _load_catalog(self, workout_type: str, group: str) -> List[CatalogExercise]:
        try:
            catalog = self.store.get_exercises_by_muscle_group(workout_type, group)
            if not catalog:
                # Custom workout types rarely match the catalog's type labels
                catalog = self.store.get_exercises_by_muscle_group(None, group)
            return catalog
        except Exception as e:
            logger.warning(f"Could not load catalog for {group}: {e}")
            return []

    def _preference_weight(self, detail: ExerciseDetail, preferences: Dict[str, PreferenceLevel]) -> int:
        key = normalize_exercise_name_for_matching(detail.name)
        level = preferences.get(key)
        if level is None:
            level = next((v for k, v in preferences.items() if names_match(k, key)), PreferenceLevel.NEUTRAL)
        return PREFERENCE_WEIGHTS[level]

    def _select_candidates(
        self,
        group: str,
        profile: UserProfile,
        injuries: List[str],
        preferences: Dict[str, PreferenceLevel]
    ) -> List[FilteredExercise]:
        """
        Rank, screen and preference-sort the exercises for a group.

        Avoid-preference exercises are dropped unless nothing else is left.
        """
        ranked = self.knowledge.get_exercises_ranked(group, profile.goal)
        screened = self.injuries.filter_exercises(ranked, injuries)

        weighted = sorted(
            screened,
            key=lambda f: self._preference_weight(f.exercise, preferences),
            reverse=True
        )
        preferred = [f for f in weighted if self._preference_weight(f.exercise, preferences) > 0]
        return preferred or weighted

    def _plan_group(
        self,
        group: str,
        workout_type: str,
        profile: UserProfile,
        injuries: List[str],
        target: Optional[MuscleVolumeTarget],
        preferences: Dict[str, PreferenceLevel],
        start_index: int
    ) -> List[PlannedExercise]:
        candidates = self._select_candidates(group, profile, injuries, preferences)
        if not candidates:
            return []

        catalog = self._load_catalog(workout_type, group)
        target_sets = target.target_sets_today if target else self.config.default_sets_today

        compounds = [c for c in candidates if c.exercise.is_compound][:self.config.max_compounds]
        isolations = [c for c in candidates if not c.exercise.is_compound][:self.config.max_isolations]

        planned = []
        order_index = start_index

        # Compounds first
        compound_reps = determine_rep_range(profile.goal, True)
        allocated = 0
        for i, candidate in enumerate(compounds):
            sets = self.config.compound_sets[i]
            allocated += sets
            role = 'primary' if i == 0 else 'secondary'
            planned.append(self._build_planned(
                candidate, group, order_index, sets, compound_reps,
                self.config.compound_rest_seconds, role, None, catalog
            ))
            order_index += 1

        # Accessory fill
        remaining = max(target_sets - allocated, 0)
        isolation_sets = max(remaining // max(len(isolations), 1), self.config.min_isolation_sets)
        isolation_reps = determine_rep_range(profile.goal, False)
        for i, candidate in enumerate(isolations):
            technique = None
            if i == len(isolations) - 1 and profile.experience != ExperienceLevel.BEGINNER:
                technique = select_intensity_technique(candidate.exercise.equipment)

            planned.append(self._build_planned(
                candidate, group, order_index, isolation_sets, isolation_reps,
                self.config.isolation_rest_seconds, 'accessory', technique, catalog
            ))
            order_index += 1

        return planned

    def _build_planned(
        self,
        candidate: FilteredExercise,
        group: str,
        order_index: int,
        sets: int,
        reps: Tuple[int, int],
        rest_seconds: int,
        role: str,
        technique: Optional[IntensityTechnique],
        catalog: List[CatalogExercise]
    ) -> PlannedExercise:
        detail = candidate.exercise
        match = next((c for c in catalog if names_match(c.name, detail.name)), None)

        return PlannedExercise(
            id=new_id(),
            exercise_name=detail.name,
            exercise_id=match.id if match else None,
            muscle_group=group,
            order_index=order_index,
            is_compound=detail.is_compound,
            target_sets=max(sets, 1),
            target_reps_min=min(reps),
            target_reps_max=max(reps),
            rest_seconds=rest_seconds,
            intensity_technique=technique,
            rationale=self._build_rationale(detail, group, role, technique),
            safety_modification=candidate.note,
        )

    def _build_rationale(
        self,
        detail: ExerciseDetail,
        group: str,
        role: str,
        technique: Optional[IntensityTechnique]
    ) -> str:
        if role == 'primary':
            text = f"Primary compound for {group}. High effectiveness ({detail.effectiveness.hypertrophy})."
        elif role == 'secondary':
            text = f"Secondary compound to hit {group} from a different angle."
        else:
            text = f"Accessory exercise for targeted {group} volume."

        if detail.emg_activation:
            text += f" Research: {detail.emg_activation[:60]}..."
        if technique is not None:
            text += f" Using {technique.value} on final set."
        return text

    def _generate_safety_notes(self, exercises: List[PlannedExercise], injuries: List[str]) -> List[str]:
        notes = []

        if injuries:
            readable = ', '.join(i.replace('_', ' ') for i in injuries)
            notes.append(f"You have {readable} considerations. Exercises adjusted accordingly.")

        technique_count = sum(1 for e in exercises if e.intensity_technique is not None)
        if technique_count:
            notes.append(f"{technique_count} exercise(s) include intensity techniques. Maintain form.")

        if sum(1 for e in exercises if e.is_compound) >= HIGH_COMPOUND_COUNT:
            notes.append("High compound volume, rest 3+ minutes between sets.")

        return notes


def build_order_note(knowledge, muscle_groups: List[str]) -> str:
    """One-line note on exercise order, citing the ordering research."""
    order = " → ".join(g.replace('_', ' ').title() for g in muscle_groups[:3])
    principles = knowledge.get_ordering_principles()
    guidance = first_sentence(principles.optimal_sequence) if principles else ""
    return f"Recommended order: {order}. Rationale: {guidance or 'Compound lifts first, then accessories'}."


def format_plan_text(plan: SessionPlan) -> str:
    """
    Format a session plan as readable text.

    Args:
        plan: Session plan

    Returns:
        Formatted text string
    """
    lines = []

    lines.append("=" * 60)
    lines.append(f"FORGE: {plan.workout_type.title()} Session Plan")
    lines.append("=" * 60)
    lines.append(f"\nGenerated: {plan.generated_at:%Y-%m-%d %H:%M}")
    lines.append(f"Muscle groups: {', '.join(plan.muscle_groups)}")
    lines.append(f"Estimated duration: {plan.estimated_duration} min")

    # Volume targets
    lines.append(f"\n{'─' * 60}")
    lines.append("VOLUME TARGETS")
    lines.append('─' * 60)
    for t in plan.volume_targets:
        lines.append(f"  {t.muscle_group}: {t.target_sets_today} sets today "
                     f"({t.completed_this_week}/{t.weekly_target} this week)")

    # Exercises grouped by muscle
    for group in plan.muscle_groups:
        group_exercises = sorted(plan.exercises_for_group(group), key=lambda e: e.order_index)
        lines.append(f"\n{'─' * 60}")
        lines.append(group.upper())
        lines.append('─' * 60)

        if not group_exercises:
            lines.append("\n  No exercises found")
            continue

        for i, ex in enumerate(group_exercises, 1):
            done = " [done]" if ex.is_completed else ""
            lines.append(f"\n{i}. {ex.exercise_name}{done}")
            lines.append(f"   Sets: {ex.target_sets} x {ex.target_reps_min}-{ex.target_reps_max} reps")
            lines.append(f"   Rest: {ex.rest_seconds}s")
            if ex.intensity_technique:
                lines.append(f"   Technique: {ex.intensity_technique.value}")
            if ex.safety_modification:
                lines.append(f"   Safety: {ex.safety_modification}")
            lines.append(f"   Why: {ex.rationale}")

    if plan.safety_notes:
        lines.append(f"\n{'─' * 60}")
        lines.append("NOTES")
        lines.append('─' * 60)
        for note in plan.safety_notes:
            lines.append(f"  • {note}")

    lines.append("\n" + "=" * 60)

    return "\n".join(lines)
