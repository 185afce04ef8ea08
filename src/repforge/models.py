"""
Training data model.

Internal Codename: BLUEPRINT
Dataclasses shared by the knowledge base, the coaching engine and the store.

Plan-side records (SessionPlan, PlannedExercise, MuscleVolumeTarget) are frozen.
They change only through dataclasses.replace so every mutation produces a new
snapshot.
"""

import re
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import List, Optional, Tuple


class Goal(Enum):
    """Primary training goal."""
    BULK = "bulk"
    CUT = "cut"
    MAINTAIN = "maintain"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class ExperienceLevel(Enum):
    """Training experience tier."""
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


class GymType(Enum):
    """Equipment access."""
    COMMERCIAL = "commercial"
    HOME = "home"
    MINIMAL = "minimal"


class SafetyLevel(Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class SafetyStatus(Enum):
    """Injury-filter verdict for an exercise."""
    SAFE = "safe"
    CAUTION = "caution"
    AVOID = "avoid"


class PreferenceLevel(Enum):
    FAVORITE = "favorite"
    NEUTRAL = "neutral"
    AVOID = "avoid"


class IntensityTechnique(Enum):
    """Intensity techniques applied to the final set of an exercise."""
    DROP_SETS = "Drop Sets"
    REST_PAUSE = "Rest-Pause"
    SUPERSETS = "Supersets"
    NONE = "None"

    @property
    def description(self) -> str:
        return INTENSITY_TECHNIQUE_DESCRIPTIONS[self]


INTENSITY_TECHNIQUE_DESCRIPTIONS = {
    IntensityTechnique.DROP_SETS: "After reaching failure, reduce weight 20-30% and continue for 4-6 more reps. Repeat 2-3 times.",
    IntensityTechnique.REST_PAUSE: "After reaching failure, rest 15-20 seconds, then continue for 3-5 more reps. Repeat 2 times.",
    IntensityTechnique.SUPERSETS: "Perform two exercises back-to-back with minimal rest between them.",
    IntensityTechnique.NONE: "Standard straight sets with normal rest periods.",
}


# =============================================================================
# Knowledge base records
# =============================================================================

def parse_effectiveness_score(text: str) -> int:
    """Map a narrative effectiveness rating to a 1-4 score."""
    t = (text or "").lower()
    if "very high" in t:
        return 4
    if "high" in t:
        return 3
    if "medium" in t:
        return 2
    return 1


def parse_int_range(text: str) -> Optional[Tuple[int, int]]:
    """Parse the first two integers of a text like '12-18 sets/week'."""
    numbers = [int(n) for n in re.findall(r'\d+', text or "")]
    if len(numbers) < 2:
        return None
    low, high = numbers[0], numbers[1]
    # Clamp malformed ranges instead of rejecting them
    low, high = max(low, 0), max(high, 0)
    if low > high:
        low, high = high, low
    return low, high


@dataclass(frozen=True)
class Effectiveness:
    hypertrophy: str
    strength: str
    power: str

    @property
    def hypertrophy_score(self) -> int:
        return parse_effectiveness_score(self.hypertrophy)

    @property
    def strength_score(self) -> int:
        return parse_effectiveness_score(self.strength)

    @property
    def power_score(self) -> int:
        return parse_effectiveness_score(self.power)


@dataclass(frozen=True)
class ExerciseDetail:
    """Research attributes for one exercise."""
    name: str
    muscle_group: str
    equipment: str
    is_compound: bool
    effectiveness: Effectiveness
    emg_activation: str = ""
    injury_risk: str = ""
    prerequisites: str = ""
    progression_path: str = ""
    when_to_prioritize: Optional[str] = None

    @property
    def safety_level(self) -> SafetyLevel:
        risk = self.injury_risk.lower()
        if "very low" in risk or risk == "low":
            return SafetyLevel.LOW
        if "low/medium" in risk or "medium" in risk:
            return SafetyLevel.MEDIUM
        return SafetyLevel.HIGH


@dataclass(frozen=True)
class ExerciseSubstitution:
    scenario: str
    substitute: str
    notes: str


@dataclass(frozen=True)
class OrderingPrinciples:
    optimal_sequence: str
    fatigue_management: str
    compound_vs_isolation_timing: str


@dataclass(frozen=True)
class VolumeLandmarks:
    """Volume landmarks for one muscle group x goal x experience tier.

    MV/MEV/MAV/MRV follow the maintenance / minimum effective / maximum
    adaptive / maximum recoverable volume framework.
    """
    mv: str
    mev: str
    mav: str
    mrv: str
    sets_per_session_range: str
    exercises_per_session: str
    frequency_recommendation: str
    rest_between_sets: str
    rep_range: str
    intensity_guidance: str
    progression_rate: str = ""
    recovery_notes: str = ""
    notes: str = ""
    sources: Tuple[str, ...] = ()

    @property
    def sets_per_week_range(self) -> Tuple[int, int]:
        return parse_int_range(self.mav) or (12, 18)

    @property
    def exercise_count(self) -> int:
        parsed = parse_int_range(self.exercises_per_session)
        if parsed:
            return (parsed[0] + parsed[1]) // 2
        return 3

    @property
    def sets_per_session(self) -> Optional[Tuple[int, int]]:
        return parse_int_range(self.sets_per_session_range)


# =============================================================================
# Collaborator records
# =============================================================================

@dataclass
class UserProfile:
    id: str
    goal: Goal
    experience: ExperienceLevel
    workout_frequency: int = 3
    gym_type: GymType = GymType.COMMERCIAL
    injuries: List[str] = field(default_factory=list)
    full_name: Optional[str] = None


@dataclass(frozen=True)
class CatalogExercise:
    """Exercise record from the exercise catalog."""
    id: str
    name: str
    muscle_group: str
    workout_type: str
    equipment: Tuple[str, ...] = ()
    is_compound: bool = False
    difficulty: ExperienceLevel = ExperienceLevel.BEGINNER
    description: str = ""


@dataclass
class WorkoutSession:
    id: str
    user_id: str
    workout_type: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class ExerciseSet:
    """Logged performance record for a single set."""
    id: str
    session_id: str
    exercise_id: str
    set_number: int
    reps: int
    weight: float
    completed_at: datetime
    rpe: Optional[int] = None
    rest_seconds: Optional[int] = None


@dataclass(frozen=True)
class ExercisePreference:
    exercise_id: str
    preference_level: PreferenceLevel
    reason: Optional[str] = None


# =============================================================================
# Session plan
# =============================================================================

@dataclass(frozen=True)
class PlannedExercise:
    id: str
    exercise_name: str
    muscle_group: str
    order_index: int
    is_compound: bool
    target_sets: int
    target_reps_min: int
    target_reps_max: int
    rest_seconds: int
    rationale: str
    exercise_id: Optional[str] = None
    intensity_technique: Optional[IntensityTechnique] = None
    safety_modification: Optional[str] = None
    is_completed: bool = False
    actual_sets: int = 0


@dataclass(frozen=True)
class MuscleVolumeTarget:
    muscle_group: str
    target_sets_today: int
    weekly_target: int
    completed_this_week: int
    reasoning: str


@dataclass(frozen=True)
class SessionPlan:
    id: str
    session_id: str
    user_id: str
    workout_type: str
    muscle_groups: Tuple[str, ...]
    generated_at: datetime
    exercises: Tuple[PlannedExercise, ...]
    volume_targets: Tuple[MuscleVolumeTarget, ...]
    safety_notes: Tuple[str, ...]
    estimated_duration: int

    def with_exercises(self, exercises) -> 'SessionPlan':
        """Return a copy of the plan carrying a new exercise list."""
        return replace(self, exercises=tuple(exercises))

    def exercises_for_group(self, muscle_group: str) -> List[PlannedExercise]:
        key = muscle_group.lower()
        return [e for e in self.exercises if e.muscle_group.lower() == key]

    def find(self, planned_id: str) -> Optional[PlannedExercise]:
        return next((e for e in self.exercises if e.id == planned_id), None)

    @property
    def is_empty(self) -> bool:
        return not self.exercises


@dataclass(frozen=True)
class MutationResult:
    """Outcome of a plan mutation.

    On failure `plan` is the unchanged input plan (None when there was no
    plan to mutate) and `error` says why.
    """
    ok: bool
    plan: Optional[SessionPlan]
    message: str = ""
    error: Optional[Exception] = None


class AdaptationReason(Enum):
    FAILED_SET = "Failed Set"
    PAIN_REPORTED = "Pain Reported"
    EQUIPMENT_UNAVAILABLE = "Equipment Unavailable"
    USER_REQUEST = "User Request"
    FATIGUE = "Excessive Fatigue"


class AdaptationAction(Enum):
    REDUCED_WEIGHT = "Reduced Weight"
    REDUCED_SETS = "Reduced Sets"
    SUBSTITUTED_EXERCISE = "Substituted Exercise"
    ADDED_REST = "Extended Rest"
    REMOVED_TECHNIQUE = "Removed Intensity Technique"


@dataclass(frozen=True)
class SessionAdaptation:
    timestamp: datetime
    exercise_id: str
    reason: AdaptationReason
    action: AdaptationAction
    notes: str


# =============================================================================
# Engine outputs
# =============================================================================

class RecommendationKind(Enum):
    INCREASE_WEIGHT = "increase_weight"
    DECREASE_WEIGHT = "decrease_weight"
    EXTEND_REST = "extend_rest"
    ON_TARGET = "on_target"
    PROGRESS = "progress"
    REST_REMINDER = "rest_reminder"


@dataclass(frozen=True)
class SetRecommendation:
    kind: RecommendationKind
    message: str
    actionable: bool
    suggested_adjustment: Optional[str] = None
    weight_delta: Optional[int] = None


@dataclass(frozen=True)
class SmartSubstitute:
    exercise: CatalogExercise
    detail: ExerciseDetail
    score: int
    reasoning: str


@dataclass(frozen=True)
class VolumeProgress:
    muscle_group: str
    completed: int
    min_sets: int
    max_sets: int
    status: str


@dataclass(frozen=True)
class MuscleVolumeData:
    muscle_group: str
    sets: int
    target_min: int
    target_max: int

    @property
    def percentage(self) -> float:
        midpoint = (self.target_min + self.target_max) / 2.0
        return min(self.sets / midpoint, 1.0) if midpoint > 0 else 0.0


@dataclass(frozen=True)
class ExerciseCountRecommendation:
    count: int
    reason: str
    source: str  # 'research' or 'heuristic'


@dataclass(frozen=True)
class ExerciseHighlight:
    exercise_name: str
    achievement: str
    metric: str


@dataclass(frozen=True)
class WorkoutSummaryData:
    planned_exercises: int
    planned_sets: int
    planned_duration: int
    planned_volume: int
    actual_exercises: int
    actual_sets: int
    actual_duration: int
    actual_volume: int
    overachievement: float
    efficiency: str
    pr_count: int
    volume_pr_muscle_groups: Tuple[str, ...]
    top_exercises: Tuple[ExerciseHighlight, ...]
    insights: Tuple[str, ...]
    next_workout_suggestion: str


@dataclass(frozen=True)
class SmartWorkoutRecommendation:
    workout_type: str
    muscle_groups: Tuple[str, ...]
    days_since_last_trained: int
    reasoning: str
    suggested_exercises: Tuple[Tuple[str, int], ...]


def new_id() -> str:
    """Generate a fresh identifier for plans, planned exercises and sets."""
    return str(uuid.uuid4())
