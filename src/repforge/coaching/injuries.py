"""
Injury-Aware Exercise Screening

Internal Codename: SENTINEL
Maps free-text injury descriptions to a fixed taxonomy and screens exercises
as safe, caution or avoid.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple, Union

from ..models import ExerciseDetail, SafetyStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class InjuryRule:
    """Exercise restrictions for one injury tag."""
    normalized_injury: str
    avoid_exercises: Tuple[str, ...]
    caution_exercises: Tuple[str, ...]
    preferred_substitutes: Tuple[str, ...]
    modification_notes: str


@dataclass(frozen=True)
class FilteredExercise:
    """An exercise with its screening verdict."""
    exercise: ExerciseDetail
    status: SafetyStatus
    note: Optional[str] = None


INJURY_TAXONOMY = ['shoulder', 'lower_back', 'knee', 'elbow', 'wrist']

# Free-text keywords per injury tag
INJURY_KEYWORDS = {
    'shoulder': ['shoulder', 'rotator'],
    'lower_back': ['back', 'spine', 'disc'],
    'knee': ['knee', 'acl', 'mcl', 'meniscus'],
    'elbow': ['elbow', 'golfer'],
    'wrist': ['wrist', 'carpal'],
}

# Exercise names are matched by case-insensitive containment, so entries are
# written as name stems ("Lateral Raise" also covers "Cable Lateral Raises").
INJURY_RULES = {
    'shoulder': InjuryRule(
        normalized_injury='shoulder',
        avoid_exercises=(
            'Barbell Overhead Press',
            'Behind-the-Neck Press',
            'Upright Row',
            'Wide-Grip Bench Press',
            'Dips',
            'Muscle-Up',
        ),
        caution_exercises=(
            'Barbell Bench Press',
            'Incline Dumbbell Press',
            'Lateral Raise',
            'Face Pull',
        ),
        preferred_substitutes=(
            'Landmine Press',
            'Neutral-Grip Dumbbell Press',
            'Cable Lateral Raises',
            'Machine Shoulder Press',
        ),
        modification_notes='Use neutral grips, limit overhead pressing and emphasize scapular stability',
    ),
    'lower_back': InjuryRule(
        normalized_injury='lower_back',
        avoid_exercises=(
            'Conventional Deadlift',
            'Barbell Row',
            'Good Morning',
            'Barbell Back Squat',
            'Weighted Hyperextension',
        ),
        caution_exercises=(
            'Romanian Deadlift',
            'Leg Press',
            'Front Squat',
        ),
        preferred_substitutes=(
            'Chest-Supported Row',
            'Machine Row',
            'Trap Bar Deadlift',
            'Goblet Squat',
            'Leg Press',
        ),
        modification_notes='Limit spinal loading, prefer supported positions and keep a neutral spine',
    ),
    'knee': InjuryRule(
        normalized_injury='knee',
        avoid_exercises=(
            'Deep Squat',
            'Leg Press',
            'Walking Lunge',
            'Bulgarian Split Squat',
            'Box Jump',
        ),
        caution_exercises=(
            'Barbell Back Squat',
            'Leg Extension',
            'Hack Squat',
        ),
        preferred_substitutes=(
            'Hip Thrust',
            'Glute Bridge',
            'Romanian Deadlift',
            'Hamstring Curl',
        ),
        modification_notes='Limit knee flexion under load, prefer hip-dominant movements and control range of motion',
    ),
    'elbow': InjuryRule(
        normalized_injury='elbow',
        avoid_exercises=(
            'Heavy Barbell Curl',
            'Skull Crusher',
            'Close-Grip Bench Press',
            'Overhead Tricep Extension',
        ),
        caution_exercises=(
            'Dumbbell Curl',
            'Tricep Dip',
            'Chin-Up',
        ),
        preferred_substitutes=(
            'Hammer Curl',
            'Cable Curl',
            'Cable Tricep Pushdown',
            'Machine Curl',
        ),
        modification_notes='Use lighter weights, avoid full lockout and prefer cables and machines',
    ),
    'wrist': InjuryRule(
        normalized_injury='wrist',
        avoid_exercises=(
            'Barbell Bench Press',
            'Barbell Overhead Press',
            'Barbell Curl',
            'Push-Up',
            'Front Squat',
        ),
        caution_exercises=(
            'Dumbbell Press',
            'Dumbbell Curl',
        ),
        preferred_substitutes=(
            'Machine Chest Press',
            'Cable Lateral Raises',
            'Neutral-Grip Dumbbell Press',
            'Goblet Squat',
            'Safety Bar Squat',
        ),
        modification_notes='Use neutral grips, prefer machines and cables, consider wrist wraps',
    ),
}


class InjuryRuleEngine:
    """
    Screens exercises against injury rules.

    Stateless after construction; safe to share between threads.
    """

    def __init__(self, rules: Optional[dict] = None):
        self.rules = rules if rules is not None else INJURY_RULES

    def parse_injuries(self, injuries: Union[str, Iterable[str], None]) -> List[str]:
        """
        Classify free-text injuries into the injury taxonomy.

        Best-effort keyword matching; never raises.

        Args:
            injuries: Free text ("bad left shoulder") or a list of such strings

        Returns:
            Deduplicated tags in taxonomy order, e.g. ['shoulder', 'knee']
        """
        if injuries is None:
            return []
        if not isinstance(injuries, str):
            injuries = ', '.join(str(i) for i in injuries)

        text = injuries.lower().strip()
        if not text:
            return []

        return [
            tag for tag in INJURY_TAXONOMY
            if any(keyword in text for keyword in INJURY_KEYWORDS[tag])
        ]

    def classify_exercise(self, name: str, injuries: List[str]) -> Tuple[SafetyStatus, Optional[str]]:
        """
        Resolve the safety status of a single exercise.

        The first avoid match decides. A caution match only applies while the
        exercise is still safe, so the first caution note is kept.
        """
        lowered = name.lower()
        status = SafetyStatus.SAFE
        note = None

        for injury in injuries:
            rule = self.rules.get(injury)
            if rule is None:
                continue

            if any(a.lower() in lowered for a in rule.avoid_exercises):
                return SafetyStatus.AVOID, f"Not recommended with {injury.replace('_', ' ')} issues"

            if status == SafetyStatus.SAFE and any(c.lower() in lowered for c in rule.caution_exercises):
                status = SafetyStatus.CAUTION
                note = f"Use with caution: {rule.modification_notes}"

        return status, note

    def assess_exercises(self, exercises: List[ExerciseDetail], injuries: List[str]) -> List[FilteredExercise]:
        """Screen every exercise, keeping avoid entries (for display badges)."""
        results = []
        for exercise in exercises:
            status, note = self.classify_exercise(exercise.name, injuries)
            results.append(FilteredExercise(exercise=exercise, status=status, note=note))
        return results

    def filter_exercises(self, exercises: List[ExerciseDetail], injuries: List[str]) -> List[FilteredExercise]:
        """
        Screen exercises for plan generation.

        Avoid entries are dropped; safe and caution entries keep their input
        order.
        """
        filtered = [
            f for f in self.assess_exercises(exercises, injuries)
            if f.status != SafetyStatus.AVOID
        ]
        dropped = len(exercises) - len(filtered)
        if dropped:
            logger.debug(f"Excluded {dropped} exercise(s) for injuries {injuries}")
        return filtered

    def get_safe_substitutes(self, muscle_group: str, injuries: List[str]) -> List[str]:
        """Preferred substitutes across all matched rules, first occurrence kept."""
        substitutes = []
        for injury in injuries:
            rule = self.rules.get(injury)
            if rule is None:
                continue
            for name in rule.preferred_substitutes:
                if name not in substitutes:
                    substitutes.append(name)
        return substitutes

    def get_modification_notes(self, injuries: List[str]) -> List[str]:
        return [self.rules[i].modification_notes for i in injuries if i in self.rules]
